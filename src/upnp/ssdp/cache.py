"""
Module providing the cache of live SSDP services.
"""

import threading
from enum import Enum
from typing import Dict, List, Optional

from upnp.ssdp.service import SSDPService


class UpsertResult(Enum):
    ADDED = "added"
    REFRESHED = "refreshed"


class RemoveResult(Enum):
    REMOVED = "removed"
    NO_OP = "no-op"


class ServiceCache:
    """
    The set of currently known services, keyed by USN.

    All operations are thread-safe, so the cache can be shared between the
    thread receiving advertisements and the thread sweeping expired entries.
    """

    def __init__(self):
        self._services: Dict[str, SSDPService] = {}
        self._lock = threading.RLock()

    def upsert(self, service: SSDPService) -> UpsertResult:
        """
        Inserts a service, or replaces the entry with the same USN.

        Replacing an entry takes on the fields of the new advertisement,
        including its expiry.

        :param service: The service to store.
        :return: :attr:`UpsertResult.ADDED` if the USN was not known,
            :attr:`UpsertResult.REFRESHED` otherwise.
        """
        with self._lock:
            known = service.usn in self._services
            self._services[service.usn] = service
        return UpsertResult.REFRESHED if known else UpsertResult.ADDED

    def remove(self, usn: str) -> RemoveResult:
        with self._lock:
            service = self._services.pop(usn, None)
        return RemoveResult.NO_OP if service is None else RemoveResult.REMOVED

    def pop(self, usn: str) -> Optional[SSDPService]:
        """
        Removes the service with the given USN and returns it, or returns
        `None` if the USN is not in the cache.
        """
        with self._lock:
            return self._services.pop(usn, None)

    def sweep_expired(self, now: float) -> List[SSDPService]:
        """
        Removes every service whose expiry is at or before the given time.

        :param now: The current time, on the same clock as the service expiries.
        :return: The removed services.
        """
        with self._lock:
            expired = [
                service
                for service in self._services.values()
                if service.is_expired(now)
            ]
            for service in expired:
                del self._services[service.usn]
        return expired

    def clear(self):
        with self._lock:
            self._services.clear()

    def get(self, usn: str) -> Optional[SSDPService]:
        with self._lock:
            return self._services.get(usn)

    @property
    def services(self) -> List[SSDPService]:
        """
        A snapshot of the services currently in the cache.
        """
        with self._lock:
            return list(self._services.values())

    def __contains__(self, usn):
        with self._lock:
            return usn in self._services

    def __len__(self):
        with self._lock:
            return len(self._services)
