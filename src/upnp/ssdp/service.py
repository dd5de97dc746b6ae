"""
Module defining a discovered SSDP service.
"""

from typing import Dict, Mapping, Optional

from upnp.ssdp.message import DecodeError, SSDPMessage


class SSDPService:
    """
    A service advertised over SSDP.

    Services are identified by their unique service name (USN): two services
    with the same USN compare equal, whatever their other fields. The expiry is
    an absolute time on the clock of the browser that received the
    advertisement, after which the service is considered gone unless it has
    been advertised again.
    """

    def __init__(
        self,
        usn: str,
        service_type: str,
        location: Optional[str] = None,
        server: Optional[str] = None,
        expires_at: float = 0.0,
        *,
        max_age: int = 0,
        host: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        if not usn:
            raise ValueError("A service requires a unique service name (USN).")
        self.usn = usn
        self.service_type = service_type
        self.location = location
        self.server = server
        self.expires_at = expires_at
        self.max_age = max_age
        self.host = host
        self.headers: Dict[str, str] = dict(headers or {})

    @classmethod
    def from_message(cls, message: SSDPMessage, received_at: float):
        """
        Creates a service from a search response or alive notification.

        :param message: The decoded message.
        :param received_at: Time the message was received, used to compute the
            expiry from the advertised max-age.
        :raises DecodeError: If the message does not carry a USN.
        """
        if not message.usn:
            raise DecodeError(f"Advertisement without USN: {message}")
        max_age = message.max_age
        return cls(
            usn=message.usn,
            service_type=message.service_type or "",
            location=message.location,
            server=message.server,
            expires_at=received_at + max_age,
            max_age=max_age,
            host=message.sender[0] if message.sender else None,
            headers=message.headers,
        )

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now

    def __repr__(self):
        return (
            f"SSDPService(usn={self.usn!r}, service_type={self.service_type!r}, "
            f"location={self.location!r})"
        )

    def __hash__(self):
        return hash(self.usn)

    def __eq__(self, other):
        if not isinstance(other, SSDPService):
            return NotImplemented
        return self.usn == other.usn
