"""
Module providing the SSDP service browser.

A browser searches for one service type on one network interface, keeps track
of the services that answer or advertise themselves, and reports them to a
delegate as they appear and disappear:

.. code::

    class PrintingDelegate(SSDPServiceBrowserDelegate):
        def on_service_found(self, browser, service):
            print("found", service.location)

        def on_service_removed(self, browser, service):
            print("removed", service.location)

    browser = SSDPServiceBrowser(delegate=PrintingDelegate())
    browser.start_browsing(MEDIA_RENDERER_1, "192.168.1.15")
    ...
    browser.stop_browsing()

Browsing runs on two background threads: one receiving datagrams, and one
periodically repeating the search and removing services whose advertised
lifetime has elapsed. Delegate methods are called from these threads.
"""

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from upnp.ssdp.cache import ServiceCache, UpsertResult
from upnp.ssdp.interfaces import list_available_interfaces, resolve_interface_address
from upnp.ssdp.message import (
    DEFAULT_MX,
    SSDP_PORT,
    DecodeError,
    MessageKind,
    SSDPMessage,
    decode_message,
    encode_search,
    validate_mx,
    validate_service_type,
)
from upnp.ssdp.service import SSDPService
from upnp.ssdp.service_types import SERVICE_TYPE_ALL
from upnp.ssdp.transport import (
    DEFAULT_MULTICAST_TTL,
    DEFAULT_POLL_INTERVAL,
    BindError,
    MulticastTransport,
    RawDatagram,
    ReceiveError,
    SendError,
)

DEFAULT_SWEEP_INTERVAL = 1.0


class BrowserState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass(frozen=True)
class SearchSession:
    """
    The service type being browsed for and the interface browsing happens on.
    """

    service_type: str
    interface_address: Optional[str] = None

    def matches(self, service_type: Optional[str]) -> bool:
        """
        Whether services of the given type are relevant to this session.
        """
        if self.service_type == SERVICE_TYPE_ALL:
            return True
        return service_type == self.service_type


class SSDPServiceBrowserDelegate:
    """
    Receives the events of an :class:`SSDPServiceBrowser`.

    Subclass and override the methods of interest. The methods are called from
    the browser's background threads and should return promptly, as
    datagrams are not processed while a delegate method runs.
    """

    def on_service_found(self, browser: "SSDPServiceBrowser", service: SSDPService):
        """
        A service matching the browsed type appeared.
        """

    def on_service_removed(self, browser: "SSDPServiceBrowser", service: SSDPService):
        """
        A previously found service said goodbye, or its advertisement expired.
        """

    def on_browse_failed(self, browser: "SSDPServiceBrowser", error: Exception):
        """
        Browsing could not start, or stopped because the socket failed. The
        browser is idle again when this is called.
        """


class CallbackDelegate(SSDPServiceBrowserDelegate):
    """
    Delegate forwarding events to plain callables, which receive the same
    arguments as the delegate methods minus the browser.
    """

    def __init__(
        self,
        on_found: Optional[Callable[[SSDPService], None]] = None,
        on_removed: Optional[Callable[[SSDPService], None]] = None,
        on_failed: Optional[Callable[[Exception], None]] = None,
    ):
        self._on_found = on_found
        self._on_removed = on_removed
        self._on_failed = on_failed

    def on_service_found(self, browser, service):
        if self._on_found is not None:
            self._on_found(service)

    def on_service_removed(self, browser, service):
        if self._on_removed is not None:
            self._on_removed(service)

    def on_browse_failed(self, browser, error):
        if self._on_failed is not None:
            self._on_failed(error)


class SSDPServiceBrowser:
    """
    Browses for SSDP services of a given type.

    :param network_interface: Default interface to browse on, given by name
        (e.g. ``eth0``) or IPv4 address. If neither this nor the address passed
        to :meth:`start_browsing` is set, the default address of the machine
        is used.
    :param delegate: Object receiving the browsing events.
    :param port: The SSDP port to listen on.
    :param mx: Seconds devices may wait before answering a search, between 1
        and 5.
    :param ttl: Time to live of outgoing multicast searches.
    :param search_interval: Seconds between repeated searches. Defaults to
        ``mx``, as searches and responses may be lost.
    :param sweep_interval: Seconds between checks for expired services.
    :param poll_interval: Seconds the receiving thread waits for data before
        checking whether browsing has stopped.
    :param transport_factory: Callable creating the transport for a session.
        Defaults to a :class:`MulticastTransport` configured from the above.
    :param clock: Monotonic clock, in seconds, used to compute and check the
        expiry of services.
    """

    def __init__(
        self,
        network_interface: Optional[str] = None,
        delegate: Optional[SSDPServiceBrowserDelegate] = None,
        *,
        port: int = SSDP_PORT,
        mx: int = DEFAULT_MX,
        ttl: int = DEFAULT_MULTICAST_TTL,
        search_interval: Optional[float] = None,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        transport_factory: Optional[Callable[[], MulticastTransport]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        validate_mx(mx)
        if search_interval is None:
            search_interval = float(mx)
        if search_interval <= 0:
            raise ValueError(f"Search interval must be positive, got {search_interval}")
        if sweep_interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {sweep_interval}")

        self.logger = logging.getLogger(__name__)
        self.delegate = delegate
        self.port = port
        self.mx = mx
        self.ttl = ttl
        self.search_interval = search_interval
        self.sweep_interval = sweep_interval
        self.poll_interval = poll_interval
        if transport_factory is None:
            transport_factory = self._create_transport
        self._network_interface = network_interface
        self._transport_factory = transport_factory
        self._clock = clock
        self._cache = ServiceCache()

        # guards the session state below
        self._lock = threading.RLock()
        # serialises cache changes with the delegate calls they cause
        self._event_lock = threading.RLock()
        self._state = BrowserState.IDLE
        self._session: Optional[SearchSession] = None
        self._transport = None
        self._cancel: Optional[threading.Event] = None
        self._receive_thread: Optional[threading.Thread] = None
        self._maintenance_thread: Optional[threading.Thread] = None

    @staticmethod
    def available_network_interfaces() -> Dict[str, str]:
        """
        Gets the network interfaces that can be browsed on.

        :return: A dictionary of interface name to IPv4 address.
        """
        return list_available_interfaces()

    @property
    def network_interface(self) -> Optional[str]:
        return self._network_interface

    @property
    def state(self) -> BrowserState:
        with self._lock:
            return self._state

    @property
    def session(self) -> Optional[SearchSession]:
        """
        The current search session, or `None` when idle.
        """
        with self._lock:
            return self._session

    @property
    def browsing(self) -> bool:
        return self.state in (BrowserState.STARTING, BrowserState.ACTIVE)

    @property
    def services(self) -> List[SSDPService]:
        """
        A snapshot of the services currently found.
        """
        return self._cache.services

    def start_browsing(self, service_type: str, interface_address: Optional[str] = None):
        """
        Starts browsing for services of the given type.

        Returns immediately; binding happens in the background, and a failure
        to bind is reported through :meth:`SSDPServiceBrowserDelegate.on_browse_failed`.
        Calling this while already browsing does nothing, even with a different
        service type.

        :param service_type: The search target, e.g. ``ssdp:all`` or a URN from
            :mod:`upnp.ssdp.service_types`.
        :param interface_address: The interface to browse on, by IPv4 address or
        :raises ValueError: If the service type is empty or spans several lines.
        :raises ValueError: If the service type is empty.
        """
        validate_service_type(service_type)
        with self._lock:
            if self._state is not BrowserState.IDLE:
                self.logger.debug(
                    f"Ignoring request to browse for {service_type}: "
                    f"browser is {self._state.value}."
                )
                return
            if interface_address is None:
                interface_address = self._network_interface
            session = SearchSession(service_type, interface_address)
            cancel = threading.Event()
            self._session = session
            self._cancel = cancel
            self._state = BrowserState.STARTING
            self._maintenance_thread = None
            self._receive_thread = threading.Thread(
                target=self._run,
                args=(session, cancel),
                name="ssdp-browser-receive",
                daemon=True,
            )
            self._receive_thread.start()

    def stop_browsing(self):
        """
        Stops browsing and forgets every service found, without reporting them
        as removed.

        No delegate method is called once this returns. Calling this while not
        browsing does nothing.
        """
        current = threading.current_thread()
        with self._lock:
            in_worker = current in (self._receive_thread, self._maintenance_thread)
            if self._state in (BrowserState.IDLE, BrowserState.STOPPING):
                # a failure may be tearing the session down, let it finish
                stopping = False
                transport = None
                threads = [self._receive_thread]
            else:
                stopping = True
                self._state = BrowserState.STOPPING
                self._cancel.set()
                transport = self._transport
                threads = [self._receive_thread, self._maintenance_thread]

        if transport is not None:
            transport.close()
        if not in_worker:
            for thread in threads:
                if thread is not None and thread is not current:
                    thread.join()

        if stopping:
            with self._lock:
                session = self._session
                self._end_session()
            self.logger.info(f"Stopped browsing for {session.service_type}.")

    def _create_transport(self) -> MulticastTransport:
        return MulticastTransport(
            port=self.port, ttl=self.ttl, poll_interval=self.poll_interval
        )

    def _end_session(self):
        self._cache.clear()
        self._transport = None
        self._session = None
        self._state = BrowserState.IDLE

    def _bind(self, session: SearchSession):
        address = resolve_interface_address(session.interface_address)
        if address is None:
            raise BindError(
                f"No IPv4 address found for network interface {session.interface_address!r}."
            )
        transport = self._transport_factory()
        transport.bind(address)
        return transport, address

    def _run(self, session: SearchSession, cancel: threading.Event):
        try:
            transport, address = self._bind(session)
        except OSError as e:
            error = e
            if not isinstance(error, BindError):
                error = BindError(f"Could not open the transport: {e}")
                error.__cause__ = e
            self.logger.warning(
                f"Could not start browsing for {session.service_type}: {error}"
            )
            with self._lock:
                if cancel.is_set():
                    return
                cancel.set()
                self._end_session()
            self._call_delegate("on_browse_failed", error)
            return

        # the first search goes out before the browser reports itself active
        if not cancel.is_set():
            self._send_search(transport, session, cancel)

        with self._lock:
            if cancel.is_set():
                transport.close()
                return
            self._transport = transport
            self._session = dataclasses.replace(session, interface_address=address)
            self._state = BrowserState.ACTIVE
            self._maintenance_thread = threading.Thread(
                target=self._maintain,
                args=(transport, session, cancel),
                name="ssdp-browser-maintenance",
                daemon=True,
            )
            self._maintenance_thread.start()
        self.logger.info(f"Browsing for {session.service_type} on {address}.")

        try:
            for datagram in transport.receive():
                if cancel.is_set():
                    break
                self._handle_datagram(datagram, session, cancel)
            if not cancel.is_set():
                raise ReceiveError("Transport stopped receiving unexpectedly.")
        except ReceiveError as e:
            if not cancel.is_set():
                self._fail(e, cancel)

    def _fail(self, error: Exception, cancel: threading.Event):
        with self._lock:
            if cancel.is_set():
                return
            cancel.set()
            self._state = BrowserState.STOPPING
            transport = self._transport
            maintenance = self._maintenance_thread
        self.logger.error(f"Browsing stopped unexpectedly: {error}")
        if transport is not None:
            transport.close()
        if maintenance is not None and maintenance is not threading.current_thread():
            maintenance.join()
        with self._lock:
            self._end_session()
        self._call_delegate("on_browse_failed", error)

    def _maintain(self, transport, session: SearchSession, cancel: threading.Event):
        now = time.monotonic()
        next_search = now + self.search_interval
        next_sweep = now + self.sweep_interval
        try:
            while not cancel.is_set():
                now = time.monotonic()
                if now >= next_search:
                    self._send_search(transport, session, cancel)
                    next_search = now + self.search_interval
                if now >= next_sweep:
                    self._sweep(cancel)
                    next_sweep = now + self.sweep_interval
                timeout = min(next_search, next_sweep) - time.monotonic()
                cancel.wait(timeout=max(0.0, timeout))
        except Exception as e:
            if cancel.is_set():
                return
            self.logger.exception("Search and sweep loop failed.")
            self._fail(e, cancel)

    def _send_search(self, transport, session: SearchSession, cancel: threading.Event):
        request = encode_search(session.service_type, transport.group_address, self.mx)
        try:
            transport.send(request)
        except SendError as e:
            if not cancel.is_set():
                self.logger.warning(f"Search for {session.service_type} was not sent: {e}")
        else:
            self.logger.debug(f"Searched for {session.service_type}.")

    def _sweep(self, cancel: threading.Event):
        with self._event_lock:
            if cancel.is_set():
                return
            expired = self._cache.sweep_expired(self._clock())
            for service in expired:
                self.logger.info(f"Service expired: {service.usn}")
                self._notify(cancel, "on_service_removed", service)

    def _handle_datagram(
        self, datagram: RawDatagram, session: SearchSession, cancel: threading.Event
    ):
        message = decode_message(datagram.data, sender=datagram.address)
        if message.kind is MessageKind.UNKNOWN:
            self.logger.debug(f"Dropped datagram from {datagram.address}.")
        elif message.kind is MessageKind.NOTIFY_BYEBYE:
            self._handle_byebye(message, cancel)
        elif session.matches(message.service_type):
            self._handle_advertisement(message, cancel)

    def _handle_advertisement(self, message: SSDPMessage, cancel: threading.Event):
        try:
            service = SSDPService.from_message(message, received_at=self._clock())
        except DecodeError as e:
            self.logger.debug(f"Dropped advertisement from {message.sender}: {e}")
            return
        with self._event_lock:
            if cancel.is_set():
                return
            if self._cache.upsert(service) is UpsertResult.ADDED:
                self.logger.info(f"Service found: {service.usn} at {service.location}")
                self._notify(cancel, "on_service_found", service)

    def _handle_byebye(self, message: SSDPMessage, cancel: threading.Event):
        if not message.usn:
            return
        with self._event_lock:
            if cancel.is_set():
                return
            service = self._cache.pop(message.usn)
            if service is not None:
                self.logger.info(f"Service removed: {service.usn}")
                self._notify(cancel, "on_service_removed", service)

    def _notify(self, cancel: threading.Event, method: str, *args):
        if not cancel.is_set():
            self._call_delegate(method, *args)

    def _call_delegate(self, method: str, *args):
        delegate = self.delegate
        if delegate is None:
            return
        try:
            getattr(delegate, method)(self, *args)
        except Exception:
            self.logger.exception(f"Delegate raised an exception in {method}.")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_browsing()
