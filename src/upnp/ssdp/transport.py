"""
Module providing the UDP multicast transport used to exchange SSDP messages.

A single socket is bound to the SSDP port and joined to the SSDP multicast
group on one network interface. It receives both multicast advertisements and
the unicast responses to the searches it sends.
"""

import ipaddress
import logging
import select
import socket
import threading
from collections import namedtuple
from socket import (
    AF_INET,
    IPPROTO_IP,
    IPPROTO_UDP,
    IP_ADD_MEMBERSHIP,
    IP_DROP_MEMBERSHIP,
    IP_MULTICAST_IF,
    IP_MULTICAST_TTL,
    SOCK_DGRAM,
    SOL_SOCKET,
    SO_REUSEADDR,
    inet_aton,
)
from typing import Iterator, Optional, Tuple

from upnp.ssdp.message import SSDP_MULTICAST_ADDRESS, SSDP_PORT

IP_ADDRESS_ANY = "0.0.0.0"
MAXIMUM_DATAGRAM_SIZE = 65507
DEFAULT_MULTICAST_TTL = 2
DEFAULT_POLL_INTERVAL = 0.1

RawDatagram = namedtuple("RawDatagram", ["data", "address"])


class TransportError(OSError):
    """
    Base class for failures of the multicast transport.
    """


class BindError(TransportError):
    """
    Raised when the socket cannot be opened, bound or joined to the multicast
    group on the requested interface.
    """


class SendError(TransportError):
    """
    Raised when a datagram could not be sent.
    """


class ReceiveError(TransportError):
    """
    Raised when the socket fails while receiving, other than by being closed.
    """


def configure_reusable_socket() -> socket.socket:
    """
    Sets up a UDP socket for listening with reusable address, so several
    browsers on the same host can share the SSDP port.

    :return: A socket.
    """
    s = socket.socket(AF_INET, SOCK_DGRAM, IPPROTO_UDP)
    s.setsockopt(SOL_SOCKET, SO_REUSEADDR, 1)
    if hasattr(socket, "SO_REUSEPORT"):
        s.setsockopt(SOL_SOCKET, socket.SO_REUSEPORT, 1)
    return s


class MulticastTransport:
    """
    Sends and receives SSDP datagrams on the multicast group of one interface.

    :param group: The multicast group address.
    :param port: The port to bind to, and that searches are sent to. Use ``0``
        to bind to any free port.
    :param ttl: The time to live of outgoing multicast datagrams.
    :param poll_interval: Maximum time, in seconds, that :meth:`receive` waits
        for a datagram before checking whether the transport has been closed.
    """

    def __init__(
        self,
        group: str = SSDP_MULTICAST_ADDRESS,
        port: int = SSDP_PORT,
        ttl: int = DEFAULT_MULTICAST_TTL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.logger = logging.getLogger(__name__)
        self.group = group
        self.ttl = ttl
        self.poll_interval = poll_interval
        self.interface_address: Optional[str] = None
        self._requested_port = port
        self._socket: Optional[socket.socket] = None
        self._membership: Optional[bytes] = None
        self._lock = threading.Lock()

    @property
    def bound(self) -> bool:
        return self._socket is not None

    @property
    def port(self) -> int:
        sock = self._socket
        if sock is None:
            return self._requested_port
        return sock.getsockname()[1]

    @property
    def group_address(self) -> Tuple[str, int]:
        """
        The multicast destination searches are sent to.
        """
        return self.group, self.port

    def bind(self, interface_address: str):
        """
        Opens the socket and joins the multicast group on the given interface.

        :param interface_address: IPv4 address of the local interface to use.
        :return: This transport.
        :raises BindError: If the address is invalid, the transport is already
            bound, or the socket cannot be bound or joined to the group.
        """
        try:
            ipaddress.IPv4Address(interface_address)
        except ValueError as e:
            raise BindError(f"Invalid interface address: {interface_address!r}") from e

        with self._lock:
            if self._socket is not None:
                raise BindError(f"Transport already bound to {self.interface_address}")
            membership = inet_aton(self.group) + inet_aton(interface_address)
            try:
                sock = configure_reusable_socket()
            except OSError as e:
                raise BindError(f"Could not open a UDP socket: {e}") from e
            try:
                sock.bind((IP_ADDRESS_ANY, self._requested_port))
                sock.setsockopt(IPPROTO_IP, IP_ADD_MEMBERSHIP, membership)
                sock.setsockopt(IPPROTO_IP, IP_MULTICAST_IF, inet_aton(interface_address))
                sock.setsockopt(IPPROTO_IP, IP_MULTICAST_TTL, self.ttl)
                sock.setblocking(False)
            except OSError as e:
                sock.close()
                raise BindError(
                    f"Could not join {self.group}:{self._requested_port} "
                    f"on {interface_address}: {e}"
                ) from e
            self._socket = sock
            self._membership = membership
            self.interface_address = interface_address
        self.logger.debug(
            f"Joined {self.group} on {interface_address}, listening on port {self.port}"
        )
        return self

    def send(self, data: bytes, destination: Optional[Tuple[str, int]] = None):
        """
        Sends a datagram without blocking.

        :param data: The payload.
        :param destination: Host and port to send to. Defaults to the multicast
            group.
        :raises SendError: If the transport is not bound or the send failed.
        """
        sock = self._socket
        if sock is None:
            raise SendError("Cannot send on a transport that is not bound.")
        if destination is None:
            destination = self.group_address
        try:
            sock.sendto(data, destination)
        except OSError as e:
            raise SendError(f"Could not send to {destination}: {e}") from e

    def receive(self) -> Iterator[RawDatagram]:
        """
        Yields received datagrams until the transport is closed.

        The iteration ends quietly once :meth:`close` is called, at most
        :attr:`poll_interval` seconds later. Binding the transport again
        requires a new call to this method.

        :raises ReceiveError: If the socket fails for any other reason.
        """
        sock = self._socket
        if sock is None:
            raise ReceiveError("Cannot receive on a transport that is not bound.")
        return self._receive_from(sock)

    def _receive_from(self, sock: socket.socket) -> Iterator[RawDatagram]:
        while self._socket is sock:
            try:
                readable, _, exceptional = select.select(
                    [sock], [], [sock], self.poll_interval
                )
                if exceptional:
                    raise OSError("Exception on socket while checking for messages.")
                if not readable:
                    continue
                data, address = sock.recvfrom(MAXIMUM_DATAGRAM_SIZE)
            except BlockingIOError:
                continue
            except (OSError, ValueError) as e:
                if self._socket is not sock:
                    return
                raise ReceiveError(f"Receiving failed on {self.interface_address}: {e}") from e
            yield RawDatagram(data, address)

    def close(self):
        """
        Leaves the multicast group and closes the socket. Closing a transport
        that is not bound does nothing.
        """
        with self._lock:
            sock, membership = self._socket, self._membership
            self._socket = None
            self._membership = None
        if sock is None:
            return
        try:
            sock.setsockopt(IPPROTO_IP, IP_DROP_MEMBERSHIP, membership)
        except OSError as e:
            self.logger.debug(f"Could not leave multicast group {self.group}: {e}")
        sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
