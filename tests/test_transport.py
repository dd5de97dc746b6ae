import socket
import threading
from unittest.mock import Mock, patch

import pytest

from upnp.ssdp.transport import (
    BindError,
    MulticastTransport,
    RawDatagram,
    ReceiveError,
    SendError,
)

LOOPBACK = "127.0.0.1"
TEST_POLL_INTERVAL = 0.01


@pytest.fixture
def transport():
    transport = MulticastTransport(port=0, poll_interval=TEST_POLL_INTERVAL)
    yield transport
    transport.close()


@pytest.fixture
def loopback_transport(transport):
    try:
        transport.bind(LOOPBACK)
    except BindError as e:
        pytest.skip(f"Multicast is not available on the loopback interface: {e}")
    return transport


def send_to(port, data):
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.sendto(data, (LOOPBACK, port))


@pytest.mark.parametrize("address", ["", "not an address", "999.1.1.1", "::1", "eth0"])
def test_bind_invalid_address(transport, address):
    with pytest.raises(BindError):
        transport.bind(address)
    assert not transport.bound


def test_bind_unavailable_address(transport):
    """
    Test that binding to an address that belongs to no local interface fails
    when joining the multicast group.
    """
    with pytest.raises(BindError):
        transport.bind("203.0.113.7")
    assert not transport.bound


def test_bind_error_is_os_error(transport):
    with pytest.raises(OSError):
        transport.bind("invalid")


def test_bind_twice(loopback_transport):
    with pytest.raises(BindError):
        loopback_transport.bind(LOOPBACK)


def test_bound_port(loopback_transport):
    assert loopback_transport.bound
    assert loopback_transport.port != 0
    assert loopback_transport.group_address == ("239.255.255.250", loopback_transport.port)


@pytest.mark.timeout(2)
def test_receive_unicast(loopback_transport):
    send_to(loopback_transport.port, b"hello")
    datagram = next(loopback_transport.receive())
    assert isinstance(datagram, RawDatagram)
    assert datagram.data == b"hello"
    assert datagram.address[0] == LOOPBACK


@pytest.mark.timeout(2)
def test_receive_several(loopback_transport):
    for payload in (b"one", b"two", b"three"):
        send_to(loopback_transport.port, payload)
    datagrams = loopback_transport.receive()
    assert [next(datagrams).data for _ in range(3)] == [b"one", b"two", b"three"]


@pytest.mark.timeout(2)
def test_close_ends_receive(loopback_transport):
    received = []
    datagrams = loopback_transport.receive()

    def consume():
        for datagram in datagrams:
            received.append(datagram)

    thread = threading.Thread(target=consume)
    thread.start()
    loopback_transport.close()
    thread.join()
    assert received == []
    assert not loopback_transport.bound


def test_rebind_after_close(loopback_transport):
    loopback_transport.close()
    loopback_transport.bind(LOOPBACK)
    assert loopback_transport.bound


def test_close_is_idempotent(loopback_transport):
    loopback_transport.close()
    loopback_transport.close()
    assert not loopback_transport.bound


def test_close_unbound(transport):
    transport.close()
    assert not transport.bound


def test_context_manager_closes():
    with MulticastTransport(port=0) as transport:
        try:
            transport.bind(LOOPBACK)
        except BindError as e:
            pytest.skip(f"Multicast is not available on the loopback interface: {e}")
    assert not transport.bound


def test_send_unbound(transport):
    with pytest.raises(SendError):
        transport.send(b"data")


def test_receive_unbound(transport):
    with pytest.raises(ReceiveError):
        next(transport.receive())


def test_send_failure(transport):
    sock = Mock()
    sock.sendto.side_effect = OSError("Network is unreachable")
    transport._socket = sock
    with pytest.raises(SendError):
        transport.send(b"data", ("239.255.255.250", 1900))
    transport._socket = None


def test_send_defaults_to_group(transport):
    sock = Mock()
    sock.getsockname.return_value = (LOOPBACK, 1900)
    transport._socket = sock
    transport.send(b"data")
    sock.sendto.assert_called_once_with(b"data", ("239.255.255.250", 1900))
    transport._socket = None


def test_receive_failure(transport):
    """
    Test that a socket failing while receiving raises, rather than ending the
    iteration as a close would.
    """
    transport._socket = Mock()
    with patch("upnp.ssdp.transport.select.select", side_effect=OSError("Bad file descriptor")):
        with pytest.raises(ReceiveError):
            next(transport.receive())
    transport._socket = None


def test_bind_socket_creation_failure(transport):
    """
    Test that failing to create the socket itself, e.g. when the process is
    out of file descriptors, is reported as a bind failure.
    """
    with patch(
        "upnp.ssdp.transport.configure_reusable_socket",
        side_effect=OSError(24, "Too many open files"),
    ):
        with pytest.raises(BindError) as excinfo:
            transport.bind(LOOPBACK)
    assert isinstance(excinfo.value.__cause__, OSError)
    assert not transport.bound
