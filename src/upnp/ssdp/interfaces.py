"""
Module providing the network interfaces a browser can bind to.

Every call takes a fresh snapshot of the host's interfaces, so results stay
correct when interfaces come and go.
"""

import ipaddress
import socket
from typing import Any, Dict, List, Optional

import psutil


def get_ipv4_addresses() -> Dict[str, List[Any]]:
    """
    Gets the IPv4 addresses of every network interface that is currently up.

    :return: A dictionary of interface name to the address entries of that
        interface, as returned by :func:`psutil.net_if_addrs`.
    """
    active_ifs = {name for name, stats in psutil.net_if_stats().items() if stats.isup}
    return {
        name: [addr for addr in addrs if addr.family == socket.AddressFamily.AF_INET]
        for name, addrs in psutil.net_if_addrs().items()
        if name in active_ifs
    }


def list_available_interfaces() -> Dict[str, str]:
    """
    Gets the network interfaces that can be used for browsing.

    :return: A dictionary of interface name to the first IPv4 address of that
        interface. Interfaces without an IPv4 address are left out.

    .. code::

        {
          'lo': '127.0.0.1',
          'eth0': '192.168.1.15'
        }

    """
    return {name: addrs[0].address for name, addrs in get_ipv4_addresses().items() if addrs}


def get_default_ipv4_address() -> str:
    """
    Portable method for getting the default IP address of the machine.
    If no network connection is available, the loopback IP is returned.
    Note that if the machine is running multiple network interfaces, then this picks the 'primary' IP.

    :return: The primary IP address of the machine.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(("10.255.255.255", 1))
        ip = s.getsockname()[0]
    except OSError:
        ip = "127.0.0.1"
    finally:
        s.close()
    return ip


def is_ipv4_address(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def resolve_interface_address(interface: Optional[str]) -> Optional[str]:
    """
    Resolves an interface given by name or by address to an IPv4 address.

    :param interface: An interface name such as ``eth0``, an IPv4 address, or
        `None` to use the default address of the machine.
    :return: The IPv4 address to bind to, or `None` if the name does not match
        any interface that is up with an IPv4 address.
    """
    if interface is None:
        return get_default_ipv4_address()
    if is_ipv4_address(interface):
        return interface
    return list_available_interfaces().get(interface)
