"""
Command line interface for browsing SSDP services.
"""

import argparse
import logging
import textwrap
from typing import Optional

from upnp.ssdp.browser import SSDPServiceBrowser, SSDPServiceBrowserDelegate
from upnp.ssdp.message import DEFAULT_MX, MAXIMUM_MX, MINIMUM_MX
from upnp.ssdp.service import SSDPService
from upnp.ssdp.service_types import SERVICE_TYPE_ALL
from upnp.ssdp.utilities import (
    CancellationToken,
    suppress_keyboard_interrupt_as_cancellation,
)


def handle_user_arguments(args=None) -> argparse.Namespace:
    """
    Parse the arguments from the command line.

    :return: The namespace of arguments read from the command line.
    """
    description = textwrap.dedent(
        """\
    Browse for UPnP devices and services advertised over SSDP.
    """
    )
    parser = argparse.ArgumentParser(description=description)

    parser.add_argument(
        "-t",
        "--service-type",
        default=SERVICE_TYPE_ALL,
        help="Service type to search for (default: %(default)s).",
    )
    parser.add_argument(
        "-i",
        "--interface",
        default=None,
        metavar="NAME_OR_ADDRESS",
        help="Network interface to browse on, by name or IPv4 address.",
    )
    parser.add_argument(
        "--mx",
        type=int,
        default=DEFAULT_MX,
        choices=range(MINIMUM_MX, MAXIMUM_MX + 1),
        help="Seconds devices may wait before answering (default: %(default)s).",
    )
    parser.add_argument(
        "-d",
        "--duration",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Stop browsing after this many seconds instead of waiting for Ctrl+C.",
    )
    parser.add_argument(
        "--list-interfaces",
        action="store_true",
        default=False,
        help="List the network interfaces available for browsing and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Log every search and dropped datagram.",
    )

    arguments = parser.parse_args(args)
    return arguments


def format_service(service: SSDPService) -> str:
    server = f" ({service.server})" if service.server else ""
    return f"{service.service_type} {service.location or '-'}{server}\n    {service.usn}"


class PrintingDelegate(SSDPServiceBrowserDelegate):
    def __init__(self, cancellation: Optional[CancellationToken] = None):
        self.cancellation = cancellation

    def on_service_found(self, browser, service):
        print(f"+ {format_service(service)}")

    def on_service_removed(self, browser, service):
        print(f"- {format_service(service)}")

    def on_browse_failed(self, browser, error):
        print(f"Browsing failed: {error}")
        if self.cancellation is not None:
            self.cancellation.cancel()


def print_interfaces():
    interfaces = SSDPServiceBrowser.available_network_interfaces()
    if not interfaces:
        print("No network interfaces with an IPv4 address are up.")
    for name, address in sorted(interfaces.items()):
        print(f"{name}: {address}")


def main(args=None):
    """
    Entry point for the command line.
    """
    # use the nice logger formatting if available
    try:
        from rich.logging import RichHandler

        logging.basicConfig(handlers=[RichHandler(rich_tracebacks=True)])
    except ImportError:
        logging.basicConfig()
    logging.captureWarnings(True)

    arguments = handle_user_arguments(args)
    if arguments.verbose:
        logging.getLogger("upnp.ssdp").setLevel(logging.DEBUG)

    if arguments.list_interfaces:
        print_interfaces()
        return

    with suppress_keyboard_interrupt_as_cancellation() as cancellation:
        delegate = PrintingDelegate(cancellation)
        with SSDPServiceBrowser(
            network_interface=arguments.interface,
            delegate=delegate,
            mx=arguments.mx,
        ) as browser:
            browser.start_browsing(arguments.service_type)
            print(f"Browsing for {arguments.service_type}, press Ctrl+C to stop.")
            cancellation.wait_cancellation(arguments.duration)


if __name__ == "__main__":
    main()
