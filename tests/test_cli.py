from unittest.mock import patch

import pytest

from upnp.ssdp.browser import SSDPServiceBrowser
from upnp.ssdp.list_cli import (
    PrintingDelegate,
    format_service,
    handle_user_arguments,
    main,
)
from upnp.ssdp.service import SSDPService
from upnp.ssdp.service_types import MEDIA_RENDERER_1, SERVICE_TYPE_ALL
from upnp.ssdp.transport import BindError
from upnp.ssdp.utilities import CancellationToken

SERVICE = SSDPService(
    usn="uuid:abc::urn:schemas-upnp-org:device:MediaRenderer:1",
    service_type=MEDIA_RENDERER_1,
    location="http://192.168.1.20:49152/description.xml",
    server="Linux UPnP/1.0 Example/1.0",
)


def test_default_arguments():
    arguments = handle_user_arguments([])
    assert arguments.service_type == SERVICE_TYPE_ALL
    assert arguments.interface is None
    assert arguments.duration is None
    assert not arguments.list_interfaces


def test_arguments():
    arguments = handle_user_arguments(
        ["-t", MEDIA_RENDERER_1, "-i", "eth0", "--mx", "1", "-d", "2.5", "-v"]
    )
    assert arguments.service_type == MEDIA_RENDERER_1
    assert arguments.interface == "eth0"
    assert arguments.mx == 1
    assert arguments.duration == 2.5
    assert arguments.verbose


@pytest.mark.parametrize("mx", ["0", "6"])
def test_invalid_mx(mx):
    with pytest.raises(SystemExit):
        handle_user_arguments(["--mx", mx])


def test_format_service():
    text = format_service(SERVICE)
    assert MEDIA_RENDERER_1 in text
    assert SERVICE.location in text
    assert SERVICE.usn in text
    assert SERVICE.server in text


def test_printing_delegate(capsys):
    delegate = PrintingDelegate()
    delegate.on_service_found(None, SERVICE)
    delegate.on_service_removed(None, SERVICE)
    out = capsys.readouterr().out
    assert out.startswith("+ ")
    assert "\n- " in out


def test_printing_delegate_failure_cancels(capsys):
    token = CancellationToken()
    PrintingDelegate(token).on_browse_failed(None, BindError("No such device"))
    assert token.is_cancelled
    assert "No such device" in capsys.readouterr().out


def test_cancellation_token():
    token = CancellationToken()
    assert not token.wait_cancellation(0.01)
    token.cancel()
    assert token.is_cancelled
    assert token.wait_cancellation(0.01)


def test_list_interfaces(capsys):
    interfaces = {"eth0": "192.168.1.15", "lo": "127.0.0.1"}
    with patch.object(
        SSDPServiceBrowser, "available_network_interfaces", return_value=interfaces
    ):
        main(["--list-interfaces"])
    assert capsys.readouterr().out.splitlines() == [
        "eth0: 192.168.1.15",
        "lo: 127.0.0.1",
    ]


@pytest.mark.timeout(5)
def test_main_browses_for_duration():
    with patch.object(SSDPServiceBrowser, "start_browsing") as start, patch.object(
        SSDPServiceBrowser, "stop_browsing"
    ) as stop:
        main(["-t", MEDIA_RENDERER_1, "-d", "0.01"])
    start.assert_called_once_with(MEDIA_RENDERER_1)
    stop.assert_called_once_with()
