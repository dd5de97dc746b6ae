from upnp.ssdp.browser import (
    BrowserState,
    CallbackDelegate,
    SearchSession,
    SSDPServiceBrowser,
    SSDPServiceBrowserDelegate,
)
from upnp.ssdp.cache import RemoveResult, ServiceCache, UpsertResult
from upnp.ssdp.interfaces import list_available_interfaces
from upnp.ssdp.message import (
    DecodeError,
    MessageKind,
    SSDPMessage,
    decode_message,
    encode_search,
)
from upnp.ssdp.service import SSDPService
from upnp.ssdp.transport import (
    BindError,
    MulticastTransport,
    RawDatagram,
    ReceiveError,
    SendError,
    TransportError,
)

"""
Module providing discovery of UPnP devices and services over SSDP.

Devices announce themselves on the multicast group 239.255.255.250:1900 with
``NOTIFY`` messages, and answer ``M-SEARCH`` requests with HTTP-like responses
such as:

.. code::

    HTTP/1.1 200 OK
    CACHE-CONTROL: max-age=1800
    LOCATION: http://192.168.1.20:49152/description.xml
    SERVER: Linux/5.10 UPnP/1.0 Example/1.0
    ST: urn:schemas-upnp-org:device:MediaServer:1
    USN: uuid:abc::urn:schemas-upnp-org:device:MediaServer:1

The :class:`SSDPServiceBrowser` class sends these searches, listens for the
answers and announcements, and reports services to a
:class:`SSDPServiceBrowserDelegate` as they are found and removed. Services are
forgotten once their advertised ``max-age`` elapses without being renewed.

"""
__version__ = "1.0.0"
