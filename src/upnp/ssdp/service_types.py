"""
Well-known SSDP search targets.

These are plain strings that can be passed to
:meth:`upnp.ssdp.SSDPServiceBrowser.start_browsing` as the service type.
"""

# General searches
SERVICE_TYPE_ALL = "ssdp:all"
SERVICE_TYPE_ROOT_DEVICE = "upnp:rootdevice"

# UPnP Internet Gateway Device (IGD)
INTERNET_GATEWAY_DEVICE_1 = "urn:schemas-upnp-org:device:InternetGatewayDevice:1"
WAN_CONNECTION_DEVICE_1 = "urn:schemas-upnp-org:device:WANConnectionDevice:1"
WAN_DEVICE_1 = "urn:schemas-upnp-org:device:WANDevice:1"
WAN_COMMON_INTERFACE_CONFIG_1 = (
    "urn:schemas-upnp-org:service:WANCommonInterfaceConfig:1"
)
WAN_IP_CONNECTION_1 = "urn:schemas-upnp-org:service:WANIPConnection:1"
LAYER3_FORWARDING_1 = "urn:schemas-upnp-org:service:Layer3Forwarding:1"

# UPnP A/V profile
MEDIA_SERVER_1 = "urn:schemas-upnp-org:device:MediaServer:1"
MEDIA_RENDERER_1 = "urn:schemas-upnp-org:device:MediaRenderer:1"
CONTENT_DIRECTORY_1 = "urn:schemas-upnp-org:service:ContentDirectory:1"
CONNECTION_MANAGER_1 = "urn:schemas-upnp-org:service:ConnectionManager:1"
RENDERING_CONTROL_1 = "urn:schemas-upnp-org:service:RenderingControl:1"
AV_TRANSPORT_1 = "urn:schemas-upnp-org:service:AVTransport:1"

# Microsoft A/V profile
MICROSOFT_MEDIA_RECEIVER_REGISTRAR_1 = (
    "urn:microsoft.com:service:X_MS_MediaReceiverRegistrar:1"
)

# Sonos
SONOS_ZONE_PLAYER_1 = "urn:schemas-upnp-org:device:ZonePlayer:1"

ALL_SERVICE_TYPES = (
    SERVICE_TYPE_ALL,
    SERVICE_TYPE_ROOT_DEVICE,
    INTERNET_GATEWAY_DEVICE_1,
    WAN_CONNECTION_DEVICE_1,
    WAN_DEVICE_1,
    WAN_COMMON_INTERFACE_CONFIG_1,
    WAN_IP_CONNECTION_1,
    LAYER3_FORWARDING_1,
    MEDIA_SERVER_1,
    MEDIA_RENDERER_1,
    CONTENT_DIRECTORY_1,
    CONNECTION_MANAGER_1,
    RENDERING_CONTROL_1,
    AV_TRANSPORT_1,
    MICROSOFT_MEDIA_RECEIVER_REGISTRAR_1,
    SONOS_ZONE_PLAYER_1,
)
