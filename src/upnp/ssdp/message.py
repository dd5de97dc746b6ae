"""
Module providing the SSDP message codec.

SSDP messages are HTTP-like: a start line followed by ``NAME: value`` header
lines, terminated by an empty line. Three kinds of inbound message matter to a
browser:

.. code::

    HTTP/1.1 200 OK               search response
    NOTIFY * HTTP/1.1 + NTS: ssdp:alive     alive advertisement
    NOTIFY * HTTP/1.1 + NTS: ssdp:byebye    goodbye

Anything else, including datagrams that cannot be parsed at all, decodes to a
message of kind :attr:`MessageKind.UNKNOWN` so that noise on the multicast
group never interrupts discovery.
"""

import re
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

SSDP_MULTICAST_ADDRESS = "239.255.255.250"
SSDP_PORT = 1900

DEFAULT_MX = 3
MINIMUM_MX = 1
MAXIMUM_MX = 5

# Lifetime given to advertisements without a usable CACHE-CONTROL header, which
# makes them stale at the next sweep.
FALLBACK_MAX_AGE = 0

NTS_ALIVE = "ssdp:alive"
NTS_BYEBYE = "ssdp:byebye"

_MAX_AGE_PATTERN = re.compile(r"max-age\s*=\s*\"?(\d+)", re.IGNORECASE)
_LINE_BREAK = re.compile(r"\r?\n")


class DecodeError(ValueError):
    """
    Raised when a datagram cannot be interpreted as an SSDP message.
    """


class MessageKind(Enum):
    SEARCH_RESPONSE = "search-response"
    NOTIFY_ALIVE = "notify-alive"
    NOTIFY_BYEBYE = "notify-byebye"
    UNKNOWN = "unknown"


class SSDPMessage:
    """
    A decoded SSDP message: its kind, its headers keyed by upper-case name, and
    optionally the address of the host it was received from.
    """

    def __init__(
        self,
        kind: MessageKind,
        headers: Optional[Mapping[str, str]] = None,
        sender: Optional[Tuple[str, int]] = None,
    ):
        self.kind = kind
        self.headers: Dict[str, str] = dict(headers or {})
        self.sender = sender

    @property
    def service_type(self) -> Optional[str]:
        """
        The service type the message refers to, from ``ST`` for search
        responses or ``NT`` for notifications.
        """
        return self.headers.get("ST") or self.headers.get("NT")

    @property
    def usn(self) -> Optional[str]:
        return self.headers.get("USN")

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("LOCATION")

    @property
    def server(self) -> Optional[str]:
        return self.headers.get("SERVER")

    @property
    def max_age(self) -> int:
        return parse_max_age(self.headers.get("CACHE-CONTROL"))

    def __repr__(self):
        return f"SSDPMessage(kind={self.kind.name}, usn={self.usn!r})"


def encode_search(
    service_type: str,
    target_address: Tuple[str, int] = (SSDP_MULTICAST_ADDRESS, SSDP_PORT),
    mx: int = DEFAULT_MX,
) -> bytes:
    """
    Builds an ``M-SEARCH`` request for the given service type.

    :param service_type: The search target, e.g. ``ssdp:all`` or a device URN.
    :param target_address: Host and port the request will be sent to, used for
        the ``HOST`` header.
    :param mx: Number of seconds devices may spread their responses over.
    :return: The encoded request.
    :raises ValueError: If the service type is empty or contains line breaks,
        or if ``mx`` is outside the range allowed by UPnP.

    >>> encode_search("ssdp:all", mx=1)
    b'M-SEARCH * HTTP/1.1\\r\\nHOST: 239.255.255.250:1900\\r\\nMAN: "ssdp:discover"\\r\\nMX: 1\\r\\nST: ssdp:all\\r\\n\\r\\n'
    """
    validate_mx(mx)
    validate_service_type(service_type)
    host, port = target_address
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {host}:{port}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {mx}\r\n"
        f"ST: {service_type}\r\n"
        "\r\n"
    ).encode("utf-8")


def validate_mx(mx: int):
    if isinstance(mx, bool) or not isinstance(mx, int):
        raise ValueError(f"MX must be an integer number of seconds, got {mx!r}")
    if not MINIMUM_MX <= mx <= MAXIMUM_MX:
        raise ValueError(
            f"MX must be between {MINIMUM_MX} and {MAXIMUM_MX} seconds, got {mx}"
        )


def validate_service_type(service_type: str):
    """
    :raises ValueError: If the service type is empty or contains a line break,
        which would inject extra headers into a search.
    """
    if not service_type or "\r" in service_type or "\n" in service_type:
        raise ValueError(f"Invalid service type for search: {service_type!r}")


def parse_headers(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Splits an SSDP message into its start line and its headers.

    Header names are upper-cased, and surrounding whitespace is removed from
    names and values. Parsing stops at the first empty line.

    :param text: The decoded message text.
    :return: A tuple of the start line and a dictionary of headers.
    :raises DecodeError: If the message is empty or a header line is malformed.
    """
    lines = _LINE_BREAK.split(text)
    if not lines or not lines[0].strip():
        raise DecodeError("Message has no start line.")
    start_line = lines[0].strip()
    headers = {}
    for line in lines[1:]:
        if not line.strip():
            break
        name, separator, value = line.partition(":")
        name = name.strip()
        if not separator or not name:
            raise DecodeError(f"Malformed header line: {line!r}")
        headers[name.upper()] = value.strip()
    return start_line, headers


def classify(start_line: str, headers: Mapping[str, str]) -> MessageKind:
    """
    Determines the kind of a message from its start line and ``NTS`` header.
    """
    tokens = start_line.split()
    if len(tokens) >= 2 and tokens[0].upper().startswith("HTTP/"):
        return MessageKind.SEARCH_RESPONSE if tokens[1] == "200" else MessageKind.UNKNOWN
    if tokens and tokens[0].upper() == "NOTIFY":
        nts = headers.get("NTS", "").strip().lower()
        if nts == NTS_ALIVE:
            return MessageKind.NOTIFY_ALIVE
        if nts == NTS_BYEBYE:
            return MessageKind.NOTIFY_BYEBYE
    return MessageKind.UNKNOWN


def decode_message(
    data: bytes, sender: Optional[Tuple[str, int]] = None
) -> SSDPMessage:
    """
    Decodes a datagram into an :class:`SSDPMessage`.

    This never raises: datagrams that are not valid UTF-8 or whose header block
    is malformed decode to a message of kind :attr:`MessageKind.UNKNOWN` with
    no headers.

    :param data: The raw datagram payload.
    :param sender: The address the datagram was received from, if known.
    """
    try:
        start_line, headers = parse_headers(data.decode("utf-8"))
    except (UnicodeDecodeError, DecodeError):
        return SSDPMessage(MessageKind.UNKNOWN, sender=sender)
    return SSDPMessage(classify(start_line, headers), headers, sender=sender)


def parse_max_age(cache_control: Optional[str]) -> int:
    """
    Extracts the ``max-age`` directive of a ``CACHE-CONTROL`` header value.

    :param cache_control: The header value, e.g. ``max-age=1800``.
    :return: The advertised lifetime in seconds, or :data:`FALLBACK_MAX_AGE` if
        the header is missing or has no numeric ``max-age``.

    >>> parse_max_age("max-age=1800")
    1800
    >>> parse_max_age("no-cache")
    0
    """
    if not cache_control:
        return FALLBACK_MAX_AGE
    match = _MAX_AGE_PATTERN.search(cache_control)
    if match is None:
        return FALLBACK_MAX_AGE
    return int(match.group(1))
