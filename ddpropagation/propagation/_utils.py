import re
from typing import Optional

from ..internal.constants import MAX_UINT_64BITS


_WSGI_HTTP_PREFIX = "HTTP_"
_HEX_ID_REGEX = re.compile(r"^[0-9a-fA-F]+$")
_DECIMAL_ID_REGEX = re.compile(r"^-?[0-9]+$")


def get_wsgi_header(header):
    # type: (str) -> str
    """Returns a WSGI compliant HTTP header.
    See https://www.python.org/dev/peps/pep-3333/#environ-variables for
    details on environ variables.
    """
    return "HTTP_{}".format(header.upper().replace("-", "_"))


def from_wsgi_header(header):
    # type: (str) -> Optional[str]
    """Convert a WSGI compliant HTTP header into the original header.
    See https://www.python.org/dev/peps/pep-3333/#environ-variables for
    details on environ variables.
    """
    if not header.startswith(_WSGI_HTTP_PREFIX):
        return None
    return header[len(_WSGI_HTTP_PREFIX) :].replace("_", "-").lower()


def normalize_header_name(key):
    # type: (str) -> str
    """Lower case ``key`` so it can be matched against header names.

    WSGI environ keys (``HTTP_X_DATADOG_TRACE_ID``) are converted back to
    their HTTP form (``x-datadog-trace-id``).
    """
    return from_wsgi_header(key) or key.lower()


def parse_uint64(value):
    # type: (str) -> int
    """Parse a base 10 64-bit id, raising ``ValueError`` on anything else.

    Negative values are signed 64-bit ids and are read as their unsigned
    two's complement, e.g. ``"-1"`` is ``2**64 - 1``.
    """
    value = value.strip()
    if not _DECIMAL_ID_REGEX.match(value):
        raise ValueError("not a decimal id: %r" % (value,))
    parsed = int(value)
    if parsed > MAX_UINT_64BITS or parsed < -(1 << 63):
        raise ValueError("id out of the 64-bit range: %r" % (value,))
    return parsed & MAX_UINT_64BITS


def hex_id_to_dd_id(hex_id):
    # type: (str) -> int
    """Helper to convert hex ids into Datadog compatible ints
    If the id is > 64 bit then truncate the trailing 64 bit.
    "463ac35c9f6413ad48485a3953bb6124" -> "48485a3953bb6124" -> 5208512171318403364
    """
    hex_id = hex_id.strip()
    if not _HEX_ID_REGEX.match(hex_id):
        raise ValueError("not a hex id: %r" % (hex_id,))
    return int(hex_id[-16:], 16)


def dd_id_to_hex_id(dd_id, width=16):
    # type: (int, int) -> str
    """Helper to convert Datadog trace/span int ids into zero padded lower case hex ids"""
    # DEV: this gives us lowercase hex, which is what we want
    return "{:0{}x}".format(dd_id, width)
