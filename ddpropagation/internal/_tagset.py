"""
Encoding and decoding of the ``x-datadog-tags`` header value.

The header is a comma separated list of ``key=value`` pairs::

    _dd.p.dm=-4,_dd.p.usr.id=baz64

Restrictions:

  - keys are printable ASCII characters excluding space, comma and equals
  - values are printable ASCII characters excluding comma
  - leading and trailing spaces of keys and values are trimmed
  - a single trailing comma is tolerated when decoding
"""
from typing import Dict
from typing import Optional

from .constants import DEFAULT_X_DATADOG_TAGS_MAX_LENGTH
from .constants import X_DATADOG_TAGS_EXTRACT_MAX_LENGTH


class TagsetDecodeError(ValueError):
    pass


class TagsetEncodeError(ValueError):
    pass


class TagsetMaxSizeEncodeError(TagsetEncodeError):
    def __init__(self, values, max_size, current_results):
        # type: (Dict[str, str], int, str) -> None
        self.values = values
        self.max_size = max_size
        self.current_results = current_results
        msg = "string exceeded max size of {} bytes".format(max_size)
        super(TagsetMaxSizeEncodeError, self).__init__(msg)


class TagsetMaxSizeDecodeError(TagsetDecodeError):
    def __init__(self, value, max_size):
        # type: (str, int) -> None
        self.value = value
        self.max_size = max_size
        msg = "tagset string of {} bytes exceeded max size of {} bytes".format(len(value), max_size)
        super(TagsetMaxSizeDecodeError, self).__init__(msg)


def _is_valid_key_char(c):
    # type: (str) -> bool
    # printable ASCII, no space, no comma, no equals
    return "\x21" <= c <= "\x7e" and c != "," and c != "="


def _is_valid_value_char(c):
    # type: (str) -> bool
    # printable ASCII including space, no comma
    return "\x20" <= c <= "\x7e" and c != ","


def is_valid_tag_key(key):
    # type: (str) -> bool
    return bool(key) and all(_is_valid_key_char(c) for c in key)


def is_valid_tag_value(value):
    # type: (str) -> bool
    return bool(value) and all(_is_valid_value_char(c) for c in value)


def validate_tag(key, value):
    # type: (str, str) -> None
    """Raise ``TagsetEncodeError`` if the pair cannot be written to the header."""
    if not is_valid_tag_key(key.strip(" ")):
        raise TagsetEncodeError("invalid tag key: {!r}".format(key))
    if not is_valid_tag_value(value.strip(" ")):
        raise TagsetEncodeError("invalid tag value for {!r}: {!r}".format(key, value))


def decode_tagset_string(tagset, max_size=X_DATADOG_TAGS_EXTRACT_MAX_LENGTH):
    # type: (str, Optional[int]) -> Dict[str, str]
    """Parse a tagset header value into a dict.

    :raises TagsetMaxSizeDecodeError: when ``tagset`` is longer than ``max_size``
    :raises TagsetDecodeError: when ``tagset`` is malformed
    """
    if max_size is not None and len(tagset) > max_size:
        raise TagsetMaxSizeDecodeError(tagset, max_size)

    res = {}  # type: Dict[str, str]
    if not tagset:
        return res

    members = tagset.split(",")
    # DEV: a trailing comma leaves an empty last member which we allow
    if members[-1] == "" and len(members) > 1:
        members.pop()

    for member in members:
        key, sep, value = member.partition("=")
        if not sep:
            raise TagsetDecodeError("missing '=' in tagset member: {!r}".format(member))
        key = key.strip(" ")
        value = value.strip(" ")
        if not is_valid_tag_key(key):
            raise TagsetDecodeError("invalid key in tagset member: {!r}".format(member))
        if not is_valid_tag_value(value):
            raise TagsetDecodeError("invalid value in tagset member: {!r}".format(member))
        res[key] = value
    return res


def encode_tagset_values(values, max_size=DEFAULT_X_DATADOG_TAGS_MAX_LENGTH):
    # type: (Dict[str, str], int) -> str
    """Serialize ``values`` into a tagset header value.

    Either every pair fits within ``max_size`` or nothing is returned.

    :raises TagsetMaxSizeEncodeError: when the result would exceed ``max_size``
    :raises TagsetEncodeError: when a key or value contains a disallowed character
    """
    res = ""
    for key, value in values.items():
        validate_tag(key, value)
        pair = "{}={}".format(key.strip(" "), value.strip(" "))
        if res:
            pair = "," + pair
        if len(res) + len(pair) > max_size:
            raise TagsetMaxSizeEncodeError(values, max_size, res)
        res += pair
    return res
