"""
Composition and parsing of the W3C ``tracestate`` header.

The Datadog list member carries the sampling priority, the origin and the
``_dd.p.*`` trace tags, with keys shortened to save space::

    dd=s:2;o:rum;t.dm:-4;t.usr.id:baz64,congo=t61rcWkgMzE

  - ``s`` is the sampling priority
  - ``o`` is the origin
  - ``t.<key>`` is the trace tag ``_dd.p.<key>``, ``=`` in values is encoded as ``~``

List members of other vendors are kept after the Datadog one.
"""
import re
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from ..context import SpanContext
from ..internal.constants import PROPAGATED_TAG_PREFIX
from ..internal.constants import W3C_TRACESTATE_MAX_LENGTH
from ..internal.constants import W3C_TRACESTATE_MAX_LIST_MEMBERS
from ..internal.constants import W3C_TRACESTATE_ORIGIN_KEY
from ..internal.constants import W3C_TRACESTATE_SAMPLING_PRIORITY_KEY
from ..internal.constants import W3C_TRACESTATE_TAG_PREFIX
from ..internal.logger import get_logger


log = get_logger(__name__)

_DD_LIST_MEMBER_PREFIX = "dd="

_KEY_INVALID_CHARS = re.compile(r"[,=]|[^\x20-\x7E]")
_VALUE_INVALID_CHARS = re.compile(r"[,;:]|[^\x20-\x7E]")


def _sanitize_key(key):
    # type: (str) -> str
    return _KEY_INVALID_CHARS.sub("_", key)


def _sanitize_value(value):
    # type: (str) -> str
    return _VALUE_INVALID_CHARS.sub("_", value).replace("=", "~")


def decode_tag_val(tag_val):
    # type: (str) -> str
    return tag_val.replace("~", "=")


def _compose_dd_list_member(span_context, priority):
    # type: (SpanContext, int) -> Tuple[str, int]
    """Return the ``dd=`` list member and the number of ``;`` delimited entries it holds."""
    member = "%s%s:%d" % (_DD_LIST_MEMBER_PREFIX, W3C_TRACESTATE_SAMPLING_PRIORITY_KEY, priority)
    entries = 1

    if span_context.origin:
        origin = ";%s:%s" % (W3C_TRACESTATE_ORIGIN_KEY, _sanitize_value(span_context.origin))
        if len(member) + len(origin) <= W3C_TRACESTATE_MAX_LENGTH:
            member += origin
            entries += 1
        else:
            log.debug("origin %r does not fit in tracestate, omitting it", span_context.origin)

    with span_context.trace.lock() as propagating_tags:
        for key, value in propagating_tags.items():
            if not key.startswith(PROPAGATED_TAG_PREFIX):
                continue
            tag = ";%s%s:%s" % (
                W3C_TRACESTATE_TAG_PREFIX,
                _sanitize_key(key[len(PROPAGATED_TAG_PREFIX) :]),
                _sanitize_value(value),
            )
            if len(member) + len(tag) > W3C_TRACESTATE_MAX_LENGTH or entries >= W3C_TRACESTATE_MAX_LIST_MEMBERS:
                break
            member += tag
            entries += 1
    return member, entries


def compose_tracestate(span_context, priority, previous):
    # type: (SpanContext, int, Optional[str]) -> str
    """Build the ``tracestate`` header for ``span_context``.

    The ``dd`` list member of ``previous`` is replaced; the list members of
    other vendors are appended while the header stays within 256 bytes and 32
    ``;`` delimited entries. The first member that does not fit is truncated at
    its last ``;`` boundary that still fits and the remaining ones are dropped.

    Composing from the same context and the same ``previous`` always gives the
    same result, and composing from that result gives it again.
    """
    result, entries = _compose_dd_list_member(span_context, priority)

    for member in (previous or "").split(","):
        member = member.strip()
        if not member or member.startswith(_DD_LIST_MEMBER_PREFIX):
            continue
        parts = member.split(";")
        kept = []  # type: List[str]
        size = len(result) + 1
        for part in parts:
            added = len(part) + (1 if kept else 0)
            if size + added > W3C_TRACESTATE_MAX_LENGTH or entries + len(kept) + 1 > W3C_TRACESTATE_MAX_LIST_MEMBERS:
                break
            kept.append(part)
            size += added
        if kept:
            result += "," + ";".join(kept).rstrip()
            entries += len(kept)
        if len(kept) != len(parts):
            break
    return result


def parse_dd_list_member(tracestate):
    # type: (str) -> Tuple[Optional[int], Dict[str, str], Optional[str]]
    """Extract the sampling priority, the trace tags and the origin from the ``dd`` list member.

    :raises ValueError: when the ``dd`` list member is malformed
    """
    dd = None
    for list_mem in tracestate.strip().split(","):
        list_mem = list_mem.strip()
        if list_mem.startswith(_DD_LIST_MEMBER_PREFIX):
            # cut out dd= before turning into dict
            list_mem = list_mem[len(_DD_LIST_MEMBER_PREFIX) :]
            # since tags can have a value with a :, we need to only split on the first instance of :
            dd = dict(item.split(":", 1) for item in list_mem.split(";"))

    if not dd:
        return None, {}, None

    sampling_priority = dd.get(W3C_TRACESTATE_SAMPLING_PRIORITY_KEY)
    priority = int(sampling_priority) if sampling_priority is not None else None

    origin = dd.get(W3C_TRACESTATE_ORIGIN_KEY)
    if origin:
        # we encode "=" as "~" in tracestate so need to decode here
        origin = decode_tag_val(origin)

    # need to convert from t. to _dd.p.
    tags = {
        PROPAGATED_TAG_PREFIX + k[len(W3C_TRACESTATE_TAG_PREFIX) :]: decode_tag_val(v)
        for (k, v) in dd.items()
        if k.startswith(W3C_TRACESTATE_TAG_PREFIX)
    }
    return priority, tags, origin
