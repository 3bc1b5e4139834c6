import re
from typing import Any
from typing import List
from typing import Optional
from typing import Tuple

from ..constants import AUTO_KEEP
from ..context import SpanContext
from ..errors import InvalidSpanContext
from ..errors import SpanContextCorrupted
from ..errors import SpanContextNotFound
from ..internal.constants import HIGHER_ORDER_TRACE_ID_BITS
from ..internal.constants import W3C_TRACEPARENT_KEY
from ..internal.constants import W3C_TRACESTATE_KEY
from ..internal.logger import get_logger
from ._tracestate import compose_tracestate
from ._tracestate import parse_dd_list_member
from ._utils import dd_id_to_hex_id
from ._utils import hex_id_to_dd_id
from ._utils import normalize_header_name
from .base_http_propagator import Propagator
from .carrier import as_reader
from .carrier import as_writer


log = get_logger(__name__)

_TRACEPARENT_HEX_REGEX = re.compile(
    r"""
     ^                  # Start of string
     ([a-f0-9]{2})-     # 2 character hex version
     ([a-f0-9]{32})-    # 32 character hex trace id
     ([a-f0-9]{16})-    # 16 character hex span id
     ([a-f0-9]{2})      # 2 character hex sample flag
     (-.+)?             # optional, start of any additional values
     $                  # end of string
     """,
    re.VERBOSE,
)
_HIGHER_ORDER_BITS_REGEX = re.compile(r"^[a-f0-9]{16}$")
_NON_PRINTABLE_REGEX = re.compile(r"[^\x20-\x7E]+")


class TraceContextPropagator(Propagator):
    """Inject/extract W3C Trace Context
    https://www.w3.org/TR/trace-context/

    Overview:
      - ``traceparent`` header describes the position of the incoming request in its
        trace graph in a portable, fixed-length format.
      - ``tracestate`` header extends traceparent with vendor-specific data represented
        by a set of name/value pairs.

    Example value of HTTP ``traceparent`` header::

        value = 00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01
        base16(version) = 00
        base16(trace-id) = 4bf92f3577b34da6a3ce929d0e0e4736
        base16(parent-id) = 00f067aa0ba902b7
        base16(trace-flags) = 01  // sampled

    Implementation details:
      - Datadog Trace and Span IDs are 64-bit unsigned integers. The upper 64 bits of an
        incoming 128-bit trace id are kept in the ``_dd.p.tid`` trace tag and written
        back on injection, otherwise the upper half of the trace id is all zeroes.
      - An invalid ``traceparent`` makes the whole context corrupted; an invalid
        ``tracestate`` is ignored.
      - The ``tracestate`` received upstream is forwarded verbatim as long as the
        context was not updated locally, otherwise its ``dd`` list member is rebuilt.
    """

    def inject(self, span_context, carrier):
        # type: (SpanContext, Any) -> None
        writer = as_writer(carrier)
        if not span_context.is_valid():
            log.debug("tried to inject invalid context %r", span_context)
            raise InvalidSpanContext()

        priority = span_context.sampling_priority or 0
        flags = "01" if priority >= AUTO_KEEP else "00"
        writer.set(
            W3C_TRACEPARENT_KEY,
            "00-%s-%s-%s" % (_trace_id_hex(span_context), dd_id_to_hex_id(span_context.span_id), flags),
        )

        previous = span_context.get_propagating_tag(W3C_TRACESTATE_KEY)
        if previous and not span_context.updated and previous.startswith("dd="):
            tracestate = previous
        else:
            tracestate = compose_tracestate(span_context, priority, previous)
        writer.set(W3C_TRACESTATE_KEY, tracestate)

    def extract(self, carrier):
        # type: (Any) -> SpanContext
        reader = as_reader(carrier)
        traceparents = []  # type: List[str]
        tracestates = []  # type: List[str]

        def visit(key, value):
            # type: (str, str) -> None
            key = normalize_header_name(key)
            if key == W3C_TRACEPARENT_KEY:
                traceparents.append(value)
            elif key == W3C_TRACESTATE_KEY:
                tracestates.append(value)

        reader.for_each_key(visit)

        if not traceparents:
            raise SpanContextNotFound()
        tp = traceparents[0]
        if any(other.strip() != tp.strip() for other in traceparents[1:]):
            log.debug("received multiple traceparent headers: %r", traceparents)
            raise SpanContextCorrupted(W3C_TRACEPARENT_KEY, tp)
        try:
            trace_id, span_id, sampled, higher_order_bits = _get_traceparent_values(tp)
        except ValueError:
            log.debug("received invalid w3c traceparent: %r", tp, exc_info=True)
            raise SpanContextCorrupted(W3C_TRACEPARENT_KEY, tp)

        ctx = SpanContext(trace_id=trace_id, span_id=span_id, sampling_priority=sampled)
        propagating_tags = {}
        stale_tracestate = False

        ts = ",".join(t.strip() for t in tracestates if t.strip())
        if ts:
            # the value MUST contain only ASCII characters in the range of 0x20 to 0x7E
            if _NON_PRINTABLE_REGEX.search(ts):
                log.debug("received invalid tracestate header: %r", ts)
            else:
                # keep tracestate for other vendors data, even if dd ends up being invalid
                propagating_tags[W3C_TRACESTATE_KEY] = ts
                try:
                    sampling_priority_ts, other_propagated_tags, origin = parse_dd_list_member(ts)
                except (TypeError, ValueError):
                    log.debug("received invalid dd list member in tracestate: %r", ts)
                else:
                    propagating_tags.update(other_propagated_tags)
                    priority = _get_sampling_priority(sampled, sampling_priority_ts)
                    ctx.set_sampling_priority(priority)
                    # the dd member is rebuilt on inject when its priority lost to the sampled flag
                    stale_tracestate = sampling_priority_ts is not None and priority != sampling_priority_ts
                    if origin:
                        ctx.origin = origin

        if higher_order_bits:
            propagating_tags[HIGHER_ORDER_TRACE_ID_BITS] = higher_order_bits
        ctx.trace.replace_propagating_tags(propagating_tags)
        ctx.updated = stale_tracestate
        return ctx


def _trace_id_hex(span_context):
    # type: (SpanContext) -> str
    higher_order_bits = span_context.get_propagating_tag(HIGHER_ORDER_TRACE_ID_BITS)
    if higher_order_bits and _HIGHER_ORDER_BITS_REGEX.match(higher_order_bits):
        return higher_order_bits + dd_id_to_hex_id(span_context.trace_id)
    return dd_id_to_hex_id(span_context.trace_id, width=32)


def _get_traceparent_values(tp):
    # type: (str) -> Tuple[int, int, int, Optional[str]]
    """Extract the trace id, span id, sampled flag and the upper 64 bits of the trace id
    (``None`` when all zeroes) from a traceparent header.

    :raises ValueError: when the traceparent value is invalid
    """
    valid_tp_values = _TRACEPARENT_HEX_REGEX.match(tp.strip())
    if valid_tp_values is None:
        raise ValueError("Invalid traceparent version: %s" % tp)

    (
        version,
        trace_id_hex,
        span_id_hex,
        trace_flags_hex,
        future_vals,
    ) = valid_tp_values.groups()  # type: Tuple[str, str, str, str, Optional[str]]

    if version == "ff":
        # https://www.w3.org/TR/trace-context/#version
        raise ValueError("ff is an invalid traceparent version: %s" % tp)
    elif version != "00":
        # currently 00 is the only version format, but if future versions come up we may need to add changes
        log.warning("unsupported traceparent version:%r, still attempting to parse", version)
    elif version == "00" and future_vals is not None:
        raise ValueError("Traceparents with the version `00` should contain 4 values delimited by a dash: %s" % tp)

    # All 0s are invalid values
    if int(trace_id_hex, 16) == 0:
        raise ValueError("0 value for trace_id is invalid")
    span_id = hex_id_to_dd_id(span_id_hex)
    if span_id == 0:
        raise ValueError("0 value for span_id is invalid")

    trace_id = hex_id_to_dd_id(trace_id_hex)
    higher_order_bits = trace_id_hex[:16]
    if int(higher_order_bits, 16) == 0:
        higher_order_bits = None

    # trace flags is a bit field, only the sampled flag is used: https://www.w3.org/TR/trace-context/#trace-flags
    sampled = int(trace_flags_hex, 16) & 0x1

    return trace_id, span_id, sampled, higher_order_bits


def _get_sampling_priority(traceparent_sampled, tracestate_sampling_priority):
    # type: (int, Optional[int]) -> int
    """
    When the traceparent sampled flag is set, the Datadog sampling priority is either
    1 or a positive value of sampling priority if propagated in tracestate.

    When the traceparent sampled flag is not set, the Datadog sampling priority is either
    0 or a negative value of sampling priority if propagated in tracestate.
    """
    if traceparent_sampled == 0 and (not tracestate_sampling_priority or tracestate_sampling_priority >= 0):
        return 0
    if traceparent_sampled == 1 and (not tracestate_sampling_priority or tracestate_sampling_priority < 0):
        return 1
    return tracestate_sampling_priority  # type: ignore[return-value]
