from typing import Any

from ..constants import AUTO_KEEP
from ..constants import AUTO_REJECT
from ..constants import USER_KEEP
from ..context import SpanContext
from ..errors import InvalidSpanContext
from ..errors import SpanContextCorrupted
from ..errors import SpanContextNotFound
from ..internal.logger import get_logger
from ._utils import dd_id_to_hex_id
from ._utils import hex_id_to_dd_id
from ._utils import normalize_header_name
from .base_http_propagator import Propagator
from .carrier import as_reader
from .carrier import as_writer


log = get_logger(__name__)

HTTP_HEADER_TRACE_ID = "x-b3-traceid"
HTTP_HEADER_SPAN_ID = "x-b3-spanid"
HTTP_HEADER_SAMPLED = "x-b3-sampled"
HTTP_HEADER_FLAGS = "x-b3-flags"

# x-b3-sampled accepted values for pre-specification tracers
_SAMPLED_TRUTHY_VALUES = frozenset(["1", "True", "true", "d"])
_SAMPLED_FALSY_VALUES = frozenset(["0", "False", "false"])


class B3Propagator(Propagator):
    """Inject/extract B3 Multi-Headers

    https://github.com/openzipkin/b3-propagation/blob/3e54cda11620a773d53c7f64d2ebb10d3a01794c/README.md#multiple-headers

    Example::

        X-B3-TraceId: 64fe8b2a57d3eff7
        X-B3-SpanId: e457b5a2e4d86bd1
        X-B3-Sampled: 1

    Implementation details:

      - Trace and span ids are written as 16 lower-hex characters.
      - Trace ids longer than 16 characters are truncated to their lowest 64 bits on extraction.
      - Sampling priority gets encoded as:
        - ``sampling_priority < 1`` -> ``X-B3-Sampled: 0``
        - ``sampling_priority >= 1`` -> ``X-B3-Sampled: 1``
      - Sampling priority gets decoded as:
        - ``X-B3-Sampled: 0`` -> ``sampling_priority = 0``
        - ``X-B3-Sampled: 1`` -> ``sampling_priority = 1``
        - ``X-B3-Flags: 1`` -> ``sampling_priority = 2``
      - Origin and baggage are not propagated.
    """

    def inject(self, span_context, carrier):
        # type: (SpanContext, Any) -> None
        writer = as_writer(carrier)
        if not span_context.is_valid():
            log.debug("tried to inject invalid context %r", span_context)
            raise InvalidSpanContext()

        writer.set(HTTP_HEADER_TRACE_ID, dd_id_to_hex_id(span_context.trace_id))
        writer.set(HTTP_HEADER_SPAN_ID, dd_id_to_hex_id(span_context.span_id))
        sampling_priority = span_context.sampling_priority
        # Propagate priority only if defined
        if sampling_priority is not None:
            writer.set(HTTP_HEADER_SAMPLED, "1" if sampling_priority >= AUTO_KEEP else "0")

    def extract(self, carrier):
        # type: (Any) -> SpanContext
        reader = as_reader(carrier)
        ctx = SpanContext()
        flags = []

        def visit(key, value):
            # type: (str, str) -> None
            key = normalize_header_name(key)
            try:
                if key == HTTP_HEADER_TRACE_ID:
                    ctx.trace_id = hex_id_to_dd_id(value)
                elif key == HTTP_HEADER_SPAN_ID:
                    ctx.span_id = hex_id_to_dd_id(value)
                elif key == HTTP_HEADER_SAMPLED:
                    ctx.set_sampling_priority(_parse_sampled(value))
                elif key == HTTP_HEADER_FLAGS:
                    flags.append(value.strip())
            except ValueError:
                log.debug("received invalid x-b3-* header %s: %r", key, value)
                raise SpanContextCorrupted(key, value)

        reader.for_each_key(visit)

        if ctx.trace_id == 0 or ctx.span_id == 0:
            raise SpanContextNotFound()
        # DEV: the debug flag implies an accept decision, it wins over x-b3-sampled
        if "1" in flags:
            ctx.set_sampling_priority(USER_KEEP)
        ctx.updated = False
        return ctx


def _parse_sampled(value):
    # type: (str) -> int
    value = value.strip()
    if value in _SAMPLED_TRUTHY_VALUES:
        return AUTO_KEEP
    if value in _SAMPLED_FALSY_VALUES:
        return AUTO_REJECT
    return int(value)
