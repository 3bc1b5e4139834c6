from typing import Any
from typing import Dict
from typing import Optional

from ..constants import _PROPAGATION_ERROR_KEY
from ..context import SpanContext
from ..context import TraceState
from ..errors import InvalidSpanContext
from ..errors import SpanContextCorrupted
from ..errors import SpanContextNotFound
from ..internal._tagset import TagsetDecodeError
from ..internal._tagset import TagsetEncodeError
from ..internal._tagset import TagsetMaxSizeDecodeError
from ..internal._tagset import TagsetMaxSizeEncodeError
from ..internal._tagset import decode_tagset_string
from ..internal._tagset import encode_tagset_values
from ..internal._tagset import validate_tag
from ..internal.constants import HTTP_BAGGAGE_PREFIX  # noqa:F401
from ..internal.constants import HTTP_HEADER_ORIGIN
from ..internal.constants import HTTP_HEADER_PARENT_ID  # noqa:F401
from ..internal.constants import HTTP_HEADER_SAMPLING_PRIORITY  # noqa:F401
from ..internal.constants import HTTP_HEADER_TAGS
from ..internal.constants import HTTP_HEADER_TRACE_ID  # noqa:F401
from ..internal.constants import PROPAGATED_TAG_PREFIX
from ..internal.constants import X_DATADOG_TAGS_EXTRACT_MAX_LENGTH
from ..internal.logger import get_logger
from ..settings.propagation import PropagatorConfig
from ._utils import normalize_header_name
from ._utils import parse_uint64
from .base_http_propagator import Propagator
from .carrier import as_reader
from .carrier import as_writer


log = get_logger(__name__)


def _is_valid_datadog_trace_tag_key(key):
    # type: (str) -> bool
    return key.startswith(PROPAGATED_TAG_PREFIX)


def marshal_propagating_tags(span_context, max_size):
    # type: (SpanContext, int) -> str
    """Serialize the propagating tags of the trace into an ``x-datadog-tags`` value.

    Pairs that cannot be encoded are dropped and flagged with ``encoding_error``.
    When the tags do not fit in ``max_size`` nothing is returned and the trace is
    flagged with ``inject_max_size``.
    """
    trace = span_context.trace
    with trace.lock() as propagating_tags:
        tags_to_encode = {}  # type: Dict[str, str]
        for key, value in propagating_tags.items():
            if not _is_valid_datadog_trace_tag_key(key):
                continue
            try:
                validate_tag(key, value)
            except TagsetEncodeError:
                log.warning("won't propagate tag %r", key, exc_info=True)
                trace.set_tag(_PROPAGATION_ERROR_KEY, "encoding_error")
                continue
            tags_to_encode[key] = value

        if not tags_to_encode:
            return ""
        try:
            return encode_tagset_values(tags_to_encode, max_size=max_size)
        except TagsetMaxSizeEncodeError:
            log.warning("won't propagate tags: maximum x-datadog-tags length (%d) reached", max_size)
            trace.set_tag(_PROPAGATION_ERROR_KEY, "inject_max_size")
        except TagsetEncodeError:
            log.warning("failed to encode x-datadog-tags", exc_info=True)
            trace.set_tag(_PROPAGATION_ERROR_KEY, "encoding_error")
    return ""


def unmarshal_propagating_tags(trace, value):
    # type: (TraceState, str) -> None
    """Replace the propagating tags of ``trace`` with the ones found in an ``x-datadog-tags`` value.

    Oversized or malformed values set no tags, the trace is flagged with
    ``extract_max_size`` or ``decoding_error`` instead.
    """
    with trace.lock():
        try:
            tags = decode_tagset_string(value, max_size=X_DATADOG_TAGS_EXTRACT_MAX_LENGTH)
        except TagsetMaxSizeDecodeError:
            log.warning(
                "did not extract %s, size limit exceeded: %d. Incoming tags will not be propagated further.",
                HTTP_HEADER_TAGS,
                X_DATADOG_TAGS_EXTRACT_MAX_LENGTH,
            )
            trace.set_tag(_PROPAGATION_ERROR_KEY, "extract_max_size")
            return
        except TagsetDecodeError:
            log.debug("failed to decode x-datadog-tags: %r", value, exc_info=True)
            trace.set_tag(_PROPAGATION_ERROR_KEY, "decoding_error")
            return

        trace.replace_propagating_tags(
            {
                k: v
                for k, v in tags.items()
                if k not in DatadogPropagator._X_DATADOG_TAGS_EXTRACT_REJECT and _is_valid_datadog_trace_tag_key(k)
            }
        )


class DatadogPropagator(Propagator):
    """Inject/extract the Datadog multi header format

    Headers:

      - ``x-datadog-trace-id`` the context trace id as a uint64 integer
      - ``x-datadog-parent-id`` the context current span id as a uint64 integer
      - ``x-datadog-sampling-priority`` integer representing the sampling decision.
        ``<= 0`` (Reject) or ``> 0`` (Keep)
      - ``x-datadog-origin`` optional name of origin Datadog product which initiated the request
      - ``x-datadog-tags`` optional trace tags
      - ``ot-baggage-<key>`` one header per baggage item

    The trace id, parent id, priority and baggage header names are configurable
    through ``PropagatorConfig``.

    Restrictions:

      - Only trace tags with keys prefixed with ``_dd.p.`` are propagated.
      - The trace tag keys must be printable ASCII characters excluding space, comma, and equals.
      - The trace tag values must be printable ASCII characters excluding comma. Leading and
        trailing spaces are trimmed.
      - Baggage keys are matched case insensitively and extracted lower cased.
    """

    _X_DATADOG_TAGS_EXTRACT_REJECT = frozenset(["_dd.p.upstream_services"])

    def __init__(self, config=None):
        # type: (Optional[PropagatorConfig]) -> None
        self._config = config or PropagatorConfig()

    def inject(self, span_context, carrier):
        # type: (SpanContext, Any) -> None
        writer = as_writer(carrier)
        if not span_context.is_valid():
            log.debug("tried to inject invalid context %r", span_context)
            raise InvalidSpanContext()

        cfg = self._config
        writer.set(cfg.trace_header, str(span_context.trace_id))
        writer.set(cfg.parent_header, str(span_context.span_id))
        # Propagate priority only if defined
        if span_context.sampling_priority is not None:
            writer.set(cfg.priority_header, str(span_context.sampling_priority))
        if span_context.origin:
            writer.set(HTTP_HEADER_ORIGIN, span_context.origin)
        for key, value in span_context.iter_baggage_items():
            writer.set(cfg.baggage_prefix + key, value)

        if cfg.max_tags_header_len <= 0:
            return
        tags = marshal_propagating_tags(span_context, cfg.max_tags_header_len)
        if tags:
            writer.set(HTTP_HEADER_TAGS, tags)

    def extract(self, carrier):
        # type: (Any) -> SpanContext
        reader = as_reader(carrier)
        cfg = self._config
        ctx = SpanContext()

        def visit(key, value):
            # type: (str, str) -> None
            key = normalize_header_name(key)
            try:
                if key == cfg.trace_header:
                    ctx.trace_id = parse_uint64(value)
                elif key == cfg.parent_header:
                    ctx.span_id = parse_uint64(value)
                elif key == cfg.priority_header:
                    ctx.set_sampling_priority(int(value))
                elif key == HTTP_HEADER_ORIGIN:
                    ctx.origin = value
                elif key == HTTP_HEADER_TAGS:
                    unmarshal_propagating_tags(ctx.trace, value)
                elif key.startswith(cfg.baggage_prefix):
                    ctx.set_baggage_item(key[len(cfg.baggage_prefix) :], value)
            except ValueError:
                log.debug("received invalid x-datadog-* header %s: %r", key, value)
                raise SpanContextCorrupted(key, value)

        reader.for_each_key(visit)

        if not ctx.is_valid_extracted():
            raise SpanContextNotFound()
        ctx.updated = False
        return ctx
