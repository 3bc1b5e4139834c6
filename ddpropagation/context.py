import contextlib
import threading
from typing import Dict
from typing import Iterator
from typing import Optional
from typing import Tuple

from .constants import SYNTHETICS_ORIGIN
from .internal.constants import PROPAGATED_TAG_PREFIX
from .internal.constants import SamplingMechanism
from .internal.logger import get_logger


log = get_logger(__name__)


class TraceState(object):
    """State shared by every span context of one trace.

    ``propagating_tags`` are the trace tags that cross process boundaries (the
    ``_dd.p.*`` tags plus the reserved ``tracestate`` slot holding the raw W3C
    tracestate received upstream). ``tags`` are local to this process and are
    never written to a carrier.

    All access to ``propagating_tags`` goes through ``lock``.
    """

    __slots__ = ["_lock", "_propagating_tags", "_tags"]

    def __init__(self, propagating_tags=None):
        # type: (Optional[Dict[str, str]]) -> None
        self._lock = threading.RLock()
        self._propagating_tags = dict(propagating_tags or {})  # type: Dict[str, str]
        self._tags = {}  # type: Dict[str, str]

    @contextlib.contextmanager
    def lock(self):
        # type: () -> Iterator[Dict[str, str]]
        """Hold the trace lock and expose the propagating tags for the duration of the block."""
        with self._lock:
            yield self._propagating_tags

    def set_propagating_tag(self, key, value):
        # type: (str, str) -> None
        with self._lock:
            self._propagating_tags[key] = value

    def get_propagating_tag(self, key):
        # type: (str) -> Optional[str]
        with self._lock:
            return self._propagating_tags.get(key)

    def propagating_tags_snapshot(self):
        # type: () -> Dict[str, str]
        with self._lock:
            return dict(self._propagating_tags)

    def replace_propagating_tags(self, tags):
        # type: (Dict[str, str]) -> None
        with self._lock:
            self._propagating_tags = dict(tags)

    def set_tag(self, key, value):
        # type: (str, str) -> None
        with self._lock:
            self._tags[key] = value

    def get_tag(self, key):
        # type: (str) -> Optional[str]
        with self._lock:
            return self._tags.get(key)

    @property
    def tags(self):
        # type: () -> Dict[str, str]
        with self._lock:
            return dict(self._tags)

    def __repr__(self):
        with self._lock:
            return "TraceState(propagating_tags=%r, tags=%r)" % (self._propagating_tags, self._tags)


class SpanContext(object):
    """Identity of a span as propagated across a process boundary.

    A trace id or span id of ``0`` means the id is absent. ``updated`` is set
    whenever the sampling priority, the origin or a propagating tag changes
    after the context was built, which tells the W3C propagator that the
    tracestate received upstream can no longer be forwarded verbatim.
    """

    __slots__ = [
        "trace_id",
        "span_id",
        "updated",
        "_sampling_priority",
        "_sampling_mechanism",
        "_origin",
        "_baggage",
        "_trace",
    ]

    def __init__(
        self,
        trace_id=0,  # type: int
        span_id=0,  # type: int
        sampling_priority=None,  # type: Optional[int]
        origin=None,  # type: Optional[str]
        baggage=None,  # type: Optional[Dict[str, str]]
        trace=None,  # type: Optional[TraceState]
        sampling_mechanism=SamplingMechanism.UNKNOWN,  # type: int
    ):
        # type: (...) -> None
        self.trace_id = trace_id or 0
        self.span_id = span_id or 0
        self._sampling_priority = sampling_priority
        self._sampling_mechanism = sampling_mechanism
        self._origin = origin
        self._baggage = dict(baggage or {})  # type: Dict[str, str]
        self._trace = trace if trace is not None else TraceState()
        self.updated = False

    @property
    def trace(self):
        # type: () -> TraceState
        return self._trace

    @property
    def sampling_priority(self):
        # type: () -> Optional[int]
        return self._sampling_priority

    @property
    def sampling_mechanism(self):
        # type: () -> int
        return self._sampling_mechanism

    def set_sampling_priority(self, priority, mechanism=SamplingMechanism.UNKNOWN):
        # type: (Optional[int], int) -> None
        self._sampling_priority = priority
        self._sampling_mechanism = mechanism
        self.updated = True

    @property
    def origin(self):
        # type: () -> Optional[str]
        return self._origin

    @origin.setter
    def origin(self, value):
        # type: (Optional[str]) -> None
        self._origin = value
        self.updated = True

    @property
    def baggage(self):
        # type: () -> Dict[str, str]
        return dict(self._baggage)

    def set_baggage_item(self, key, value):
        # type: (str, str) -> None
        self._baggage[key] = value

    def get_baggage_item(self, key):
        # type: (str) -> Optional[str]
        return self._baggage.get(key)

    def iter_baggage_items(self):
        # type: () -> Iterator[Tuple[str, str]]
        return iter(list(self._baggage.items()))

    def with_baggage_item(self, key, value):
        # type: (str, str) -> SpanContext
        """Return a copy of this context, sharing its trace state, with one more baggage item."""
        baggage = dict(self._baggage)
        baggage[key] = value
        ctx = SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            sampling_priority=self._sampling_priority,
            origin=self._origin,
            baggage=baggage,
            trace=self._trace,
            sampling_mechanism=self._sampling_mechanism,
        )
        ctx.updated = self.updated
        return ctx

    def set_propagating_tag(self, key, value):
        # type: (str, str) -> None
        if not key.startswith(PROPAGATED_TAG_PREFIX):
            log.debug("propagating tag %r does not start with %r", key, PROPAGATED_TAG_PREFIX)
        self._trace.set_propagating_tag(key, value)
        self.updated = True

    def get_propagating_tag(self, key):
        # type: (str) -> Optional[str]
        return self._trace.get_propagating_tag(key)

    def is_valid(self):
        # type: () -> bool
        """Whether the context can be injected into a carrier."""
        return self.trace_id != 0 and self.span_id != 0

    def is_valid_extracted(self):
        # type: () -> bool
        """Whether the context is usable as the result of an extraction.

        Synthetic traces may legitimately come without a parent span id.
        """
        return self.trace_id != 0 and (self.span_id != 0 or self._origin == SYNTHETICS_ORIGIN)

    def __eq__(self, other):
        if isinstance(other, SpanContext):
            return (
                self.trace_id == other.trace_id
                and self.span_id == other.span_id
                and self._sampling_priority == other._sampling_priority
                and self._origin == other._origin
                and self._baggage == other._baggage
            )
        return False

    def __ne__(self, other):
        return not self == other

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self):
        # type: () -> str
        return "SpanContext(trace_id=%s, span_id=%s, sampling_priority=%r, origin=%r, baggage=%r, updated=%r)" % (
            self.trace_id,
            self.span_id,
            self._sampling_priority,
            self._origin,
            self._baggage,
            self.updated,
        )
