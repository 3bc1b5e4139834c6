import threading

import pytest

from ddpropagation.constants import _PROPAGATION_ERROR_KEY
from ddpropagation.constants import AUTO_KEEP
from ddpropagation.constants import USER_KEEP
from ddpropagation.context import SpanContext
from ddpropagation.context import TraceState
from ddpropagation.internal.constants import SamplingMechanism
from ddpropagation.propagation.datadog import marshal_propagating_tags
from ddpropagation.propagation.datadog import unmarshal_propagating_tags


@pytest.mark.parametrize(
    "trace_id,span_id,origin,valid,valid_extracted",
    [
        (1, 2, None, True, True),
        (0, 2, None, False, False),
        (1, 0, None, False, False),
        (1, 0, "rum", False, False),
        (1, 0, "synthetics", False, True),
        (0, 0, "synthetics", False, False),
    ],
)
def test_validity(trace_id, span_id, origin, valid, valid_extracted):
    ctx = SpanContext(trace_id=trace_id, span_id=span_id, origin=origin)
    assert ctx.is_valid() is valid
    assert ctx.is_valid_extracted() is valid_extracted


def test_defaults():
    ctx = SpanContext()
    assert ctx.trace_id == 0
    assert ctx.span_id == 0
    assert ctx.sampling_priority is None
    assert ctx.sampling_mechanism == SamplingMechanism.UNKNOWN
    assert ctx.origin is None
    assert ctx.baggage == {}
    assert isinstance(ctx.trace, TraceState)
    assert ctx.updated is False


def test_updated():
    ctx = SpanContext(trace_id=1, span_id=2, sampling_priority=AUTO_KEEP)
    assert ctx.updated is False

    ctx.set_baggage_item("key", "value")
    assert ctx.updated is False

    ctx.set_sampling_priority(USER_KEEP, SamplingMechanism.MANUAL)
    assert ctx.updated is True
    assert ctx.sampling_priority == USER_KEEP
    assert ctx.sampling_mechanism == SamplingMechanism.MANUAL

    ctx.updated = False
    ctx.origin = "rum"
    assert ctx.updated is True

    ctx.updated = False
    ctx.set_propagating_tag("_dd.p.dm", "-4")
    assert ctx.updated is True
    assert ctx.get_propagating_tag("_dd.p.dm") == "-4"


def test_baggage():
    ctx = SpanContext(trace_id=1, span_id=2, baggage={"a": "1"})
    ctx.set_baggage_item("b", "2")
    assert ctx.get_baggage_item("a") == "1"
    assert ctx.get_baggage_item("missing") is None
    assert sorted(ctx.iter_baggage_items()) == [("a", "1"), ("b", "2")]

    # the property is a copy
    ctx.baggage["c"] = "3"
    assert ctx.get_baggage_item("c") is None


def test_with_baggage_item():
    ctx = SpanContext(trace_id=1, span_id=2, sampling_priority=AUTO_KEEP, origin="rum", baggage={"a": "1"})
    other = ctx.with_baggage_item("b", "2")

    assert other is not ctx
    assert other.baggage == {"a": "1", "b": "2"}
    assert ctx.baggage == {"a": "1"}
    assert (other.trace_id, other.span_id, other.sampling_priority, other.origin) == (1, 2, AUTO_KEEP, "rum")
    # both contexts belong to the same trace
    assert other.trace is ctx.trace


def test_equality():
    ctx = SpanContext(trace_id=1, span_id=2, sampling_priority=1, origin="rum", baggage={"a": "1"})
    assert ctx == SpanContext(trace_id=1, span_id=2, sampling_priority=1, origin="rum", baggage={"a": "1"})
    assert ctx != SpanContext(trace_id=1, span_id=3, sampling_priority=1, origin="rum", baggage={"a": "1"})
    assert ctx != SpanContext(trace_id=1, span_id=2, sampling_priority=1, origin="rum")
    assert ctx != object()
    with pytest.raises(TypeError):
        hash(ctx)


def test_repr():
    ctx = SpanContext(trace_id=1, span_id=2, sampling_priority=1)
    assert repr(ctx) == (
        "SpanContext(trace_id=1, span_id=2, sampling_priority=1, origin=None, baggage={}, updated=False)"
    )


def test_trace_state():
    trace = TraceState({"_dd.p.dm": "-4"})
    trace.set_propagating_tag("_dd.p.usr.id", "baz64")
    assert trace.get_propagating_tag("_dd.p.dm") == "-4"

    snapshot = trace.propagating_tags_snapshot()
    snapshot["_dd.p.other"] = "value"
    assert trace.get_propagating_tag("_dd.p.other") is None

    trace.replace_propagating_tags({"_dd.p.a": "b"})
    assert trace.propagating_tags_snapshot() == {"_dd.p.a": "b"}

    trace.set_tag(_PROPAGATION_ERROR_KEY, "decoding_error")
    assert trace.get_tag(_PROPAGATION_ERROR_KEY) == "decoding_error"
    assert trace.tags == {_PROPAGATION_ERROR_KEY: "decoding_error"}


def test_trace_state_lock_is_reentrant():
    trace = TraceState()
    with trace.lock() as tags:
        tags["_dd.p.a"] = "b"
        trace.set_tag("key", "value")
        assert trace.get_propagating_tag("_dd.p.a") == "b"
    assert trace.get_tag("key") == "value"


def test_concurrent_tag_mutation_and_marshal():
    ctx = SpanContext(trace_id=1, span_id=2)
    errors = []
    barrier = threading.Barrier(8)

    def writer(n):
        barrier.wait()
        try:
            for i in range(200):
                ctx.set_propagating_tag("_dd.p.t%d" % n, str(i))
                unmarshal_propagating_tags(ctx.trace, "_dd.p.x%d=%d" % (n, i))
        except Exception as e:  # noqa: E722
            errors.append(e)

    def reader():
        barrier.wait()
        try:
            for _ in range(200):
                marshal_propagating_tags(ctx, 512)
        except Exception as e:  # noqa: E722
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # "dictionary changed size during iteration" would show up here
    assert errors == []
