"""
Trace context propagation across process boundaries.

Contexts are injected into and extracted from carriers (HTTP headers or any
string map) in the Datadog, B3 multi-header and W3C Trace Context formats::

    from ddpropagation import HTTPPropagator

    headers = {}
    HTTPPropagator.inject(span_context, headers)
"""
from .context import SpanContext
from .context import TraceState
from .errors import InvalidCarrier
from .errors import InvalidSpanContext
from .errors import PropagationError
from .errors import SpanContextCorrupted
from .errors import SpanContextNotFound
from .propagation.http import ChainedPropagator
from .propagation.http import HTTPPropagator
from .propagation.http import new_propagator
from .settings import PropagatorConfig


__version__ = "0.1.0"

__all__ = [
    "ChainedPropagator",
    "HTTPPropagator",
    "InvalidCarrier",
    "InvalidSpanContext",
    "PropagationError",
    "PropagatorConfig",
    "SpanContext",
    "SpanContextCorrupted",
    "SpanContextNotFound",
    "TraceState",
    "new_propagator",
]
