"""
Errors raised by propagators.

``SpanContextNotFound`` means the carrier held no trace context and the caller
should start a new trace; ``SpanContextCorrupted`` means a required header was
present but could not be parsed. Neither is fatal.
"""
from opentracing import InvalidCarrierException
from opentracing import SpanContextCorruptedException


class PropagationError(Exception):
    """Base class for all propagation errors."""


class InvalidCarrier(PropagationError, InvalidCarrierException):
    """The carrier does not support the reader/writer capability required by the propagator."""

    def __init__(self, carrier=None):
        # type: (object) -> None
        super(InvalidCarrier, self).__init__("invalid carrier: %r" % (type(carrier).__name__,))
        self.carrier = carrier


class InvalidSpanContext(PropagationError):
    """The span context lacks a trace id or span id and cannot be injected."""


class SpanContextNotFound(PropagationError):
    """No span context was present in the carrier."""


class SpanContextCorrupted(PropagationError, SpanContextCorruptedException):
    """A propagation header was present but its value could not be parsed."""

    def __init__(self, header, value):
        # type: (str, str) -> None
        super(SpanContextCorrupted, self).__init__("invalid value for %s: %r" % (header, value))
        self.header = header
        self.value = value
