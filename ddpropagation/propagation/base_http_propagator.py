import abc
from typing import Any

from ..context import SpanContext


class Propagator(abc.ABC):
    """Translates a ``SpanContext`` to and from one wire format.

    ``inject`` raises ``InvalidSpanContext`` for a context without trace or span
    id and ``InvalidCarrier`` when the carrier cannot be written to.

    ``extract`` raises ``SpanContextNotFound`` when the carrier holds no context
    for this format, ``SpanContextCorrupted`` when a header could not be parsed
    and ``InvalidCarrier`` when the carrier cannot be read.
    """

    @abc.abstractmethod
    def inject(self, span_context, carrier):
        # type: (SpanContext, Any) -> None
        pass

    @abc.abstractmethod
    def extract(self, carrier):
        # type: (Any) -> SpanContext
        pass
