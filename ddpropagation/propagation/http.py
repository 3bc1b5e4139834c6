"""
Chained propagation across several wire formats.

``new_propagator`` builds a ``ChainedPropagator`` from a ``PropagatorConfig``::

    propagator = new_propagator(PropagatorConfig(propagation_style="b3,datadog"))
    headers = {}
    propagator.inject(span_context, headers)
    context = propagator.extract(request_headers)

``HTTPPropagator`` exposes the same operations as static methods, configured
from the environment on first use.
"""
import threading
from typing import Any
from typing import List
from typing import Optional
from typing import Sequence

from ..context import SpanContext
from ..errors import SpanContextNotFound
from ..internal.constants import PROPAGATION_STYLE_B3
from ..internal.constants import PROPAGATION_STYLE_B3_MULTI
from ..internal.constants import PROPAGATION_STYLE_DATADOG
from ..internal.constants import _PROPAGATION_STYLE_NONE
from ..internal.constants import _PROPAGATION_STYLE_W3C_TRACECONTEXT
from ..internal.logger import get_logger
from ..settings.propagation import EXTRACT
from ..settings.propagation import INJECT
from ..settings.propagation import PropagatorConfig
from ..settings.propagation import resolve_propagation_style
from .b3 import B3Propagator
from .base_http_propagator import Propagator
from .datadog import DatadogPropagator
from .tracecontext import TraceContextPropagator


log = get_logger(__name__)


class ChainedPropagator(Propagator):
    """Runs a list of injectors and a list of extractors.

    ``inject`` writes every format in order and stops at the first error.
    ``extract`` returns the context of the first extractor that finds one; a
    ``SpanContextNotFound`` moves on to the next extractor, any other error is
    raised right away.
    """

    def __init__(self, injectors, extractors):
        # type: (Sequence[Propagator], Sequence[Propagator]) -> None
        self.injectors = list(injectors)
        self.extractors = list(extractors)

    def inject(self, span_context, carrier):
        # type: (SpanContext, Any) -> None
        for injector in self.injectors:
            injector.inject(span_context, carrier)

    def extract(self, carrier):
        # type: (Any) -> SpanContext
        for extractor in self.extractors:
            try:
                ctx = extractor.extract(carrier)
            except SpanContextNotFound:
                continue
            log.debug("extracted span context %r with %s", ctx, type(extractor).__name__)
            return ctx
        raise SpanContextNotFound()

    def __repr__(self):
        return "ChainedPropagator(injectors=%r, extractors=%r)" % (
            [type(p).__name__ for p in self.injectors],
            [type(p).__name__ for p in self.extractors],
        )


def _get_propagators(config, styles):
    # type: (PropagatorConfig, Optional[str]) -> List[Propagator]
    """Build the propagators selected by the comma separated ``styles``.

    ``None`` or an empty selection gives the default propagators: datadog, then
    b3 when enabled in ``config``. ``none`` on its own disables the direction.
    When b3 is enabled in ``config`` it always comes first.
    """
    dd = DatadogPropagator(config)
    defaults = [dd]  # type: List[Propagator]
    if config.b3:
        defaults.append(B3Propagator())
    if not styles or not styles.strip():
        return defaults
    if styles.strip().lower() == _PROPAGATION_STYLE_NONE:
        return []

    propagators = []  # type: List[Propagator]
    if config.b3:
        propagators.append(B3Propagator())
    for style in styles.split(","):
        style = style.strip().lower()
        if style == PROPAGATION_STYLE_DATADOG:
            propagators.append(dd)
        elif style in (PROPAGATION_STYLE_B3, PROPAGATION_STYLE_B3_MULTI):
            # b3 was already added from the configuration
            if not config.b3:
                propagators.append(B3Propagator())
        elif style == _PROPAGATION_STYLE_W3C_TRACECONTEXT:
            propagators.append(TraceContextPropagator())
        elif style == _PROPAGATION_STYLE_NONE:
            log.warning(
                "Propagation style %r has no effect when combined with other styles. "
                "To disable propagation, set it to %r alone",
                _PROPAGATION_STYLE_NONE,
                _PROPAGATION_STYLE_NONE,
            )
        else:
            log.warning("unrecognized propagation style: %r", style)

    if not propagators:
        return defaults
    return propagators


def new_propagator(config=None, *propagators):
    # type: (Optional[PropagatorConfig], *Propagator) -> ChainedPropagator
    """Return a propagator chaining the formats selected by ``config``.

    When ``propagators`` are given they are used, in order, for both injection
    and extraction and the style selectors are ignored.
    """
    if config is None:
        config = PropagatorConfig()
    if propagators:
        return ChainedPropagator(propagators, propagators)
    return ChainedPropagator(
        _get_propagators(config, resolve_propagation_style(config, INJECT)),
        _get_propagators(config, resolve_propagation_style(config, EXTRACT)),
    )


class HTTPPropagator(object):
    """A HTTP Propagator using HTTP headers as carrier, configured from the environment."""

    _lock = threading.Lock()
    _propagator = None  # type: Optional[ChainedPropagator]

    @classmethod
    def _get(cls):
        # type: () -> ChainedPropagator
        propagator = cls._propagator
        if propagator is None:
            with cls._lock:
                if cls._propagator is None:
                    cls._propagator = new_propagator(PropagatorConfig.from_env())
                propagator = cls._propagator
        return propagator

    @classmethod
    def _reset(cls):
        # type: () -> None
        """Drop the cached propagator so the environment is read again on next use."""
        with cls._lock:
            cls._propagator = None

    @staticmethod
    def inject(span_context, headers):
        # type: (SpanContext, Any) -> None
        """Inject Context attributes that have to be propagated as HTTP headers.

        Here is an example using `requests`::

            import requests

            from ddpropagation.propagation.http import HTTPPropagator

            def parent_call():
                headers = {}
                HTTPPropagator.inject(span_context, headers)
                url = "<some RPC endpoint>"
                r = requests.get(url, headers=headers)

        :param SpanContext span_context: Span context to propagate.
        :param dict headers: HTTP headers to extend with tracing attributes.
        """
        HTTPPropagator._get().inject(span_context, headers)

    @staticmethod
    def extract(headers):
        # type: (Any) -> SpanContext
        """Extract a Context from HTTP headers into a new Context.

        Here is an example from a web endpoint::

            from ddpropagation.propagation.http import HTTPPropagator

            def my_controller(url, headers):
                context = HTTPPropagator.extract(headers)

        :param dict headers: HTTP headers to extract tracing attributes.
        :return: New `SpanContext` with propagated attributes.
        :raises SpanContextNotFound: when no format found a context in ``headers``
        """
        return HTTPPropagator._get().extract(headers)
