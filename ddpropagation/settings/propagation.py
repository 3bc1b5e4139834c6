"""
Propagation settings.

Environment variables are read through ``PropagationEnvConfig``; the resulting
values, together with anything set from code, end up in a ``PropagatorConfig``
which is the only thing propagators look at::

    config = PropagatorConfig.from_env()
    config = PropagatorConfig(b3=True, max_tags_header_len=256)

Propagation style selectors are resolved with the following order of precedence:

  1. ``DD_TRACE_PROPAGATION_STYLE_INJECT`` / ``DD_TRACE_PROPAGATION_STYLE_EXTRACT``
  2. ``DD_PROPAGATION_STYLE_INJECT`` / ``DD_PROPAGATION_STYLE_EXTRACT`` (deprecated)
  3. ``DD_TRACE_PROPAGATION_STYLE`` (applies to both inject and extract)
  4. the default propagators
"""
from typing import Any  # noqa:F401
from typing import Optional

import attr
from envier import En

from ..internal.constants import DEFAULT_X_DATADOG_TAGS_MAX_LENGTH
from ..internal.constants import HTTP_BAGGAGE_PREFIX
from ..internal.constants import HTTP_HEADER_PARENT_ID
from ..internal.constants import HTTP_HEADER_SAMPLING_PRIORITY
from ..internal.constants import HTTP_HEADER_TRACE_ID
from ..internal.logger import get_logger


log = get_logger(__name__)

INJECT = "inject"
EXTRACT = "extract"

_ENV_STYLE = "DD_TRACE_PROPAGATION_STYLE"
_ENV_STYLE_INJECT = "DD_TRACE_PROPAGATION_STYLE_INJECT"
_ENV_STYLE_EXTRACT = "DD_TRACE_PROPAGATION_STYLE_EXTRACT"
_ENV_STYLE_INJECT_DEPRECATED = "DD_PROPAGATION_STYLE_INJECT"
_ENV_STYLE_EXTRACT_DEPRECATED = "DD_PROPAGATION_STYLE_EXTRACT"


class PropagationEnvConfig(En):
    __prefix__ = "dd"

    propagation_style = En.v(
        Optional[str],
        "trace.propagation_style",
        default=None,
        help_type="String",
        help="Comma separated list of propagation styles used for both injection and extraction",
    )

    propagation_style_inject = En.v(
        Optional[str],
        "trace.propagation_style_inject",
        default=None,
        help_type="String",
        help="Comma separated list of propagation styles used for injection",
    )

    propagation_style_extract = En.v(
        Optional[str],
        "trace.propagation_style_extract",
        default=None,
        help_type="String",
        help="Comma separated list of propagation styles used for extraction, in order of priority",
    )

    _propagation_style_inject_deprecated = En.v(
        Optional[str],
        "propagation_style_inject",
        default=None,
        help_type="String",
        help="Deprecated, use DD_TRACE_PROPAGATION_STYLE_INJECT",
    )

    _propagation_style_extract_deprecated = En.v(
        Optional[str],
        "propagation_style_extract",
        default=None,
        help_type="String",
        help="Deprecated, use DD_TRACE_PROPAGATION_STYLE_EXTRACT",
    )

    b3_enabled = En.v(
        bool,
        "propagation_style_b3",
        default=False,
        help_type="Boolean",
        help="Add the B3 propagator to the default and configured propagators",
    )

    x_datadog_tags_max_length = En.v(
        int,
        "trace.x_datadog_tags_max_length",
        default=DEFAULT_X_DATADOG_TAGS_MAX_LENGTH,
        help_type="Integer",
        help="Maximum length of the x-datadog-tags header, 0 disables propagation of trace tags",
    )


def _header_name(default):
    def converter(value):
        # type: (Optional[str]) -> str
        # DEV: carrier keys are matched lower cased
        return (value or default).lower()

    return converter


def _max_tags_header_len(value):
    # type: (int) -> int
    value = int(value)
    if value < 0:
        log.warning(
            "Invalid value %r provided for the maximum x-datadog-tags length, only non-negative values allowed",
            value,
        )
        return 0
    return value


@attr.s(slots=True)
class PropagatorConfig(object):
    """Configuration used to build propagators.

    Empty header names fall back to their defaults. A ``max_tags_header_len``
    of ``0`` disables the propagation of trace tags through ``x-datadog-tags``.
    """

    baggage_prefix = attr.ib(type=str, default=HTTP_BAGGAGE_PREFIX, converter=_header_name(HTTP_BAGGAGE_PREFIX))
    trace_header = attr.ib(type=str, default=HTTP_HEADER_TRACE_ID, converter=_header_name(HTTP_HEADER_TRACE_ID))
    parent_header = attr.ib(type=str, default=HTTP_HEADER_PARENT_ID, converter=_header_name(HTTP_HEADER_PARENT_ID))
    priority_header = attr.ib(
        type=str, default=HTTP_HEADER_SAMPLING_PRIORITY, converter=_header_name(HTTP_HEADER_SAMPLING_PRIORITY)
    )
    max_tags_header_len = attr.ib(type=int, default=DEFAULT_X_DATADOG_TAGS_MAX_LENGTH, converter=_max_tags_header_len)
    b3 = attr.ib(type=bool, default=False)
    propagation_style = attr.ib(type=Optional[str], default=None)
    propagation_style_inject = attr.ib(type=Optional[str], default=None)
    propagation_style_extract = attr.ib(type=Optional[str], default=None)
    deprecated_propagation_style_inject = attr.ib(type=Optional[str], default=None)
    deprecated_propagation_style_extract = attr.ib(type=Optional[str], default=None)

    @classmethod
    def from_env(cls, env=None, **kwargs):
        # type: (Optional[PropagationEnvConfig], **Any) -> PropagatorConfig
        """Build a configuration from the environment, ``kwargs`` override environment values."""
        if env is None:
            env = PropagationEnvConfig()
        values = dict(
            max_tags_header_len=env.x_datadog_tags_max_length,
            b3=env.b3_enabled,
            propagation_style=env.propagation_style,
            propagation_style_inject=env.propagation_style_inject,
            propagation_style_extract=env.propagation_style_extract,
            deprecated_propagation_style_inject=env._propagation_style_inject_deprecated,
            deprecated_propagation_style_extract=env._propagation_style_extract_deprecated,
        )
        values.update(kwargs)
        return cls(**values)


def resolve_propagation_style(config, direction):
    # type: (PropagatorConfig, str) -> Optional[str]
    """Return the propagation style selector that applies to ``direction``.

    ``None`` means no selector was configured and the defaults apply.
    """
    if direction == INJECT:
        specific, deprecated = config.propagation_style_inject, config.deprecated_propagation_style_inject
        specific_name, deprecated_name = _ENV_STYLE_INJECT, _ENV_STYLE_INJECT_DEPRECATED
    elif direction == EXTRACT:
        specific, deprecated = config.propagation_style_extract, config.deprecated_propagation_style_extract
        specific_name, deprecated_name = _ENV_STYLE_EXTRACT, _ENV_STYLE_EXTRACT_DEPRECATED
    else:
        raise ValueError("unknown propagation direction: %r" % (direction,))

    if specific:
        return specific
    if deprecated:
        log.warning("%s is deprecated. Please use %s or %s instead.", deprecated_name, specific_name, _ENV_STYLE)
        return deprecated
    if config.propagation_style:
        return config.propagation_style
    return None
