import logging

import pytest

from ddpropagation.internal.constants import DEFAULT_X_DATADOG_TAGS_MAX_LENGTH
from ddpropagation.settings import PropagationEnvConfig
from ddpropagation.settings import PropagatorConfig
from ddpropagation.settings.propagation import EXTRACT
from ddpropagation.settings.propagation import INJECT
from ddpropagation.settings.propagation import resolve_propagation_style


_ENV_NAMES = (
    "DD_TRACE_PROPAGATION_STYLE",
    "DD_TRACE_PROPAGATION_STYLE_INJECT",
    "DD_TRACE_PROPAGATION_STYLE_EXTRACT",
    "DD_PROPAGATION_STYLE_INJECT",
    "DD_PROPAGATION_STYLE_EXTRACT",
    "DD_PROPAGATION_STYLE_B3",
    "DD_TRACE_X_DATADOG_TAGS_MAX_LENGTH",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults():
    config = PropagatorConfig()
    assert config.baggage_prefix == "ot-baggage-"
    assert config.trace_header == "x-datadog-trace-id"
    assert config.parent_header == "x-datadog-parent-id"
    assert config.priority_header == "x-datadog-sampling-priority"
    assert config.max_tags_header_len == DEFAULT_X_DATADOG_TAGS_MAX_LENGTH == 512
    assert config.b3 is False
    assert config.propagation_style is None
    assert config.propagation_style_inject is None
    assert config.propagation_style_extract is None


def test_header_names():
    config = PropagatorConfig(trace_header="X-Trace-Id", parent_header="", priority_header=None, baggage_prefix="Bag-")
    assert config.trace_header == "x-trace-id"
    assert config.parent_header == "x-datadog-parent-id"
    assert config.priority_header == "x-datadog-sampling-priority"
    assert config.baggage_prefix == "bag-"


def test_negative_max_tags_header_len(propagation_logs):
    config = PropagatorConfig(max_tags_header_len=-1)
    assert config.max_tags_header_len == 0
    assert any(r.levelno == logging.WARNING for r in propagation_logs.records)


def test_from_env_defaults(clean_env):
    config = PropagatorConfig.from_env()
    assert config == PropagatorConfig()


def test_from_env(clean_env):
    clean_env.setenv("DD_TRACE_PROPAGATION_STYLE", "tracecontext")
    clean_env.setenv("DD_TRACE_PROPAGATION_STYLE_INJECT", "datadog,b3")
    clean_env.setenv("DD_PROPAGATION_STYLE_EXTRACT", "b3")
    clean_env.setenv("DD_PROPAGATION_STYLE_B3", "true")
    clean_env.setenv("DD_TRACE_X_DATADOG_TAGS_MAX_LENGTH", "128")

    config = PropagatorConfig.from_env()
    assert config.propagation_style == "tracecontext"
    assert config.propagation_style_inject == "datadog,b3"
    assert config.propagation_style_extract is None
    assert config.deprecated_propagation_style_inject is None
    assert config.deprecated_propagation_style_extract == "b3"
    assert config.b3 is True
    assert config.max_tags_header_len == 128


def test_from_env_overrides(clean_env):
    clean_env.setenv("DD_TRACE_X_DATADOG_TAGS_MAX_LENGTH", "128")
    config = PropagatorConfig.from_env(max_tags_header_len=64, trace_header="x-trace")
    assert config.max_tags_header_len == 64
    assert config.trace_header == "x-trace"


def test_from_env_explicit_env(clean_env):
    clean_env.setenv("DD_PROPAGATION_STYLE_B3", "1")
    env = PropagationEnvConfig()
    clean_env.delenv("DD_PROPAGATION_STYLE_B3")
    # the environment was read when building env
    assert PropagatorConfig.from_env(env).b3 is True
    assert PropagatorConfig.from_env().b3 is False


@pytest.mark.parametrize(
    "kwargs,inject,extract",
    [
        ({}, None, None),
        (dict(propagation_style="b3"), "b3", "b3"),
        (dict(propagation_style="b3", propagation_style_inject="datadog"), "datadog", "b3"),
        (dict(propagation_style="b3", propagation_style_extract="datadog"), "b3", "datadog"),
        (dict(propagation_style="b3", deprecated_propagation_style_inject="none"), "none", "b3"),
        (
            dict(propagation_style_inject="datadog", deprecated_propagation_style_inject="b3"),
            "datadog",
            None,
        ),
        (
            dict(propagation_style_extract="datadog", deprecated_propagation_style_extract="b3"),
            None,
            "datadog",
        ),
    ],
)
def test_resolve_propagation_style(kwargs, inject, extract):
    config = PropagatorConfig(**kwargs)
    assert resolve_propagation_style(config, INJECT) == inject
    assert resolve_propagation_style(config, EXTRACT) == extract


def test_resolve_deprecated_propagation_style(propagation_logs):
    config = PropagatorConfig(deprecated_propagation_style_extract="b3")
    assert resolve_propagation_style(config, EXTRACT) == "b3"
    assert [r.getMessage() for r in propagation_logs.records if r.levelno == logging.WARNING] == [
        "DD_PROPAGATION_STYLE_EXTRACT is deprecated. "
        "Please use DD_TRACE_PROPAGATION_STYLE_EXTRACT or DD_TRACE_PROPAGATION_STYLE instead."
    ]


def test_resolve_specific_over_deprecated_does_not_warn(propagation_logs):
    config = PropagatorConfig(propagation_style_inject="datadog", deprecated_propagation_style_inject="b3")
    assert resolve_propagation_style(config, INJECT) == "datadog"
    assert not [r for r in propagation_logs.records if r.levelno == logging.WARNING]


def test_resolve_unknown_direction():
    with pytest.raises(ValueError):
        resolve_propagation_style(PropagatorConfig(), "sideways")
