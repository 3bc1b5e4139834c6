"""
Local pytest plugin shared by the whole test suite.
"""
import logging

import hypothesis
import pytest

import ddpropagation.internal.logger
from ddpropagation.propagation.http import HTTPPropagator


# Disable the "too slow" health checks. We are ok if data generation is slow
# https://hypothesis.readthedocs.io/en/latest/healthchecks.html#hypothesis.HealthCheck.too_slow
hypothesis.settings.register_profile("default", suppress_health_check=(hypothesis.HealthCheck.too_slow,))
hypothesis.settings.load_profile("default")


@pytest.fixture(autouse=True)
def reset_logging_buckets():
    # DEV: rate limited records from a previous test would otherwise be dropped
    ddpropagation.internal.logger._buckets.clear()
    yield
    ddpropagation.internal.logger._buckets.clear()


@pytest.fixture(autouse=True)
def reset_http_propagator():
    HTTPPropagator._reset()
    yield
    HTTPPropagator._reset()


@pytest.fixture
def propagation_logs(caplog):
    """Capture every record of the ``ddpropagation`` loggers, bypassing rate limiting."""
    caplog.set_level(logging.DEBUG, logger="ddpropagation")
    return caplog
