from __future__ import annotations

import logging
import os

import pytest
from hypothesis import HealthCheck, settings

from pricewire import logging as plog
from pricewire.tests.helpers import FakeClock

# Signing is pure-Python EC arithmetic; keep local runs short and skip deadlines.
_SUPPRESS = [HealthCheck.function_scoped_fixture, HealthCheck.too_slow]
settings.register_profile("local", max_examples=40, deadline=None, suppress_health_check=_SUPPRESS)
settings.register_profile("ci", max_examples=200, deadline=None, suppress_health_check=_SUPPRESS)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_logging():
    # The CLI and the logging tests install handlers on captured streams.
    yield
    logger = logging.getLogger("pricewire")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    plog.clear_context()
