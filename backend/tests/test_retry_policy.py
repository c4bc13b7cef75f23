"""
ContactBook Backend — Retry Policy Tests
==========================================

What:  The shared tenacity loop: attempt cap, re-raise of the last error,
       and a construction that current tenacity accepts without warnings.
"""

import logging
import warnings

import pytest

from app.services.retry_policy import upstream_retrying
from helpers import settings_for

logger = logging.getLogger("tests.retry_policy")


class TestUpstreamRetrying:
    def test_builds_without_deprecation_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            upstream_retrying(settings_for(retry_min_wait=1, retry_max_wait=10), logger, (OSError,))

    @pytest.mark.asyncio
    async def test_stops_after_max_attempts_and_reraises(self):
        calls = 0
        with pytest.raises(ConnectionError, match="still down"):
            async for attempt in upstream_retrying(settings_for(retry_max_attempts=3), logger, (OSError,)):
                with attempt:
                    calls += 1
                    raise ConnectionError("still down")
        assert calls == 3

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        calls = 0
        with pytest.raises(ValueError):
            async for attempt in upstream_retrying(settings_for(), logger, (OSError,)):
                with attempt:
                    calls += 1
                    raise ValueError("bad input")
        assert calls == 1
