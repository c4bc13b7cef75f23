"""
ContactBook Backend — Shared Retry Policy
===========================================

What:  Builds the tenacity retry loop used around SMTP and media-host calls.
How:   Exponential backoff with jitter, capped by RETRY_MAX_WAIT, stopping
       after RETRY_MAX_ATTEMPTS. The last exception is re-raised unchanged so
       callers can translate it into UpstreamError.

    Example (settings defaults): attempt 1 → ~1s, attempt 2 → ~2s (+jitter)

Usage:
    async for attempt in upstream_retrying(settings, logger, (OSError,)):
        with attempt:
            await call()
"""

import logging
from typing import Tuple, Type

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import Settings


def upstream_retrying(
    settings: Settings,
    logger: logging.Logger,
    retry_on: Tuple[Type[BaseException], ...],
) -> AsyncRetrying:
    return AsyncRetrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            multiplier=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
