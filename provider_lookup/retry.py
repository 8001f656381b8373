"""Bounded retry for outbound GETs.

Every networked client (geocoder + spatial providers) shares one policy:
429, any 5xx and connect/read timeouts are transient and retried up to
``max_retries`` extra times with ``backoff_base ** attempt + jitter`` seconds
of sleep between attempts. Everything else is terminal and handed straight
back to the caller.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import requests

from .errors import ProviderUnavailable, UpstreamError

logger = logging.getLogger(__name__)


class Decision(Enum):
    OK = "ok"
    TRANSIENT = "transient"
    TERMINAL = "terminal"


def classify_status(status_code: int) -> Decision:
    if 200 <= status_code < 300:
        return Decision.OK
    if status_code == 429 or status_code >= 500:
        return Decision.TRANSIENT
    return Decision.TERMINAL


def classify_exception(exc: Exception) -> Decision:
    # ConnectTimeout and ReadTimeout both derive from requests.Timeout
    if isinstance(exc, requests.Timeout):
        return Decision.TRANSIENT
    return Decision.TERMINAL


@dataclass
class RetryPolicy:
    max_retries: int = 2
    backoff_base: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    jitter: Callable[[], float] = field(default=random.random, repr=False)

    def delay(self, attempt: int) -> float:
        """Sleep before retry number ``attempt`` (1-based); jitter is redrawn every time."""
        return self.backoff_base ** attempt + self.jitter()

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries


def get_with_retry(
    session: requests.Session,
    url: str,
    *,
    params: dict,
    policy: RetryPolicy,
    timeout: float,
    label: str,
    headers: Optional[dict] = None,
) -> requests.Response:
    """
    GET ``url`` until it yields a non-transient outcome.

    Returns the response for 2xx and terminal statuses alike (callers decide
    what a 404 means to them). Raises ProviderUnavailable once the transient
    budget is spent, and UpstreamError for terminal network failures.
    """
    reason = ""
    for attempt in range(policy.max_attempts):
        if attempt:
            wait = policy.delay(attempt)
            logger.warning(
                f"{label}: retry {attempt}/{policy.max_retries} after {reason}, "
                f"sleeping {wait:.2f}s"
            )
            policy.sleep(wait)

        try:
            resp = session.get(url, params=params, headers=headers, timeout=(timeout, timeout))
        except requests.RequestException as e:
            if classify_exception(e) is Decision.TERMINAL:
                raise UpstreamError(f"{type(e).__name__}: {e}") from e
            reason = f"{type(e).__name__}: {e}"
            continue

        if classify_status(resp.status_code) is not Decision.TRANSIENT:
            return resp
        reason = f"HTTP {resp.status_code}"

    logger.error(f"{label}: failed after {policy.max_attempts} attempts: {reason}")
    raise ProviderUnavailable(label, reason, policy.max_attempts)
