"""
Admission control over the shared request budget.

Decides, before each acquisition, whether another request would still look
like one person browsing: an hourly cap, an error-rate circuit breaker and
a randomized minimum spacing between requests. Decisions are advisory;
nothing here sleeps or queues.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

from listing_scraper.core.camouflage import ActionKind, CamouflageProvider
from listing_scraper.core.failure_classifier import RATE_LIMIT_STATUS_CODES
from listing_scraper.scrapers.models.config import AcquisitionConfig

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600
DAY_SECONDS = 86400
SPACING_ACTIONS = (ActionKind.PAGE_LOAD, ActionKind.SEARCH)


class DenialReason(Enum):
    HOURLY_LIMIT_EXCEEDED = "HourlyLimitExceeded"
    HIGH_ERROR_RATE = "HighErrorRate"
    TOO_SOON = "TooSoon"


DENIAL_MESSAGES = {
    DenialReason.HOURLY_LIMIT_EXCEEDED: "Hourly rate limit exceeded",
    DenialReason.HIGH_ERROR_RATE: "High error rate - pausing to avoid detection",
    DenialReason.TOO_SOON: "Minimum delay not met - varying pace like human",
}


@dataclass
class RequestBudgetState:
    """Process-wide request counters."""

    hour_start: float
    day_start: float
    hourly_count: int = 0
    daily_count: int = 0
    total_requests: int = 0
    error_count: int = 0
    last_request_at: float = 0.0
    consecutive_failures: int = 0
    in_flight: int = 0

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.error_count / self.total_requests


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    reason: DenialReason | None = None
    wait_seconds: int = 0

    @property
    def message(self) -> str:
        if self.allowed:
            return "Allowed"
        return f"{DENIAL_MESSAGES[self.reason]}; try again in {self.wait_seconds} seconds"


class AdmissionController:
    """
    Evaluates and records requests against a RequestBudgetState.

    Not thread-safe on its own; AcquisitionContext wraps every call in its
    lock.
    """

    def __init__(
        self,
        state: RequestBudgetState,
        config: AcquisitionConfig,
        camouflage: CamouflageProvider,
    ):
        self.state = state
        self.config = config
        self.camouflage = camouflage

    def check(self, now: float) -> AdmissionDecision:
        """Decide whether a new acquisition may start at ``now``."""
        self._roll_windows(now)
        state = self.state

        if state.hourly_count + state.in_flight >= self.config.hourly_limit:
            wait = HOUR_SECONDS - (now - state.hour_start)
            logger.warning(
                f"Hourly rate limit reached count={state.hourly_count} in_flight={state.in_flight} "
                f"limit={self.config.hourly_limit}"
            )
            return AdmissionDecision(
                False, DenialReason.HOURLY_LIMIT_EXCEEDED, max(math.ceil(wait), 0)
            )

        if state.total_requests > 0 and state.error_rate > self.config.error_rate_threshold:
            logger.error(
                f"High error rate detected error_rate={state.error_rate:.2f} "
                f"error_count={state.error_count}"
            )
            return AdmissionDecision(
                False, DenialReason.HIGH_ERROR_RATE, self.config.error_cooldown_seconds
            )

        # Spacing is drawn from a randomly chosen action range
        action = self.camouflage.rng.choice(SPACING_ACTIONS)
        min_delay = self.camouflage.delay_for(action) / 1000
        elapsed = now - state.last_request_at
        if state.last_request_at > 0 and elapsed < min_delay:
            wait = min_delay - elapsed
            logger.debug(f"Too soon since last request wait={wait:.2f}s action={action.value}")
            return AdmissionDecision(False, DenialReason.TOO_SOON, math.ceil(wait))

        return AdmissionDecision(True)

    def reserve(self, now: float) -> None:
        """Hold a slot for an admitted acquisition until it is released."""
        self.state.in_flight += 1
        self.state.last_request_at = now

    def release(self) -> None:
        self.state.in_flight = max(0, self.state.in_flight - 1)

    def record_success(self, now: float) -> None:
        state = self.state
        state.hourly_count += 1
        state.daily_count += 1
        state.total_requests += 1
        state.last_request_at = now
        state.consecutive_failures = max(0, state.consecutive_failures - 1)
        logger.debug(
            f"Request recorded hourly={state.hourly_count} daily={state.daily_count} "
            f"total={state.total_requests}"
        )

    def record_error(self, status_code: int | None = None) -> None:
        state = self.state
        state.error_count += 1
        state.total_requests += 1
        state.consecutive_failures += 1
        logger.warning(
            f"Error recorded status_code={status_code} error_count={state.error_count} "
            f"error_rate={state.error_rate:.2f}"
        )
        if status_code in RATE_LIMIT_STATUS_CODES:
            logger.error(f"Rate limit or service unavailable detected status_code={status_code}")

    def suggested_backoff_seconds(self) -> int:
        """Advisory wait after a failure, growing with consecutive failures."""
        attempt = max(self.state.consecutive_failures - 1, 0)
        return math.ceil(self.camouflage.backoff_for(attempt) / 1000)

    def stats(self) -> dict:
        state = self.state
        error_rate = state.error_rate * 100 if state.total_requests else 0.0
        return {
            "hourly_count": state.hourly_count,
            "daily_count": state.daily_count,
            "total_requests": state.total_requests,
            "error_count": state.error_count,
            "in_flight": state.in_flight,
            "error_rate": f"{error_rate:.1f}%",
            "current_user_agent": self.camouflage.identity[:50] + "...",
        }

    def reset(self) -> None:
        state = self.state
        state.hourly_count = 0
        state.daily_count = 0
        state.error_count = 0
        state.total_requests = 0
        state.consecutive_failures = 0
        logger.info("Tracking counters reset")

    def _roll_windows(self, now: float) -> None:
        state = self.state
        if now - state.hour_start > HOUR_SECONDS:
            logger.info(f"Hourly counter reset previous_count={state.hourly_count}")
            state.hourly_count = 0
            state.hour_start = now
        if now - state.day_start > DAY_SECONDS:
            logger.info(f"Daily counter reset previous_count={state.daily_count}")
            state.daily_count = 0
            state.day_start = now
            state.error_count = 0
