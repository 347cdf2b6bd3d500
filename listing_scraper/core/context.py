"""
The acquisition context: everything the pipeline shares across acquisitions.

One context models one human operator. Concurrent acquisitions must share
a single context so that the budget counters and browser identity stay
consistent; every read-modify-write goes through ``self.lock``.
"""

import logging
import random
import threading
import time
from typing import Callable

from listing_scraper.core.admission import (
    AdmissionController,
    AdmissionDecision,
    RequestBudgetState,
)
from listing_scraper.core.camouflage import ActionKind, CamouflageProvider
from listing_scraper.scrapers.models.config import AcquisitionConfig

logger = logging.getLogger(__name__)


class AcquisitionContext:
    """Owns the request budget, the camouflage identity and the lock around both."""

    def __init__(
        self,
        config: AcquisitionConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or AcquisitionConfig()
        self.rng = rng or random.Random()
        self.clock = clock
        self._sleep = sleep
        self.lock = threading.RLock()

        now = self.clock()
        self.state = RequestBudgetState(hour_start=now, day_start=now)
        self.camouflage = CamouflageProvider(self.config, self.rng, self.clock)
        self.admission = AdmissionController(self.state, self.config, self.camouflage)

    def admit(self) -> AdmissionDecision:
        """
        Check the budget and, when allowed, reserve a slot in the same critical
        section. Every allowed admit must be paired with a release().
        """
        with self.lock:
            now = self.clock()
            decision = self.admission.check(now)
            if decision.allowed:
                self.admission.reserve(now)
            return decision

    def release(self) -> None:
        with self.lock:
            self.admission.release()

    def record_success(self) -> None:
        with self.lock:
            self.admission.record_success(self.clock())

    def record_error(self, status_code: int | None = None) -> int:
        """Record a failed request and return the advisory wait in seconds."""
        with self.lock:
            self.admission.record_error(status_code)
            return self.admission.suggested_backoff_seconds()

    def identity(self) -> str:
        with self.lock:
            return self.camouflage.current_identity()

    def page_headers(self) -> dict[str, str]:
        with self.lock:
            return self.camouflage.headers_for(self.camouflage.current_identity())

    def image_headers(self) -> dict[str, str]:
        with self.lock:
            return self.camouflage.image_headers_for(self.camouflage.current_identity())

    def cache_buster_params(self) -> dict[str, str]:
        with self.lock:
            return self.camouflage.cache_buster_params()

    def stats(self) -> dict:
        with self.lock:
            return self.admission.stats()

    def reset(self) -> None:
        with self.lock:
            self.admission.reset()

    # Cooperative pauses: the draw happens under the lock, the sleep outside it.

    def pause(self, action: ActionKind) -> None:
        with self.lock:
            delay_ms = self.camouflage.delay_for(action)
        self._sleep_ms(delay_ms, action.value)

    def pause_reading(self, content: str = "normal") -> None:
        with self.lock:
            delay_ms = self.camouflage.reading_delay(content)
        self._sleep_ms(delay_ms, f"reading:{content}")

    def pause_jitter(self) -> None:
        with self.lock:
            delay_ms = self.camouflage.request_jitter()
        self._sleep_ms(delay_ms, "jitter")

    def pause_for_image(self, index: int) -> None:
        with self.lock:
            delay_ms = self.camouflage.image_load_delay(index)
        self._sleep_ms(delay_ms, f"image:{index}")

    def pause_typing(self, text: str) -> None:
        with self.lock:
            delay_ms = self.camouflage.typing_delay(len(text))
        self._sleep_ms(delay_ms, "typing")

    def pause_scrolling(self, sections: int = 3) -> None:
        with self.lock:
            delays = self.camouflage.scroll_delays(sections)
        for delay_ms in delays:
            self._sleep_ms(delay_ms, "scroll")

    def _sleep_ms(self, delay_ms: int, label: str) -> None:
        if not self.config.simulate_human or delay_ms <= 0:
            return
        logger.debug(f"Human delay {label} delay_ms={delay_ms}")
        self._sleep(delay_ms / 1000)
