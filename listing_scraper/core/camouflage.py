"""
Browser identity and human cadence simulation.

Keeps one browser identity for the length of a browsing session, derives
request headers that agree with it, and draws delays from per-action
normal distributions so request timing does not look machine-generated.
"""

import logging
import math
import random
import re
import time
from enum import Enum
from typing import Callable

from listing_scraper.scrapers.models.config import AcquisitionConfig

logger = logging.getLogger(__name__)

USER_AGENTS = [
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5_1) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36",
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36",
    # Safari on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5_1) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Safari/605.1.15",
    # Firefox on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:120.0) Gecko/20100101 Firefox/120.0",
    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36 Edg/119.0.0.0",
]

SCREEN_SIZES = [(1920, 1080), (1366, 768), (1536, 864), (1440, 900), (2560, 1440)]

ACCEPT_LANGUAGES = [
    "en-US,en;q=0.9",
    "en-US,en;q=0.9,es;q=0.8",
    "en-GB,en;q=0.9",
    "en-US,en;q=0.9,fr;q=0.8",
]

IMAGE_ACCEPT = "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8"

READING_RANGES = {"brief": (500, 1500), "normal": (1000, 3000), "detailed": (2000, 5000)}


class ActionKind(Enum):
    PAGE_LOAD = "page_load"
    SEARCH = "search"
    CLICK = "click"
    SCROLL = "scroll"
    IMAGE = "image"
    TYPING = "typing"


class BrowserFamily(Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    SAFARI = "safari"
    UNKNOWN = "unknown"


def browser_family(user_agent: str) -> BrowserFamily:
    """Work out which browser family a User-Agent string belongs to."""
    if "Firefox/" in user_agent:
        return BrowserFamily.FIREFOX
    if "Chrome/" in user_agent or "Edg/" in user_agent:
        return BrowserFamily.CHROMIUM
    if "Safari/" in user_agent:
        return BrowserFamily.SAFARI
    return BrowserFamily.UNKNOWN


def _platform_hint(user_agent: str) -> str:
    if "Windows" in user_agent:
        return '"Windows"'
    if "Macintosh" in user_agent:
        return '"macOS"'
    return '"Linux"'


class CamouflageProvider:
    """
    Supplies a consistent browser identity and human-like timing.

    The identity survives for ``identity_rotation_seconds``; after that the
    next call draws a fresh one uniformly from the pool. Callers that share
    one provider must serialize access themselves (see AcquisitionContext).
    """

    def __init__(
        self,
        config: AcquisitionConfig,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        user_agents: list[str] | None = None,
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.clock = clock
        self.user_agents = list(user_agents or USER_AGENTS)
        self.identity = self.user_agents[0]
        self.identity_since = self.clock()

    def current_identity(self) -> str:
        """Return the session identity, rotating it once the session is old."""
        now = self.clock()
        if now - self.identity_since > self.config.identity_rotation_seconds:
            self.identity = self.rng.choice(self.user_agents)
            self.identity_since = now
            logger.info(f"User-Agent rotated: {self.identity[:50]}")
        return self.identity

    def headers_for(self, identity: str) -> dict[str, str]:
        """Build a header set that agrees with the identity's browser family."""
        family = browser_family(identity)
        headers = {
            "User-Agent": identity,
            "Accept-Language": self.rng.choice(ACCEPT_LANGUAGES),
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Cache-Control": "max-age=0",
            "DNT": "1" if self.rng.random() > 0.5 else "0",
        }

        if family == BrowserFamily.CHROMIUM:
            headers["Accept"] = (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/avif,image/webp,image/apng,*/*;q=0.8"
            )
            headers["Sec-Fetch-Dest"] = "document"
            headers["Sec-Fetch-Mode"] = "navigate"
            headers["Sec-Fetch-Site"] = "none"
            headers["Sec-Fetch-User"] = "?1"

            match = re.search(r"Chrome/(\d+)", identity)
            version = match.group(1) if match else "120"
            brand = "Microsoft Edge" if "Edg/" in identity else "Google Chrome"
            headers["sec-ch-ua"] = (
                f'"Not_A Brand";v="8", "Chromium";v="{version}", "{brand}";v="{version}"'
            )
            headers["sec-ch-ua-mobile"] = "?0"
            headers["sec-ch-ua-platform"] = _platform_hint(identity)
            if self.rng.random() > 0.5:
                width, _ = self.rng.choice(SCREEN_SIZES)
                headers["sec-ch-viewport-width"] = str(width)
        elif family == BrowserFamily.FIREFOX:
            headers["Accept"] = (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/avif,image/webp,*/*;q=0.8"
            )
            headers["TE"] = "trailers"
        elif family == BrowserFamily.SAFARI:
            headers["Accept"] = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

        return headers

    def image_headers_for(self, identity: str) -> dict[str, str]:
        """Headers for an image request: identity, image Accept and a catalog Referer."""
        return {
            "User-Agent": identity,
            "Accept": IMAGE_ACCEPT,
            "Referer": self.config.base_url.rstrip("/") + "/",
        }

    def delay_for(self, action: ActionKind) -> int:
        """Milliseconds to wait before an action.

        Drawn from a normal distribution centred in the action's range
        (Box-Muller), clamped to the range.
        """
        low, high = self.config.delay_ranges[action.value]
        mean = (low + high) / 2
        std_dev = (high - low) / 6

        u1 = 1.0 - self.rng.random()  # (0, 1], keeps log() finite
        u2 = self.rng.random()
        z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

        delay = mean + std_dev * z0
        return round(max(low, min(high, delay)))

    def backoff_for(self, attempt: int) -> int:
        """Suggested wait in milliseconds for the given attempt number."""
        delay = min(self.config.backoff_base_ms * (2 ** max(attempt, 0)), self.config.backoff_cap_ms)
        jitter = delay * 0.25 * (self.rng.random() * 2 - 1)
        return round(delay + jitter)

    def reading_delay(self, content: str = "normal") -> int:
        low, high = READING_RANGES[content]
        return round(low + self.rng.random() * (high - low))

    def request_jitter(self) -> int:
        if self.rng.random() > 0.85:
            # occasional distraction
            return round(1500 + self.rng.random() * 2000)
        return round(100 + self.rng.random() * 700)

    def image_load_delay(self, index: int) -> int:
        if index == 0:
            return round(200 + self.rng.random() * 300)
        scroll_penalty = self.rng.random() * 1000 if index > 3 else 0
        return round(self.delay_for(ActionKind.IMAGE) + scroll_penalty)

    def typing_delay(self, text_length: int) -> int:
        per_char = self.delay_for(ActionKind.TYPING)
        return min(per_char * text_length, 3000)

    def scroll_delays(self, sections: int = 3) -> list[int]:
        delays = []
        for _ in range(sections):
            delay = 400 + self.rng.random() * 800
            if self.rng.random() > 0.7:
                delay += 800 + self.rng.random() * 1500
            delays.append(round(delay))
        return delays

    def cache_buster_params(self) -> dict[str, str]:
        """One or two natural-looking query parameters to vary request URLs."""
        candidates = [
            ("ref", f"sr_pg_{self.rng.randrange(10)}"),
            ("pf_rd_r", self._random_token(13).upper()),
            ("pf_rd_p", self._random_token(13)),
            ("qid", str(int(self.clock() * 1000))),
        ]
        count = 1 if self.rng.random() > 0.5 else 2
        return dict(self.rng.sample(candidates, count))

    def _random_token(self, length: int) -> str:
        alphabet = "abcdefghijklmnopqrstuvwxyz0123456789"
        return "".join(self.rng.choice(alphabet) for _ in range(length))
