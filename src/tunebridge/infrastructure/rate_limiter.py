"""Token bucket rate limiting for provider APIs.

Hey future me - every provider client shares ONE limiter per provider (module
singletons below). A batch of 20 links fans out to ~40 provider calls in a
second; without the bucket Spotify answers with 429s and the cross-reference
comes back half empty.

Algorithm:
- The bucket holds up to max_tokens, refilled at refill_rate tokens/second
- Each request takes one token, waiting when the bucket is empty
- On 429 the client calls handle_rate_limit_response(): we honour Retry-After
  when the provider sends it, else back off exponentially (reset on success)

Usage:
    limiter = get_spotify_limiter()
    async with limiter:
        response = await client.get(url)
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Bucket size, refill speed and 429 backoff settings."""

    max_tokens: int = 10
    refill_rate: float = 2.0  # tokens per second
    max_backoff_seconds: float = 60.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token bucket with adaptive backoff, usable as `async with limiter`."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    # Resolution is latency-sensitive (a user is waiting for a chat reply), so the
    # max backoff is capped much lower than a background sync would use. A provider
    # that wants us gone for minutes is simply skipped via the gateway timeout.
    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        """Spotify: ~180 requests/minute, bursts allowed."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=2.0,
                max_backoff_seconds=30.0,
                initial_backoff_seconds=1.0,
            ),
            name="spotify",
        )

    @classmethod
    def for_deezer(cls) -> "RateLimiter":
        """Deezer: 50 requests / 5 seconds per IP."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=15,
                refill_rate=5.0,
                max_backoff_seconds=10.0,
                initial_backoff_seconds=0.5,
            ),
            name="deezer",
        )

    @classmethod
    def for_apple_music(cls) -> "RateLimiter":
        """Apple Music: undocumented per-token quota, roughly 20 requests/second."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=20,
                refill_rate=10.0,
                max_backoff_seconds=30.0,
                initial_backoff_seconds=1.0,
            ),
            name="apple_music",
        )

    @classmethod
    def for_tidal(cls) -> "RateLimiter":
        """Tidal: small bursts, a few requests per second."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=5,
                refill_rate=3.0,
                max_backoff_seconds=30.0,
                initial_backoff_seconds=1.0,
            ),
            name="tidal",
        )

    @classmethod
    def for_soundcloud(cls) -> "RateLimiter":
        """SoundCloud: 15,000 requests per 24h per client id."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=2.0,
                max_backoff_seconds=30.0,
                initial_backoff_seconds=1.0,
            ),
            name="soundcloud",
        )

    @classmethod
    def for_youtube(cls) -> "RateLimiter":
        """YouTube Data API: the quota is daily units, so only smooth out bursts."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=5.0,
                max_backoff_seconds=10.0,
                initial_backoff_seconds=1.0,
            ),
            name="youtube_music",
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            float(self.config.max_tokens),
            self._tokens + elapsed * self.config.refill_rate,
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        async with self._lock:
            self._refill_tokens()
            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug("RateLimiter[%s]: bucket empty, waiting %.2fs", self.name, wait_time)
                await asyncio.sleep(wait_time)
                self._refill_tokens()
            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Wait after a 429.

        Args:
            retry_after: Retry-After header value in seconds, if the provider sent one

        Returns:
            Seconds actually waited
        """
        async with self._lock:
            wait_time = float(retry_after) if retry_after is not None else self._current_backoff
            wait_time = min(wait_time, self.config.max_backoff_seconds)
            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0

        logger.warning("RateLimiter[%s]: 429 received, waiting %.1fs", self.name, wait_time)
        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Current token count (for debugging)."""
        self._refill_tokens()
        return self._tokens


def parse_retry_after(value: str | None, now: datetime | None = None) -> int | None:
    """Parse a Retry-After header into whole seconds.

    The header is either delta-seconds ("120") or an HTTP-date
    ("Wed, 21 Oct 2026 07:28:00 GMT"). A date in the past means "retry now" (0).

    Args:
        value: Raw header value (None if absent)
        now: Reference time for HTTP-dates (defaults to the current UTC time)

    Returns:
        Seconds to wait, or None when the header is missing or unparseable
        (the limiter then falls back to exponential backoff)
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring unparseable Retry-After header: %r", value)
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)

    delta = (retry_at - (now or datetime.now(UTC))).total_seconds()
    return max(0, math.ceil(delta))


# One limiter per provider, shared by every client instance in the process
_spotify_limiter: RateLimiter | None = None
_deezer_limiter: RateLimiter | None = None
_apple_music_limiter: RateLimiter | None = None
_tidal_limiter: RateLimiter | None = None
_soundcloud_limiter: RateLimiter | None = None
_youtube_limiter: RateLimiter | None = None


def get_spotify_limiter() -> RateLimiter:
    """Get singleton Spotify rate limiter."""
    global _spotify_limiter
    if _spotify_limiter is None:
        _spotify_limiter = RateLimiter.for_spotify()
    return _spotify_limiter


def get_deezer_limiter() -> RateLimiter:
    """Get singleton Deezer rate limiter."""
    global _deezer_limiter
    if _deezer_limiter is None:
        _deezer_limiter = RateLimiter.for_deezer()
    return _deezer_limiter


def get_apple_music_limiter() -> RateLimiter:
    """Get singleton Apple Music rate limiter."""
    global _apple_music_limiter
    if _apple_music_limiter is None:
        _apple_music_limiter = RateLimiter.for_apple_music()
    return _apple_music_limiter


def get_tidal_limiter() -> RateLimiter:
    """Get singleton Tidal rate limiter."""
    global _tidal_limiter
    if _tidal_limiter is None:
        _tidal_limiter = RateLimiter.for_tidal()
    return _tidal_limiter


def get_soundcloud_limiter() -> RateLimiter:
    """Get singleton SoundCloud rate limiter."""
    global _soundcloud_limiter
    if _soundcloud_limiter is None:
        _soundcloud_limiter = RateLimiter.for_soundcloud()
    return _soundcloud_limiter


def get_youtube_limiter() -> RateLimiter:
    """Get singleton YouTube Data API rate limiter."""
    global _youtube_limiter
    if _youtube_limiter is None:
        _youtube_limiter = RateLimiter.for_youtube()
    return _youtube_limiter
