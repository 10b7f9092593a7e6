"""Process-local abuse counters keyed by client IP.

Counters live in plain dicts and are lost on restart; with several workers or
instances each process keeps its own view, so effective quotas scale with the
number of processes. Entries are created lazily, reset once their window
elapses, and dropped by `sweep()`, which the app calls from a background task.
"""
from __future__ import annotations
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from starlette.requests import Request

from .settings import settings


def client_ip(request: Request) -> str:
	# Forwarding headers are client-controlled unless a trusted proxy sets them
	if not settings.trust_proxy_headers:
		return request.client.host if request.client else "unknown"
	forwarded = request.headers.get("x-forwarded-for")
	if forwarded:
		first = forwarded.split(",")[0].strip()
		if first:
			return first
	real_ip = request.headers.get("x-real-ip")
	if real_ip:
		return real_ip.strip()
	return request.client.host if request.client else "unknown"


@dataclass
class WindowCounter:
	count: int
	reset_at: float


@dataclass
class RateDecision:
	allowed: bool
	remaining: int
	retry_after: int


class RateLimiter:
	"""At most `limit` hits per key within `window_seconds` of the first hit."""

	def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.time) -> None:
		self.limit = limit
		self.window_seconds = window_seconds
		self.clock = clock
		self._entries: Dict[str, WindowCounter] = {}

	def hit(self, key: str) -> RateDecision:
		now = self.clock()
		entry = self._entries.get(key)
		if entry is None or now >= entry.reset_at:
			entry = WindowCounter(count=0, reset_at=now + self.window_seconds)
			self._entries[key] = entry
		if entry.count >= self.limit:
			return RateDecision(allowed=False, remaining=0, retry_after=max(1, int(entry.reset_at - now + 0.999)))
		entry.count += 1
		return RateDecision(allowed=True, remaining=self.limit - entry.count, retry_after=0)

	def sweep(self) -> int:
		now = self.clock()
		expired = [key for key, entry in self._entries.items() if now >= entry.reset_at]
		for key in expired:
			del self._entries[key]
		return len(expired)

	def clear(self) -> None:
		self._entries.clear()

	def __len__(self) -> int:
		return len(self._entries)


@dataclass
class LoginAttempts:
	attempts: int
	reset_at: float
	blocked_until: Optional[float] = None


class LoginAttemptTracker:
	"""Failed-login counter with a temporary block.

	Unblocked -> up to `max_attempts` failures within `window_seconds` ->
	blocked for `block_seconds` -> unblocked. A successful login clears the
	key immediately.
	"""

	def __init__(
		self,
		max_attempts: int,
		window_seconds: float,
		block_seconds: float,
		clock: Callable[[], float] = time.time,
	) -> None:
		self.max_attempts = max_attempts
		self.window_seconds = window_seconds
		self.block_seconds = block_seconds
		self.clock = clock
		self._entries: Dict[str, LoginAttempts] = {}

	def _current(self, key: str, now: float) -> Optional[LoginAttempts]:
		entry = self._entries.get(key)
		if entry is None:
			return None
		if entry.blocked_until is not None:
			if now < entry.blocked_until:
				return entry
			del self._entries[key]
			return None
		if now >= entry.reset_at:
			del self._entries[key]
			return None
		return entry

	def blocked_until(self, key: str) -> Optional[float]:
		entry = self._current(key, self.clock())
		return entry.blocked_until if entry else None

	def remaining(self, key: str) -> int:
		entry = self._current(key, self.clock())
		if entry is None:
			return self.max_attempts
		if entry.blocked_until is not None:
			return 0
		return max(0, self.max_attempts - entry.attempts)

	def record_failure(self, key: str) -> LoginAttempts:
		now = self.clock()
		entry = self._current(key, now)
		if entry is None:
			entry = LoginAttempts(attempts=0, reset_at=now + self.window_seconds)
			self._entries[key] = entry
		entry.attempts += 1
		if entry.attempts >= self.max_attempts:
			entry.blocked_until = now + self.block_seconds
		return entry

	def record_success(self, key: str) -> None:
		self._entries.pop(key, None)

	def sweep(self) -> int:
		now = self.clock()
		expired = [key for key in list(self._entries) if self._current(key, now) is None]
		return len(expired)

	def clear(self) -> None:
		self._entries.clear()


submission_limiter = RateLimiter(
	settings.submit_rate_limit,
	settings.submit_rate_window_minutes * 60,
)
admin_limiter = RateLimiter(
	settings.admin_rate_limit,
	settings.admin_rate_window_minutes * 60,
)
login_tracker = LoginAttemptTracker(
	settings.login_max_attempts,
	settings.login_window_minutes * 60,
	settings.login_block_minutes * 60,
)
