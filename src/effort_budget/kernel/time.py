"""
Time provider abstraction for deterministic testing

Creation timestamps decide story order and "newest first" budget
listings, so tests need to control the clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Args:
        initial_time: Starting time (defaults to Unix epoch)
        auto_advance_ms: Milliseconds added after every now() call, so
            records written in sequence get strictly increasing timestamps
    """

    __test__ = False  # not a pytest test class

    def __init__(
        self, initial_time: datetime | None = None, auto_advance_ms: int = 0
    ) -> None:
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)
        self._step = timedelta(milliseconds=auto_advance_ms)

    def now(self) -> datetime:
        current = self._current_time
        self._current_time += self._step
        return current


default_time_provider: TimeProvider = RealTimeProvider()
