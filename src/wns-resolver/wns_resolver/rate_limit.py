import logging
import threading
import time
from typing import Callable, Optional

from .config import MAX_COOLDOWN_MS, MIN_COOLDOWN_MS

logger = logging.getLogger(__name__)


class Cooldown:
    """
    Minimum spacing between outbound RPC calls, shared by every caller.

    ``wait`` holds the lock while sleeping, so concurrent callers queue up and
    each one leaves at least ``interval`` after the previous one.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call

    def wait(self, interval_ms: int) -> float:
        """Block until ``interval_ms`` has passed since the last call; returns seconds slept."""
        if not MIN_COOLDOWN_MS <= interval_ms <= MAX_COOLDOWN_MS:
            raise ValueError(
                f"cooldown must be between {MIN_COOLDOWN_MS} and {MAX_COOLDOWN_MS} ms, got {interval_ms}."
            )

        interval = interval_ms / 1000.0
        with self._lock:
            slept = 0.0
            if self._last_call is not None:
                remaining = interval - (self._clock() - self._last_call)
                if remaining > 0:
                    logger.debug("cooldown: waiting %.3fs", remaining)
                    self._sleep(remaining)
                    slept = remaining
            self._last_call = self._clock()
            return slept
