"""Time-based record id generation."""

import threading
import time
from typing import Callable, Iterable


class ReelIdGenerator:
    """Millisecond-timestamp ids that strictly increase within a process.

    Seeding with the ids already stored keeps new ids above every existing one, so
    ids are not reused after a deletion even if the clock moved backwards.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def seed(self, existing_ids: Iterable[str]) -> None:
        numeric = [int(value) for value in existing_ids if str(value).isdigit()]
        with self._lock:
            self._last = max([self._last, *numeric])

    def next_id(self) -> str:
        with self._lock:
            now_ms = int(self._clock() * 1000)
            self._last = max(now_ms, self._last + 1)
            return str(self._last)
