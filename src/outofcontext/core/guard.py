"""Loop detection over the trailing window of decoded token text."""

from __future__ import annotations

from collections import Counter, deque
from typing import Deque, Iterable, List, Optional, Sequence

WINDOW_CAPACITY = 4096

MIN_HISTORY = 40
NGRAM_SIZES = (7, 5, 4)
FREQUENCY_SPAN = 160
FREQUENCY_LIMIT = 48
DIVERSITY_SPAN = 120
DIVERSITY_FLOOR = 0.32


class RecentTokenWindow:
    """FIFO of the most recent token texts (oldest evicted first)."""

    def __init__(self, capacity: int = WINDOW_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = int(capacity)
        self._items: Deque[str] = deque(maxlen=self.capacity)

    def append(self, text: str) -> None:
        self._items.append(text)

    def extend(self, texts: Iterable[str]) -> None:
        self._items.extend(texts)

    def tail(self, n: int) -> List[str]:
        if n <= 0:
            return []
        items = self._items
        start = max(0, len(items) - n)
        return [items[i] for i in range(start, len(items))]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)


class RepetitionGuard:
    """Flags degenerate repetition; a flag ends the run.

    Rules, evaluated in order once at least ``MIN_HISTORY`` entries exist:
      - the last n entries equal the n before them, for n in 7, 5, 4
      - one value occurs ``FREQUENCY_LIMIT`` times among the last ``FREQUENCY_SPAN``
      - fewer than ``DIVERSITY_FLOOR`` unique values among the last ``DIVERSITY_SPAN``
    """

    def __init__(self) -> None:
        self.last_reason: Optional[str] = None

    def check(self, window: RecentTokenWindow | Sequence[str]) -> bool:
        self.last_reason = self._reason(window)
        return self.last_reason is not None

    def _reason(self, window) -> Optional[str]:
        size = len(window)
        if size < MIN_HISTORY:
            return None

        span = max(max(NGRAM_SIZES) * 2, FREQUENCY_SPAN, DIVERSITY_SPAN)
        recent = window.tail(span) if isinstance(window, RecentTokenWindow) else list(window)[-span:]

        for n in NGRAM_SIZES:
            if size >= 2 * n and recent[-n:] == recent[-2 * n:-n]:
                return f"repeated {n}-gram"

        value, count = Counter(recent[-FREQUENCY_SPAN:]).most_common(1)[0]
        if count >= FREQUENCY_LIMIT:
            return f"token {value!r} repeated {count} times in last {FREQUENCY_SPAN}"

        if size >= DIVERSITY_SPAN:
            unique = len(set(recent[-DIVERSITY_SPAN:]))
            if unique / DIVERSITY_SPAN < DIVERSITY_FLOOR:
                return f"only {unique} unique tokens in last {DIVERSITY_SPAN}"

        return None
