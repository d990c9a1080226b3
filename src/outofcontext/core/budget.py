"""Token accounting against the fixed context window."""

from __future__ import annotations

from .errors import BudgetOverflowError

PANIC_PERCENT = 95


class ContextBudget:
    """Tracks consumed tokens; crossing ``panic_threshold`` means the run is exhausted."""

    def __init__(self, context_size: int, *, tokens_used: int = 0) -> None:
        if context_size <= 0:
            raise ValueError("context_size must be positive")
        self.context_size = int(context_size)
        self.panic_threshold = self.context_size * PANIC_PERCENT // 100
        self.tokens_used = 0
        if tokens_used:
            self.consume(tokens_used)

    @property
    def exhausted(self) -> bool:
        return self.tokens_used >= self.panic_threshold

    def consume(self, n: int = 1) -> bool:
        if n < 0:
            raise ValueError("cannot consume a negative number of tokens")
        if self.tokens_used + n > self.context_size:
            raise BudgetOverflowError(
                f"consuming {n} tokens would exceed the context window "
                f"({self.tokens_used}/{self.context_size} used)"
            )
        self.tokens_used += n
        return self.exhausted

    def remaining(self) -> int:
        return self.context_size - self.tokens_used

    def __repr__(self) -> str:
        return (
            f"ContextBudget(used={self.tokens_used}, size={self.context_size}, "
            f"panic_threshold={self.panic_threshold})"
        )
