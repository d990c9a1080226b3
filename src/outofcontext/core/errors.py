"""Exception hierarchy for recoverable run failures.

Context exhaustion and loop detection are not errors; they are reported
through :class:`outofcontext.core.data.GenerationResult`.
"""

from __future__ import annotations


class OutOfContextError(RuntimeError):
    """Base class for all recoverable failures raised by the package."""


class PromptReadError(OutOfContextError):
    pass


class PromptTooLargeError(OutOfContextError):
    def __init__(self, prompt_tokens: int, context_size: int) -> None:
        super().__init__(
            f"Prompt ({prompt_tokens} tokens) exceeds context window ({context_size} tokens). "
            "Use a shorter prompt or increase --context-size."
        )
        self.prompt_tokens = prompt_tokens
        self.context_size = context_size


class TokenizationError(OutOfContextError):
    pass


class DetokenizationError(OutOfContextError):
    pass


class DecodeError(OutOfContextError):
    pass


class SamplingError(OutOfContextError):
    pass


class BudgetOverflowError(OutOfContextError):
    pass


class ModelResolutionError(OutOfContextError):
    pass
