from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence
import abc
import torch


class SupportsRandom(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class BatchEntry:
    """One token placed into a decode batch."""
    token: int
    position: int
    seq_id: int = 0
    logits: bool = False


class InferenceRuntime(abc.ABC):
    """Synchronous single-sequence inference backend used by the engine."""

    @property
    @abc.abstractmethod
    def vocab_size(self) -> int: ...

    @abc.abstractmethod
    def tokenize(self, text: str, *, add_bos: bool) -> List[int]:
        """Split ``text`` into token ids, optionally prefixed by the BOS marker."""

    @abc.abstractmethod
    def decode_token(self, token_id: int) -> str:
        """Return the text completed by this token.

        Called once per emitted token, in stream order. Bytes of a character
        that continues in the next token may be held back until it completes.
        """

    @abc.abstractmethod
    def decode(self, batch: Sequence[BatchEntry]) -> None:
        """Advance model state over ``batch``."""

    @abc.abstractmethod
    def candidates(self, position: int) -> torch.Tensor:
        """Raw next-token logits computed for ``position`` during the last decode."""

    def format_prompt(self, system_prompt: str, user_prompt: Optional[str] = None) -> str:
        text = system_prompt.rstrip()
        if user_prompt:
            text = f"{text}\n\n{user_prompt.strip()}"
        return f"{text}\n\n"


class OutputSink(abc.ABC):
    """Destination for the token stream; every write is flushed before returning."""

    @abc.abstractmethod
    def write_token(self, text: str) -> None: ...

    def close(self) -> None: ...
