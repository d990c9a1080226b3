from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import torch

from ...core.contracts import BatchEntry, InferenceRuntime
from ...core.errors import DecodeError, DetokenizationError, TokenizationError


CandidateSpec = Tuple[int, float]
TransitionMap = Dict[Tuple[int, ...], Sequence[CandidateSpec]]


@dataclass
class ToyRuntimeConfig:
    """Configuration driving a deterministic toy runtime.

    Parameters
    ----------
    vocab: Sequence[str]
        Token id ``i`` renders as ``vocab[i]``.
    transitions: Dict[Tuple[int, ...], Sequence[Tuple[int, float]]]
        Mapping from a token history to candidate ``(token, probability)``
        pairs. Lookup tries the full history, then the last token alone,
        then the empty tuple. Unlisted tokens get ``-inf`` logits.
    bos_token_id: Optional[int]
        Token prepended when tokenizing with ``add_bos=True``.
    """

    vocab: Sequence[str]
    transitions: TransitionMap
    bos_token_id: Optional[int] = None


class ToyRuntime(InferenceRuntime):
    """Minimal in-memory runtime useful for tests and demos."""

    def __init__(self, config: ToyRuntimeConfig) -> None:
        if not config.vocab:
            raise ValueError("toy vocab must not be empty")
        self._config = config
        self._vocab = list(config.vocab)
        self._transitions: Dict[Tuple[int, ...], List[CandidateSpec]] = {
            tuple(int(tok) for tok in key): [(int(tid), float(prob)) for tid, prob in values]
            for key, values in config.transitions.items()
        }
        self._bos = config.bos_token_id
        # longest pieces first so tokenization is greedy
        self._pieces = sorted(
            ((text, tid) for tid, text in enumerate(self._vocab) if text and tid != self._bos),
            key=lambda item: -len(item[0]),
        )
        self.tokens: List[int] = []
        self.decode_calls = 0
        self._logits: Dict[int, torch.Tensor] = {}

    # ------------------------------------------------------------------
    # Runtime interface
    # ------------------------------------------------------------------
    @property
    def vocab_size(self) -> int:
        return len(self._vocab)

    def tokenize(self, text: str, *, add_bos: bool) -> List[int]:
        out: List[int] = []
        if add_bos and self._bos is not None:
            out.append(self._bos)
        pos = 0
        while pos < len(text):
            for piece, tid in self._pieces:
                if text.startswith(piece, pos):
                    out.append(tid)
                    pos += len(piece)
                    break
            else:
                raise TokenizationError(
                    f"character {text[pos]!r} at offset {pos} not representable in toy vocab"
                )
        return out

    def decode_token(self, token_id: int) -> str:
        tid = int(token_id)
        if not (0 <= tid < len(self._vocab)):
            raise DetokenizationError(f"token id {tid} outside toy vocab of {len(self._vocab)}")
        return self._vocab[tid]

    def decode(self, batch: Sequence[BatchEntry]) -> None:
        if not batch:
            raise DecodeError("empty decode batch")
        self.decode_calls += 1
        self._logits = {}
        for entry in batch:
            if entry.seq_id != 0:
                raise DecodeError(f"toy runtime has a single sequence, got seq_id={entry.seq_id}")
            if entry.position != len(self.tokens):
                raise DecodeError(
                    f"non-consecutive position {entry.position}; expected {len(self.tokens)}"
                )
            if not (0 <= entry.token < len(self._vocab)):
                raise DecodeError(f"token id {entry.token} outside toy vocab")
            self.tokens.append(int(entry.token))
            if entry.logits:
                self._logits[entry.position] = self._logits_for(self.tokens)

    def candidates(self, position: int) -> torch.Tensor:
        logits = self._logits.get(int(position))
        if logits is None:
            raise DecodeError(f"no logits were requested for position {position}")
        return logits.clone()

    def reset(self) -> None:
        self.tokens = []
        self.decode_calls = 0
        self._logits = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _logits_for(self, history: Sequence[int]) -> torch.Tensor:
        key = tuple(history)
        specs = self._transitions.get(key)
        if specs is None and history:
            specs = self._transitions.get(key[-1:])
        if specs is None:
            specs = self._transitions.get((), [])
        logits = torch.full((len(self._vocab),), float("-inf"), dtype=torch.float32)
        for token_id, prob in specs:
            if prob > 0:
                logits[int(token_id)] = math.log(prob)
        return logits
