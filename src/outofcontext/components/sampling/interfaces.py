from __future__ import annotations
from collections import deque
from typing import Deque, Mapping, Protocol
import torch
from ...core.contracts import SupportsRandom
from .samplers import (
    apply_temperature, apply_top_k, apply_top_p, apply_penalties, apply_logit_bias,
    softmax_probs, sample_index, mirostat_v2,
)

class Stage(Protocol):
    def __call__(self, logits: torch.Tensor) -> torch.Tensor:
        """Return transformed logits for one position."""

class Selector(Protocol):
    def select(self, logits: torch.Tensor) -> int:
        """Pick one token id from the transformed logits."""

def compose_stages(*stages: Stage):
    def _fn(logits: torch.Tensor)->torch.Tensor:
        out = logits
        for s in stages:
            out = s(out)
        return out
    return _fn

class TemperatureStage:
    def __init__(self, temperature: float): self.t = float(temperature)
    def __call__(self, logits: torch.Tensor)->torch.Tensor:
        return apply_temperature(logits, self.t)

class TopKStage:
    def __init__(self, k: int): self.k = int(k)
    def __call__(self, logits: torch.Tensor)->torch.Tensor:
        return apply_top_k(logits, self.k)

class TopPStage:
    def __init__(self, p: float): self.p = float(p)
    def __call__(self, logits: torch.Tensor)->torch.Tensor:
        return apply_top_p(logits, self.p)

class PenaltyStage:
    """Repeat/frequency/presence penalties over a sliding window of accepted tokens."""

    def __init__(self, window: int, vocab_size: int, repeat: float, frequency: float, presence: float):
        self.window = max(0, int(window))
        self.repeat = float(repeat)
        self.frequency = float(frequency)
        self.presence = float(presence)
        self.history: Deque[int] = deque()
        self.counts = torch.zeros(int(vocab_size), dtype=torch.long)

    def accept(self, token: int) -> None:
        if self.window == 0:
            return
        token = int(token)
        if not (0 <= token < self.counts.numel()):
            raise ValueError(f"token id {token} outside vocabulary of {self.counts.numel()}")
        self.history.append(token)
        self.counts[token] += 1
        if len(self.history) > self.window:
            self.counts[self.history.popleft()] -= 1

    def __call__(self, logits: torch.Tensor)->torch.Tensor:
        return apply_penalties(logits, self.counts, self.repeat, self.frequency, self.presence)

class LogitBiasStage:
    def __init__(self, bias: Mapping[int, float]):
        items = sorted(bias.items())
        self.ids = torch.tensor([int(t) for t, _ in items], dtype=torch.long)
        self.values = torch.tensor([float(v) for _, v in items], dtype=torch.float32)
    def __call__(self, logits: torch.Tensor)->torch.Tensor:
        return apply_logit_bias(logits, self.ids, self.values)

class DistSelector:
    def __init__(self, rng: SupportsRandom): self.rng = rng
    def select(self, logits: torch.Tensor) -> int:
        return sample_index(softmax_probs(logits), self.rng)

class MirostatSelector:
    """Mirostat v2: steer the observed surprise toward ``tau`` bits."""

    def __init__(self, rng: SupportsRandom, tau: float, eta: float):
        self.rng = rng
        self.tau = float(tau)
        self.eta = float(eta)
        self.mu = 2.0 * self.tau

    def select(self, logits: torch.Tensor) -> int:
        idx, observed = mirostat_v2(logits, self.mu, self.rng)
        self.mu -= self.eta * (observed - self.tau)
        return idx
