from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class SamplingConfig:
    temperature: float = 0.22        # 0 disables scaling
    top_p: float = 0.5               # 1.0 disables nucleus filtering
    top_k: int = 20                  # 0 disables
    repeat_penalty: float = 2.15     # 1.0 disables
    repeat_last_n: int = -1          # <0: whole context
    presence_penalty: float = 1.35
    frequency_penalty: float = 1.05
    seed: Optional[int] = None       # None: time-based
    mirostat: bool = False           # mirostat v2 instead of multinomial
    mirostat_tau: float = 5.0
    mirostat_eta: float = 0.1

    def __post_init__(self) -> None:
        if self.temperature < 0:
            raise ValueError("temperature must be non-negative")
        if not (0.0 <= self.top_p <= 1.0):
            raise ValueError("top_p must lie in the interval [0, 1]")
        if self.top_k < 0:
            raise ValueError("top_k must be non-negative")
        if self.repeat_penalty <= 0:
            # seen logits are divided by it
            raise ValueError("repeat_penalty must be positive")
        if self.mirostat and self.mirostat_tau <= 0:
            raise ValueError("mirostat_tau must be positive")

    @property
    def penalties_enabled(self) -> bool:
        return (
            self.repeat_penalty != 1.0
            or self.frequency_penalty != 0.0
            or self.presence_penalty != 0.0
            or self.repeat_last_n != 0
        )
