from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass
class GenerationConfig:
    context_size: int = 1024
    # Optional cap on generated tokens; injected anchor tokens count toward it.
    max_tokens: Optional[int] = None
    # Tokens between anchor sentences; 0 disables injection.
    anchor_interval: int = 80
    loop_guard: bool = True
    quiet: bool = False
    user_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        if self.context_size <= 0:
            raise ValueError("context_size must be positive")
        if self.max_tokens is not None and self.max_tokens < 0:
            raise ValueError("max_tokens must be non-negative when provided")
        if self.anchor_interval < 0:
            raise ValueError("anchor_interval must be non-negative")


class GenerationOutcome(str, Enum):
    CAPPED = "capped"
    EXHAUSTED = "exhausted"
    LOOP_DETECTED = "loop_detected"

    @property
    def fatal(self) -> bool:
        return self is not GenerationOutcome.CAPPED


@dataclass
class RunState:
    tokens_used: int = 0
    generated_tokens: int = 0
    anchor_index: int = 0
    anchors_injected: int = 0
    loop_strikes: int = 0


@dataclass
class GenerationResult:
    outcome: GenerationOutcome
    # Everything written to the sink, anchors included.
    text: str
    prompt_tokens: int
    tokens_used: int
    generated_tokens: int
    anchors_injected: int
    loop_strikes: int
    stop_reason: str
    seed: int
    pieces: List[str] = field(default_factory=list, repr=False)

    @property
    def fatal(self) -> bool:
        return self.outcome.fatal
