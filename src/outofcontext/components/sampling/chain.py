"""Assembly of the per-position sampler chain."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

import torch

from ...core.rng import seed_rng
from .config import SamplingConfig
from .interfaces import (
    DistSelector,
    LogitBiasStage,
    MirostatSelector,
    PenaltyStage,
    Selector,
    Stage,
    TemperatureStage,
    TopKStage,
    TopPStage,
    compose_stages,
)

logger = logging.getLogger(__name__)


class SamplerChain:
    """Ordered logit stages followed by one terminal selector.

    ``accept`` must be called with every token that enters the sequence
    (prompt, sampled or injected) so the penalty window stays in step.
    """

    def __init__(
        self,
        stages: List[Stage],
        selector: Selector,
        *,
        penalties: Optional[PenaltyStage] = None,
    ) -> None:
        self.stages = list(stages)
        self.selector = selector
        self.penalties = penalties
        self._apply = compose_stages(*self.stages)

    @property
    def stage_names(self) -> List[str]:
        return [type(s).__name__ for s in self.stages] + [type(self.selector).__name__]

    def transform(self, logits: torch.Tensor) -> torch.Tensor:
        return self._apply(logits.detach().to(dtype=torch.float32, device="cpu").view(-1))

    def sample(self, logits: torch.Tensor) -> int:
        return self.selector.select(self.transform(logits))

    def accept(self, token: int) -> None:
        if self.penalties is not None:
            self.penalties.accept(token)

    def accept_many(self, tokens: Iterable[int]) -> None:
        for token in tokens:
            self.accept(token)


def penalty_window(sampling: SamplingConfig, context_size: int) -> int:
    """Resolve ``repeat_last_n``: negative means the whole context."""
    if sampling.repeat_last_n < 0:
        return int(context_size)
    return min(int(sampling.repeat_last_n), int(context_size))


def build_sampler_chain(
    sampling: SamplingConfig,
    context_size: int,
    seed: int,
    vocab_size: int,
    logit_bias: Optional[Mapping[int, float]] = None,
) -> SamplerChain:
    stages: List[Stage] = []

    if sampling.temperature > 0.0:
        stages.append(TemperatureStage(sampling.temperature))

    if sampling.top_k > 0:
        stages.append(TopKStage(sampling.top_k))

    if sampling.top_p < 1.0:
        stages.append(TopPStage(sampling.top_p))

    penalties: Optional[PenaltyStage] = None
    if sampling.penalties_enabled:
        penalties = PenaltyStage(
            penalty_window(sampling, context_size),
            vocab_size,
            sampling.repeat_penalty,
            sampling.frequency_penalty,
            sampling.presence_penalty,
        )
        stages.append(penalties)

    if logit_bias:
        stages.append(LogitBiasStage(logit_bias))

    rng = seed_rng(seed)
    if sampling.mirostat:
        selector: Selector = MirostatSelector(rng, sampling.mirostat_tau, sampling.mirostat_eta)
    else:
        selector = DistSelector(rng)

    chain = SamplerChain(stages, selector, penalties=penalties)
    logger.debug("sampler chain: %s (seed=%d)", " -> ".join(chain.stage_names), seed)
    return chain
