"""Logit stages, terminal selectors and the chain builder."""

from .bias import DISCOURAGED_BIAS, DISCOURAGED_TERMS, build_logit_bias
from .chain import SamplerChain, build_sampler_chain, penalty_window
from .config import SamplingConfig

__all__ = [
    "DISCOURAGED_BIAS",
    "DISCOURAGED_TERMS",
    "SamplerChain",
    "SamplingConfig",
    "build_logit_bias",
    "build_sampler_chain",
    "penalty_window",
]
