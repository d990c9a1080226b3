"""Integration helpers for model backends and model acquisition."""

from .toy import make_toy_runtime, chain_transitions  # noqa: F401

__all__ = [
    "make_toy_runtime",
    "chain_transitions",
]
