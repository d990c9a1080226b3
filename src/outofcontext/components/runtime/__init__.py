"""Inference runtimes implementing :class:`outofcontext.core.contracts.InferenceRuntime`."""

from .vocab import TokenByteVocab
from .toy import ToyRuntime, ToyRuntimeConfig
from .hf import HFRuntime, HFRuntimeConfig

__all__ = [
    "TokenByteVocab",
    "ToyRuntime",
    "ToyRuntimeConfig",
    "HFRuntime",
    "HFRuntimeConfig",
]
