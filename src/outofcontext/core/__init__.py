from __future__ import annotations

# Data, contracts and errors
from .data import GenerationConfig, GenerationOutcome, GenerationResult, RunState
from .contracts import BatchEntry, InferenceRuntime, OutputSink, SupportsRandom
from .errors import (
    OutOfContextError,
    PromptReadError,
    PromptTooLargeError,
    TokenizationError,
    DetokenizationError,
    DecodeError,
    SamplingError,
    BudgetOverflowError,
    ModelResolutionError,
)

# Engine parts
from .budget import ContextBudget
from .guard import RecentTokenWindow, RepetitionGuard
from .anchors import ANCHOR_SENTENCES, AnchorInjector
from .rng import CSPRNG, seed_rng, resolve_seed

# The engine pulls in components.sampling, which imports core.contracts;
# import it explicitly from `outofcontext.core.engine`.
