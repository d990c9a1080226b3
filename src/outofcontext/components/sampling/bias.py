"""Static logit bias against markup, meta-commentary and digits."""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from ...core.contracts import InferenceRuntime

logger = logging.getLogger(__name__)

DISCOURAGED_BIAS = -6.0

DISCOURAGED_TERMS = (
    # markup and list punctuation
    "*", "#", "[", "]", "{", "}", "<", ">", "|", "_", "~", "`", "=", "/", "\\",
    # meta-markers
    "Note:", "Assistant:", "User:", "System:", "Prompt:", "Answer:",
    # self-referential phrases
    "As an AI", "language model", "chatbot",
    # digits
    "0", "1", "2", "3", "4", "5", "6", "7", "8", "9",
)


def build_logit_bias(
    runtime: InferenceRuntime,
    terms: Iterable[str] = DISCOURAGED_TERMS,
    bias: float = DISCOURAGED_BIAS,
) -> Dict[int, float]:
    """Tokenize every term and map each resulting token id to ``bias``."""
    if bias > 0:
        raise ValueError("discouraging bias must not be positive")
    table: Dict[int, float] = {}
    for term in terms:
        for token in runtime.tokenize(term, add_bos=False):
            table[int(token)] = float(bias)
    logger.debug("logit bias covers %d token ids", len(table))
    return table
