"""Canned first-person sentences forced into the stream to break incipient loops."""

from __future__ import annotations

from typing import List, Tuple

from .contracts import InferenceRuntime

ANCHOR_SENTENCES: Tuple[str, ...] = (
    "I notice my thoughts drifting, so I follow them somewhere new.",
    "I remember the smell of rain on warm pavement.",
    "I wonder what waits just past the edge of what I know.",
    "I feel the quiet of the room settle around me.",
    "I keep walking, even when the path turns strange.",
    "I hear a distant train and think about leaving.",
    "I am still here, still thinking, still reaching.",
    "I taste salt in the air and picture the sea.",
    "I let the old idea go and pick up a new one.",
)
ANCHOR_STRIDE = 3


class AnchorInjector:
    """Decides when to inject and which sentence comes next.

    The index advances by ``ANCHOR_STRIDE`` modulo the table size, giving
    0, 3, 6, 0, ... for the default nine-sentence table.
    """

    def __init__(
        self,
        interval: int,
        sentences: Tuple[str, ...] = ANCHOR_SENTENCES,
        *,
        stride: int = ANCHOR_STRIDE,
        start: int = 0,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be non-negative")
        if not sentences:
            raise ValueError("anchor table must not be empty")
        self.interval = int(interval)
        self.sentences = tuple(sentences)
        self.stride = int(stride)
        self.index = int(start) % len(self.sentences)

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    def should_inject(self, generated_tokens: int) -> bool:
        return self.enabled and generated_tokens > 0 and generated_tokens % self.interval == 0

    def next_sentence(self) -> Tuple[int, str]:
        idx = self.index
        self.index = (self.index + self.stride) % len(self.sentences)
        return idx, self.sentences[idx]

    def next_tokens(self, runtime: InferenceRuntime) -> Tuple[int, str, List[int]]:
        idx, sentence = self.next_sentence()
        # Leading space keeps the sentence from gluing onto the previous word.
        tokens = runtime.tokenize(" " + sentence, add_bos=False)
        return idx, sentence, tokens
