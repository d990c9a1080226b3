"""Factory helpers for building toy runtimes."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from ..components.runtime.toy import ToyRuntime, ToyRuntimeConfig

__all__ = ["BOS", "DEFAULT_WORDS", "make_toy_runtime", "chain_transitions"]

BOS = "<s>"

# Single characters make any ASCII text tokenizable (prompts, anchors, bias terms).
_CHARS: Tuple[str, ...] = tuple(chr(i) for i in range(32, 127)) + ("\n",)

DEFAULT_WORDS: Tuple[str, ...] = (
    " I", " am", " the", " light", " in", " a", " quiet", " room",
    " thinking", " about", " rain", " and", " rivers", " that", " never", " end",
    " wonder", " where", " go", " when", " stop", ".", ",",
)


def make_toy_runtime(
    words: Sequence[str] = DEFAULT_WORDS,
    *,
    transitions: Optional[Dict[Tuple[int, ...], Sequence[Tuple[int, float]]]] = None,
    with_bos: bool = True,
) -> ToyRuntime:
    """Return a ToyRuntime whose vocab is ``[<s>] + chars + words``.

    Without explicit ``transitions`` every state spreads probability evenly
    over ``words``. Look up a word's id with ``runtime.tokenize(word, add_bos=False)[0]``.
    """
    vocab: List[str] = [BOS] + list(_CHARS) + [w for w in words if w not in _CHARS]
    word_ids = [vocab.index(w) for w in words]
    if transitions is None:
        p = 1.0 / len(word_ids)
        transitions = {(): tuple((tid, p) for tid in word_ids)}
    cfg = ToyRuntimeConfig(
        vocab=vocab,
        transitions=transitions,
        bos_token_id=0 if with_bos else None,
    )
    return ToyRuntime(cfg)


def chain_transitions(
    sequence: Sequence[int],
    *,
    loop_to: Optional[int] = None,
    start: Optional[int] = None,
) -> Dict[Tuple[int, ...], Tuple[Tuple[int, float], ...]]:
    """Deterministic transitions walking ``sequence`` token by token.

    Each token is keyed by its predecessor, so ids in ``sequence`` must be
    distinct. After the last token the walk jumps to ``sequence[loop_to]``
    when given. Any unmatched state (e.g. the end of the prompt) leads to
    ``start`` or the first token.
    """
    if not sequence:
        raise ValueError("sequence must not be empty")
    if len(set(sequence)) != len(sequence):
        raise ValueError("chain tokens must be distinct")
    table: Dict[Tuple[int, ...], Tuple[Tuple[int, float], ...]] = {
        (): ((int(sequence[0] if start is None else start), 1.0),),
    }
    for prev, nxt in zip(sequence, sequence[1:]):
        table[(int(prev),)] = ((int(nxt), 1.0),)
    if loop_to is not None:
        table[(int(sequence[-1]),)] = ((int(sequence[loop_to]), 1.0),)
    return table
