from __future__ import annotations

import codecs
import re
from dataclasses import dataclass
from typing import Dict, Optional


_BYTE_FALLBACK = re.compile(r"<0x([0-9A-Fa-f]{2})>")


@dataclass
class TokenByteVocab:
    """Mapping from token ids to the raw bytes each token contributes to the text."""

    mapping: Dict[int, bytes]
    vocab_size: int

    @classmethod
    def from_tokenizer(cls, tokenizer) -> "TokenByteVocab":
        vocab_map = tokenizer.get_vocab()
        if not vocab_map:
            raise ValueError("tokenizer.get_vocab() returned empty mapping")
        # GPT-2 style vocabularies spell the leading space as "\u0120".
        byte_level = any("\u0120" in piece for piece in vocab_map)
        mapping: Dict[int, bytes] = {}
        max_id = -1
        for piece, tid in vocab_map.items():
            tid = int(tid)
            if tid > max_id:
                max_id = tid
            mapping[tid] = cls._piece_bytes(piece, byte_level=byte_level)
        if max_id < 0:
            raise ValueError("tokenizer vocab produced negative max id")
        return cls(mapping=mapping, vocab_size=max_id + 1)

    def token_bytes(self, token_id: int) -> bytes:
        tid = int(token_id)
        if tid < 0 or tid >= self.vocab_size:
            raise KeyError(tid)
        return self.mapping.get(tid, b"")

    def token_text(self, token_id: int) -> str:
        # Standalone rendering; a character split across tokens shows as U+FFFD.
        return self.token_bytes(token_id).decode("utf-8", errors="replace")

    def stream(self) -> "TokenTextStream":
        return TokenTextStream(self)

    @staticmethod
    def _piece_bytes(piece: Optional[str], *, byte_level: bool) -> bytes:
        if not piece:
            return b""
        if byte_level:
            try:
                return bytes(_BYTE_LEVEL_DECODER[ch] for ch in piece)
            except KeyError:
                pass
        # SentencePiece byte fallback and word-boundary marker.
        m = _BYTE_FALLBACK.fullmatch(piece)
        if m:
            return bytes([int(m.group(1), 16)])
        return piece.replace("▁", " ").encode("utf-8")


class TokenTextStream:
    """Incremental detokenizer: bytes of a character split across tokens are held
    back until the character completes.
    """

    def __init__(self, vocab: TokenByteVocab) -> None:
        self._vocab = vocab
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def push(self, token_id: int) -> str:
        return self._decoder.decode(self._vocab.token_bytes(token_id))

    def flush(self) -> str:
        return self._decoder.decode(b"", final=True)

    def reset(self) -> None:
        self._decoder.reset()


def _build_byte_level_decoder() -> Dict[str, int]:
    bs = list(range(33, 127)) + list(range(161, 173)) + list(range(174, 256))
    cs = bs[:]
    n = 0
    for b in range(256):
        if b not in bs:
            bs.append(b)
            cs.append(256 + n)
            n += 1
    cs = [chr(c) for c in cs]
    byte_encoder = dict(zip(bs, cs))
    return {v: k for k, v in byte_encoder.items()}


_BYTE_LEVEL_DECODER = _build_byte_level_decoder()
