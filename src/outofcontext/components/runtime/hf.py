from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import torch

from ...core.contracts import BatchEntry, InferenceRuntime
from ...core.errors import DecodeError, DetokenizationError, TokenizationError
from .vocab import TokenByteVocab

logger = logging.getLogger(__name__)


@dataclass
class HFRuntimeConfig:
    """Configuration wrapper for HuggingFace-backed causal runtimes."""

    tokenizer: object
    model: torch.nn.Module
    # Render prompts with the tokenizer's chat template when it has one.
    chat: bool = True
    threads: Optional[int] = None


class HFRuntime(InferenceRuntime):
    """Runtime driving a HuggingFace causal model one batch at a time on CPU.

    Keeps the KV cache between ``decode`` calls; positions must be consecutive.
    """

    def __init__(self, config: HFRuntimeConfig) -> None:
        if config.threads is not None:
            if config.threads <= 0:
                raise ValueError("threads must be positive")
            torch.set_num_threads(int(config.threads))

        self._config = config
        self._tokenizer = config.tokenizer
        self._model = config.model.eval()

        try:
            first_param = next(self._model.parameters())
            self._model_device = first_param.device
        except StopIteration:  # pragma: no cover - unlikely for standard HF models
            self._model_device = torch.device("cpu")

        self._vocab = TokenByteVocab.from_tokenizer(self._tokenizer)
        # decode_token is called once per emitted token, in order
        self._text = self._vocab.stream()
        self._vocab_size = int(getattr(self._model.config, "vocab_size", 0) or self._vocab.vocab_size)
        self._bos = getattr(self._tokenizer, "bos_token_id", None)

        self._past: Any = None
        self._n_past = 0
        self._logits: Dict[int, torch.Tensor] = {}

    # ------------------------------------------------------------------
    # Runtime interface
    # ------------------------------------------------------------------
    @property
    def vocab_size(self) -> int:
        return self._vocab_size

    def format_prompt(self, system_prompt: str, user_prompt: Optional[str] = None) -> str:
        template = getattr(self._tokenizer, "chat_template", None)
        if not (self._config.chat and template):
            return super().format_prompt(system_prompt, user_prompt)
        messages = [{"role": "system", "content": system_prompt.rstrip()}]
        if user_prompt:
            messages.append({"role": "user", "content": user_prompt.strip()})
        return self._tokenizer.apply_chat_template(
            messages,
            tokenize=False,
            add_generation_prompt=True,
        )

    def tokenize(self, text: str, *, add_bos: bool) -> List[int]:
        try:
            encoded = self._tokenizer(
                text,
                add_special_tokens=False,
                padding=False,
                truncation=False,
                return_tensors=None,
            )
        except Exception as exc:
            raise TokenizationError(f"failed to tokenize {text[:40]!r}...") from exc

        input_ids = encoded["input_ids"]
        if input_ids and isinstance(input_ids[0], (list, tuple)):
            input_ids = input_ids[0]
        ids = [int(t) for t in input_ids]
        if add_bos and self._bos is not None and (not ids or ids[0] != self._bos):
            ids.insert(0, int(self._bos))
        return ids

    def decode_token(self, token_id: int) -> str:
        try:
            return self._text.push(token_id)
        except KeyError as exc:
            raise DetokenizationError(f"token id {token_id} not in tokenizer vocab") from exc

    def decode(self, batch: Sequence[BatchEntry]) -> None:
        if not batch:
            raise DecodeError("empty decode batch")
        for offset, entry in enumerate(batch):
            if entry.seq_id != 0:
                raise DecodeError(f"only sequence 0 is supported, got seq_id={entry.seq_id}")
            if entry.position != self._n_past + offset:
                raise DecodeError(
                    f"non-consecutive position {entry.position}; expected {self._n_past + offset}"
                )

        device = self._model_device
        seq_len = self._n_past + len(batch)
        input_ids = torch.tensor([[e.token for e in batch]], dtype=torch.long, device=device)
        position_ids = torch.tensor([[e.position for e in batch]], dtype=torch.long, device=device)
        attention_mask = torch.ones((1, seq_len), dtype=torch.long, device=device)
        try:
            with torch.no_grad():
                outputs = self._model(
                    input_ids=input_ids,
                    attention_mask=attention_mask,
                    position_ids=position_ids,
                    past_key_values=self._past,
                    use_cache=True,
                )
        except Exception as exc:
            raise DecodeError(
                f"forward pass failed for {len(batch)} tokens at position {batch[0].position}"
            ) from exc

        self._past = getattr(outputs, "past_key_values", None)
        if self._past is None:
            raise DecodeError("model did not return a KV cache")
        self._n_past = seq_len
        self._logits = {
            e.position: outputs.logits[0, i, :].detach().to(dtype=torch.float32, device="cpu")
            for i, e in enumerate(batch)
            if e.logits
        }

    def candidates(self, position: int) -> torch.Tensor:
        logits = self._logits.get(int(position))
        if logits is None:
            raise DecodeError(f"no logits were requested for position {position}")
        return logits.clone()

    def reset(self) -> None:
        self._past = None
        self._n_past = 0
        self._logits = {}
        self._text.reset()
        logger.debug("KV cache cleared")
