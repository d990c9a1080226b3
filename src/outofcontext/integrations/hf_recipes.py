"""Factory functions for building `HFRuntime` instances around HuggingFace models."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from ..components.runtime.hf import HFRuntime, HFRuntimeConfig
from ..core.errors import ModelResolutionError

__all__ = ["make_hf_runtime"]

logger = logging.getLogger(__name__)


def _resolve_dtype(name: Optional[str]) -> Optional[torch.dtype]:
    if name is None:
        return None
    mapping = {
        "bfloat16": torch.bfloat16,
        "bf16": torch.bfloat16,
        "float32": torch.float32,
        "fp32": torch.float32,
    }
    key = name.lower()
    if key not in mapping:
        raise ValueError(f"Unsupported dtype alias '{name}' (CPU runs support float32 and bfloat16)")
    return mapping[key]


def _load_model_and_tokenizer(
    model_path: Union[str, Path],
    *,
    dtype: Optional[str],
    trust_remote_code: bool,
    tokenizer_kwargs: Optional[Dict[str, Any]] = None,
    model_kwargs: Optional[Dict[str, Any]] = None,
):
    # Resolution already happened; never hit the network here.
    tok_kwargs = dict(tokenizer_kwargs or {})
    tok_kwargs.setdefault("local_files_only", True)
    try:
        tokenizer = AutoTokenizer.from_pretrained(
            str(model_path),
            trust_remote_code=trust_remote_code,
            **tok_kwargs,
        )
    except (OSError, ValueError) as exc:
        raise ModelResolutionError(f"Failed to load tokenizer from {model_path}") from exc

    mdl_kwargs = dict(model_kwargs or {})
    torch_dtype = _resolve_dtype(dtype or mdl_kwargs.pop("torch_dtype", None))
    if torch_dtype is not None:
        mdl_kwargs["dtype"] = torch_dtype
    mdl_kwargs.setdefault("local_files_only", True)
    try:
        model = AutoModelForCausalLM.from_pretrained(
            str(model_path),
            trust_remote_code=trust_remote_code,
            **mdl_kwargs,
        )
    except (OSError, ValueError) as exc:
        raise ModelResolutionError(f"Failed to load model weights from {model_path}") from exc
    model.to("cpu")
    model.eval()
    return tokenizer, model


def make_hf_runtime(
    model_path: Union[str, Path],
    *,
    threads: Optional[int] = None,
    dtype: Optional[str] = None,
    chat: bool = True,
    trust_remote_code: bool = False,
    tokenizer_kwargs: Optional[Dict[str, Any]] = None,
    model_kwargs: Optional[Dict[str, Any]] = None,
) -> HFRuntime:
    """Load a local model directory onto the CPU and wrap it in an `HFRuntime`."""
    logger.info("Loading model from: %s", model_path)
    tokenizer, model = _load_model_and_tokenizer(
        model_path,
        dtype=dtype,
        trust_remote_code=trust_remote_code,
        tokenizer_kwargs=tokenizer_kwargs,
        model_kwargs=model_kwargs,
    )
    runtime = HFRuntime(HFRuntimeConfig(tokenizer=tokenizer, model=model, chat=chat, threads=threads))
    logger.info("Model loaded (vocab=%d, threads=%d)", runtime.vocab_size, torch.get_num_threads())
    return runtime
