"""Model acquisition: verify a local directory or download a Hugging Face snapshot."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Union

from huggingface_hub import snapshot_download

from ..core.errors import ModelResolutionError

__all__ = ["DEFAULT_MODEL", "resolve_model", "repo_id_from_spec"]

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "HuggingFaceTB/SmolLM2-135M-Instruct"

# Only what transformers needs to load a causal LM on CPU.
_ALLOW_PATTERNS = ["*.json", "*.safetensors", "*.txt", "*.model", "*.tiktoken"]

_HF_URL = re.compile(r"^https?://(?:www\.)?huggingface\.co/([\w.\-]+/[\w.\-]+)(?:/.*)?$")
_REPO_ID = re.compile(r"^[A-Za-z0-9][\w.\-]*/[A-Za-z0-9][\w.\-]*$")


def repo_id_from_spec(spec: str) -> Optional[str]:
    m = _HF_URL.match(spec)
    if m:
        return m.group(1)
    if _REPO_ID.match(spec):
        return spec
    return None


def _is_model_dir(path: Path) -> bool:
    return path.is_dir() and (path / "config.json").is_file()


def resolve_model(
    spec: str,
    directory: Union[str, Path] = "models",
    *,
    revision: Optional[str] = None,
) -> Path:
    """Return a local model directory for ``spec``.

    An existing path is verified in place. A repo id or huggingface.co URL is
    downloaded into ``directory/<repo name>`` unless already present there.
    """
    local = Path(spec).expanduser()
    if local.exists():
        if not _is_model_dir(local):
            raise ModelResolutionError(f"{local} exists but is not a model directory (missing config.json)")
        logger.info("Model found at: %s", local)
        return local

    repo_id = repo_id_from_spec(spec)
    if repo_id is None:
        raise ModelResolutionError(f"{spec!r} is neither an existing path nor a Hugging Face model id")

    target = Path(directory).expanduser() / repo_id.split("/")[-1]
    if _is_model_dir(target):
        logger.info("Model found at: %s", target)
        return target

    logger.info("Model not found locally; downloading %s into %s", repo_id, target)
    try:
        target.mkdir(parents=True, exist_ok=True)
        snapshot_download(
            repo_id=repo_id,
            revision=revision,
            local_dir=str(target),
            allow_patterns=_ALLOW_PATTERNS,
        )
    except Exception as exc:
        raise ModelResolutionError(f"Failed to download {repo_id} into {target}") from exc

    if not _is_model_dir(target):
        raise ModelResolutionError(f"Download of {repo_id} did not produce a config.json in {target}")
    logger.info("Model downloaded successfully to %s", target)
    return target
