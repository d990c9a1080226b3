from __future__ import annotations
import math
from typing import Tuple
import torch
from ...core.contracts import SupportsRandom
from ...core.errors import SamplingError

NEG_INF = float("-inf")

def apply_temperature(logits: torch.Tensor, t: float)->torch.Tensor:
    if t<=0: return logits
    return logits / t

def apply_top_k(logits: torch.Tensor, k: int)->torch.Tensor:
    if k is None or k<=0 or k>=logits.numel(): return logits
    v, idx = torch.topk(logits, k)
    out = torch.full_like(logits, NEG_INF)
    out[idx] = v
    return out

def apply_top_p(logits: torch.Tensor, p: float)->torch.Tensor:
    if p is None or p>=1: return logits
    val, idx = torch.sort(logits, descending=True)
    probs = torch.softmax(val.to(torch.float64), dim=0)
    # keep token i while the mass before it is still short of p
    before = torch.cumsum(probs, dim=0) - probs
    mask = before < p
    mask[0] = True
    out = torch.full_like(logits, NEG_INF)
    out[idx[mask]] = val[mask]
    return out

def apply_penalties(
    logits: torch.Tensor,
    counts: torch.Tensor,
    repeat_penalty: float,
    frequency_penalty: float,
    presence_penalty: float,
)->torch.Tensor:
    if counts.numel() != logits.numel():
        raise SamplingError(
            f"penalty counts cover {counts.numel()} tokens but logits cover {logits.numel()}"
        )
    seen = counts > 0
    if not bool(seen.any()): return logits
    out = logits.clone()
    l = out[seen]
    l = torch.where(l > 0, l / repeat_penalty, l * repeat_penalty)
    c = counts[seen].to(l.dtype)
    out[seen] = l - (c * frequency_penalty + presence_penalty)
    return out

def apply_logit_bias(logits: torch.Tensor, ids: torch.Tensor, bias: torch.Tensor)->torch.Tensor:
    if ids.numel()==0: return logits
    keep = ids < logits.numel()
    out = logits.clone()
    out.index_add_(0, ids[keep], bias[keep].to(out.dtype))
    return out

def softmax_probs(logits: torch.Tensor)->torch.Tensor:
    x = logits.detach().to(dtype=torch.float64, device="cpu")
    finite = torch.isfinite(x)
    if not bool(finite.any()):
        raise SamplingError("no candidate tokens left after filtering")
    x = torch.where(finite, x, torch.full_like(x, NEG_INF))
    return torch.softmax(x, dim=0)

def sample_index(probs: torch.Tensor, rng: SupportsRandom)->int:
    weights = torch.clamp(probs.detach().to(dtype=torch.float64, device="cpu"), min=0.0)
    total = float(weights.sum().item())
    if weights.numel() == 0 or total <= 0.0 or math.isnan(total):
        raise SamplingError("cannot sample from an empty distribution")
    cumulative = torch.cumsum(weights, dim=0)
    threshold = float(rng.random()) * total
    idx = int(torch.searchsorted(cumulative, torch.tensor(threshold, dtype=torch.float64), right=True).item())
    # guard the float round-off at the top of the CDF
    if idx >= int(weights.numel()):
        idx = int(torch.nonzero(weights).max().item())
    return idx

def mirostat_v2(logits: torch.Tensor, mu: float, rng: SupportsRandom)->Tuple[int, float]:
    """One mirostat-v2 draw. Returns (token, observed surprise in bits)."""
    probs = softmax_probs(logits)
    surprise = -torch.log2(probs)
    keep = surprise <= mu
    if not bool(keep.any()):
        keep = probs == probs.max()
    truncated = torch.where(keep, probs, torch.zeros_like(probs))
    truncated = truncated / truncated.sum()
    idx = sample_index(truncated, rng)
    return idx, float(-math.log2(float(truncated[idx].item())))
