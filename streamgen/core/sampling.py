"""
streamgen :: Sampling

Sampling strategies for token generation.

Strategies (one per session, resolved once from the generation config):
  - ArgMax (deterministic)
  - All: temperature, full vocabulary
  - TopK: temperature, k most likely tokens
  - TopP: temperature, nucleus of mass p
  - TopKThenTopP: top-k restriction, then nucleus over what is left

Plus the repetition penalty applied to scores before sampling.

INL - 2025
"""

import torch
from typing import Optional, Sequence, Union
from dataclasses import dataclass


# Below this a temperature is treated as zero.
MIN_TEMPERATURE = 1e-7


@dataclass(frozen=True)
class ArgMax:
    """Always pick the highest-scoring token."""


@dataclass(frozen=True)
class All:
    temperature: float


@dataclass(frozen=True)
class TopK:
    k: int
    temperature: float


@dataclass(frozen=True)
class TopP:
    p: float
    temperature: float


@dataclass(frozen=True)
class TopKThenTopP:
    k: int
    p: float
    temperature: float


SamplingStrategy = Union[ArgMax, All, TopK, TopP, TopKThenTopP]


def resolve_sampling(config) -> SamplingStrategy:
    """
    Map a generation config to one sampling strategy.

    Reads `temperature`, `top_k` and `top_p` (each may be None).
    A missing or negligible temperature means ArgMax, whatever top_k/top_p say.
    """
    temperature = config.temperature
    if temperature is None or temperature < MIN_TEMPERATURE:
        return ArgMax()

    top_k: Optional[int] = config.top_k
    top_p: Optional[float] = config.top_p
    if top_k is None and top_p is None:
        return All(temperature=temperature)
    if top_p is None:
        return TopK(k=top_k, temperature=temperature)
    if top_k is None:
        return TopP(p=top_p, temperature=temperature)
    return TopKThenTopP(k=top_k, p=top_p, temperature=temperature)


def apply_repeat_penalty(
    logits: torch.Tensor,
    penalty: float,
    context: Sequence[int],
) -> torch.Tensor:
    """
    Discourage tokens that already appear in `context`.

    Each distinct token is penalized once: non-negative scores are divided
    by `penalty`, negative scores multiplied by it. Ids outside the
    vocabulary are ignored. Returns a new tensor.

    Args:
        logits: (vocab_size,) float tensor
        penalty: repetition penalty factor (> 1.0 discourages repeats)
        context: recent token ids
    """
    out = logits.clone()
    vocab_size = out.shape[-1]
    token_set = sorted({t for t in context if 0 <= t < vocab_size})
    if not token_set:
        return out

    ids = torch.tensor(token_set, dtype=torch.long, device=out.device)
    scores = out[ids]
    out[ids] = torch.where(scores >= 0, scores / penalty, scores * penalty)
    return out


class LogitsSampler:
    """
    Stateful sampler: one strategy plus a seeded random source.

    The same seed, strategy and sequence of logits always produce the
    same tokens. Randomness comes from a CPU torch.Generator so results
    do not depend on the device the scores live on.
    """

    def __init__(self, seed: int, strategy: SamplingStrategy):
        self.seed = seed
        self.strategy = strategy
        self.generator = torch.Generator(device="cpu")
        self.generator.manual_seed(seed)

    def sample(self, logits: torch.Tensor) -> int:
        """
        Draw one token id.

        Args:
            logits: (vocab_size,) scores for the next position

        Returns:
            token_id: int
        """
        logits = logits.detach().to(torch.float32)
        strategy = self.strategy

        if isinstance(strategy, ArgMax):
            # ties go to the highest token id
            return logits.shape[-1] - 1 - int(logits.flip(-1).argmax(dim=-1).item())

        probs = torch.softmax(logits / strategy.temperature, dim=-1).cpu()

        if isinstance(strategy, All):
            return self._sample_multinomial(probs)
        if isinstance(strategy, TopK):
            return self._sample_topk(probs, strategy.k)
        if isinstance(strategy, TopP):
            if strategy.p <= 0.0 or strategy.p >= 1.0:
                return self._sample_multinomial(probs)
            return self._sample_topp(probs, strategy.p)
        return self._sample_topk_topp(probs, strategy.k, strategy.p)

    def _sample_multinomial(self, probs: torch.Tensor) -> int:
        return int(torch.multinomial(probs, num_samples=1, generator=self.generator).item())

    def _sample_topp(self, probs: torch.Tensor, top_p: float) -> int:
        # Walk probabilities high to low; once the running mass reaches
        # top_p, everything after is dropped.
        sorted_probs, sorted_indices = probs.sort(descending=True)
        mass_before = sorted_probs.cumsum(dim=-1) - sorted_probs
        kept = torch.where(mass_before < top_p, sorted_probs, torch.zeros_like(sorted_probs))
        choice = self._sample_multinomial(kept)
        return int(sorted_indices[choice].item())

    def _sample_topk(self, probs: torch.Tensor, top_k: int) -> int:
        if top_k >= probs.shape[-1]:
            return self._sample_multinomial(probs)
        top_probs, top_indices = probs.topk(top_k)
        choice = self._sample_multinomial(top_probs)
        return int(top_indices[choice].item())

    def _sample_topk_topp(self, probs: torch.Tensor, top_k: int, top_p: float) -> int:
        if top_k >= probs.shape[-1]:
            if top_p <= 0.0 or top_p >= 1.0:
                return self._sample_multinomial(probs)
            return self._sample_topp(probs, top_p)

        top_probs, top_indices = probs.topk(top_k)
        kept_mass = float(top_probs.sum().item())
        if top_p <= 0.0 or top_p >= kept_mass:
            choice = self._sample_multinomial(top_probs)
        else:
            choice = self._sample_topp(top_probs, top_p)
        return int(top_indices[choice].item())

