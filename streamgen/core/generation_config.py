"""
streamgen :: Generation Config

Mirrors a checkpoint's generation_config.json. Every field is optional;
keys the engine does not use (bos_token_id, do_sample,
transformers_version, ...) are ignored.

Defaults when a field is absent:
  - repetition_penalty: 1.0 (disabled)
  - max_new_tokens: whatever the caller passes
  - temperature: deterministic (ArgMax) sampling

INL - 2025
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, fields

from streamgen.core.errors import ConfigError
from streamgen.core.sampling import LogitsSampler, SamplingStrategy, resolve_sampling


EosTokenId = Union[int, List[int]]


@dataclass
class GenerationConfig:
    """Generation settings read from generation_config.json."""
    eos_token_id: Optional[EosTokenId] = None
    temperature: Optional[float] = None
    repetition_penalty: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_new_tokens: Optional[int] = None

    # =====================================================================
    # Loading
    # =====================================================================

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "GenerationConfig":
        """Build from a parsed document, validating field types."""
        if not isinstance(data, dict):
            raise ConfigError(f"generation config must be a JSON object, got {type(data).__name__}")

        known = {f.name for f in fields(GenerationConfig)}
        config = GenerationConfig(**{k: v for k, v in data.items() if k in known and v is not None})
        config._validate()
        return config

    @staticmethod
    def from_json(text: str) -> "GenerationConfig":
        """Parse a JSON string."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"invalid generation config: {e}") from e
        return GenerationConfig.from_dict(data)

    @staticmethod
    def from_file(path: Union[str, Path]) -> "GenerationConfig":
        """Load from a generation_config.json file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"cannot read generation config {path}: {e}") from e
        return GenerationConfig.from_json(text)

    @staticmethod
    def from_pretrained(repo) -> "GenerationConfig":
        """Load the generation config of a model repository."""
        return repo.generation_config()

    def _validate(self):
        eos = self.eos_token_id
        if eos is not None:
            if isinstance(eos, bool) or not isinstance(eos, (int, list)):
                raise ConfigError(f"eos_token_id must be an integer or a list of integers, got {eos!r}")
            if isinstance(eos, list) and not all(isinstance(t, int) and not isinstance(t, bool) for t in eos):
                raise ConfigError(f"eos_token_id list must contain only integers, got {eos!r}")

        for name in ("temperature", "repetition_penalty", "top_p"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise ConfigError(f"{name} must be a number, got {value!r}")

        for name in ("top_k", "max_new_tokens"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigError(f"{name} must be an integer, got {value!r}")

    # =====================================================================
    # Setters
    # =====================================================================

    def set_eos_token_id(self, eos_token_id: EosTokenId):
        self.eos_token_id = eos_token_id

    def set_temperature(self, temperature: float):
        self.temperature = temperature

    def set_repetition_penalty(self, repetition_penalty: float):
        self.repetition_penalty = repetition_penalty

    def set_top_p(self, top_p: float):
        self.top_p = top_p

    def set_top_k(self, top_k: int):
        self.top_k = top_k

    def set_max_new_tokens(self, max_new_tokens: int):
        self.max_new_tokens = max_new_tokens

    # =====================================================================
    # Resolution
    # =====================================================================

    def get_eos_token_id(self) -> Optional[List[int]]:
        """EOS ids as a list, in document order. None when absent."""
        if self.eos_token_id is None:
            return None
        if isinstance(self.eos_token_id, int):
            return [self.eos_token_id]
        return list(self.eos_token_id)

    def get_repetition_penalty_or(self, default: float) -> float:
        return default if self.repetition_penalty is None else self.repetition_penalty

    def get_max_new_tokens_or(self, default: int) -> int:
        return default if self.max_new_tokens is None else self.max_new_tokens

    def sampling(self) -> SamplingStrategy:
        return resolve_sampling(self)

    def logits_processor(self, seed: int) -> LogitsSampler:
        """Seeded sampler bound to this config's strategy."""
        return LogitsSampler(seed, self.sampling())
