"""
streamgen :: Text Generation

Autoregressive generation loop for one session.

Control flow (one step):
    check budget            generated >= max_new_tokens -> MaxNewTokensExceeded
    context                 whole history on apply(), last token on next()
    model.forward           scores for the next position
    repetition penalty      over the last `repeat_last_n` history tokens
    sample                  seeded strategy resolved once from the config
    append + count
    EOS check               EOS -> EosReached(token, generated)

The model keeps its own recurrent (KV) cache keyed by position, so after
the first step only the newest token is sent. A session is not
resumable after a model error: discard it and start over.

INL - 2025
"""

import itertools
import torch
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterator, List, Sequence, Union

from streamgen.core.errors import ConfigError, EosReached, MaxNewTokensExceeded
from streamgen.core.generation_config import GenerationConfig
from streamgen.core.logging import SessionLogger, get_logger
from streamgen.core.sampling import apply_repeat_penalty

logger = get_logger("streamgen.generation")

_session_ids = itertools.count()


class CausalLM(ABC):
    """
    Model capability used by the generation loop.

    forward() receives token ids of shape (1, n) and the absolute
    position of the first one, and returns scores whose last axis is the
    vocabulary: (1, n, vocab), (1, vocab) or (vocab,). Only the last
    position is used.
    """

    @abstractmethod
    def forward(self, input_ids: torch.Tensor, start_pos: int) -> torch.Tensor:
        ...

    @abstractmethod
    def reset(self):
        """Clear the recurrent cache."""


def last_position_scores(logits: torch.Tensor) -> torch.Tensor:
    """(…, vocab) scores -> (vocab,) float32 scores of the last position."""
    return logits.reshape(-1, logits.shape[-1])[-1].to(torch.float32)


class TextGeneration:
    """
    One generation session bound to one model.

    Args:
        model: CausalLM (owned; do not share across concurrent sessions)
        device: where input ids are placed
        config: generation config; must carry eos_token_id
        seed: seed of the sampler's random source
        repeat_last_n: repetition-penalty lookback window (tokens)
    """

    def __init__(
        self,
        model: CausalLM,
        device: Union[str, torch.device],
        config: GenerationConfig,
        seed: int,
        repeat_last_n: int,
    ):
        eos_token_id = config.get_eos_token_id()
        if not eos_token_id:
            raise ConfigError("generation config has no eos_token_id")

        self.model = model
        self.device = torch.device(device)
        self.logits_processor = config.logits_processor(seed)
        self.repetition_penalty: float = config.get_repetition_penalty_or(1.0)
        self.repeat_last_n = repeat_last_n
        self.eos_token_id: List[int] = eos_token_id
        self._eos_set: FrozenSet[int] = frozenset(eos_token_id)

        self._max_new_tokens: int = config.get_max_new_tokens_or(0)
        self._generated_tokens: int = 0
        self._tokens: List[int] = []

        self.log = SessionLogger(next(_session_ids), logger)

    @property
    def tokens(self) -> List[int]:
        return list(self._tokens)

    @property
    def generated_tokens(self) -> int:
        return self._generated_tokens

    @property
    def max_new_tokens(self) -> int:
        return self._max_new_tokens

    def reset(self):
        """Clear the model cache and the session history."""
        self.model.reset()
        self._tokens = []
        self._generated_tokens = 0

    def apply(self, initial_tokens: Sequence[int], max_new_tokens: int) -> int:
        """
        Start a new sequence from `initial_tokens` and produce its first token.

        Raises:
            EosReached: the first sampled token is an EOS token
            MaxNewTokensExceeded: max_new_tokens is 0
        """
        if not initial_tokens:
            raise ValueError("apply() needs at least one initial token")

        self.reset()
        self._tokens = list(initial_tokens)
        self._max_new_tokens = max_new_tokens
        self.log.restart_clock()
        self.log.debug(
            "session start",
            prompt_tokens=len(self._tokens),
            max_new_tokens=max_new_tokens,
            strategy=type(self.logits_processor.strategy).__name__,
        )
        return self._next_token(len(self._tokens))

    def next(self) -> int:
        """Produce the next token, sending only the newest token as context."""
        return self._next_token(1)

    def _next_token(self, context_size: int) -> int:
        if self._generated_tokens >= self._max_new_tokens:
            raise MaxNewTokensExceeded(self._max_new_tokens)

        start_pos = max(len(self._tokens) - context_size, 0)
        input_ids = torch.tensor(self._tokens[start_pos:], dtype=torch.long, device=self.device).unsqueeze(0)
        with torch.no_grad():
            logits = self.model.forward(input_ids, start_pos)
        logits = last_position_scores(logits)

        if self.repetition_penalty != 1.0:
            start_at = max(len(self._tokens) - self.repeat_last_n, 0)
            logits = apply_repeat_penalty(logits, self.repetition_penalty, self._tokens[start_at:])

        next_token = self.logits_processor.sample(logits)
        self._tokens.append(next_token)
        self._generated_tokens += 1

        if next_token in self._eos_set:
            self.log.debug("eos", token=next_token, generated=self._generated_tokens)
            raise EosReached(next_token, self._generated_tokens)
        return next_token

    def stream(self, initial_tokens: Sequence[int], max_new_tokens: int) -> Iterator[int]:
        """
        Yield every sampled token, the terminal EOS token included.

        EosReached and MaxNewTokensExceeded end the iteration normally;
        the generator's return value is the number of generated tokens.
        """
        try:
            token = self.apply(initial_tokens, max_new_tokens)
            while True:
                yield token
                token = self.next()
        except EosReached as eos:
            yield eos.eos_token_id
        except MaxNewTokensExceeded:
            pass
        return self._generated_tokens
