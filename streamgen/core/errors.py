"""
streamgen :: Errors

Error taxonomy for the generation stack.

Two of these are not failures at all:
  - EosReached: the sampler picked an end-of-sequence token
  - MaxNewTokensExceeded: the token budget is spent
Both derive from GenerationStop so a caller can end a stream on either
with a single except clause.

Everything else is fatal and surfaced as-is. Model forward errors are
never wrapped: whatever the model raises reaches the caller unchanged.

INL - 2025
"""


class StreamGenError(Exception):
    """Base class for every error raised by streamgen."""


# =========================================================================
# Terminal signals (normal end of a generation stream)
# =========================================================================

class GenerationStop(StreamGenError):
    """A generation session reached a normal end."""


class EosReached(GenerationStop):
    """An EOS token was sampled. `generated` counts it."""

    def __init__(self, eos_token_id: int, generated: int):
        self.eos_token_id = eos_token_id
        self.generated = generated
        super().__init__(f"got eos token {eos_token_id} and {generated} tokens generated")


class MaxNewTokensExceeded(GenerationStop):
    """The configured token budget has been used up."""

    def __init__(self, max_new_tokens: int):
        self.max_new_tokens = max_new_tokens
        super().__init__(f"max new tokens {max_new_tokens} exceeded")


# =========================================================================
# Fatal errors
# =========================================================================

class ConfigError(StreamGenError):
    """Configuration or index document could not be read or parsed."""


class TokenizerError(StreamGenError):
    """Tokenizer failed to load, encode or decode."""


class ChatTemplateError(StreamGenError):
    """Chat template is missing, does not compile, or failed to render."""


class WeightLoadError(StreamGenError):
    """Weight files are missing or unreadable."""
