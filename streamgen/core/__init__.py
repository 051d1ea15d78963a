"""
streamgen :: Core

Generic infrastructure, not tied to any model architecture.
  - generation_config: generation_config.json
  - sampling: strategy resolution, seeded sampler, repetition penalty
  - tokenizer: text <-> token ids
  - streaming: incremental detokenizer
  - chat_template: chat messages -> prompt
  - repo / hub / loader: checkpoint files and weights
"""

from streamgen.core.errors import (
    StreamGenError, GenerationStop, EosReached, MaxNewTokensExceeded,
    ConfigError, TokenizerError, ChatTemplateError, WeightLoadError,
)
from streamgen.core.generation_config import GenerationConfig
from streamgen.core.sampling import (
    ArgMax, All, TopK, TopP, TopKThenTopP,
    LogitsSampler, resolve_sampling, apply_repeat_penalty,
)
from streamgen.core.tokenizer import BaseTokenizer, HFTokenizer
from streamgen.core.streaming import TextOutputStream
from streamgen.core.chat_template import ChatTemplate, ChatMessage
from streamgen.core.repo import Repo, LocalRepo, read_safetensors_index_file, load_safetensors
