"""
streamgen: token-by-token text generation for causal language models.

  Sampling:    strategy resolved once per session from generation_config.json
  Generation:  autoregressive loop over a model with its own KV cache
  Streaming:   incremental detokenizer that never splits a character

INL - 2025
"""

__version__ = "0.1.0"
