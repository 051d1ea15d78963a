"""
streamgen :: Engine

  - generation: TextGeneration session over a CausalLM
  - pipeline: chat template + tokenizer + generation -> text fragments
"""

from streamgen.engine.generation import CausalLM, TextGeneration
from streamgen.engine.pipeline import TextPipeline, PipelineResult
