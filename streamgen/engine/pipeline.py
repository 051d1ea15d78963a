"""
streamgen :: Text Pipeline

Prompt in, text fragments out:

    messages --chat template--> prompt text --tokenizer--> prompt ids
    prompt ids --TextGeneration--> tokens --TextOutputStream--> fragments

Three ways to drive it:
  - stream():  sync generator of text fragments
  - astream(): async generator, yields to the event loop after every
               step so fragment delivery can interleave with other I/O
  - generate(): collect everything into a PipelineResult

Only one generation runs at a time per pipeline: it owns the model
through its TextGeneration.

INL - 2025
"""

import asyncio
from typing import AsyncIterator, Iterator, List, Optional, Sequence, Union
from dataclasses import dataclass

from streamgen.core.chat_template import ChatTemplate, Message
from streamgen.core.errors import ChatTemplateError, EosReached, MaxNewTokensExceeded
from streamgen.core.logging import SessionLogger, get_logger
from streamgen.core.streaming import TextOutputStream
from streamgen.core.tokenizer import BaseTokenizer
from streamgen.engine.generation import TextGeneration

logger = get_logger("streamgen.pipeline")

Prompt = Union[str, Sequence[Message]]


@dataclass
class PipelineResult:
    """Result of one pipeline run."""
    text: str
    prompt_tokens: List[int]
    output_tokens: List[int]
    finish_reason: str   # "stop" (EOS sampled) or "length" (budget spent)
    elapsed_ms: float

    @property
    def num_generated(self) -> int:
        return len(self.output_tokens) + (1 if self.finish_reason == "stop" else 0)

    @property
    def tokens_per_second(self) -> float:
        if self.elapsed_ms <= 0:
            return 0.0
        return self.num_generated / (self.elapsed_ms / 1000)


class TextPipeline:
    """
    Chat template + tokenizer + generation loop.

    Args:
        chat_template: needed only for chat-message prompts
        tokenizer: BaseTokenizer used for both encode and streaming decode
        generation: TextGeneration session (owns the model)
        add_special_tokens: passed to tokenizer.encode for the prompt
    """

    def __init__(
        self,
        chat_template: Optional[ChatTemplate],
        tokenizer: BaseTokenizer,
        generation: TextGeneration,
        add_special_tokens: bool = True,
    ):
        self.chat_template = chat_template
        self.tokenizer = tokenizer
        self.generation = generation
        self.add_special_tokens = add_special_tokens
        self.last_result: Optional[PipelineResult] = None
        self.log = SessionLogger(generation.log.session_id, logger)

    def render(self, prompt: Prompt) -> str:
        """Prompt text for a plain string or a list of chat messages."""
        if isinstance(prompt, str):
            return prompt
        if self.chat_template is None:
            raise ChatTemplateError("chat messages given but the pipeline has no chat template")
        return self.chat_template.apply(prompt, add_generation_prompt=True)

    def _steps(self, prompt: Prompt, max_new_tokens: int) -> Iterator[Optional[str]]:
        """One item per generation step: the new fragment, or None."""
        prompt_ids = self.tokenizer.encode(self.render(prompt), add_special_tokens=self.add_special_tokens)
        text_stream = TextOutputStream(self.tokenizer, prompt_ids)
        output_tokens: List[int] = []
        fragments: List[str] = []
        finish_reason = "length"

        self.log.restart_clock()
        first = True
        while True:
            try:
                if first:
                    token = self.generation.apply(prompt_ids, max_new_tokens)
                    first = False
                else:
                    token = self.generation.next()
            except EosReached:
                finish_reason = "stop"
                break
            except MaxNewTokensExceeded:
                break

            output_tokens.append(token)
            fragment = text_stream.push(token)
            if fragment:
                fragments.append(fragment)
            yield fragment

        rest = text_stream.decode_rest()
        if rest:
            fragments.append(rest)
            yield rest

        result = PipelineResult(
            text="".join(fragments),
            prompt_tokens=list(prompt_ids),
            output_tokens=output_tokens,
            finish_reason=finish_reason,
            elapsed_ms=self.log.elapsed_ms(),
        )
        self.last_result = result
        self.log.info(
            f"{result.num_generated} tokens generated ({result.tokens_per_second:.2f} token/s)",
            finish_reason=finish_reason,
            prompt_tokens=len(prompt_ids),
        )

    def stream(self, prompt: Prompt, max_new_tokens: int) -> Iterator[str]:
        """Yield text fragments as they become stable."""
        for fragment in self._steps(prompt, max_new_tokens):
            if fragment:
                yield fragment

    async def astream(self, prompt: Prompt, max_new_tokens: int) -> AsyncIterator[str]:
        """Async variant of stream(); one generation step per scheduling turn."""
        for fragment in self._steps(prompt, max_new_tokens):
            if fragment:
                yield fragment
            await asyncio.sleep(0)

    def generate(self, prompt: Prompt, max_new_tokens: int) -> PipelineResult:
        """Run to completion and return the collected result."""
        for _ in self._steps(prompt, max_new_tokens):
            pass
        return self.last_result
