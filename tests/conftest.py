"""
streamgen :: Shared test fixtures

  - ByteTokenizer: one token per UTF-8 byte, ids >= 256 are special
  - ScriptedModel: CausalLM that emits a fixed token script
  - hf_byte_tokenizer: real `tokenizers` byte-level BPE, built in memory
  - FakeHub: hf_hub_download replacement serving files from a directory

INL - 2025
"""

import os
import sys
from typing import List, Optional, Sequence

import pytest
import torch
from huggingface_hub.errors import EntryNotFoundError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from streamgen.core.tokenizer import BaseTokenizer, HFTokenizer
from streamgen.engine.generation import CausalLM


EOS_ID = 256
SPECIAL_TOKENS = {"<eos>": EOS_ID, "<pad>": 257}


class ByteTokenizer(BaseTokenizer):
    """Token i < 256 is byte i; decode replaces broken UTF-8 with U+FFFD."""

    def __init__(self):
        self.decode_calls = 0

    def encode(self, text: str, add_special_tokens: bool = True) -> List[int]:
        return list(text.encode("utf-8"))

    def decode(self, token_ids: Sequence[int], skip_special_tokens: bool = True) -> str:
        self.decode_calls += 1
        names = {v: k for k, v in SPECIAL_TOKENS.items()}
        out = bytearray()
        for t in token_ids:
            if t < 256:
                out.append(t)
            elif not skip_special_tokens:
                out.extend(names[t].encode("utf-8"))
        return out.decode("utf-8", errors="replace")

    def token_to_id(self, token: str) -> Optional[int]:
        return SPECIAL_TOKENS.get(token)


class ScriptedModel(CausalLM):
    """
    Emits `script[i]` on the i-th forward call (last entry repeats).

    Records every (input_ids, start_pos) it sees and how often reset()
    was called.
    """

    def __init__(self, script: Sequence[int], vocab_size: int = 260):
        self.script = list(script)
        self.vocab_size = vocab_size
        self.calls = []
        self.resets = 0

    def forward(self, input_ids: torch.Tensor, start_pos: int) -> torch.Tensor:
        step = len(self.calls)
        self.calls.append((input_ids.tolist()[0], start_pos))
        token = self.script[min(step, len(self.script) - 1)]
        logits = torch.zeros(1, input_ids.shape[1], self.vocab_size)
        logits[0, -1, token] = 10.0
        return logits

    def reset(self):
        self.resets += 1


class MissingEntry(EntryNotFoundError):
    def __init__(self, message):
        # skip the HTTP response plumbing of the real error
        Exception.__init__(self, message)


class FakeHub:
    """Stands in for hf_hub_download over a fixed file listing under `root`."""

    def __init__(self, root, files):
        self.root = root
        self.files = set(files)
        self.requests = []

    def __call__(self, repo_id, filename, revision=None, cache_dir=None, token=None):
        self.requests.append((repo_id, filename, revision))
        if filename not in self.files:
            raise MissingEntry(f"{filename} missing")
        return str(self.root / filename)


@pytest.fixture
def byte_tokenizer():
    return ByteTokenizer()


@pytest.fixture
def scripted_model():
    """Factory: scripted_model([7, 7, 100]) -> ScriptedModel."""
    def make(script, vocab_size=260):
        return ScriptedModel(script, vocab_size=vocab_size)
    return make


@pytest.fixture
def hf_byte_tokenizer():
    """Byte-level BPE with no merges: every UTF-8 byte is one token."""
    from tokenizers import Tokenizer, decoders, models, pre_tokenizers

    alphabet = pre_tokenizers.ByteLevel.alphabet()
    vocab = {ch: i for i, ch in enumerate(sorted(alphabet))}
    tok = Tokenizer(models.BPE(vocab, []))
    tok.pre_tokenizer = pre_tokenizers.ByteLevel(add_prefix_space=False)
    tok.decoder = decoders.ByteLevel()
    tok.add_special_tokens(["<|endoftext|>"])
    return HFTokenizer(tok)
