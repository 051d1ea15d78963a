"""
streamgen :: Tokenizer

Tokenizer capability consumed by the engine and the text stream,
plus the HuggingFace fast-tokenizer implementation of it.

Input:  text (str)
Output: token IDs (List[int])

INL - 2025
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from streamgen.core.errors import TokenizerError


class BaseTokenizer(ABC):
    """
    What the engine needs from a tokenizer.

    decode() must be prefix-consistent: decoding a longer sequence yields
    a byte-wise extension of decoding its prefix, except at boundaries
    that split a character.
    """

    @abstractmethod
    def encode(self, text: str, add_special_tokens: bool = True) -> List[int]:
        ...

    @abstractmethod
    def decode(self, token_ids: Sequence[int], skip_special_tokens: bool = True) -> str:
        ...

    def token_to_id(self, token: str) -> Optional[int]:
        return None


class HFTokenizer(BaseTokenizer):
    """
    Wraps a `tokenizers.Tokenizer` (HuggingFace fast tokenizer).

    Library errors are re-raised as TokenizerError.
    """

    def __init__(self, tokenizer):
        self.tokenizer = tokenizer

    @staticmethod
    def from_file(path: Union[str, Path]) -> "HFTokenizer":
        """Load a tokenizer.json file."""
        from tokenizers import Tokenizer

        try:
            return HFTokenizer(Tokenizer.from_file(str(path)))
        except Exception as e:
            raise TokenizerError(f"cannot load tokenizer {path}: {e}") from e

    def encode(self, text: str, add_special_tokens: bool = True) -> List[int]:
        """Text -> token IDs."""
        try:
            return self.tokenizer.encode(text, add_special_tokens=add_special_tokens).ids
        except Exception as e:
            raise TokenizerError(f"cannot encode: {e}") from e

    def decode(self, token_ids: Sequence[int], skip_special_tokens: bool = True) -> str:
        """Token IDs -> text."""
        try:
            return self.tokenizer.decode(list(token_ids), skip_special_tokens=skip_special_tokens)
        except Exception as e:
            raise TokenizerError(f"cannot decode: {e}") from e

    def token_to_id(self, token: str) -> Optional[int]:
        return self.tokenizer.token_to_id(token)

    def get_vocab(self, with_added_tokens: bool = True) -> Dict[str, int]:
        return self.tokenizer.get_vocab(with_added_tokens=with_added_tokens)

    @property
    def vocab_size(self) -> int:
        return self.tokenizer.get_vocab_size()
