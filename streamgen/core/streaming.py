"""
streamgen :: Text Output Stream

Incremental detokenizer for token-by-token streaming.

Decoding one token at a time is wrong for byte-level vocabularies: a
multi-byte character can span several tokens, and a subword decoded on
its own can differ from the same subword decoded in context. The stream
therefore keeps the whole token history and two offsets:

    prev_index     text before this boundary has been delivered
    current_index  end of the last flushed decode window

On each push it decodes history[prev_index:] and only flushes when the
result grew and ends in an alphanumeric character. Anything else (a
replacement char from a split UTF-8 sequence, trailing punctuation or
whitespace) waits for the next token or for decode_rest().

Fragments are cut by UTF-8 byte length, not character count.

INL - 2025
"""

from typing import List, Optional, Sequence

import regex

from streamgen.core.tokenizer import BaseTokenizer


# Unicode Alphabetic (combining vowel signs included) or any Number category.
_ALPHANUMERIC = regex.compile(r"[\p{Alphabetic}\p{N}]")


def _is_alphanumeric(ch: str) -> bool:
    return _ALPHANUMERIC.match(ch) is not None


def _utf8_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _drop_prefix_bytes(text: str, num_bytes: int) -> str:
    return text.encode("utf-8")[num_bytes:].decode("utf-8", errors="replace")


class TextOutputStream:
    """
    Turns a growing token history into stable text fragments.

    Without prompt_tokens, concatenating every fragment returned by
    push(), followed by one decode_rest(), gives decode_all().

    Args:
        tokenizer: anything implementing BaseTokenizer
        prompt_tokens: optional already-consumed prefix; it is part of the
            history (decode_all includes it) but never emitted by push()
    """

    def __init__(self, tokenizer: BaseTokenizer, prompt_tokens: Optional[Sequence[int]] = None):
        self._tokenizer = tokenizer
        self._tokens: List[int] = list(prompt_tokens or [])
        self.prev_index: int = len(self._tokens)
        self.current_index: int = len(self._tokens)

    @property
    def tokenizer(self) -> BaseTokenizer:
        return self._tokenizer

    @property
    def tokens(self) -> List[int]:
        return list(self._tokens)

    def decode(self, tokens: Sequence[int]) -> str:
        return self._tokenizer.decode(tokens, skip_special_tokens=True)

    def _pending_prev_text(self) -> str:
        if self.current_index == self.prev_index:
            return ""
        return self.decode(self._tokens[self.prev_index:self.current_index])

    def push(self, token: int) -> Optional[str]:
        """Add one token. Returns newly stable text, or None."""
        prev_text = self._pending_prev_text()
        self._tokens.append(token)
        text = self.decode(self._tokens[self.prev_index:])

        prev_len = _utf8_len(prev_text)
        if _utf8_len(text) > prev_len and _is_alphanumeric(text[-1]):
            self.prev_index = self.current_index
            self.current_index = len(self._tokens)
            return _drop_prefix_bytes(text, prev_len)
        return None

    # Same operation under the name the generation loop callbacks use.
    next_token = push

    def decode_rest(self) -> Optional[str]:
        """Flush whatever push() held back. Does not move the offsets."""
        prev_text = self._pending_prev_text()
        text = self.decode(self._tokens[self.prev_index:])

        prev_len = _utf8_len(prev_text)
        if _utf8_len(text) > prev_len:
            return _drop_prefix_bytes(text, prev_len)
        return None

    def decode_all(self) -> str:
        """Decode the full history at once."""
        return self.decode(self._tokens)

    def get_token(self, token_s: str) -> Optional[int]:
        """Vocabulary id of a token string (added tokens included)."""
        return self._tokenizer.token_to_id(token_s)

    def clear(self):
        self._tokens.clear()
        self.prev_index = 0
        self.current_index = 0
