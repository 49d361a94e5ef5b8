"""
Message tokenization.

A token is a maximal run of Unicode letters or digits; everything else
(whitespace, punctuation, underscores) separates tokens.
"""

import re
import unicodedata
from typing import List, Optional

from ..config import TokenizerConfig
from ..errors import MissingFieldError
from ..journal.fields import LogEntry

_TOKEN = re.compile(r"[^\W_]+")


class Tokenizer:
    """Splits the message field of an entry into normalized tokens."""

    def __init__(self, config: Optional[TokenizerConfig] = None):
        self.config = config or TokenizerConfig()
        if self.config.lowercase:
            # Stop tokens match after folding, like the tokens themselves.
            self._stop = frozenset(t.casefold() for t in self.config.stop_tokens)
        else:
            self._stop = self.config.stop_tokens

    def split(self, text: str) -> List[str]:
        """Tokenize raw message text, preserving token order."""
        cfg = self.config
        if cfg.unicode_normalization:
            text = unicodedata.normalize(cfg.unicode_normalization, text)

        tokens = []
        for match in _TOKEN.finditer(text):
            token = match.group()
            if cfg.lowercase:
                token = token.casefold()
            if len(token) < cfg.min_token_length or token in self._stop:
                continue
            tokens.append(token)
        return tokens

    def tokenize(self, entry: LogEntry) -> List[str]:
        """
        Tokenize the entry's message field.

        Raises:
            MissingFieldError: if the entry has no message field
        """
        value = entry.get(self.config.message_field)
        if value is None:
            raise MissingFieldError(self.config.message_field,
                                    entry_index=entry.index, byte_offset=entry.offset)
        return self.split(value.as_text())


def tokenize(entry: LogEntry, config: Optional[TokenizerConfig] = None) -> List[str]:
    """Tokenize one entry's message field."""
    return Tokenizer(config).tokenize(entry)
