"""Size estimation: map a span of text to an approximate token cost.

Estimates must err high. Chunk limits are enforced against these numbers,
not against what the backend actually counts.
"""

import math
from pathlib import Path
from typing import Protocol

from tokenizers import Tokenizer

from .config import CHARS_PER_TOKEN, TOKENIZER_SAFETY_MARGIN


class SizeEstimator(Protocol):
    def estimate(self, text: str) -> int: ...


class CharRatioEstimator:
    """ceil(len(text) / chars_per_token). Coarse, monotonic, no I/O."""

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN):
        if chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)


class TokenizerEstimator:
    """Token count from a HuggingFace tokenizer, padded by a safety margin.

    BPE counts can dip when a prefix is extended; the character-ratio estimate
    is used as a floor so the result never falls below the coarse one.
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        margin: float = TOKENIZER_SAFETY_MARGIN,
        floor: CharRatioEstimator | None = None,
    ):
        self._tokenizer = tokenizer
        self._margin = margin
        self._floor = floor or CharRatioEstimator()

    @classmethod
    def from_file(cls, path: Path, margin: float = TOKENIZER_SAFETY_MARGIN) -> "TokenizerEstimator":
        """Load a tokenizer.json (as saved by `Tokenizer.save`)."""
        return cls(Tokenizer.from_file(str(path)), margin=margin)

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        n_tokens = len(self._tokenizer.encode(text, add_special_tokens=False).ids)
        return max(math.ceil(n_tokens * self._margin), self._floor.estimate(text))
