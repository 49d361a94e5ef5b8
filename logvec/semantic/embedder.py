"""
Feature hashing of tokens into fixed-dimension count vectors.

Each token selects ``k`` distinct dimensions out of ``D`` through a keyed
blake2b digest. An entry's vector is the component-wise sum over its tokens,
so a token that occurs three times adds 3 to each of its dimensions.

The token -> dimensions mapping depends only on the token bytes and the
configuration (D, k, seed). It holds no state between calls, which keeps
vectors from different processes and runs comparable.

Collisions
----------
Two distinct tokens may select the same dimension. With indices treated as
independent and uniform, a single token shares at least one dimension with
some other token of a vocabulary of size V with probability

    p = 1 - (1 - k/D) ** (k * (V - 1))

and the expected number of colliding token pairs is
``C(V, 2) * (1 - (1 - k/D) ** k)``. Collisions add noise to similarity
scores but never break determinism; pick D large relative to V.
"""

import hashlib
import math
from functools import lru_cache
from typing import Iterable, Optional, Tuple

import numpy as np

from ..config import EmbedderConfig
from ..utils.logging_setup import get_logger

logger = get_logger(__name__)

VECTOR_DTYPE = np.int64
_DIGEST_SIZE = 32
_WINDOW = 8  # bytes per index window
_PERSON_PREFIX = b"logvec"


def _seed_key(seed: int) -> bytes:
    # blake2b keys are at most 64 bytes; seeds wider than that are folded.
    length = max(8, (seed.bit_length() + 7) // 8)
    key = seed.to_bytes(length, "little")
    if len(key) > 64:
        key = hashlib.blake2b(key, digest_size=64).digest()
    return key


@lru_cache(maxsize=65536)
def token_indices(token: str, dimension: int, k: int, seed: int) -> Tuple[int, ...]:
    """
    Select ``k`` distinct dimensions in ``[0, dimension)`` for ``token``.

    The 256-bit digest is read as four 64-bit windows, each reduced modulo
    ``dimension``. Duplicates within the token are skipped; once the windows
    are used up the token is re-hashed with the next round number.
    """
    if not (1 <= k <= dimension):
        raise ValueError(f"k must be between 1 and {dimension}, got {k}")

    data = token.encode("utf-8", errors="surrogatepass")
    key = _seed_key(seed)
    chosen = []
    seen = set()
    rounds = 0
    while len(chosen) < k:
        person = _PERSON_PREFIX + rounds.to_bytes(8, "little")
        digest = hashlib.blake2b(data, digest_size=_DIGEST_SIZE, key=key, person=person).digest()
        for start in range(0, _DIGEST_SIZE, _WINDOW):
            idx = int.from_bytes(digest[start:start + _WINDOW], "little") % dimension
            if idx in seen:
                continue
            seen.add(idx)
            chosen.append(idx)
            if len(chosen) == k:
                break
        rounds += 1
    return tuple(chosen)


class HashingEmbedder:
    """Maps token sequences to count vectors of length ``config.dimension``."""

    def __init__(self, config: Optional[EmbedderConfig] = None):
        """
        Initialize the embedder.

        Args:
            config: Dimension, activations per token and hash seed
        """
        self.config = config or EmbedderConfig()
        self.dimension = self.config.dimension

        vocab = self.config.expected_vocabulary
        if vocab:
            p = collision_probability(vocab, self.dimension, self.config.k)
            if p > 0.5:
                logger.warning(
                    f"Dimension {self.dimension} is small for a vocabulary of {vocab}: "
                    f"a token collides with probability {p:.2f}"
                )

    def indices(self, token: str) -> Tuple[int, ...]:
        """Dimensions selected by ``token``."""
        cfg = self.config
        return token_indices(token, cfg.dimension, cfg.k, cfg.seed)

    def zeros(self) -> np.ndarray:
        return np.zeros(self.dimension, dtype=VECTOR_DTYPE)

    def embed(self, tokens: Iterable[str]) -> np.ndarray:
        """Sum the contributions of all tokens into a fresh vector."""
        vector = self.zeros()
        for token in tokens:
            for idx in self.indices(token):
                vector[idx] += 1
        return vector


def embed(tokens: Iterable[str], config: Optional[EmbedderConfig] = None) -> np.ndarray:
    """Embed a token sequence with the given (or default) configuration."""
    return HashingEmbedder(config).embed(tokens)


def collision_probability(vocabulary_size: int, dimension: int, k: int = 1) -> float:
    """Probability that one token shares a dimension with any of the others."""
    if vocabulary_size <= 1:
        return 0.0
    miss = (1.0 - k / dimension) ** (k * (vocabulary_size - 1))
    return 1.0 - miss


def expected_colliding_pairs(vocabulary_size: int, dimension: int, k: int = 1) -> float:
    """Expected number of token pairs sharing at least one dimension."""
    if vocabulary_size <= 1:
        return 0.0
    pair_p = 1.0 - (1.0 - k / dimension) ** k
    return math.comb(vocabulary_size, 2) * pair_p
