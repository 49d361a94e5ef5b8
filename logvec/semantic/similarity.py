"""
Cosine similarity between count vectors and rankings built on it.

Similarity is computed in float64 whatever the integer type of the inputs.
A zero-norm input has no direction, so instead of a number the result is the
:data:`NO_SIGNAL` outcome, which callers cannot mistake for 0.0 or 1.0.
"""

import heapq
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import numpy as np

from ..errors import DimensionMismatchError
from .aggregator import Aggregator, GroupVector

MESSAGE_PREVIEW_CHARS = 200


class NoSignal:
    """Outcome of a similarity computation with a zero-norm operand."""

    _instance: Optional["NoSignal"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_SIGNAL"

    def __reduce__(self):
        return (NoSignal, ())


NO_SIGNAL = NoSignal()

Score = Union[float, NoSignal]


def is_no_signal(score: Score) -> bool:
    return score is NO_SIGNAL


def cosine(a: np.ndarray, b: np.ndarray) -> Score:
    """
    Cosine similarity of two vectors of equal length.

    Returns:
        A float in [-1, 1], or NO_SIGNAL if either vector has zero norm

    Raises:
        DimensionMismatchError: if the vectors differ in length
    """
    a = np.asarray(a)
    b = np.asarray(b)
    if a.shape != b.shape:
        raise DimensionMismatchError(a.shape[0] if a.ndim else 0, b.shape[0] if b.ndim else 0)

    af = a.astype(np.float64)
    bf = b.astype(np.float64)
    norm_a = np.linalg.norm(af)
    norm_b = np.linalg.norm(bf)
    if norm_a == 0 or norm_b == 0:
        return NO_SIGNAL

    score = float(np.dot(af, bf) / (norm_a * norm_b))
    # Rounding can push |score| a hair past 1.
    return max(-1.0, min(1.0, score))


@dataclass(frozen=True)
class GroupComparison:
    """Similarity of one group between two runs."""

    key: str
    score: Score
    count_a: int
    count_b: int
    reason: Optional[str] = None

    @property
    def is_no_signal(self) -> bool:
        return self.score is NO_SIGNAL


def compare_groups(agg_a: Aggregator, agg_b: Aggregator) -> List[GroupComparison]:
    """
    Rank every group of either run from most to least dissimilar.

    A group missing from one run counts as the zero vector there. Order:

    1. groups with signal in exactly one run (NO_SIGNAL; the group appeared
       or disappeared entirely),
    2. numeric scores, ascending,
    3. groups with no signal in either run (NO_SIGNAL).

    Ties are broken by ascending group key.
    """
    if agg_a.dimension != agg_b.dimension:
        raise DimensionMismatchError(agg_a.dimension, agg_b.dimension)

    ranked: List[Tuple[Tuple[int, float, str], GroupComparison]] = []
    for key in sorted(set(agg_a.keys()) | set(agg_b.keys())):
        vec_a = agg_a.vector_or_zeros(key)
        vec_b = agg_b.vector_or_zeros(key)
        score = cosine(vec_a, vec_b)

        if score is NO_SIGNAL:
            has_a = bool(vec_a.any())
            has_b = bool(vec_b.any())
            if has_a != has_b:
                bucket = 0
                reason = "only in run A" if has_a else "only in run B"
            else:
                bucket = 2
                reason = "no tokens in either run"
            sort_score = 0.0
        else:
            bucket, reason, sort_score = 1, None, score

        comparison = GroupComparison(key, score, agg_a.count(key), agg_b.count(key), reason)
        ranked.append(((bucket, sort_score, key), comparison))

    ranked.sort(key=lambda item: item[0])
    return [comparison for _, comparison in ranked]


@dataclass(frozen=True)
class EntryComparison:
    """Similarity of one entry to its group, and how the group was scaled."""

    score: Score
    normalized: bool


def compare_entry_to_group(entry_vector: np.ndarray,
                           group: Union[GroupVector, np.ndarray],
                           normalize: bool = False,
                           count: Optional[int] = None) -> EntryComparison:
    """
    Compare a single entry vector with a group aggregate.

    Args:
        entry_vector: Vector of one entry
        group: GroupVector, or a raw aggregate vector
        normalize: Divide the aggregate by its entry count first
        count: Entry count when ``group`` is a raw vector

    Returns:
        EntryComparison recording the score and whether it was normalized
    """
    if isinstance(group, GroupVector):
        target = group.mean() if normalize else group.vector
    else:
        target = np.asarray(group)
        if normalize:
            if not count:
                raise ValueError("normalize=True with a raw vector requires a positive count")
            target = target.astype(np.float64) / count
    return EntryComparison(cosine(entry_vector, target), normalize)


@dataclass(frozen=True)
class EntryScore:
    """One ranked entry inside a group."""

    index: Optional[int]
    offset: Optional[int]
    score: float
    message: str


class EntryRanker:
    """
    Keeps the ``top_n`` entries least similar to a group aggregate.

    Memory is bounded by ``top_n`` whatever the number of entries offered.
    Entries without tokens (NO_SIGNAL) are counted but not ranked.
    """

    def __init__(self, group: GroupVector, top_n: int = 10, normalize: bool = False):
        if top_n < 1:
            raise ValueError("top_n must be >= 1")
        self.group = group
        self.top_n = top_n
        self.normalize = normalize
        self.offered = 0
        self.no_signal = 0
        self._heap: List[Tuple[float, int, int, EntryScore]] = []

    def offer(self, vector: np.ndarray, index: Optional[int] = None,
              offset: Optional[int] = None, message: str = "") -> Score:
        """Score one entry and keep it if it is among the most dissimilar."""
        result = compare_entry_to_group(vector, self.group, normalize=self.normalize)
        self.offered += 1
        if result.score is NO_SIGNAL:
            self.no_signal += 1
            return result.score

        order = index if index is not None else self.offered
        item = EntryScore(index, offset, result.score, message[:MESSAGE_PREVIEW_CHARS])
        # Max-heap on (score, order): the root is the first to be evicted.
        key = (-result.score, -order, -self.offered, item)
        if len(self._heap) < self.top_n:
            heapq.heappush(self._heap, key)
        else:
            heapq.heappushpop(self._heap, key)
        return result.score

    def results(self) -> List[EntryScore]:
        """Kept entries, most dissimilar first (ties by entry order)."""
        ordered = sorted(self._heap, key=lambda k: (-k[0], -k[1], -k[2]))
        return [k[3] for k in ordered]
