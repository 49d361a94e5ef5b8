"""
Per-group aggregation of entry vectors.

An :class:`Aggregator` keeps one running sum and one entry count per group,
so memory is O(groups x D) however long the journal is. Aggregators built
independently (one per shard or worker) combine with :meth:`Aggregator.merge`,
which is associative and commutative: the result does not depend on how the
input was partitioned or in which order partial results are merged.
"""

from dataclasses import dataclass
from functools import reduce
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from ..errors import DimensionMismatchError
from .embedder import VECTOR_DTYPE


@dataclass(frozen=True, eq=False)
class GroupVector:
    """Read-only snapshot of one group's aggregate."""

    key: str
    vector: np.ndarray
    count: int

    def mean(self) -> np.ndarray:
        """Aggregate divided by entry count (float64)."""
        if self.count == 0:
            return np.zeros(len(self.vector), dtype=np.float64)
        return self.vector.astype(np.float64) / self.count


class Aggregator:
    """Mapping from group key to summed vector and entry count."""

    def __init__(self, dimension: int):
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {dimension}")
        self.dimension = dimension
        self._sums: Dict[str, np.ndarray] = {}
        self._counts: Dict[str, int] = {}

    # --- mutation ---

    def add(self, key: str, vector: np.ndarray) -> None:
        """Add one entry vector to the group ``key``; O(D)."""
        vector = np.asarray(vector)
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            actual = vector.shape[0] if vector.ndim == 1 else -1
            raise DimensionMismatchError(self.dimension, actual, group_key=key)
        if not np.issubdtype(vector.dtype, np.integer):
            raise ValueError(f"entry vector for group {key!r} must have an integer dtype, got {vector.dtype}")
        if vector.size and vector.min() < 0:
            raise ValueError(f"entry vector for group {key!r} has negative components")

        total = self._sums.get(key)
        if total is None:
            total = np.zeros(self.dimension, dtype=VECTOR_DTYPE)
            self._sums[key] = total
            self._counts[key] = 0
        np.add(total, vector.astype(VECTOR_DTYPE, copy=False), out=total)
        self._counts[key] += 1

    def merge_into(self, other: "Aggregator") -> "Aggregator":
        """Fold ``other`` into this aggregator in place and return self."""
        if other.dimension != self.dimension:
            raise DimensionMismatchError(self.dimension, other.dimension)
        for key, vector in other._sums.items():
            total = self._sums.get(key)
            if total is None:
                self._sums[key] = vector.copy()
                self._counts[key] = other._counts[key]
            else:
                np.add(total, vector, out=total)
                self._counts[key] += other._counts[key]
        return self

    def merge(self, other: "Aggregator") -> "Aggregator":
        """Return a new aggregator combining both; the inputs are unchanged."""
        return self.copy().merge_into(other)

    def copy(self) -> "Aggregator":
        clone = Aggregator(self.dimension)
        clone._sums = {key: vector.copy() for key, vector in self._sums.items()}
        clone._counts = dict(self._counts)
        return clone

    # --- read access ---

    def get(self, key: str) -> Optional[GroupVector]:
        total = self._sums.get(key)
        if total is None:
            return None
        view = total.view()
        view.flags.writeable = False
        return GroupVector(key, view, self._counts[key])

    def vector_or_zeros(self, key: str) -> np.ndarray:
        group = self.get(key)
        if group is None:
            return np.zeros(self.dimension, dtype=VECTOR_DTYPE)
        return group.vector

    def count(self, key: str) -> int:
        return self._counts.get(key, 0)

    def keys(self) -> List[str]:
        return sorted(self._sums)

    def groups(self) -> Iterator[GroupVector]:
        for key in self.keys():
            yield self.get(key)

    @property
    def total_entries(self) -> int:
        return sum(self._counts.values())

    def __len__(self) -> int:
        return len(self._sums)

    def __contains__(self, key: object) -> bool:
        return key in self._sums

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Aggregator):
            return NotImplemented
        if self.dimension != other.dimension or self._counts != other._counts:
            return False
        return all(np.array_equal(vector, other._sums[key]) for key, vector in self._sums.items())

    __hash__ = None

    def __repr__(self) -> str:
        return f"Aggregator(dimension={self.dimension}, groups={len(self)}, entries={self.total_entries})"

    # --- serialization ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension,
            "groups": {
                key: {"count": self._counts[key], "vector": self._sums[key].tolist()}
                for key in self.keys()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Aggregator":
        agg = cls(int(data["dimension"]))
        for key, group in data.get("groups", {}).items():
            vector = np.asarray(group["vector"], dtype=VECTOR_DTYPE)
            if vector.shape != (agg.dimension,):
                raise DimensionMismatchError(agg.dimension, vector.shape[0], group_key=key)
            agg._sums[key] = vector
            agg._counts[key] = int(group["count"])
        return agg


def aggregate(pairs: Iterable[Tuple[str, np.ndarray]], dimension: Optional[int] = None) -> Aggregator:
    """
    Build an aggregator from ``(group_key, vector)`` pairs.

    The dimension defaults to the length of the first vector; an empty input
    needs an explicit dimension.
    """
    agg: Optional[Aggregator] = Aggregator(dimension) if dimension is not None else None
    for key, vector in pairs:
        if agg is None:
            agg = Aggregator(len(vector))
        agg.add(key, vector)
    if agg is None:
        raise ValueError("cannot infer dimension from an empty input; pass dimension=")
    return agg


def merge(a: Aggregator, b: Aggregator) -> Aggregator:
    """Combine two aggregators into a new one."""
    return a.merge(b)


def merge_all(aggregators: Iterable[Aggregator]) -> Aggregator:
    """Merge partial aggregators left to right into a new aggregator."""
    items = list(aggregators)
    if not items:
        raise ValueError("merge_all needs at least one aggregator")
    return reduce(lambda acc, agg: acc.merge_into(agg), items[1:], items[0].copy())
