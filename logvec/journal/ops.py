"""
Whole-stream operations on journal entries.

These work on lazy entry iterators and keep at most one pending entry per
input in memory.
"""

import heapq
import random
from typing import Iterable, Iterator, Optional

from ..config import ParserConfig
from .fields import LogEntry
from .parser import StreamParser
from .reader import ByteSource

# Entries without a usable timestamp sort after every timestamped entry.
_NO_TIMESTAMP = float("inf")


def count_entries(source: ByteSource, config: Optional[ParserConfig] = None) -> int:
    """Count the records in a stream without keeping field values."""
    return sum(1 for _ in StreamParser(source, config).spans())


def nth_entry(source: ByteSource, n: int, config: Optional[ParserConfig] = None) -> Optional[LogEntry]:
    """Return the ``n``-th entry (0-based) of a stream, or None if it is shorter."""
    if n < 0:
        raise ValueError("n must be non-negative")
    for entry in StreamParser(source, config):
        if entry.index == n:
            return entry
    return None


def sample_entries(entries: Iterable[LogEntry], rate: float,
                   seed: Optional[int] = None) -> Iterator[LogEntry]:
    """
    Keep each entry independently with probability ``rate``.

    A fixed ``seed`` makes the sample reproducible.
    """
    if not (0.0 <= rate <= 1.0):
        raise ValueError(f"rate must be between 0 and 1, got {rate}")
    rng = random.Random(seed)
    for entry in entries:
        if rng.random() < rate:
            yield entry


def merge_by_timestamp(*streams: Iterable[LogEntry]) -> Iterator[LogEntry]:
    """
    Merge entry streams ordered by ``__REALTIME_TIMESTAMP``.

    Each input is assumed to be in timestamp order already, as journal exports
    are. Ties keep the order of the inputs.
    """
    def keyed(stream_no: int, stream: Iterable[LogEntry]):
        for seq, entry in enumerate(stream):
            ts = entry.realtime_timestamp
            yield (_NO_TIMESTAMP if ts is None else ts, stream_no, seq), entry

    merged = heapq.merge(*(keyed(i, s) for i, s in enumerate(streams)), key=lambda item: item[0])
    for _key, entry in merged:
        yield entry
