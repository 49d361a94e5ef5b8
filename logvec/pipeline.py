"""
End-to-end analysis: parse -> tokenize -> embed -> aggregate -> compare.

A journal can be analyzed sequentially, or cut at record boundaries into
byte-range shards that are analyzed on worker threads. Each worker builds its
own Aggregator; the partial results are merged in shard order after all
workers finish, so no aggregator is ever shared between threads.
"""

import bisect
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from functools import reduce
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import numpy as np

from .config import AnalysisConfig
from .errors import DimensionMismatchError, MissingFieldError
from .journal.fields import LogEntry
from .journal.parser import StreamParser, iter_record_spans
from .journal.reader import ByteSource, RangeReader
from .semantic.aggregator import Aggregator, merge_all
from .semantic.embedder import HashingEmbedder
from .semantic.similarity import EntryRanker, EntryScore, GroupComparison, compare_groups
from .semantic.tokenizer import Tokenizer
from .utils.logging_setup import get_logger, log_operation

logger = get_logger(__name__)

Source = Union[ByteSource, str, os.PathLike]


@dataclass
class RunStats:
    """Counters for one analysis run; merging sums them."""

    entries_seen: int = 0
    entries_embedded: int = 0
    skipped_missing_message: int = 0
    skipped_missing_group: int = 0
    records_skipped: int = 0

    def merge(self, other: "RunStats") -> "RunStats":
        return RunStats(**{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)})

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class AnalysisResult:
    """Per-group aggregate of one journal plus its run counters."""

    aggregator: Aggregator
    stats: RunStats = field(default_factory=RunStats)

    def merge(self, other: "AnalysisResult") -> "AnalysisResult":
        return AnalysisResult(self.aggregator.merge(other.aggregator), self.stats.merge(other.stats))


class EntryVectorizer:
    """Turns entries into ``(group_key, vector)`` pairs for one configuration."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.tokenizer = Tokenizer(self.config.tokenizer)
        self.embedder = HashingEmbedder(self.config.embedder)

    def group_key(self, entry: LogEntry) -> Optional[str]:
        value = entry.get(self.config.group_field)
        if value is None:
            return self.config.missing_group_key
        return value.as_text()

    def vectorize(self, entry: LogEntry) -> np.ndarray:
        """Embed the entry's message; raises MissingFieldError without one."""
        return self.embedder.embed(self.tokenizer.tokenize(entry))


def _is_path(source: Any) -> bool:
    return isinstance(source, (str, os.PathLike))


@contextmanager
def open_input(source: Source):
    """Yield a readable stream for a path, closing it afterwards; pass others through."""
    if _is_path(source):
        with open(source, "rb") as fh:
            yield fh
    else:
        yield source


def analyze(source: Source, config: Optional[AnalysisConfig] = None,
            base_offset: int = 0) -> AnalysisResult:
    """
    Aggregate one journal stream.

    Raises:
        ParseError: on malformed input, unless the parser skips bad records
    """
    config = config or AnalysisConfig()
    vectorizer = EntryVectorizer(config)
    aggregator = Aggregator(config.embedder.dimension)
    stats = RunStats()

    with open_input(source) as stream:
        parser = StreamParser(stream, config.parser, base_offset=base_offset)
        for entry in parser:
            stats.entries_seen += 1
            key = vectorizer.group_key(entry)
            if key is None:
                stats.skipped_missing_group += 1
                continue
            try:
                vector = vectorizer.vectorize(entry)
            except MissingFieldError as e:
                stats.skipped_missing_message += 1
                logger.debug(str(e))
                continue
            aggregator.add(key, vector)
            stats.entries_embedded += 1
        stats.records_skipped = parser.records_skipped

    logger.debug(f"Analyzed stream: {stats.to_dict()}")
    return AnalysisResult(aggregator, stats)


# --- sharding ---

@dataclass(frozen=True)
class Shard:
    """Byte range ``[start, end)`` of a journal file that begins at a record boundary."""

    path: str
    start: int
    end: int

    def open(self) -> RangeReader:
        return RangeReader(self.path, self.start, self.end)

    @property
    def size(self) -> int:
        return self.end - self.start


def plan_shards(path: Union[str, os.PathLike], shards: int,
                config: Optional[AnalysisConfig] = None) -> List[Shard]:
    """
    Cut a journal file into at most ``shards`` contiguous byte ranges.

    Cut points are record start offsets found by a pre-scan, so no record is
    split between shards. Binary payloads may contain blank lines, which is
    why the scan has to follow the length prefixes instead of searching for
    ``\\n\\n``.
    """
    if shards < 1:
        raise ValueError("shards must be >= 1")
    config = config or AnalysisConfig()
    path = str(path)
    size = os.path.getsize(path)

    with open(path, "rb") as fh:
        starts = [start for start, _end in iter_record_spans(fh, config.parser)]

    cuts = [0]
    for i in range(1, shards):
        target = size * i // shards
        pos = bisect.bisect_left(starts, target)
        if pos < len(starts) and starts[pos] > cuts[-1]:
            cuts.append(starts[pos])

    bounds = cuts + [size]
    return [Shard(path, lo, hi) for lo, hi in zip(bounds, bounds[1:])] or [Shard(path, 0, size)]


def analyze_shard(shard: Shard, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Analyze one shard; offsets in errors are absolute file offsets."""
    with shard.open() as reader:
        return analyze(reader, config, base_offset=shard.start)


def analyze_parallel(shards: List[Shard], config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """
    Analyze shards on a thread pool and merge the partial results.

    The first ParseError raised by any worker aborts the run: pending shards
    are cancelled and the error is re-raised.
    """
    config = config or AnalysisConfig()
    if not shards:
        return AnalysisResult(Aggregator(config.embedder.dimension))

    max_workers = config.max_workers or min(len(shards), os.cpu_count() or 1)
    log_operation(logger, "analyze_parallel", shards=len(shards), workers=max_workers)
    started = time.time()

    results: List[Optional[AnalysisResult]] = [None] * len(shards)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(analyze_shard, shard, config): i for i, shard in enumerate(shards)}
        for future in as_completed(futures):
            try:
                results[futures[future]] = future.result()
            except Exception as e:
                shard_no = futures[future]
                logger.error(f"Shard {shards[shard_no]} failed: {e}",
                             extra={'shard': shard_no,
                                    'byte_offset': getattr(e, 'byte_offset', None),
                                    'entry_index': getattr(e, 'entry_index', None)})
                for pending in futures:
                    pending.cancel()
                raise

    # Fan-in in shard order.
    merged = AnalysisResult(
        merge_all(r.aggregator for r in results),
        reduce(RunStats.merge, (r.stats for r in results), RunStats()),
    )
    logger.info(f"Merged {len(shards)} shards in {time.time() - started:.2f}s",
                extra={'extra_fields': merged.stats.to_dict()})
    return merged


def analyze_path(path: Union[str, os.PathLike], config: Optional[AnalysisConfig] = None,
                 shards: int = 1) -> AnalysisResult:
    """Analyze a journal file, in parallel when ``shards > 1``."""
    if shards <= 1:
        return analyze(Path(path), config)
    return analyze_parallel(plan_shards(path, shards, config), config)


# --- comparison ---

@dataclass
class RunComparison:
    """Two analyzed runs and their group ranking, most dissimilar first."""

    run_a: AnalysisResult
    run_b: AnalysisResult
    ranking: List[GroupComparison]

    def most_divergent(self) -> Optional[GroupComparison]:
        return self.ranking[0] if self.ranking else None


def compare_runs(source_a: Source, source_b: Source,
                 config: Optional[AnalysisConfig] = None, shards: int = 1) -> RunComparison:
    """Analyze two runs with the same configuration and rank their groups."""
    config = config or AnalysisConfig()
    log_operation(logger, "compare_runs")

    def run(source: Source) -> AnalysisResult:
        if shards > 1 and _is_path(source):
            return analyze_path(source, config, shards)
        return analyze(source, config)

    result_a = run(source_a)
    result_b = run(source_b)
    return RunComparison(result_a, result_b, compare_groups(result_a.aggregator, result_b.aggregator))


@dataclass
class DivergenceReport:
    """Entries of one group ranked by dissimilarity to the group aggregate."""

    group_key: str
    entries: List[EntryScore]
    offered: int
    no_signal: int
    normalized: bool


def iter_group_entries(source: Source, group_key: str,
                       config: Optional[AnalysisConfig] = None) -> Iterator[tuple]:
    """Yield ``(entry, vector)`` for the entries of one group with a message."""
    config = config or AnalysisConfig()
    vectorizer = EntryVectorizer(config)
    with open_input(source) as stream:
        for entry in StreamParser(stream, config.parser):
            if vectorizer.group_key(entry) != group_key:
                continue
            try:
                vector = vectorizer.vectorize(entry)
            except MissingFieldError:
                continue
            yield entry, vector


def divergent_entries(source: Source, aggregator: Aggregator, group_key: str,
                      config: Optional[AnalysisConfig] = None,
                      top_n: Optional[int] = None) -> DivergenceReport:
    """
    Rank the entries of ``group_key`` in ``source`` against an aggregate.

    This is a second pass over the journal; ``source`` must be readable from
    its start again (a path, bytes, or a freshly opened stream).
    """
    config = config or AnalysisConfig()
    if aggregator.dimension != config.embedder.dimension:
        raise DimensionMismatchError(config.embedder.dimension, aggregator.dimension, group_key=group_key)

    group = aggregator.get(group_key)
    if group is None:
        return DivergenceReport(group_key, [], 0, 0, config.normalize_entry_comparison)

    ranker = EntryRanker(group, top_n=top_n or config.top_entries,
                         normalize=config.normalize_entry_comparison)
    message_field = config.tokenizer.message_field
    for entry, vector in iter_group_entries(source, group_key, config):
        ranker.offer(vector, index=entry.index, offset=entry.offset,
                     message=entry.get_text(message_field, ""))

    return DivergenceReport(group_key, ranker.results(), ranker.offered, ranker.no_signal,
                            config.normalize_entry_comparison)
