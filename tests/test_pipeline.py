"""
Tests for the end-to-end analysis pipeline, sharding and entry ranking.
"""

import pytest

from logvec.config import AnalysisConfig, EmbedderConfig, ParserConfig
from logvec.errors import DimensionMismatchError, ParseError
from logvec.journal import iter_record_spans
from logvec.pipeline import (
    RunStats,
    analyze,
    analyze_parallel,
    analyze_path,
    compare_runs,
    divergent_entries,
    plan_shards,
)
from logvec.semantic import Aggregator


def wide_config(**overrides):
    """A configuration where hash collisions are negligible."""
    return AnalysisConfig(embedder=EmbedderConfig(dimension=1024, k=4), **overrides)


@pytest.fixture
def big_journal(journal, write_journal):
    """A journal with several groups and binary payloads containing blank lines."""
    parts = []
    for i in range(60):
        parts.append(journal.entry(["web", "db", "cache"][i % 3], f"event {i % 7} status {i % 5}"))
        if i % 10 == 0:
            parts.append(journal.record(
                journal.text("SYSLOG_IDENTIFIER", "kernel"),
                journal.binary("MESSAGE", f"oops {i}\n\ntrace line\n".encode()),
            ))
    return write_journal(b"".join(parts))


class TestAnalyze:
    """Test sequential analysis of one stream."""

    def test_groups_and_stats(self, journal):
        data = journal.run([("web", "request failed", 2), ("db", "connection ok", 3)])
        data += journal.record(journal.text("SYSLOG_IDENTIFIER", "web"))
        data += journal.record(journal.text("MESSAGE", "who logged this"))

        result = analyze(data)

        assert result.aggregator.keys() == ["db", "web"]
        assert result.aggregator.count("web") == 2
        assert result.aggregator.count("db") == 3
        assert result.stats == RunStats(entries_seen=7, entries_embedded=5,
                                        skipped_missing_message=1, skipped_missing_group=1)

    def test_missing_group_key(self, journal):
        data = journal.record(journal.text("MESSAGE", "orphan"))
        result = analyze(data, AnalysisConfig(missing_group_key="(none)"))
        assert result.aggregator.keys() == ["(none)"]

    def test_custom_group_field(self, journal):
        data = journal.entry("web", "hello", _SYSTEMD_UNIT="nginx.service")
        result = analyze(data, AnalysisConfig(group_field="_SYSTEMD_UNIT"))
        assert result.aggregator.keys() == ["nginx.service"]

    def test_empty_message_counts_as_entry(self, journal):
        result = analyze(journal.entry("web", "..."))
        assert result.aggregator.count("web") == 1
        assert not result.aggregator.get("web").vector.any()

    def test_parse_error_propagates(self, journal):
        data = journal.entry("web", "ok") + b"bad line\n\n"
        with pytest.raises(ParseError):
            analyze(data)

    def test_skipped_records_counted(self, journal):
        data = journal.entry("web", "ok") + b"bad line\n\n" + journal.entry("web", "ok")
        result = analyze(data, AnalysisConfig(parser=ParserConfig(on_error="skip")))
        assert result.stats.records_skipped == 1
        assert result.aggregator.count("web") == 2

    def test_reads_path(self, journal, write_journal):
        path = write_journal(journal.run([("web", "a", 2)]))
        assert analyze(path).aggregator.count("web") == 2
        assert analyze(str(path)).aggregator.count("web") == 2


class TestSharding:
    """Test byte-range sharding and parallel analysis."""

    def test_shards_start_at_records_and_cover_file(self, big_journal):
        starts = {start for start, _ in iter_record_spans(big_journal.read_bytes())}

        shards = plan_shards(big_journal, 4)

        assert 1 < len(shards) <= 4
        assert shards[0].start == 0
        assert shards[-1].end == big_journal.stat().st_size
        for left, right in zip(shards, shards[1:]):
            assert left.end == right.start
            assert right.start in starts

    def test_single_shard(self, big_journal):
        shards = plan_shards(big_journal, 1)
        assert len(shards) == 1
        assert shards[0].size == big_journal.stat().st_size

    def test_more_shards_than_records(self, journal, write_journal):
        path = write_journal(journal.run([("web", "a", 2)]))
        assert len(plan_shards(path, 10)) == 2

    def test_invalid_shard_count(self, big_journal):
        with pytest.raises(ValueError):
            plan_shards(big_journal, 0)

    @pytest.mark.parametrize("shards", [2, 3, 7])
    def test_parallel_equals_sequential(self, big_journal, shards):
        sequential = analyze_path(big_journal)
        parallel = analyze_path(big_journal, shards=shards)

        assert parallel.aggregator == sequential.aggregator
        assert parallel.stats == sequential.stats
        assert "kernel" in parallel.aggregator

    def test_parallel_with_worker_limit(self, big_journal):
        config = AnalysisConfig(max_workers=1)
        parallel = analyze_parallel(plan_shards(big_journal, 3), config)
        assert parallel.aggregator == analyze_path(big_journal).aggregator

    def test_no_shards(self):
        result = analyze_parallel([])
        assert len(result.aggregator) == 0

    def test_error_offset_is_absolute(self, journal, write_journal):
        good = journal.run([("web", "fine", 20)])
        path = write_journal(good + b"bad line\n\n" + good)

        with pytest.raises(ParseError) as exc_info:
            analyze_path(path, shards=3)

        assert exc_info.value.byte_offset == len(good)

    def test_skip_policy_across_shards(self, journal, write_journal):
        good = journal.run([("web", "fine", 20)])
        path = write_journal(good + b"bad line\n\n" + good)
        config = AnalysisConfig(parser=ParserConfig(on_error="skip"))

        result = analyze_path(path, config, shards=3)

        assert result.stats.records_skipped == 1
        assert result.aggregator.count("web") == 40


class TestCompareRuns:
    """Test comparing two runs."""

    def test_sharded_comparison_matches_sequential(self, journal, write_journal):
        path_a = write_journal(journal.run([("web", "request failed", 30), ("db", "ok", 30)]), "a.export")
        path_b = write_journal(journal.run([("web", "request timeout", 30), ("db", "ok", 30)]), "b.export")

        sequential = compare_runs(path_a, path_b, wide_config())
        sharded = compare_runs(path_a, path_b, wide_config(), shards=4)

        assert [c.key for c in sharded.ranking] == [c.key for c in sequential.ranking] == ["web", "db"]
        assert sharded.most_divergent().key == "web"
        assert sharded.ranking[0].score == pytest.approx(sequential.ranking[0].score)

    def test_most_divergent_of_nothing(self):
        assert compare_runs(b"", b"").most_divergent() is None


class TestDivergentEntries:
    """Test ranking the entries of one group against another run."""

    def test_finds_the_odd_entry(self, journal):
        run_a = journal.run([("web", "request failed", 3)])
        run_b = (journal.run([("db", "connection ok", 2), ("web", "request failed", 2)])
                 + journal.entry("web", "disk quota exceeded")
                 + journal.entry("web", ""))
        config = wide_config()
        baseline = analyze(run_a, config).aggregator

        report = divergent_entries(run_b, baseline, "web", config, top_n=2)

        assert report.group_key == "web"
        assert report.offered == 4
        assert report.no_signal == 1
        assert report.normalized is False
        assert [e.message for e in report.entries] == ["disk quota exceeded", "request failed"]
        assert report.entries[0].index == 4
        assert report.entries[0].score < report.entries[1].score

    def test_unknown_group(self, journal):
        config = wide_config()
        baseline = analyze(journal.run([("web", "a", 1)]), config).aggregator
        report = divergent_entries(journal.run([("web", "a", 1)]), baseline, "db", config)
        assert report.entries == []
        assert report.offered == 0

    def test_dimension_mismatch(self, journal):
        with pytest.raises(DimensionMismatchError):
            divergent_entries(journal.run([("web", "a", 1)]), Aggregator(8), "web", AnalysisConfig())
