"""
Tests for re-encoding and whole-stream journal operations.
"""

import io

import pytest

from logvec.journal import (
    FieldKind,
    FieldValue,
    LogEntry,
    count_entries,
    encode_entry,
    merge_by_timestamp,
    nth_entry,
    parse,
    sample_entries,
    write_entries,
)


def stamped(ts, tag):
    return LogEntry.from_text(__REALTIME_TIMESTAMP=str(ts), MESSAGE=tag)


class TestWriter:
    """Test encoding entries into export records."""

    def test_text_fields(self):
        assert encode_entry(LogEntry.from_text(A="1", B="x=y")) == b"A=1\nB=x=y\n\n"

    def test_binary_field(self):
        entry = LogEntry([("DATA", FieldValue.binary(b"a\nb"))])
        assert encode_entry(entry) == b"DATA\n\x03\x00\x00\x00\x00\x00\x00\x00a\nb\n\n"

    def test_text_with_newline_rejected(self):
        entry = LogEntry([("A", FieldValue(FieldKind.TEXT, b"a\nb"))])
        with pytest.raises(ValueError):
            encode_entry(entry)

    def test_write_entries(self):
        out = io.BytesIO()
        entries = [LogEntry.from_text(A="1"), LogEntry.from_text(B="2")]

        assert write_entries(entries, out) == 2
        assert list(parse(out.getvalue())) == entries


class TestCountAndLookup:
    """Test counting and positional lookup."""

    def test_count_entries(self, journal):
        data = journal.run([("web", "a", 3), ("db", "b", 2)])
        assert count_entries(data) == 5
        assert count_entries(b"") == 0

    def test_nth_entry(self, journal):
        data = journal.run([("web", "first", 1), ("db", "second", 1)])

        entry = nth_entry(data, 1)

        assert entry.get_text("MESSAGE") == "second"
        assert entry.index == 1
        assert nth_entry(data, 2) is None

    def test_nth_entry_rejects_negative(self):
        with pytest.raises(ValueError):
            nth_entry(b"", -1)


class TestSample:
    """Test Bernoulli sampling of entries."""

    def test_extreme_rates(self):
        entries = [stamped(i, str(i)) for i in range(20)]
        assert list(sample_entries(entries, 0.0)) == []
        assert list(sample_entries(entries, 1.0)) == entries

    def test_seed_is_reproducible(self):
        entries = [stamped(i, str(i)) for i in range(200)]
        first = list(sample_entries(entries, 0.3, seed=7))
        second = list(sample_entries(entries, 0.3, seed=7))

        assert first == second
        assert 0 < len(first) < 200

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            list(sample_entries([], 1.5))


class TestMergeByTimestamp:
    """Test k-way merging of timestamp-ordered streams."""

    def test_interleaves(self):
        a = [stamped(1, "a1"), stamped(4, "a4")]
        b = [stamped(2, "b2"), stamped(3, "b3"), stamped(5, "b5")]

        merged = [e.get_text("MESSAGE") for e in merge_by_timestamp(a, b)]

        assert merged == ["a1", "b2", "b3", "a4", "b5"]

    def test_ties_keep_input_order(self):
        a = [stamped(1, "a")]
        b = [stamped(1, "b")]
        assert [e.get_text("MESSAGE") for e in merge_by_timestamp(b, a)] == ["b", "a"]

    def test_entries_without_timestamp_sort_last(self):
        a = [LogEntry.from_text(MESSAGE="none")]
        b = [stamped(10, "ten")]
        assert [e.get_text("MESSAGE") for e in merge_by_timestamp(a, b)] == ["ten", "none"]

    def test_accepts_parsed_streams(self, journal):
        first = journal.record(journal.text("__REALTIME_TIMESTAMP", "2"), journal.text("MESSAGE", "x"))
        second = journal.record(journal.text("__REALTIME_TIMESTAMP", "1"), journal.text("MESSAGE", "y"))

        merged = list(merge_by_timestamp(parse(first), parse(second)))

        assert [e.realtime_timestamp for e in merged] == [1, 2]
