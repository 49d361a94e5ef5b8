"""
Journal export format support.

Parses, re-encodes and manipulates streams of records in the binary-safe
journal export format.
"""

from .fields import FieldKind, FieldValue, KnownField, LogEntry
from .parser import StreamParser, iter_record_spans, parse
from .writer import encode_entry, write_entries
from .ops import count_entries, merge_by_timestamp, nth_entry, sample_entries

__all__ = [
    'FieldKind',
    'FieldValue',
    'KnownField',
    'LogEntry',
    'StreamParser',
    'parse',
    'iter_record_spans',
    'encode_entry',
    'write_entries',
    'count_entries',
    'nth_entry',
    'sample_entries',
    'merge_by_timestamp',
]
