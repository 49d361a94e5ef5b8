"""
Parser for the journal export record format.

A stream is a sequence of records separated by blank lines; end of input also
ends the final record. Each field is one of:

* ``NAME=value\\n`` where value contains no newline, or
* ``NAME\\n`` followed by a 64-bit little-endian length, that many raw bytes,
  and a terminating ``\\n``. These binary-safe fields may contain anything,
  including newlines and NUL bytes.

Parsing is incremental: entries are produced one at a time and memory use is
bounded by the largest record, not by the length of the stream.
"""

import re
from collections import deque
from typing import Deque, Iterator, List, Optional, Tuple

from ..config import ParserConfig
from ..errors import ParseError
from ..utils.logging_setup import get_logger, log_skip
from .fields import FieldKind, FieldValue, LogEntry
from .reader import ByteCursor, ByteSource, open_source

logger = get_logger(__name__)

LENGTH_PREFIX_SIZE = 8
_FIELD_NAME = re.compile(rb"[A-Za-z0-9_]+\Z")
_NEWLINE = 0x0A


class StreamParser:
    """
    Lazy, forward-only iterator of :class:`LogEntry` over one byte source.

    The iterator cannot be restarted; parse the source again from its start
    to re-read it. With ``on_error="raise"`` the first malformed record raises
    :class:`ParseError` and ends iteration. With ``on_error="skip"`` the
    record is dropped, the parser resumes at the next blank line and
    ``records_skipped`` is incremented.
    """

    def __init__(self, source: ByteSource, config: Optional[ParserConfig] = None,
                 base_offset: int = 0):
        """
        Initialize parser.

        Args:
            source: Raw bytes or a binary stream with ``read(n)``
            config: Limits and error policy
            base_offset: Absolute offset of the source's first byte, for
                sources that start in the middle of a larger stream
        """
        self.config = config or ParserConfig()
        self._cursor = ByteCursor(open_source(source), base_offset=base_offset)
        self._closed = False
        self.records_parsed = 0
        self.records_skipped = 0
        self.errors: Deque[ParseError] = deque(maxlen=self.config.max_remembered_errors)

    def __iter__(self) -> "StreamParser":
        return self

    def __next__(self) -> LogEntry:
        while True:
            record = self._next_record(materialize=True)
            if record is None:
                raise StopIteration
            start, _end, fields = record
            if fields is None:
                continue
            entry = LogEntry(fields, offset=start, index=self.records_parsed)
            self.records_parsed += 1
            return entry

    def spans(self) -> Iterator[Tuple[int, int]]:
        """
        Yield ``(start, end)`` byte spans of the remaining records.

        Field values are validated but not collected, so binary payloads are
        skipped rather than buffered.
        """
        while True:
            record = self._next_record(materialize=False)
            if record is None:
                return
            start, end, fields = record
            if fields is None:
                continue
            self.records_parsed += 1
            yield start, end

    # --- record level ---

    def _next_record(self, materialize: bool):
        """
        Parse one record.

        Returns None at end of input, ``(start, end, None)`` for a record
        dropped under the skip policy, otherwise ``(start, end, fields)``.
        """
        if self._closed:
            return None

        cursor = self._cursor
        # Blank lines between records carry no data.
        while cursor.peek() == _NEWLINE:
            cursor.read_exact(1, keep=False)
        if cursor.at_eof():
            self._closed = True
            return None

        start = cursor.offset
        try:
            fields = self._read_fields(start, materialize)
        except ParseError as exc:
            if self.config.on_error != "skip":
                self._closed = True
                raise
            self.records_skipped += 1
            self.errors.append(exc)
            log_skip(logger, "record", self.records_skipped, exc)
            self._resync()
            return start, cursor.offset, None
        return start, cursor.offset, fields

    def _read_fields(self, start: int, materialize: bool) -> List[Tuple[str, FieldValue]]:
        cursor = self._cursor
        limits = self.config
        fields: List[Tuple[str, FieldValue]] = []
        seen = set()
        index = self.records_parsed

        while not cursor.at_eof():
            line_offset = cursor.offset
            line, terminated = cursor.read_line(limit=self._line_limit())
            if terminated and not line:
                break

            eq = line.find(b"=")
            if eq != -1:
                name_bytes = line[:eq]
                self._check_name(name_bytes, line_offset, index)
                if not terminated and not cursor.at_eof():
                    raise ParseError("text field exceeds the field size limit", line_offset, index)
                if limits.max_field_value_size is not None and len(line) - eq - 1 > limits.max_field_value_size:
                    raise ParseError("text field exceeds the field size limit", line_offset, index)
                value = FieldValue(FieldKind.TEXT, line[eq + 1:] if materialize else b"")
            else:
                if not terminated:
                    raise ParseError("field line has neither '=' nor a binary length marker", line_offset, index)
                name_bytes = line
                self._check_name(name_bytes, line_offset, index)
                value = self._read_binary_value(line_offset, materialize, index)

            name = name_bytes.decode("ascii")
            if name in seen:
                raise ParseError(f"duplicate field {name!r} in record", line_offset, index)
            seen.add(name)
            fields.append((name, value))

            if limits.max_entry_size is not None and cursor.offset - start > limits.max_entry_size:
                raise ParseError("record exceeds the entry size limit", start, index)

        if not fields:
            raise ParseError("record has no fields", start, index)
        return fields

    def _read_binary_value(self, line_offset: int, materialize: bool, index: int) -> FieldValue:
        cursor = self._cursor
        # The prefix is only consumed once it is plausible; a stray name line
        # then leaves the cursor on the next line so that resync finds the
        # real blank line.
        prefix = cursor.peek_exact(LENGTH_PREFIX_SIZE)
        if len(prefix) < LENGTH_PREFIX_SIZE:
            raise ParseError(
                "field line has neither '=' nor a binary length marker (length prefix truncated "
                f"by end of input: {len(prefix)} of {LENGTH_PREFIX_SIZE} bytes)",
                line_offset, index)

        length = int.from_bytes(prefix, "little")
        max_size = self.config.max_field_value_size
        if max_size is not None and length > max_size:
            raise ParseError(
                "field line has neither '=' nor a binary length marker (binary field of "
                f"{length} bytes exceeds the field size limit of {max_size})",
                line_offset, index)

        prefix_offset = cursor.offset
        cursor.read_exact(LENGTH_PREFIX_SIZE, keep=False)

        payload, got = cursor.read_exact(length, keep=materialize)
        if got < length:
            raise ParseError(
                f"binary field declares {length} bytes but only {got} remain before end of input",
                prefix_offset, index)

        terminator_offset = cursor.offset
        terminator, got = cursor.read_exact(1)
        if got == 0:
            raise ParseError("end of input before the newline closing a binary field",
                             terminator_offset, index)
        if terminator != b"\n":
            raise ParseError(f"expected newline after binary field, found {terminator!r}",
                             terminator_offset, index)
        return FieldValue(FieldKind.BINARY, payload)

    # --- helpers ---

    def _line_limit(self) -> Optional[int]:
        name_len = self.config.max_field_name_len
        value_size = self.config.max_field_value_size
        if name_len is None or value_size is None:
            return None
        return name_len + 1 + value_size

    def _check_name(self, name: bytes, offset: int, index: int) -> None:
        if not _FIELD_NAME.match(name):
            raise ParseError(f"invalid field name {name[:64]!r}", offset, index)
        max_len = self.config.max_field_name_len
        if max_len is not None and len(name) > max_len:
            raise ParseError(f"field name longer than {max_len} bytes", offset, index)

    def _resync(self) -> None:
        """Skip to just past the next blank line, or to end of input."""
        cursor = self._cursor
        limit = self._line_limit()
        previous_terminated = True
        while not cursor.at_eof():
            line, terminated = cursor.read_line(limit=limit)
            if terminated and not line and previous_terminated:
                return
            previous_terminated = terminated


def parse(source: ByteSource, config: Optional[ParserConfig] = None) -> StreamParser:
    """Parse an export stream into a lazy sequence of entries."""
    return StreamParser(source, config)


def iter_record_spans(source: ByteSource, config: Optional[ParserConfig] = None) -> Iterator[Tuple[int, int]]:
    """Pre-scan a stream for record boundaries without collecting field values."""
    return StreamParser(source, config).spans()
