"""Encode entries back into the export record format."""

from typing import BinaryIO, Iterable

from .fields import FieldKind, LogEntry
from .parser import LENGTH_PREFIX_SIZE


def encode_entry(entry: LogEntry) -> bytes:
    """
    Encode one entry as a record terminated by a blank line.

    Text values are written as ``NAME=value``; binary values use the length
    prefixed form, so parsing the output yields the same entry.
    """
    out = bytearray()
    for name, value in entry.items():
        key = name.encode("ascii")
        if value.kind is FieldKind.TEXT:
            if b"\n" in value.raw:
                raise ValueError(f"text field {name!r} contains a newline")
            out += key + b"=" + value.raw + b"\n"
        else:
            out += key + b"\n"
            out += len(value.raw).to_bytes(LENGTH_PREFIX_SIZE, "little")
            out += value.raw + b"\n"
    out += b"\n"
    return bytes(out)


def write_entries(entries: Iterable[LogEntry], fp: BinaryIO) -> int:
    """Write entries to a binary stream; returns the number written."""
    written = 0
    for entry in entries:
        fp.write(encode_entry(entry))
        written += 1
    return written
