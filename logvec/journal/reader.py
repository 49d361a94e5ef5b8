"""
Incremental byte access for export streams.

:class:`ByteCursor` wraps any object with ``read(n)`` and hands out lines and
exact-length chunks while tracking the absolute position in the stream. Only
the unread tail of the last chunk is buffered, so memory does not grow with
the length of the stream.
"""

import io
import os
from typing import BinaryIO, Optional, Tuple, Union

CHUNK_SIZE = 4096 * 4

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


def open_source(source: ByteSource) -> BinaryIO:
    """Return a readable binary object for raw bytes or a file-like source."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    if not hasattr(source, "read"):
        raise TypeError(f"expected bytes or a binary stream, got {type(source).__name__}")
    return source


class ByteCursor:
    """Forward-only reader with absolute offset tracking."""

    def __init__(self, stream: BinaryIO, chunk_size: int = CHUNK_SIZE, base_offset: int = 0):
        self._stream = stream
        self._chunk_size = chunk_size
        self._buf = bytearray()
        self._pos = 0
        self._eof = False
        # Absolute stream offset of _buf[0]
        self._base = base_offset

    @property
    def offset(self) -> int:
        """Absolute offset of the next unread byte."""
        return self._base + self._pos

    def _fill(self) -> bool:
        """Read one more chunk; return False at end of input."""
        if self._eof:
            return False
        if self._pos:
            # Drop consumed bytes before growing the buffer.
            del self._buf[:self._pos]
            self._base += self._pos
            self._pos = 0
        chunk = self._stream.read(self._chunk_size)
        if not chunk:
            self._eof = True
            return False
        self._buf.extend(chunk)
        return True

    def at_eof(self) -> bool:
        while self._pos >= len(self._buf):
            if not self._fill():
                return True
        return False

    def peek(self) -> Optional[int]:
        """Next byte without consuming it, or None at end of input."""
        if self.at_eof():
            return None
        return self._buf[self._pos]

    def peek_exact(self, n: int) -> bytes:
        """Up to ``n`` upcoming bytes without consuming them; fewer only at end of input."""
        while len(self._buf) - self._pos < n:
            if not self._fill():
                break
        return bytes(self._buf[self._pos:self._pos + n])

    def read_line(self, limit: Optional[int] = None) -> Tuple[bytes, bool]:
        """
        Read up to and including the next ``\\n``.

        Returns ``(line_without_newline, terminated)``. ``terminated`` is False
        when input ended before a newline. If ``limit`` is given and the line
        grows beyond it without a newline, reading stops there and the partial
        line is returned unterminated.
        """
        scan_from = self._pos
        while True:
            nl = self._buf.find(b"\n", scan_from)
            if nl != -1:
                line = bytes(self._buf[self._pos:nl])
                self._pos = nl + 1
                return line, True
            if limit is not None and len(self._buf) - self._pos > limit:
                line = bytes(self._buf[self._pos:self._pos + limit + 1])
                self._pos += len(line)
                return line, False
            scan_from = len(self._buf) - self._pos
            if not self._fill():
                line = bytes(self._buf[self._pos:])
                self._pos = len(self._buf)
                return line, False
            # _fill() may have compacted the buffer
            scan_from = self._pos + scan_from

    def read_exact(self, n: int, keep: bool = True) -> Tuple[bytes, int]:
        """
        Read exactly ``n`` bytes unless input ends first.

        Returns ``(data, count)``; ``count < n`` signals truncation. With
        ``keep=False`` the bytes are consumed without being collected.
        """
        parts = []
        remaining = n
        while remaining > 0:
            available = len(self._buf) - self._pos
            if available == 0:
                if not self._fill():
                    break
                continue
            take = min(available, remaining)
            if keep:
                parts.append(bytes(self._buf[self._pos:self._pos + take]))
            self._pos += take
            remaining -= take
        return b"".join(parts), n - remaining


class RangeReader(io.RawIOBase):
    """Read-only view of ``[start, end)`` of a seekable binary file."""

    def __init__(self, path: Union[str, os.PathLike], start: int, end: int):
        if start < 0 or end < start:
            raise ValueError(f"invalid byte range [{start}, {end})")
        super().__init__()
        self._fh = open(path, "rb")
        self._fh.seek(start)
        self.start = start
        self.end = end
        self._remaining = end - start

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        data = self._fh.read(size)
        self._remaining -= len(data)
        return data

    def readinto(self, b) -> int:
        data = self.read(len(b))
        b[:len(data)] = data
        return len(data)

    def close(self) -> None:
        fh = getattr(self, "_fh", None)
        if fh is not None and not self.closed:
            fh.close()
        super().close()
