"""Shared fixtures for building journal export streams."""

import pytest


class JournalBuilder:
    """Builds export-format bytes field by field."""

    @staticmethod
    def text(name: str, value: str) -> bytes:
        return f"{name}={value}\n".encode("utf-8")

    @staticmethod
    def binary(name: str, payload: bytes) -> bytes:
        return name.encode("ascii") + b"\n" + len(payload).to_bytes(8, "little") + payload + b"\n"

    @staticmethod
    def record(*fields: bytes) -> bytes:
        return b"".join(fields) + b"\n"

    @classmethod
    def entry(cls, ident: str, message: str, **extra: str) -> bytes:
        fields = [cls.text("SYSLOG_IDENTIFIER", ident), cls.text("MESSAGE", message)]
        fields.extend(cls.text(name, value) for name, value in extra.items())
        return cls.record(*fields)

    @classmethod
    def run(cls, groups) -> bytes:
        """``groups`` is a list of ``(ident, message, repeat)``."""
        return b"".join(cls.entry(ident, message) for ident, message, repeat in groups
                        for _ in range(repeat))


@pytest.fixture
def journal():
    return JournalBuilder


@pytest.fixture
def write_journal(tmp_path):
    """Write bytes to a file under tmp_path and return its path."""
    def _write(data: bytes, name: str = "journal.export"):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write

