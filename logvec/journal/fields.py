"""Field values, log entries and the known journal field vocabulary.

See: systemd.journal-fields(7) for the meaning of the known names.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional, Tuple


class FieldKind(Enum):
    """Which of the two wire encodings a field value used."""

    TEXT = "text"
    BINARY = "binary"


@dataclass(frozen=True)
class FieldValue:
    """
    Tagged field value: either a text value or an opaque binary payload.

    The raw bytes are kept exactly as they appeared on the wire so that an
    entry can be re-encoded byte for byte.
    """

    kind: FieldKind
    raw: bytes

    @classmethod
    def text(cls, value: str) -> "FieldValue":
        """Build a text value; it must not contain a raw newline."""
        data = value.encode("utf-8")
        if b"\n" in data:
            raise ValueError("text field values cannot contain newlines; use FieldValue.binary")
        return cls(FieldKind.TEXT, data)

    @classmethod
    def binary(cls, payload: bytes) -> "FieldValue":
        return cls(FieldKind.BINARY, bytes(payload))

    @property
    def is_binary(self) -> bool:
        return self.kind is FieldKind.BINARY

    def as_text(self) -> str:
        """Decode the value as UTF-8, replacing undecodable bytes."""
        return self.raw.decode("utf-8", errors="replace")

    def __len__(self) -> int:
        return len(self.raw)


class LogEntry(Mapping):
    """
    Immutable ordered mapping from field name to :class:`FieldValue`.

    Field names are unique within one entry. ``offset`` is the absolute byte
    offset of the record in its stream and ``index`` its ordinal among the
    parsed entries; both are None for entries built by hand.
    """

    __slots__ = ("_fields", "offset", "index")

    def __init__(self, fields: Iterable[Tuple[str, FieldValue]] = (),
                 offset: Optional[int] = None, index: Optional[int] = None):
        ordered: Dict[str, FieldValue] = {}
        for name, value in fields:
            if name in ordered:
                raise ValueError(f"duplicate field name {name!r}")
            if not isinstance(value, FieldValue):
                raise TypeError(f"field {name!r} must be a FieldValue, got {type(value).__name__}")
            ordered[name] = value
        object.__setattr__(self, "_fields", ordered)
        object.__setattr__(self, "offset", offset)
        object.__setattr__(self, "index", index)

    def __setattr__(self, name, value):
        raise AttributeError("LogEntry is immutable")

    def __getitem__(self, name: str) -> FieldValue:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other) -> bool:
        # Position in a stream is not part of an entry's identity.
        if isinstance(other, LogEntry):
            return list(self._fields.items()) == list(other._fields.items())
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        names = ", ".join(self._fields)
        return f"LogEntry(index={self.index}, offset={self.offset}, fields=[{names}])"

    @classmethod
    def from_text(cls, **fields: str) -> "LogEntry":
        """Convenience constructor for entries made only of text fields."""
        return cls((name, FieldValue.text(value)) for name, value in fields.items())

    def get_text(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self._fields.get(name)
        if value is None:
            return default
        return value.as_text()

    @property
    def realtime_timestamp(self) -> Optional[int]:
        """``__REALTIME_TIMESTAMP`` in microseconds, or None if absent/invalid."""
        raw = self.get_text(KnownField.REALTIME_TIMESTAMP.value)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    @property
    def cursor(self) -> Optional[str]:
        return self.get_text(KnownField.CURSOR.value)


class KnownField(Enum):
    """Field names defined by the systemd journal."""

    # User journal fields
    MESSAGE = "MESSAGE"
    MESSAGE_ID = "MESSAGE_ID"
    PRIORITY = "PRIORITY"
    CODE_FILE = "CODE_FILE"
    CODE_LINE = "CODE_LINE"
    CODE_FUNC = "CODE_FUNC"
    ERRNO = "ERRNO"
    INVOCATION_ID = "INVOCATION_ID"
    USER_INVOCATION_ID = "USER_INVOCATION_ID"
    SYSLOG_FACILITY = "SYSLOG_FACILITY"
    SYSLOG_IDENTIFIER = "SYSLOG_IDENTIFIER"
    SYSLOG_PID = "SYSLOG_PID"
    SYSLOG_TIMESTAMP = "SYSLOG_TIMESTAMP"
    SYSLOG_RAW = "SYSLOG_RAW"
    DOCUMENTATION = "DOCUMENTATION"
    TID = "TID"
    UNIT = "UNIT"
    USER_UNIT = "USER_UNIT"

    # Trusted journal fields
    PID = "_PID"
    UID = "_UID"
    GID = "_GID"
    COMM = "_COMM"
    EXE = "_EXE"
    CMDLINE = "_CMDLINE"
    CAP_EFFECTIVE = "_CAP_EFFECTIVE"
    AUDIT_SESSION = "_AUDIT_SESSION"
    AUDIT_LOGINUID = "_AUDIT_LOGINUID"
    SYSTEMD_CGROUP = "_SYSTEMD_CGROUP"
    SYSTEMD_SLICE = "_SYSTEMD_SLICE"
    SYSTEMD_UNIT = "_SYSTEMD_UNIT"
    SYSTEMD_USER_UNIT = "_SYSTEMD_USER_UNIT"
    SYSTEMD_USER_SLICE = "_SYSTEMD_USER_SLICE"
    SYSTEMD_SESSION = "_SYSTEMD_SESSION"
    SYSTEMD_OWNER_UID = "_SYSTEMD_OWNER_UID"
    SELINUX_CONTEXT = "_SELINUX_CONTEXT"
    SOURCE_REALTIME_TIMESTAMP = "_SOURCE_REALTIME_TIMESTAMP"
    BOOT_ID = "_BOOT_ID"
    MACHINE_ID = "_MACHINE_ID"
    SYSTEMD_INVOCATION_ID = "_SYSTEMD_INVOCATION_ID"
    HOSTNAME = "_HOSTNAME"
    TRANSPORT = "_TRANSPORT"
    STREAM_ID = "_STREAM_ID"
    LINE_BREAK = "_LINE_BREAK"
    NAMESPACE = "_NAMESPACE"
    RUNTIME_SCOPE = "_RUNTIME_SCOPE"

    # Kernel journal fields
    KERNEL_DEVICE = "_KERNEL_DEVICE"
    KERNEL_SUBSYSTEM = "_KERNEL_SUBSYSTEM"
    UDEV_SYSNAME = "_UDEV_SYSNAME"
    UDEV_DEVNODE = "_UDEV_DEVNODE"
    UDEV_DEVLINK = "_UDEV_DEVLINK"

    # Fields to log on behalf of a different program
    COREDUMP_UNIT = "COREDUMP_UNIT"
    COREDUMP_USER_UNIT = "COREDUMP_USER_UNIT"
    OBJECT_PID = "OBJECT_PID"
    OBJECT_UID = "OBJECT_UID"
    OBJECT_GID = "OBJECT_GID"
    OBJECT_COMM = "OBJECT_COMM"
    OBJECT_EXE = "OBJECT_EXE"
    OBJECT_CMDLINE = "OBJECT_CMDLINE"
    OBJECT_AUDIT_SESSION = "OBJECT_AUDIT_SESSION"
    OBJECT_AUDIT_LOGINUID = "OBJECT_AUDIT_LOGINUID"
    OBJECT_SYSTEMD_CGROUP = "OBJECT_SYSTEMD_CGROUP"
    OBJECT_SYSTEMD_SESSION = "OBJECT_SYSTEMD_SESSION"
    OBJECT_SYSTEMD_OWNER_UID = "OBJECT_SYSTEMD_OWNER_UID"
    OBJECT_SYSTEMD_UNIT = "OBJECT_SYSTEMD_UNIT"
    OBJECT_SYSTEMD_USER_UNIT = "OBJECT_SYSTEMD_USER_UNIT"

    # Address fields added by the export format
    CURSOR = "__CURSOR"
    REALTIME_TIMESTAMP = "__REALTIME_TIMESTAMP"
    MONOTONIC_TIMESTAMP = "__MONOTONIC_TIMESTAMP"
    SEQNUM = "__SEQNUM"
    SEQNUM_ID = "__SEQNUM_ID"

    @classmethod
    def lookup(cls, name: str) -> Optional["KnownField"]:
        """Return the known field for ``name``, or None for application fields."""
        return _BY_NAME.get(name)

    @property
    def is_trusted(self) -> bool:
        """Trusted fields are prefixed with one underscore and set by journald."""
        return self.value.startswith("_") and not self.value.startswith("__")


_BY_NAME = {member.value: member for member in KnownField}
