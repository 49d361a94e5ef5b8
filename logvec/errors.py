"""
Error types for logvec.

Every error carries enough context (byte offset, entry index or group key)
to locate its cause without re-running the analysis.
"""

from typing import Optional, Any, Dict


class LogVecError(Exception):
    """
    Base exception for all logvec errors.

    Provides a ``details`` mapping for structured error reporting.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize error.

        Args:
            message: Error message
            details: Optional detailed error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ParseError(LogVecError):
    """
    Raised when the export stream is malformed or truncated.

    Fatal for the current stream unless the parser skips bad records.
    """

    def __init__(self, reason: str,
                 byte_offset: int,
                 entry_index: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize parse error.

        Args:
            reason: What was wrong with the input
            byte_offset: Absolute offset in the stream where the problem starts
            entry_index: Index the record would have had, if known
            details: Additional error context
        """
        super().__init__(f"{reason} (at byte {byte_offset})", details)
        self.reason = reason
        self.byte_offset = byte_offset
        self.entry_index = entry_index

        self.details.update({
            'reason': reason,
            'byte_offset': byte_offset,
            'entry_index': entry_index,
        })


class MissingFieldError(LogVecError):
    """Raised when an entry lacks a required field (e.g. the message field)."""

    def __init__(self, field: str,
                 entry_index: Optional[int] = None,
                 byte_offset: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        location = ""
        if entry_index is not None:
            location = f" in entry {entry_index}"
        super().__init__(f"Missing field {field!r}{location}", details)
        self.field = field
        self.entry_index = entry_index
        self.byte_offset = byte_offset

        self.details.update({
            'field': field,
            'entry_index': entry_index,
            'byte_offset': byte_offset,
        })


class DimensionMismatchError(LogVecError):
    """
    Raised when vectors of differing dimension meet.

    This is a configuration inconsistency between pipeline stages; vectors are
    never padded or truncated to make them fit.
    """

    def __init__(self, expected: int, actual: int,
                 group_key: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        message = f"Dimension mismatch: expected {expected}, got {actual}"
        if group_key is not None:
            message += f" for group {group_key!r}"
        super().__init__(message, details)
        self.expected = expected
        self.actual = actual
        self.group_key = group_key

        self.details.update({
            'expected': expected,
            'actual': actual,
            'group_key': group_key,
        })


class ConfigError(LogVecError, ValueError):
    """Raised for invalid configuration values."""

    def __init__(self, message: str, option: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.option = option
        self.details.update({'option': option})
