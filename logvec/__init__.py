"""logvec - Compare captured journals by hashed message vectors."""

__version__ = "0.1.0"

from .errors import ConfigError, DimensionMismatchError, LogVecError, MissingFieldError, ParseError
from .config import AnalysisConfig, EmbedderConfig, ParserConfig, TokenizerConfig, load_config
from .journal import FieldKind, FieldValue, LogEntry, StreamParser, parse
from .semantic import (
    NO_SIGNAL,
    Aggregator,
    aggregate,
    compare_entry_to_group,
    compare_groups,
    cosine,
    embed,
    merge,
    tokenize,
)
from .pipeline import analyze, analyze_path, compare_runs, divergent_entries

__all__ = [
    "__version__",
    "LogVecError",
    "ParseError",
    "MissingFieldError",
    "DimensionMismatchError",
    "ConfigError",
    "AnalysisConfig",
    "ParserConfig",
    "TokenizerConfig",
    "EmbedderConfig",
    "load_config",
    "FieldKind",
    "FieldValue",
    "LogEntry",
    "StreamParser",
    "parse",
    "tokenize",
    "embed",
    "Aggregator",
    "aggregate",
    "merge",
    "cosine",
    "NO_SIGNAL",
    "compare_groups",
    "compare_entry_to_group",
    "analyze",
    "analyze_path",
    "compare_runs",
    "divergent_entries",
]
