"""
Configuration system for logvec.

Every stage of the pipeline is configured through a dataclass. Configurations
validate themselves on construction, round-trip through plain dictionaries and
load from YAML files with environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Union

import yaml

from .errors import ConfigError

DEFAULT_DIMENSION = 128
DEFAULT_SEED = 0x10C5EED

_NORMALIZATION_FORMS = (None, "NFC", "NFKC", "NFD", "NFKD")
_ERROR_POLICIES = ("raise", "skip")


@dataclass
class ParserConfig:
    """
    Limits and error policy for the export stream parser.

    ``None`` disables a limit.
    """

    max_field_name_len: Optional[int] = 128
    max_field_value_size: Optional[int] = 16 * 1024 * 1024  # 16 MiB
    max_entry_size: Optional[int] = 64 * 1024 * 1024  # 64 MiB
    # "raise" aborts the stream on the first bad record, "skip" drops it
    on_error: str = "raise"
    max_remembered_errors: int = 32

    def __post_init__(self):
        for name in ("max_field_name_len", "max_field_value_size", "max_entry_size"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigError(f"{name} must be positive or None, got {value}", name)
        if self.on_error not in _ERROR_POLICIES:
            raise ConfigError(f"on_error must be one of {_ERROR_POLICIES}, got {self.on_error!r}", "on_error")
        if self.max_remembered_errors < 0:
            raise ConfigError("max_remembered_errors must be >= 0", "max_remembered_errors")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_field_name_len": self.max_field_name_len,
            "max_field_value_size": self.max_field_value_size,
            "max_entry_size": self.max_entry_size,
            "on_error": self.on_error,
            "max_remembered_errors": self.max_remembered_errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParserConfig":
        return cls(**_known_keys(cls, data))


@dataclass
class TokenizerConfig:
    """
    Controls how a message is split into tokens.

    - lowercase: case-fold tokens so "Error" and "error" embed identically
    - min_token_length: drop tokens shorter than this
    - stop_tokens: drop these tokens entirely (compared after case folding)
    - unicode_normalization: normalization form applied before splitting
    """

    message_field: str = "MESSAGE"
    lowercase: bool = True
    min_token_length: int = 1
    stop_tokens: FrozenSet[str] = field(default_factory=frozenset)
    unicode_normalization: Optional[str] = None

    def __post_init__(self):
        if not self.message_field:
            raise ConfigError("message_field must not be empty", "message_field")
        if self.min_token_length < 1:
            raise ConfigError(f"min_token_length must be >= 1, got {self.min_token_length}", "min_token_length")
        if self.unicode_normalization not in _NORMALIZATION_FORMS:
            raise ConfigError(
                f"unicode_normalization must be one of {_NORMALIZATION_FORMS}, got {self.unicode_normalization!r}",
                "unicode_normalization")
        self.stop_tokens = frozenset(self.stop_tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_field": self.message_field,
            "lowercase": self.lowercase,
            "min_token_length": self.min_token_length,
            "stop_tokens": sorted(self.stop_tokens),
            "unicode_normalization": self.unicode_normalization,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenizerConfig":
        values = _known_keys(cls, data)
        if "stop_tokens" in values:
            values["stop_tokens"] = frozenset(values["stop_tokens"] or ())
        return cls(**values)


@dataclass
class EmbedderConfig:
    """
    Parameters of the hashing embedder.

    Vectors are only comparable when produced with identical dimension, k and
    seed.
    """

    dimension: int = DEFAULT_DIMENSION
    k: int = 1  # dimensions activated per token
    seed: int = DEFAULT_SEED
    # Vocabulary size used to warn about a dimension that is too small
    expected_vocabulary: Optional[int] = None

    def __post_init__(self):
        if self.dimension < 1:
            raise ConfigError(f"dimension must be >= 1, got {self.dimension}", "dimension")
        if not (1 <= self.k <= self.dimension):
            raise ConfigError(f"k must be between 1 and dimension ({self.dimension}), got {self.k}", "k")
        if self.seed < 0:
            raise ConfigError(f"seed must be non-negative, got {self.seed}", "seed")
        if self.expected_vocabulary is not None and self.expected_vocabulary < 0:
            raise ConfigError("expected_vocabulary must be non-negative", "expected_vocabulary")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension,
            "k": self.k,
            "seed": self.seed,
            "expected_vocabulary": self.expected_vocabulary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbedderConfig":
        return cls(**_known_keys(cls, data))


@dataclass
class AnalysisConfig:
    """Configuration for a complete analysis run."""

    parser: ParserConfig = field(default_factory=ParserConfig)
    tokenizer: TokenizerConfig = field(default_factory=TokenizerConfig)
    embedder: EmbedderConfig = field(default_factory=EmbedderConfig)

    # Field whose value names an entry's group
    group_field: str = "SYSLOG_IDENTIFIER"
    # Group for entries lacking group_field; None skips such entries
    missing_group_key: Optional[str] = None

    max_workers: Optional[int] = None
    normalize_entry_comparison: bool = False
    top_entries: int = 10

    def __post_init__(self):
        if not self.group_field:
            raise ConfigError("group_field must not be empty", "group_field")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}", "max_workers")
        if self.top_entries < 1:
            raise ConfigError(f"top_entries must be >= 1, got {self.top_entries}", "top_entries")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parser": self.parser.to_dict(),
            "tokenizer": self.tokenizer.to_dict(),
            "embedder": self.embedder.to_dict(),
            "group_field": self.group_field,
            "missing_group_key": self.missing_group_key,
            "max_workers": self.max_workers,
            "normalize_entry_comparison": self.normalize_entry_comparison,
            "top_entries": self.top_entries,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        values = _known_keys(cls, data)
        values["parser"] = ParserConfig.from_dict(data.get("parser") or {})
        values["tokenizer"] = TokenizerConfig.from_dict(data.get("tokenizer") or {})
        values["embedder"] = EmbedderConfig.from_dict(data.get("embedder") or {})
        return cls(**values)


def _known_keys(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the keys of ``data`` that name fields of dataclass ``cls``."""
    if not isinstance(data, dict):
        raise ConfigError(f"{cls.__name__} section must be a mapping, got {type(data).__name__}")
    names = cls.__dataclass_fields__.keys()
    return {key: value for key, value in data.items() if key in names}


# --- files and environment ---

CONFIG_ENV_VAR = "LOGVEC_CONFIG"
DEFAULT_CONFIG_NAME = ".logvec.yml"

ENV_OVERRIDES = {
    "LOGVEC_DIMENSION": (("embedder", "dimension"), int),
    "LOGVEC_K": (("embedder", "k"), int),
    "LOGVEC_SEED": (("embedder", "seed"), lambda v: int(v, 0)),
    "LOGVEC_MESSAGE_FIELD": (("tokenizer", "message_field"), str),
    "LOGVEC_GROUP_FIELD": (("group_field",), str),
    "LOGVEC_ON_ERROR": (("parser", "on_error"), str),
    "LOGVEC_MAX_WORKERS": (("max_workers",), int),
}


def default_config_path() -> Path:
    """Config in the current directory wins over the one in the home directory."""
    local = Path(DEFAULT_CONFIG_NAME)
    if local.exists():
        return local
    return Path.home() / DEFAULT_CONFIG_NAME


def load_config_file(path: Union[str, Path]) -> AnalysisConfig:
    """Load configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return AnalysisConfig.from_dict(data or {})


def apply_environment_overrides(config: AnalysisConfig,
                                environ: Optional[Dict[str, str]] = None) -> AnalysisConfig:
    """Return a copy of ``config`` with ``LOGVEC_*`` variables applied."""
    environ = os.environ if environ is None else environ
    data = config.to_dict()
    changed = False

    for env_var, (path, convert) in ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid environment variable {env_var}={raw}: {e}", env_var)
        target = data
        for part in path[:-1]:
            target = target[part]
        target[path[-1]] = value
        changed = True

    return AnalysisConfig.from_dict(data) if changed else config


def load_config(path: Optional[Union[str, Path]] = None,
                environ: Optional[Dict[str, str]] = None) -> AnalysisConfig:
    """
    Load configuration from file or return defaults.

    Lookup order: explicit ``path``, ``$LOGVEC_CONFIG``, ``./.logvec.yml``,
    ``~/.logvec.yml``. Environment overrides are applied last.

    Args:
        path: Optional path to a configuration file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        AnalysisConfig instance
    """
    environ = os.environ if environ is None else environ

    if path is not None:
        config = load_config_file(path)
    elif environ.get(CONFIG_ENV_VAR):
        config = load_config_file(environ[CONFIG_ENV_VAR])
    else:
        candidate = default_config_path()
        config = load_config_file(candidate) if candidate.exists() else AnalysisConfig()

    return apply_environment_overrides(config, environ)


def save_config(config: AnalysisConfig, path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
