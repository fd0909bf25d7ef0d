"""Configuration system for proctop."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from proctop.counters import DEFAULT_PAGE_SIZE, DEFAULT_PROC_ROOT

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class SamplingConfig:
    """Sampling loop configuration."""

    refresh_interval: float = 2.0  # Seconds between ticks
    input_poll_timeout: float = 0.1  # Max seconds to block waiting for input
    page_size: int = DEFAULT_PAGE_SIZE  # Bytes per resident page, not auto-detected
    proc_root: str = DEFAULT_PROC_ROOT


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 1024 * 1024  # Rotate after 1MB
    backup_count: int = 2


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "proctop"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "proctop"

    @property
    def log_path(self) -> Path:
        """Log file path.

        The TUI owns the terminal, so all log output goes here.
        """
        return self.state_dir / "proctop.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampling", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        sampling = data.get("sampling", {})
        logging = data.get("logging", {})
        for name, section in (("sampling", sampling), ("logging", logging)):
            if not isinstance(section, Mapping):
                raise ValueError(f"[{name}] must be a table in {path}")

        return cls(
            sampling=_load_sampling_config(sampling),
            logging=_load_logging_config(logging),
        )


def _read_int(data: dict, key: str, default: int) -> int:
    """Read an integer setting, rejecting floats, bools and strings."""
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return int(value)


def _read_float(data: dict, key: str, default: float) -> float:
    """Read a numeric setting; integers are accepted."""
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {value!r}")
    return float(value)


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, using dataclass defaults for missing fields."""
    defaults = SamplingConfig()

    refresh_interval = _read_float(data, "refresh_interval", defaults.refresh_interval)
    input_poll_timeout = _read_float(data, "input_poll_timeout", defaults.input_poll_timeout)
    page_size = _read_int(data, "page_size", defaults.page_size)

    if refresh_interval <= 0:
        raise ValueError(f"refresh_interval must be > 0, got {refresh_interval}")
    if input_poll_timeout <= 0:
        raise ValueError(f"input_poll_timeout must be > 0, got {input_poll_timeout}")
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")

    return SamplingConfig(
        refresh_interval=refresh_interval,
        input_poll_timeout=input_poll_timeout,
        page_size=page_size,
        proc_root=str(data.get("proc_root", defaults.proc_root)),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data, using dataclass defaults for missing fields."""
    defaults = LoggingConfig()

    level = str(data.get("level", defaults.level)).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {VALID_LOG_LEVELS}")

    max_bytes = _read_int(data, "max_bytes", defaults.max_bytes)
    backup_count = _read_int(data, "backup_count", defaults.backup_count)
    if max_bytes <= 0:
        raise ValueError(f"max_bytes must be > 0, got {max_bytes}")
    if backup_count < 0:
        raise ValueError(f"backup_count must be >= 0, got {backup_count}")

    return LoggingConfig(level=level, max_bytes=max_bytes, backup_count=backup_count)
