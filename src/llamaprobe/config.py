"""Config file loading, resolution, and the scan settings object."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from llamaprobe.errors import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "llamaprobe" / "config.toml"

_CPUS = os.cpu_count() or 1

SERVICE_CHECK_MODES = ("marker", "catalog")

DEFAULTS: dict[str, Any] = {
    "port": 11434,
    "input_file": "ip.txt",
    "output_file": "results.csv",
    "targets_file": None,
    "bandwidth": "30M",
    "rate": 10000,
    "timeout": 3.0,
    "idle_conn_timeout": 90.0,
    "max_workers": _CPUS * 10,
    "max_idle_conns": _CPUS * 2,
    "disable_bench": False,
    "bench_prompt": "Introduce yourself in one sentence.",
    "bench_timeout": 30.0,
    "service_check": "marker",
    "sort_by_size": False,
    "port_scan_only": False,
    "deadline": None,
}


_KINDS: dict[str, type] = {
    "port": int,
    "rate": int,
    "max_workers": int,
    "max_idle_conns": int,
    "timeout": float,
    "idle_conn_timeout": float,
    "bench_timeout": float,
    "deadline": float,
    "bandwidth": str,
    "bench_prompt": str,
    "service_check": str,
    "disable_bench": bool,
    "sort_by_size": bool,
    "port_scan_only": bool,
    "input_file": Path,
    "output_file": Path,
    "targets_file": Path,
}


def _coerce(key: str, value: Any) -> Any:
    """Convert a resolved value to the setting's type, or raise ConfigError."""
    kind = _KINDS[key]
    if value is None or (isinstance(value, kind) and not (kind is int and isinstance(value, bool))):
        return value
    if kind in (int, float) and not isinstance(value, bool):
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = None
        if number is not None and (kind is float or number.is_integer()):
            return kind(number)
    elif kind is Path and isinstance(value, str):
        return Path(value)
    raise ConfigError(f"{key} must be {kind.__name__}, got {value!r}")


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load config from TOML file. Returns empty dict if file doesn't exist."""
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e


def resolve(cli_value: Any, config_value: Any, default: Any) -> Any:
    """Resolve a setting with precedence: CLI flag > config file > default."""
    if cli_value is not None:
        return cli_value
    if config_value is not None:
        return config_value
    return default


@dataclass
class ScanConfig:
    """Everything a scan needs, built once and handed to each component."""

    port: int = DEFAULTS["port"]
    input_file: Path = Path(DEFAULTS["input_file"])
    output_file: Path = Path(DEFAULTS["output_file"])
    targets_file: Path | None = None  # address ranges for the sweep; None skips it
    bandwidth: str = DEFAULTS["bandwidth"]
    rate: int = DEFAULTS["rate"]
    timeout: float = DEFAULTS["timeout"]
    idle_conn_timeout: float = DEFAULTS["idle_conn_timeout"]
    max_workers: int = DEFAULTS["max_workers"]
    max_idle_conns: int = DEFAULTS["max_idle_conns"]
    disable_bench: bool = DEFAULTS["disable_bench"]
    bench_prompt: str = DEFAULTS["bench_prompt"]
    bench_timeout: float = DEFAULTS["bench_timeout"]
    service_check: str = DEFAULTS["service_check"]
    sort_by_size: bool = DEFAULTS["sort_by_size"]
    port_scan_only: bool = DEFAULTS["port_scan_only"]
    deadline: float | None = None

    @classmethod
    def from_sources(cls, cli: dict[str, Any], cfg: dict[str, Any]) -> "ScanConfig":
        """Merge CLI values and config-file values over DEFAULTS."""
        return cls(**{
            key: _coerce(key, resolve(cli.get(key), cfg.get(key), default))
            for key, default in DEFAULTS.items()
        })

    def validate(self) -> None:
        """Raise ConfigError on the first invalid setting."""
        if not 0 < self.port <= 65535:
            raise ConfigError(f"invalid port number: {self.port}")
        if not str(self.input_file) or not str(self.output_file):
            raise ConfigError("input or output file path cannot be empty")
        if self.input_file == self.output_file:
            raise ConfigError("input and output files must differ")
        if self.port_scan_only and self.targets_file is None:
            raise ConfigError("port_scan_only needs a targets file to sweep")
        if self.rate <= 0:
            raise ConfigError("scan rate must be greater than 0")
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")
        if self.max_idle_conns < 0:
            raise ConfigError("max_idle_conns cannot be negative")
        for name in ("timeout", "bench_timeout", "idle_conn_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be greater than 0")
        if self.deadline is not None and self.deadline <= 0:
            raise ConfigError("deadline must be greater than 0")
        if not self.disable_bench and not self.bench_prompt.strip():
            raise ConfigError("benchmark prompt cannot be empty when benchmarking is enabled")
        if self.service_check not in SERVICE_CHECK_MODES:
            raise ConfigError(
                f"unknown service_check '{self.service_check}'. Options: {', '.join(SERVICE_CHECK_MODES)}"
            )
