from __future__ import annotations
from pathlib import Path

from rgeana.errors import ConfigurationError
from .schemas import Config

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310


def load_config(path: str | Path) -> Config:
    """
    Parse and validate a run config.

    Missing files raise FileNotFoundError, TOML syntax errors raise
    ConfigurationError naming the file, and schema violations raise
    pydantic.ValidationError.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Config file not found: {p}")
    try:
        data = tomllib.loads(p.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Couldn't parse config {p}: {exc}") from exc
    return Config(**data)


def snapshot_config_toml(path: str | Path | None) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata ('' if no file)."""
    if path is None:
        return ""
    return Path(path).read_text()
