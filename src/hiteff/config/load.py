from __future__ import annotations
from .schemas import Config
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path | None = None) -> Config:
    """Load a TOML config; with no path, every section takes its defaults."""
    if path is None:
        return Config()
    p = Path(path)
    data = tomllib.loads(p.read_text())
    return Config(**data)
