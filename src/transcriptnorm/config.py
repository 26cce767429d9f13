"""Configuration loading and defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .table_writer import OUTPUT_FORMATS

_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "transcriptnorm"
_DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "config.yaml"
_DEFAULT_OUTPUT_NAME = "clean_transcripts"


@dataclass
class Config:
    calls_path: Path
    users_path: Path
    output_path: Path | None = None
    output_format: str = "jsonl"
    internal_domains: list[str] = field(default_factory=list)
    state_path: Path | None = None

    @property
    def resolved_output_path(self) -> Path:
        if self.output_path is not None:
            return self.output_path
        return self.calls_path.parent / f"{_DEFAULT_OUTPUT_NAME}.{self.output_format}"


def _as_path(value) -> Path:
    return Path(value).expanduser()


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML file, falling back to defaults where possible."""
    path = config_path or _DEFAULT_CONFIG_PATH
    path = Path(path).expanduser()

    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            f"Create one at {_DEFAULT_CONFIG_PATH} or pass --config.\n"
            f"See config.example.yaml for reference."
        )

    raw = yaml.safe_load(path.read_text())
    if not raw or not isinstance(raw, dict):
        raise ValueError(f"Invalid config file: {path}")

    for key in ("calls_path", "users_path"):
        if key not in raw:
            raise ValueError(f"'{key}' is required in config")

    kwargs: dict = {
        "calls_path": _as_path(raw["calls_path"]),
        "users_path": _as_path(raw["users_path"]),
    }
    if raw.get("output_path"):
        kwargs["output_path"] = _as_path(raw["output_path"])
    if raw.get("state_path"):
        kwargs["state_path"] = _as_path(raw["state_path"])

    if "output_format" in raw:
        output_format = str(raw["output_format"]).lower()
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"'output_format' must be one of {', '.join(OUTPUT_FORMATS)}, "
                f"got {raw['output_format']!r}"
            )
        kwargs["output_format"] = output_format

    domains = raw.get("internal_domains")
    if isinstance(domains, str):
        domains = [domains]
    if domains:
        if not isinstance(domains, list):
            raise ValueError("'internal_domains' must be a string or a list")
        kwargs["internal_domains"] = [str(d).strip().lstrip("@").lower() for d in domains]

    return Config(**kwargs)
