"""User configuration.

The configuration lives in two files under ``$XDG_CONFIG_HOME/broom``:
``config.json`` for settings and ``whitelist`` with one protected path
prefix per line (``#`` starts a comment).  A loaded ``Config`` is a plain
value that callers pass explicitly to the engine and the filter.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from broom.models.category import SAFETY_LEVELS
from broom.utils import xdg_config_home

log = logging.getLogger(__name__)

_CONFIG_DIR = "broom"
_CONFIG_FILE = "config.json"
_WHITELIST_FILE = "whitelist"

_WHITELIST_HEADER = "# Broom whitelist\n# One path per line; ~ expands to the home directory.\n\n"


@dataclass(frozen=True)
class Config:
    """Settings consumed by the scan and filter stages."""

    whitelist: tuple[str, ...] = ()
    blacklist: tuple[str, ...] = ()
    safety_level: str = "moderate"
    concurrency: int = 4
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.safety_level not in SAFETY_LEVELS:
            raise ValueError(f"Invalid safety level: {self.safety_level!r}")
        if self.concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {self.concurrency}")

    @property
    def include_risky(self) -> bool:
        """Whether risky categories proceed without an explicit opt-in."""
        return self.safety_level == "risky"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("whitelist")
        data["blacklist"] = list(self.blacklist)
        return data


def config_dir() -> Path:
    return xdg_config_home() / _CONFIG_DIR


def config_path() -> Path:
    return config_dir() / _CONFIG_FILE


def whitelist_path() -> Path:
    return config_dir() / _WHITELIST_FILE


def parse_whitelist(text: str) -> tuple[str, ...]:
    """Parse whitelist file contents, ignoring blanks and comments."""
    entries = (line.strip() for line in text.splitlines())
    return tuple(line for line in entries if line and not line.startswith("#"))


def _string_list(settings: dict[str, Any], key: str, source: Path) -> tuple[str, ...]:
    """Read *key* as a list of strings, or an empty tuple if it is anything else."""
    value = settings.get(key, ())
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    log.warning("Ignoring %r in %s: expected a list of strings", key, source)
    return ()


def load_config(directory: Path | None = None) -> Config:
    """Load configuration from disk, falling back to defaults.

    Missing files are not an error.  Unreadable or invalid files are
    logged and ignored.
    """
    directory = directory or config_dir()
    settings: dict[str, Any] = {}

    settings_file = directory / _CONFIG_FILE
    if settings_file.exists():
        try:
            raw = json.loads(settings_file.read_text(encoding="utf-8"))
            if isinstance(raw, dict):
                settings = raw
            else:
                log.warning("Ignoring %s: expected a JSON object", settings_file)
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load config from %s: %s", settings_file, e)

    whitelist = _string_list(settings, "whitelist", settings_file)
    list_file = directory / _WHITELIST_FILE
    if list_file.exists():
        try:
            whitelist = parse_whitelist(list_file.read_text(encoding="utf-8"))
        except OSError as e:
            log.warning("Could not read whitelist %s: %s", list_file, e)

    try:
        return Config(
            whitelist=whitelist,
            blacklist=_string_list(settings, "blacklist", settings_file),
            safety_level=settings.get("safetyLevel", settings.get("safety_level", "moderate")),
            concurrency=int(settings.get("concurrency", 4)),
            dry_run=bool(settings.get("dryRun", settings.get("dry_run", False))),
        )
    except (TypeError, ValueError) as e:
        log.warning("Invalid configuration in %s, using defaults: %s", directory, e)
        return Config(whitelist=whitelist)


def save_config(config: Config, directory: Path | None = None) -> None:
    """Write settings and the whitelist file.

    An empty whitelist removes the whitelist file.
    """
    directory = directory or config_dir()
    directory.mkdir(parents=True, exist_ok=True)

    settings_file = directory / _CONFIG_FILE
    settings_file.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")

    list_file = directory / _WHITELIST_FILE
    if config.whitelist:
        list_file.write_text(_WHITELIST_HEADER + "\n".join(config.whitelist) + "\n", encoding="utf-8")
    else:
        list_file.unlink(missing_ok=True)


def add_to_whitelist(config: Config, path: str) -> Config:
    """Return *config* with *path* appended to the whitelist."""
    if path in config.whitelist:
        return config
    return replace(config, whitelist=(*config.whitelist, path))


def remove_from_whitelist(config: Config, path: str) -> Config:
    """Return *config* without *path* in the whitelist."""
    return replace(config, whitelist=tuple(p for p in config.whitelist if p != path))
