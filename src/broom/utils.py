"""Shared filesystem helpers."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from broom.core.safety import is_protected_path
from broom.models.scan_result import CleanableItem

log = logging.getLogger(__name__)

# Depth limit for the pure-Python size walk.  Deeper content is not
# counted, so sizes of pathological trees are under-reported.
MAX_WALK_DEPTH = 5

_FIND_TIMEOUT = 60


def has_command(name: str) -> bool:
    """Check if a command exists on the system."""
    try:
        subprocess.run(["which", name], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def home_dir() -> Path:
    return Path.home()


def xdg_cache_home() -> Path:
    """Return XDG_CACHE_HOME, defaulting to ~/.cache."""
    return Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def xdg_data_home() -> Path:
    """Return XDG_DATA_HOME, defaulting to ~/.local/share."""
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def xdg_state_home() -> Path:
    """Return XDG_STATE_HOME, defaulting to ~/.local/state."""
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the home directory."""
    return Path(os.path.expanduser(str(path)))


def make_item(path: Path, name: str | None = None) -> CleanableItem | None:
    """Stat *path* and build a CleanableItem, or None if it is gone.

    Symlinks are described by the link itself, never by their target.
    """
    if not os.path.lexists(path):
        return None
    st = path.lstat()
    is_dir = path.is_dir() and not path.is_symlink()
    size = dir_size(path) if is_dir else st.st_size
    return CleanableItem(
        path=path,
        name=name or path.name,
        size=size,
        is_directory=is_dir,
        modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
    )


def remove_items(
    items: Iterable[CleanableItem],
    *,
    dry_run: bool = False,
    on_removed: Callable[[CleanableItem], None] | None = None,
    cancel: threading.Event | None = None,
) -> tuple[int, int, list[str], list[Path]]:
    """Remove items one at a time and return (freed, removed, errors, skipped).

    A failure on one item never stops the others.  Protected paths are
    refused and reported in both *errors* and *skipped*.  In dry-run mode
    nothing is touched and every non-protected item counts as removed.
    """
    items = list(items)
    freed = 0
    removed = 0
    errors: list[str] = []
    skipped: list[Path] = []

    for index, item in enumerate(items):
        if cancel is not None and cancel.is_set():
            errors.append(f"Cancelled: {len(items) - index} item(s) not processed")
            break

        if is_protected_path(item.path):
            errors.append(f"{item.path}: refusing to remove protected path")
            skipped.append(item.path)
            continue

        if dry_run:
            freed += item.size
            removed += 1
            continue

        if not os.path.lexists(item.path):
            errors.append(f"{item.path}: no longer exists")
            continue

        try:
            if item.path.is_symlink() or not item.path.is_dir():
                item.path.unlink()
            else:
                shutil.rmtree(item.path)
        except OSError as e:
            errors.append(f"{item.path}: {e.strerror or e}")
            continue

        freed += item.size
        removed += 1
        log.debug("Removed %s (%d bytes)", item.path, item.size)
        if on_removed:
            on_removed(item)

    return freed, removed, errors, skipped


def dir_info(path: Path | str) -> tuple[int, int]:
    """Calculate total size and file count of a directory tree.

    Uses GNU ``find`` (C-speed walk) when available, falling back to
    ``os.scandir`` on systems without it.

    Returns:
        (total_bytes, file_count) tuple.
    """
    try:
        return _dir_info_find(str(path))
    except (OSError, ValueError, subprocess.SubprocessError):
        return _dir_info_scandir(path)


def _dir_info_find(path_str: str) -> tuple[int, int]:
    """Walk a directory tree using GNU find (pure C, no Python per-file overhead)."""
    proc = subprocess.run(
        ["find", path_str, "-type", "f", "-printf", "%s\n"],
        capture_output=True,
        timeout=_FIND_TIMEOUT,
    )
    if proc.returncode != 0 and not proc.stdout:
        raise subprocess.SubprocessError(proc.stderr.decode(errors="replace").strip())
    total = count = 0
    for line in proc.stdout.split(b"\n"):
        if line:
            total += int(line)
            count += 1
    return total, count


def _dir_info_scandir(path: Path | str, max_depth: int = MAX_WALK_DEPTH) -> tuple[int, int]:
    """Walk a directory tree using os.scandir, at most *max_depth* levels deep."""
    total = 0
    count = 0
    stack: list[tuple[Path | str, int]] = [(path, 0)]
    while stack:
        current, depth = stack.pop()
        try:
            with os.scandir(current) as it:
                for entry in it:
                    try:
                        if entry.is_file(follow_symlinks=False):
                            total += entry.stat(follow_symlinks=False).st_size
                            count += 1
                        elif entry.is_dir(follow_symlinks=False) and depth < max_depth:
                            stack.append((entry.path, depth + 1))
                    except OSError:
                        log.debug("Cannot stat: %s", entry.path)
        except OSError:
            log.debug("Cannot read directory: %s", current)
    return total, count


def dir_size(path: Path) -> int:
    """Calculate total size of a directory tree."""
    return dir_info(path)[0]


def bytes_to_human(size_bytes: int) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return f"-{bytes_to_human(-size_bytes)}"
    if size_bytes == 0:
        return "0 B"

    units = ("B", "KB", "MB", "GB", "TB")
    value = float(size_bytes)
    for unit in units[:-1]:
        if abs(value) < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} {units[-1]}"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    secs = seconds - minutes * 60
    return f"{minutes}m {secs:.0f}s"
