"""Duplicate file detection and resolution.

Detection runs in three steps: walk the tree collecting regular files of at
least ``min_size`` bytes, bucket them by exact size, and fingerprint only
the files whose size is shared with another file.  Files below 1 MiB get a
full content digest.  Larger files get ``"<size>:<digest of the first and
last 64 KiB>"``, so two equally sized large files that differ only in the
middle are reported as duplicates.  Run ``verify_group()`` (or pass
``verify=True`` to ``resolve_group()``) before acting on such a group.
"""

from __future__ import annotations

import enum
import errno
import hashlib
import logging
import os
import re
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator

from broom.core.safety import is_protected_path
from broom.models.category import Category
from broom.models.clean_result import CleanResult, DeletionRecord

log = logging.getLogger(__name__)

KIB = 1024
MIB = 1024 * KIB

DEFAULT_MIN_SIZE = MIB
FULL_HASH_LIMIT = MIB
PARTIAL_CHUNK = 64 * KIB
_READ_CHUNK = 64 * KIB

HASH_ALGORITHMS = ("sha256", "md5")

PARTIAL_MATCH_WARNING = (
    "Files of 1 MiB or more are matched by size plus the first and last 64 KiB only. "
    "Files that differ only in the middle will be reported as duplicates. "
    "Verify contents before deleting or hard-linking."
)

DUPLICATES_CATEGORY = Category(
    id="duplicates",
    name="Duplicate Files",
    group="Storage",
    description="Files with identical content",
    safety_level="risky",
    safety_note="Large files are matched on a partial fingerprint",
)

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(B|KB|MB|GB|K|M|G)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"B": 1, "K": KIB, "KB": KIB, "M": MIB, "MB": MIB, "G": 1024 * MIB, "GB": 1024 * MIB}


def parse_size(text: str) -> int:
    """Parse a size such as ``"500KB"``, ``"1MB"`` or ``"2gb"`` into bytes."""
    match = _SIZE_RE.match(text)
    if not match:
        raise ValueError(f"Invalid size format: {text}")
    value, unit = match.groups()
    return int(float(value) * _SIZE_UNITS[(unit or "B").upper()])


class DuplicateAction(enum.Enum):
    """What to do with one duplicate group."""

    KEEP_FIRST = "keep-first"
    KEEP_LAST = "keep-last"
    SKIP = "skip"
    HARDLINK = "hardlink"


@dataclass(frozen=True, slots=True)
class DuplicateFile:
    path: Path
    size: int
    modified_at: datetime | None = None
    device: int = 0
    inode: int = 0

    @property
    def file_id(self) -> tuple[int, int] | None:
        """(st_dev, st_ino) when known; hard links share it."""
        return (self.device, self.inode) if self.inode else None


@dataclass(slots=True)
class DuplicateGroup:
    """Files sharing one fingerprint, in lexicographic path order."""

    fingerprint: str
    size: int
    files: list[DuplicateFile] = field(default_factory=list)

    @property
    def paths(self) -> list[Path]:
        return [f.path for f in self.files]

    @property
    def wasted_space(self) -> int:
        """Bytes reclaimable by keeping a single copy."""
        return self.size * (len(self.files) - 1)

    @property
    def is_partial(self) -> bool:
        """Whether membership rests on a head/tail fingerprint only."""
        return self.size >= FULL_HASH_LIMIT


def _new_hash(algorithm: str):
    if algorithm not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    return hashlib.new(algorithm)


def full_hash(path: Path, algorithm: str = "sha256") -> str:
    """Digest of the whole file, read in chunks."""
    h = _new_hash(algorithm)
    with path.open("rb") as f:
        while chunk := f.read(_READ_CHUNK):
            h.update(chunk)
    return h.hexdigest()


def partial_hash(path: Path, size: int, algorithm: str = "sha256") -> str:
    """Digest of the first and last ``PARTIAL_CHUNK`` bytes."""
    h = _new_hash(algorithm)
    with path.open("rb") as f:
        h.update(f.read(PARTIAL_CHUNK))
        f.seek(max(size - PARTIAL_CHUNK, 0))
        h.update(f.read(PARTIAL_CHUNK))
    return h.hexdigest()


def file_fingerprint(path: Path, size: int, algorithm: str = "sha256") -> str:
    """Content fingerprint used to group candidate duplicates."""
    if size < FULL_HASH_LIMIT:
        return full_hash(path, algorithm)
    return f"{size}:{partial_hash(path, size, algorithm)}"


def as_mapping(groups: Iterable[DuplicateGroup]) -> dict[str, list[Path]]:
    """Fingerprint to paths, the shape reports and UIs consume."""
    return {g.fingerprint: g.paths for g in groups}


class DuplicateFinder:
    """Finds groups of files with identical content under one or more roots."""

    def __init__(
        self,
        min_size: int = DEFAULT_MIN_SIZE,
        algorithm: str = "sha256",
        workers: int = 4,
    ) -> None:
        if algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        if min_size < 0:
            raise ValueError(f"min_size must not be negative, got {min_size}")
        self.min_size = min_size
        self.algorithm = algorithm
        self.workers = workers

    def find(self, *roots: Path | str, cancel: threading.Event | None = None) -> list[DuplicateGroup]:
        """Return duplicate groups, largest reclaimable space first."""
        # Hard links to one inode count as a single copy, listed under its first path.
        by_id: dict[tuple[int, int], DuplicateFile] = {}
        unique: list[DuplicateFile] = []
        for dup in self.enumerate(*roots, cancel=cancel):
            file_id = dup.file_id
            if file_id is None:
                unique.append(dup)
            elif file_id not in by_id or str(dup.path) < str(by_id[file_id].path):
                by_id[file_id] = dup
        unique.extend(by_id.values())

        by_size: dict[int, list[DuplicateFile]] = {}
        for dup in unique:
            by_size.setdefault(dup.size, []).append(dup)
        count = len(unique)

        candidates = [f for files in by_size.values() if len(files) > 1 for f in files]
        log.info("Found %d files, %d share a size with another file", count, len(candidates))

        fingerprints = self._fingerprint_all(candidates, cancel)

        by_fingerprint: dict[str, list[DuplicateFile]] = {}
        for dup in candidates:
            fp = fingerprints.get(dup.path)
            if fp is not None:
                by_fingerprint.setdefault(fp, []).append(dup)

        groups = [
            DuplicateGroup(
                fingerprint=fp,
                size=files[0].size,
                files=sorted(files, key=lambda f: str(f.path)),
            )
            for fp, files in by_fingerprint.items()
            if len(files) > 1
        ]
        groups.sort(key=lambda g: (-g.wasted_space, g.fingerprint))
        log.info("Found %d duplicate groups", len(groups))
        return groups

    def enumerate(self, *roots: Path | str, cancel: threading.Event | None = None) -> Iterator[DuplicateFile]:
        """Yield regular files of at least ``min_size`` bytes.

        Hidden entries are skipped and symlinks are never followed.
        """
        seen_dirs: set[tuple[int, int]] = set()
        stack = [Path(root) for root in reversed(roots)]

        while stack:
            if cancel is not None and cancel.is_set():
                return
            current = stack.pop()
            try:
                st = current.stat()
            except OSError:
                log.debug("Cannot stat: %s", current)
                continue
            key = (st.st_dev, st.st_ino)
            if key in seen_dirs:
                continue
            seen_dirs.add(key)

            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError:
                log.debug("Cannot read directory: %s", current)
                continue

            subdirs: list[Path] = []
            for entry in entries:
                if entry.name.startswith("."):
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirs.append(Path(entry.path))
                    elif entry.is_file(follow_symlinks=False):
                        est = entry.stat(follow_symlinks=False)
                        if est.st_size >= self.min_size:
                            yield DuplicateFile(
                                path=Path(entry.path),
                                size=est.st_size,
                                modified_at=datetime.fromtimestamp(est.st_mtime, tz=timezone.utc),
                                device=est.st_dev,
                                inode=est.st_ino,
                            )
                except OSError:
                    log.debug("Cannot access: %s", entry.path)
            stack.extend(reversed(subdirs))

    def _fingerprint_all(
        self,
        files: list[DuplicateFile],
        cancel: threading.Event | None,
    ) -> dict[Path, str]:
        """Fingerprint *files* on a thread pool; unreadable files are left out."""

        def _one(dup: DuplicateFile) -> tuple[Path, str | None]:
            if cancel is not None and cancel.is_set():
                return dup.path, None
            try:
                return dup.path, file_fingerprint(dup.path, dup.size, self.algorithm)
            except OSError:
                log.debug("Cannot hash: %s", dup.path)
                return dup.path, None

        if not files:
            return {}
        with ThreadPoolExecutor(max_workers=min(self.workers, len(files)), thread_name_prefix="broom-hash") as pool:
            return {path: fp for path, fp in pool.map(_one, files) if fp is not None}


def verify_group(group: DuplicateGroup, algorithm: str = "sha256") -> list[DuplicateGroup]:
    """Split *group* by full-content digest, keeping only real duplicates."""
    by_digest: dict[str, list[DuplicateFile]] = {}
    for dup in group.files:
        try:
            by_digest.setdefault(full_hash(dup.path, algorithm), []).append(dup)
        except OSError:
            log.debug("Cannot hash: %s", dup.path)
    return [
        DuplicateGroup(fingerprint=digest, size=group.size, files=files)
        for digest, files in by_digest.items()
        if len(files) > 1
    ]


def resolve_group(
    group: DuplicateGroup,
    action: DuplicateAction,
    *,
    dry_run: bool = False,
    verify: bool = False,
    algorithm: str = "sha256",
    on_removed: Callable[[DeletionRecord], None] | None = None,
) -> CleanResult:
    """Apply *action* to one duplicate group.

    ``keep-first`` / ``keep-last`` delete every other member; ``hardlink``
    keeps the first member and replaces the rest with hard links to it.
    With *verify*, only members whose full content matches are touched.
    """
    result = CleanResult(category=DUPLICATES_CATEGORY)
    if action is DuplicateAction.SKIP or len(group.files) < 2:
        return result

    subgroups = verify_group(group, algorithm) if verify and group.is_partial else [group]
    if verify and group.is_partial and sum(len(g.files) for g in subgroups) < len(group.files):
        result.errors.append(f"{group.fingerprint}: full-content check excluded some files")

    for sub in subgroups:
        files = sub.files
        keep = files[-1] if action is DuplicateAction.KEEP_LAST else files[0]
        for dup in files:
            if dup.path == keep.path or _same_file(keep, dup):
                continue
            if is_protected_path(dup.path):
                result.errors.append(f"{dup.path}: refusing to remove protected path")
                result.skipped.append(dup.path)
                continue
            if dry_run:
                result.cleaned_items += 1
                result.freed_space += dup.size
                continue
            try:
                if action is DuplicateAction.HARDLINK:
                    _replace_with_hardlink(keep.path, dup.path)
                else:
                    dup.path.unlink()
            except OSError as e:
                result.errors.append(f"{dup.path}: {_describe_error(e)}")
                continue
            result.cleaned_items += 1
            result.freed_space += dup.size
            log.debug("%s %s (kept %s)", "Linked" if action is DuplicateAction.HARDLINK else "Deleted", dup.path, keep.path)
            if on_removed:
                on_removed(
                    DeletionRecord(
                        path=dup.path,
                        size=dup.size,
                        category=DUPLICATES_CATEGORY.name,
                        deleted_at=datetime.now(timezone.utc),
                    )
                )

    return result


def _same_file(a: DuplicateFile, b: DuplicateFile) -> bool:
    """Whether *a* and *b* are already links to one inode."""
    if a.file_id is not None and b.file_id is not None:
        return a.file_id == b.file_id
    try:
        return os.path.samefile(a.path, b.path)
    except OSError:
        return False


def _replace_with_hardlink(target: Path, link: Path) -> None:
    """Atomically replace *link* with a hard link to *target*.

    Both must live on the same filesystem; *link* is left untouched otherwise.
    """
    if target.stat().st_dev != link.stat().st_dev:
        raise OSError(errno.EXDEV, os.strerror(errno.EXDEV), str(link))
    tmp = link.with_name(f".{link.name}.broom-{uuid.uuid4().hex[:8]}")
    os.link(target, tmp)
    try:
        os.replace(tmp, link)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def _describe_error(e: OSError) -> str:
    if e.errno == errno.EXDEV:
        return "cannot hard-link across filesystems"
    return e.strerror or str(e)
