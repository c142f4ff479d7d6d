from __future__ import annotations

import logging
import os
import re
import signal
import tarfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, NoReturn, Optional

from ..errors import InstallInterrupted

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = "/var/backups/gentoo_autobuilder"
DEFAULT_KEEP = 5
DEFAULT_BACKUP_PATHS = (
    "/etc/portage",
    "/etc/fstab",
    "/etc/default/grub",
    "/etc/kernel-configs",
    "/boot",
)

ARCHIVE_PREFIX = "gentoo_autobuilder_backup_"
ARCHIVE_SUFFIX = ".tar.gz"
_ARCHIVE_RE = re.compile(
    rf"^{ARCHIVE_PREFIX}(?P<ts>\d{{8}}_\d{{6}})(?:_(?P<n>\d+))?{re.escape(ARCHIVE_SUFFIX)}$"
)


def _archive_key(p: Path) -> tuple[str, int]:
    m = _ARCHIVE_RE.match(p.name)
    if m is None:
        return "", 0
    return m.group("ts"), int(m.group("n") or 0)


@dataclass
class BackupManager:
    """Timestamped tar snapshots of configuration paths, with rollback.

    Paths are interpreted relative to ``root`` so the same manager works for
    the running system (root="/") and for a freshly unpacked target.
    The most recent snapshot of this run is the rollback target.
    """

    backup_dir: Path
    keep: int = DEFAULT_KEEP
    root: Path = Path("/")
    dry_run: bool = False
    clock: Callable[[], datetime] = field(default=datetime.now, repr=False)
    rollback_target: Optional[Path] = None

    def __post_init__(self) -> None:
        self.backup_dir = Path(self.backup_dir)
        self.root = Path(self.root)
        if self.keep < 1:
            raise ValueError(f"keep must be >= 1, got {self.keep}")

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any], *, dry_run: bool = False) -> "BackupManager":
        backup = cfg.get("backup") or {}
        return cls(
            backup_dir=Path(backup.get("dir") or DEFAULT_BACKUP_DIR),
            keep=int(backup.get("keep") or DEFAULT_KEEP),
            root=Path(cfg.get("target_root") or "/"),
            dry_run=dry_run,
        )

    def list_archives(self) -> List[Path]:
        """Archives in the backup directory, newest first."""

        if not self.backup_dir.is_dir():
            return []
        found = [p for p in self.backup_dir.iterdir() if p.is_file() and _ARCHIVE_RE.match(p.name)]
        return sorted(found, key=_archive_key, reverse=True)

    def _next_archive_path(self) -> Path:
        ts = self.clock().strftime("%Y%m%d_%H%M%S")
        candidate = self.backup_dir / f"{ARCHIVE_PREFIX}{ts}{ARCHIVE_SUFFIX}"
        n = 1
        while candidate.exists():
            candidate = self.backup_dir / f"{ARCHIVE_PREFIX}{ts}_{n}{ARCHIVE_SUFFIX}"
            n += 1
        return candidate

    def _rel(self, path: str) -> str:
        return str(path).lstrip("/")

    def create_snapshot(self, paths: Iterable[str] = DEFAULT_BACKUP_PATHS) -> Path:
        """Archive ``paths`` into a new timestamped bundle.

        Missing or unreadable paths are skipped with a warning. On success the
        archive becomes the rollback target and old archives are pruned.
        """

        archive = self._next_archive_path()
        rels = [self._rel(p) for p in paths if self._rel(p)]

        if self.dry_run:
            logger.info("Would create backup %s of %s", archive, ", ".join("/" + r for r in rels))
            return archive

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        partial = archive.with_name(archive.name + ".partial")
        added: List[str] = []
        try:
            with tarfile.open(partial, "w:gz") as tar:
                for rel in rels:
                    src = self.root / rel
                    if not os.path.lexists(src):
                        logger.warning("Backup: skipping missing path /%s", rel)
                        continue
                    try:
                        tar.add(str(src), arcname=rel)
                        added.append(rel)
                    except OSError as e:
                        logger.warning("Backup: could not read /%s: %s", rel, e)
            os.replace(partial, archive)
        finally:
            if partial.exists():
                partial.unlink()

        self.rollback_target = archive
        logger.info("Backup created: %s (%d of %d paths)", archive, len(added), len(rels))
        self.prune()
        return archive

    def prune(self) -> List[Path]:
        removed: List[Path] = []
        for old in self.list_archives()[self.keep:]:
            if old == self.rollback_target:
                continue
            old.unlink()
            removed.append(old)
            logger.info("Pruned old backup %s", old)
        return removed

    def restore(self, archive: Path) -> bool:
        """Extract ``archive`` over the root. Best effort: never raises."""

        if self.dry_run:
            logger.info("Would restore %s into %s", archive, self.root)
            return True
        try:
            with tarfile.open(archive, "r:gz") as tar:
                tar.extractall(path=str(self.root), filter="fully_trusted")
        except (OSError, tarfile.TarError) as e:
            logger.error("Backup restoration from %s failed: %s", archive, e)
            return False
        logger.info("Restored %s into %s", archive, self.root)
        return True

    def rollback(self) -> bool:
        target = self.rollback_target
        if target is None:
            logger.warning("No backup recorded; nothing to roll back")
            return False
        if not target.is_file():
            logger.warning("Rollback target %s is missing", target)
            return False
        logger.warning("Restoring from backup %s ...", target)
        return self.restore(target)

    def on_failure(self, exit_code: int) -> NoReturn:
        logger.error("Run failed with exit code %s. Attempting rollback...", exit_code)
        self.rollback()
        raise SystemExit(exit_code)


def _raise_interrupted(signum: int, _frame: Any) -> None:
    raise InstallInterrupted(signum)


def install_signal_handlers(signals: Iterable[int] = (signal.SIGTERM, signal.SIGHUP)) -> Dict[int, Any]:
    """Route termination signals into the normal failure path (and its rollback)."""

    previous: Dict[int, Any] = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _raise_interrupted)
    return previous


def restore_signal_handlers(previous: Mapping[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)
