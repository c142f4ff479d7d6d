from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def is_host_root(target_root: str) -> bool:
    return str(Path(target_root)) == "/"


def target_path(target_root: str, rel: str) -> Path:
    """Absolute host path of ``rel`` inside the target root."""

    return Path(target_root) / rel.lstrip("/")


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    dry_run: bool = False,
    capture: bool = True,
) -> CmdResult:
    """Run a command inside target root (directly when the target is the running system)."""

    if is_host_root(target_root):
        return run_cmd(argv, check=check, dry_run=dry_run, capture=capture)
    return run_cmd(["chroot", target_root, *argv], check=check, dry_run=dry_run, capture=capture)


def chroot_shell(target_root: str, script: str, *, check: bool = True, dry_run: bool = False) -> CmdResult:
    """Run a shell snippet with the target's profile sourced."""

    return chroot_cmd(target_root, ["/bin/bash", "-c", f"source /etc/profile && {script}"], check=check, dry_run=dry_run)


def mount_chroot_binds(target_root: str, *, dry_run: bool = False) -> None:
    run_cmd(["mount", "--types", "proc", "/proc", f"{target_root}/proc"], dry_run=dry_run)
    for src in ("/sys", "/dev"):
        run_cmd(["mount", "--rbind", src, f"{target_root}{src}"], dry_run=dry_run)
        run_cmd(["mount", "--make-rslave", f"{target_root}{src}"], dry_run=dry_run)
    run_cmd(["mount", "--bind", "/run", f"{target_root}/run"], dry_run=dry_run)
    run_cmd(["mount", "--make-slave", f"{target_root}/run"], dry_run=dry_run)


def umount_chroot_binds(target_root: str, *, dry_run: bool = False) -> None:
    for p in [f"{target_root}/run", f"{target_root}/dev", f"{target_root}/sys", f"{target_root}/proc"]:
        run_cmd(["umount", "-R", "-l", p], check=False, dry_run=dry_run)


@contextmanager
def chroot_binds(target_root: str, *, dry_run: bool = False) -> Iterator[None]:
    """Keep virtual filesystems mounted inside the target for the duration of a block."""

    if is_host_root(target_root):
        yield
        return
    mount_chroot_binds(target_root, dry_run=dry_run)
    try:
        yield
    finally:
        umount_chroot_binds(target_root, dry_run=dry_run)
