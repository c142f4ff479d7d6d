from __future__ import annotations

import logging
import os
import re
from typing import Callable, List, Sequence

from ..errors import InstallError
from .chroot import chroot_cmd, target_path
from .command import CmdResult
from .mode import ExecutionMode, ask_confirm

logger = logging.getLogger(__name__)

EMERGE_BASE_OPTS = ["--verbose", "--quiet-build=y", "--with-bdeps=y", "--ask=n"]


def _split_atom(atom: str) -> tuple[str, str]:
    atom = atom.split(":", 1)[0]
    category, _, name = atom.partition("/")
    if not name:
        raise ValueError(f"Package atom must be category/name: {atom!r}")
    return category, name


def is_installed(target_root: str, atom: str) -> bool:
    """True if the vdb in the target root has an installed version of ``atom``."""

    category, name = _split_atom(atom)
    vdb = target_path(target_root, f"var/db/pkg/{category}")
    if not vdb.is_dir():
        return False
    pattern = re.compile(rf"^{re.escape(name)}-\d")
    return any(pattern.match(d.name) for d in vdb.iterdir() if d.is_dir())


def emerge(
    target_root: str,
    atoms: Sequence[str],
    *,
    jobs: int,
    extra: Sequence[str] = (),
    check: bool = True,
    dry_run: bool = False,
) -> CmdResult:
    argv = ["emerge", f"--jobs={jobs}", f"--load-average={jobs}", *EMERGE_BASE_OPTS, *extra, *atoms]
    return chroot_cmd(target_root, argv, check=check, dry_run=dry_run, capture=False)


def sync_repository(target_root: str, *, webrsync: bool = False, dry_run: bool = False) -> None:
    argv = ["emerge-webrsync"] if webrsync else ["emerge", "--sync"]
    chroot_cmd(target_root, argv, dry_run=dry_run, capture=False)


def merge_config_updates(target_root: str, *, dry_run: bool = False) -> None:
    # -5: auto-merge everything, keeping the user's edits where possible
    chroot_cmd(target_root, ["etc-update", "--automode", "-5"], check=False, dry_run=dry_run)


def emerge_pkg(
    target_root: str,
    atom: str,
    *,
    mode: ExecutionMode,
    jobs: int,
    input_fn: Callable[[str], str] = input,
) -> bool:
    """Install one package, retrying once after a repository sync.

    Returns False when the package could not be installed and the operator
    (or auto/force mode) chose to continue; raises InstallError otherwise.
    """

    if is_installed(target_root, atom):
        logger.info("Package %s is already installed.", atom)
        return True

    logger.info("Attempting to install package: %s", atom)
    if mode.dry_run:
        emerge(target_root, [atom], jobs=jobs, dry_run=True)
        return True

    if emerge(target_root, [atom], jobs=jobs, check=False).ok:
        merge_config_updates(target_root)
        logger.info("Successfully installed %s.", atom)
        return True

    logger.warning("Failed to install %s on attempt 1; resyncing repository and retrying", atom)
    sync_repository(target_root)
    if emerge(target_root, [atom], jobs=jobs, extra=["--autounmask-write=y"], check=False).ok:
        merge_config_updates(target_root)
        if emerge(target_root, [atom], jobs=jobs, check=False).ok:
            logger.info("Successfully installed %s after autounmask.", atom)
            return True

    logger.error("Could not install %s after 2 attempts.", atom)
    if ask_confirm("Continue script execution?", mode, input_fn=input_fn):
        return False
    raise InstallError(f"Execution aborted by user after failing to install {atom}")


def emerge_all(
    target_root: str,
    atoms: Sequence[str],
    *,
    mode: ExecutionMode,
    jobs: int,
    input_fn: Callable[[str], str] = input,
) -> List[str]:
    """Install packages one by one; returns the atoms that failed and were skipped."""

    failed: List[str] = []
    for atom in atoms:
        if not emerge_pkg(target_root, atom, mode=mode, jobs=jobs, input_fn=input_fn):
            logger.warning("Skipping %s", atom)
            failed.append(atom)
    return failed


def rc_update_add(target_root: str, service: str, runlevel: str = "default", *, dry_run: bool = False) -> None:
    if os.path.lexists(target_path(target_root, f"etc/runlevels/{runlevel}/{service}")):
        logger.info("Service %s already in runlevel %s", service, runlevel)
        return
    chroot_cmd(target_root, ["rc-update", "add", service, runlevel], dry_run=dry_run)
