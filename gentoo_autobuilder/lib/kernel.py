from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import InstallError
from .chroot import chroot_cmd, target_path

logger = logging.getLogger(__name__)

KERNEL_CONFIG_STORE = "/etc/kernel-configs"

DEFAULT_BUILTIN_SYMBOLS = [
    "DEVTMPFS",
    "DEVTMPFS_MOUNT",
    "TMPFS",
    "TMPFS_POSIX_ACL",
    "EFI_STUB",
    "EFI_PARTITION",
    "BLK_DEV_INITRD",
    "XFS_FS",
    "EXT4_FS",
    "FRAMEBUFFER_CONSOLE",
    "FB_EFI",
]

_TOKEN_RE = re.compile(r"(\d+|[^\d.\-_]+)")


def version_key(name: str) -> Tuple[Tuple[int, object], ...]:
    """Natural sort key so linux-6.10 sorts after linux-6.9."""

    key = []
    for tok in _TOKEN_RE.findall(name):
        key.append((1, int(tok)) if tok.isdigit() else (0, tok))
    return tuple(key)


def list_kernel_sources(usr_src: Path) -> List[Path]:
    if not usr_src.is_dir():
        return []
    found = [p for p in usr_src.iterdir() if p.name.startswith("linux-") and p.is_dir() and not p.is_symlink()]
    return sorted(found, key=lambda p: version_key(p.name))


def select_kernel_source(usr_src: Path) -> Path:
    sources = list_kernel_sources(usr_src)
    if not sources:
        raise InstallError(f"No kernel sources found under {usr_src}")
    return sources[-1]


def ensure_source_symlink(usr_src: Path, source: Path, *, dry_run: bool = False) -> None:
    """Point usr_src/linux at ``source``; a real directory in the way is renamed aside."""

    link = usr_src / "linux"
    if link.is_symlink():
        if Path(link.readlink()).name == source.name:
            logger.info("%s already -> %s", link, source.name)
            return
    elif link.exists():
        aside = usr_src / f"linux.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        if dry_run:
            logger.info("Would move %s -> %s", link, aside)
        else:
            link.rename(aside)
            logger.info("Moved existing %s aside to %s", link, aside)

    if dry_run:
        logger.info("Would link %s -> %s", link, source.name)
        return
    if link.is_symlink():
        link.unlink()
    link.symlink_to(source.name)
    logger.info("Symlink %s now points to %s", link, source.name)


def save_kernel_config(source: Path, store: Path, *, dry_run: bool = False) -> Optional[Path]:
    cfg = source / ".config"
    if not cfg.is_file():
        return None
    dest = store / f"config-{source.name}-{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    if dry_run:
        logger.info("Would save %s to %s", cfg, dest)
        return dest
    store.mkdir(parents=True, exist_ok=True)
    shutil.copy2(cfg, dest)
    logger.info("Saved kernel .config to %s", dest)
    return dest


def enable_builtin_symbols(config_path: Path, symbols: Iterable[str], *, dry_run: bool = False) -> List[str]:
    """Force CONFIG_<sym>=y for each symbol. Returns the symbols that changed."""

    lines = config_path.read_text(encoding="utf-8").splitlines() if config_path.exists() else []
    changed: List[str] = []

    for sym in symbols:
        sym = sym.strip()
        if not sym:
            continue
        name = sym if sym.startswith("CONFIG_") else f"CONFIG_{sym}"
        want = f"{name}=y"
        set_re = re.compile(rf"^{name}=")
        unset = f"# {name} is not set"
        idx = next((i for i, ln in enumerate(lines) if set_re.match(ln) or ln.strip() == unset), None)
        if idx is None:
            lines.append(want)
            changed.append(sym)
        elif lines[idx] != want:
            lines[idx] = want
            changed.append(sym)

    if changed:
        if dry_run:
            logger.info("Would enable as built-in: %s", ", ".join(changed))
        else:
            config_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
            logger.info("Enabled as built-in: %s", ", ".join(changed))
    return changed


def prepare_base_config(target_root: str, source: Path, *, dry_run: bool = False) -> None:
    """Seed .config from the running kernel (or defconfig) and tailor it to loaded modules."""

    src_in_target = "/" + str(source.relative_to(target_root)).lstrip("/")
    if (source / ".config").is_file():
        logger.info("Using existing %s/.config", source)
        return
    proc_config = target_path(target_root, "proc/config.gz")
    if proc_config.exists():
        logger.info("Using running kernel's config as a base.")
        chroot_cmd(target_root, ["sh", "-c", f"zcat /proc/config.gz > {src_in_target}/.config"], dry_run=dry_run)
    else:
        logger.info("Creating default config.")
        chroot_cmd(target_root, ["make", "-C", src_in_target, "defconfig"], dry_run=dry_run)
    chroot_cmd(target_root, ["make", "-C", src_in_target, "localmodconfig"], check=False, dry_run=dry_run)


def build_kernel(target_root: str, source: Path, *, jobs: int, dry_run: bool = False) -> None:
    src_in_target = "/" + str(source.relative_to(target_root)).lstrip("/")
    chroot_cmd(target_root, ["make", "-C", src_in_target, "olddefconfig"], dry_run=dry_run)
    chroot_cmd(target_root, ["make", "-C", src_in_target, f"-j{jobs}"], dry_run=dry_run, capture=False)
    chroot_cmd(target_root, ["make", "-C", src_in_target, "modules_install"], dry_run=dry_run, capture=False)
    chroot_cmd(target_root, ["make", "-C", src_in_target, "install"], dry_run=dry_run)
    chroot_cmd(target_root, ["genkernel", "--install", "--no-mrproper", "initramfs"], dry_run=dry_run, capture=False)
    logger.info("Kernel %s built and installed", source.name)
