from __future__ import annotations

import logging
import re
from typing import Optional

from .chroot import chroot_cmd, target_path
from .conffile import set_config_var

logger = logging.getLogger(__name__)

_MENUENTRY_RE = re.compile(r"""^\s*menuentry\s+(['"])(?P<title>.*?)\1""")


def grub_cfg_path(target_root: str) -> str:
    """grub.cfg location inside the target (EFI layout when /boot/efi/EFI/gentoo exists)."""

    if target_path(target_root, "boot/efi/EFI/gentoo").is_dir():
        return "/boot/efi/EFI/gentoo/grub.cfg"
    return "/boot/grub/grub.cfg"


def grub_platform(firmware: str) -> str:
    return "efi-64" if firmware == "efi" else "pc"


def set_kernel_cmdline(target_root: str, cmdline: str, *, dry_run: bool = False) -> bool:
    return set_config_var(
        target_path(target_root, "etc/default/grub"),
        "GRUB_CMDLINE_LINUX_DEFAULT",
        cmdline,
        dry_run=dry_run,
    )


def install_grub(*, target_root: str, firmware: str, disk: str, dry_run: bool = False) -> None:
    if firmware == "efi":
        # Assumes /boot/efi is mounted in target.
        chroot_cmd(
            target_root,
            ["grub-install", "--target=x86_64-efi", "--efi-directory=/boot/efi", "--bootloader-id=gentoo"],
            dry_run=dry_run,
        )
    else:
        chroot_cmd(target_root, ["grub-install", "--target=i386-pc", disk], dry_run=dry_run)
    logger.info("GRUB installed (firmware=%s)", firmware)


def update_grub_config(target_root: str, *, dry_run: bool = False) -> str:
    cfg = grub_cfg_path(target_root)
    chroot_cmd(target_root, ["grub-mkconfig", "-o", cfg], dry_run=dry_run)
    return cfg


def find_menuentry_title(grub_cfg: str, kernel_name: str) -> Optional[str]:
    """Title of the first menuentry that boots vmlinuz-<kernel_name>."""

    needle = f"vmlinuz-{kernel_name}"
    title: Optional[str] = None
    for line in grub_cfg.splitlines():
        m = _MENUENTRY_RE.match(line)
        if m:
            title = m.group("title")
            continue
        if title and needle in line:
            return title
    return None


def set_default_entry(target_root: str, kernel_name: str, *, dry_run: bool = False) -> bool:
    if dry_run:
        logger.info("Would run grub-set-default for vmlinuz-%s", kernel_name)
        return True

    cfg = target_path(target_root, grub_cfg_path(target_root))
    if not cfg.is_file():
        logger.warning("grub.cfg not found at %s", cfg)
        return False
    title = find_menuentry_title(cfg.read_text(encoding="utf-8", errors="replace"), kernel_name)
    if not title:
        logger.warning("grub.cfg does not reference vmlinuz-%s", kernel_name)
        return False
    r = chroot_cmd(target_root, ["grub-set-default", title], check=False)
    if not r.ok:
        logger.warning("grub-set-default failed")
        return False
    logger.info("GRUB default entry: %s", title)
    return True
