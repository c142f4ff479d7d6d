from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..errors import InstallError
from .command import run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    firmware: str  # efi|bios
    root_fs: str = "xfs"
    esp_size_mib: int = 512
    bios_boot_size_mib: int = 2


@dataclass(frozen=True)
class PartitionResult:
    root_part: str
    esp_part: Optional[str]


def part_name(disk: str, n: int) -> str:
    # nvme/mmcblk devices use p suffix
    if disk.endswith(tuple("0123456789")):
        return f"{disk}p{n}"
    return f"{disk}{n}"


def wait_for_device(
    dev: str,
    disk: str,
    *,
    timeout_s: int = 20,
    dry_run: bool = False,
    exists: Callable[[str], bool] = lambda p: Path(p).exists(),
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    if dry_run:
        return
    for _ in range(timeout_s):
        if exists(dev):
            logger.info("Partition %s found.", dev)
            return
        sleep(1)
        run_cmd(["partprobe", disk], check=False)
    raise InstallError(f"Timed out waiting for partition {dev}")


def release_disk(disk: str, *, dry_run: bool = False) -> None:
    """Best-effort: unmount and deactivate anything holding the disk."""

    run_cmd(["sh", "-c", f"umount {disk}* 2>/dev/null || true"], check=False, dry_run=dry_run)
    for argv in (["mdadm", "--stop", "--scan"], ["vgchange", "-an"]):
        run_cmd(argv, check=False, dry_run=dry_run)
    run_cmd(["sync"], check=False, dry_run=dry_run)
    run_cmd(["blockdev", "--flushbufs", disk], check=False, dry_run=dry_run)


def mkfs_argv(fs: str, dev: str) -> list[str]:
    if fs == "vfat":
        return ["mkfs.vfat", "-F", "32", dev]
    if fs == "xfs":
        return ["mkfs.xfs", "-f", dev]
    if fs == "ext4":
        return ["mkfs.ext4", "-F", dev]
    if fs == "btrfs":
        return ["mkfs.btrfs", "-f", dev]
    raise InstallError(f"Unsupported root filesystem: {fs}")


def partition_and_format(
    *,
    plan: PartitionPlan,
    target_root: str,
    dry_run: bool = False,
) -> PartitionResult:
    """Create GPT partitions and filesystems, then mount them under target_root.

    Layout:
    - EFI: ESP (FAT32, ef00) mounted at /boot/efi, root gets the rest
    - BIOS: 2MiB BIOS boot partition (ef02) for GRUB, root gets the rest
    """

    disk = plan.disk
    if plan.firmware not in {"efi", "bios"}:
        raise InstallError(f"firmware must be 'efi' or 'bios', got: {plan.firmware}")
    mkfs_argv(plan.root_fs, "")  # validate early, before wiping anything

    logger.info("Partitioning disk=%s firmware=%s", disk, plan.firmware)
    release_disk(disk, dry_run=dry_run)

    run_cmd(["sgdisk", "--zap-all", disk], dry_run=dry_run)
    if plan.firmware == "efi":
        run_cmd(
            ["sgdisk", "-n", f"1:0:+{plan.esp_size_mib}M", "-t", "1:ef00", "-c", "1:EFI System", disk],
            dry_run=dry_run,
        )
        esp_part: Optional[str] = part_name(disk, 1)
    else:
        run_cmd(
            ["sgdisk", "-n", f"1:0:+{plan.bios_boot_size_mib}M", "-t", "1:ef02", "-c", "1:BIOS Boot", disk],
            dry_run=dry_run,
        )
        esp_part = None
    run_cmd(["sgdisk", "-n", "2:0:0", "-t", "2:8300", "-c", "2:Gentoo Root", disk], dry_run=dry_run)
    root_part = part_name(disk, 2)

    run_cmd(["sync"], dry_run=dry_run)
    run_cmd(["partprobe", disk], dry_run=dry_run)
    wait_for_device(root_part, disk, dry_run=dry_run)

    if esp_part:
        run_cmd(["wipefs", "-a", esp_part], dry_run=dry_run)
        run_cmd(mkfs_argv("vfat", esp_part), dry_run=dry_run)
    run_cmd(["wipefs", "-a", root_part], dry_run=dry_run)
    run_cmd(mkfs_argv(plan.root_fs, root_part), dry_run=dry_run)

    run_cmd(["mkdir", "-p", target_root], dry_run=dry_run)
    run_cmd(["mount", root_part, target_root], dry_run=dry_run)
    if esp_part:
        run_cmd(["mkdir", "-p", f"{target_root}/boot/efi"], dry_run=dry_run)
        run_cmd(["mount", esp_part, f"{target_root}/boot/efi"], dry_run=dry_run)

    return PartitionResult(root_part=root_part, esp_part=esp_part)


def is_mountpoint(path: str, *, dry_run: bool = False) -> bool:
    return run_cmd(["mountpoint", "-q", path], check=False, dry_run=dry_run).ok


def unmount_recursive(path: str, *, dry_run: bool = False) -> None:
    run_cmd(["sync"], check=False, dry_run=dry_run)
    run_cmd(["umount", "-R", path], check=False, dry_run=dry_run)
