"""Unit tests for partition planning, filesystems and fstab rendering."""

from unittest.mock import patch

import pytest

from gentoo_autobuilder.errors import InstallError
from gentoo_autobuilder.lib.command import CmdResult
from gentoo_autobuilder.lib.fstab import FstabEntry, get_uuid, render_fstab, root_options
from gentoo_autobuilder.lib.storage import (
    PartitionPlan,
    mkfs_argv,
    part_name,
    partition_and_format,
    wait_for_device,
)


def _ok(argv, **_kwargs):
    return CmdResult(list(argv), 0, "", "")


class TestPartitionNames:
    """Test device naming."""

    def test_sd_and_vd(self):
        """Test plain disks append the number directly."""
        assert part_name("/dev/sda", 2) == "/dev/sda2"
        assert part_name("/dev/vdb", 1) == "/dev/vdb1"

    def test_nvme_and_mmc(self):
        """Test disks ending in a digit use the p separator."""
        assert part_name("/dev/nvme0n1", 2) == "/dev/nvme0n1p2"
        assert part_name("/dev/mmcblk0", 1) == "/dev/mmcblk0p1"


class TestMkfs:
    """Test filesystem command selection."""

    def test_supported(self):
        """Test the known filesystems."""
        assert mkfs_argv("xfs", "/dev/sda2") == ["mkfs.xfs", "-f", "/dev/sda2"]
        assert mkfs_argv("vfat", "/dev/sda1") == ["mkfs.vfat", "-F", "32", "/dev/sda1"]
        assert mkfs_argv("ext4", "/dev/sda2")[0] == "mkfs.ext4"

    def test_unsupported(self):
        """Test that unknown filesystems are rejected."""
        with pytest.raises(InstallError):
            mkfs_argv("zfs", "/dev/sda2")


class TestPartitionAndFormat:
    """Test the partitioning command plan."""

    def test_efi_layout(self):
        """Test the ESP + root layout for UEFI systems."""
        with patch("gentoo_autobuilder.lib.storage.run_cmd", side_effect=_ok) as mock_run:
            result = partition_and_format(
                plan=PartitionPlan(disk="/dev/nvme0n1", firmware="efi"), target_root="/mnt/gentoo", dry_run=True
            )

        assert result.root_part == "/dev/nvme0n1p2"
        assert result.esp_part == "/dev/nvme0n1p1"
        argvs = [c[0][0] for c in mock_run.call_args_list]
        assert ["sgdisk", "--zap-all", "/dev/nvme0n1"] in argvs
        assert ["sgdisk", "-n", "1:0:+512M", "-t", "1:ef00", "-c", "1:EFI System", "/dev/nvme0n1"] in argvs
        assert ["mkfs.xfs", "-f", "/dev/nvme0n1p2"] in argvs
        assert ["mount", "/dev/nvme0n1p1", "/mnt/gentoo/boot/efi"] in argvs
        assert all(c[1].get("dry_run") for c in mock_run.call_args_list)

    def test_bios_layout(self):
        """Test the BIOS boot partition layout."""
        with patch("gentoo_autobuilder.lib.storage.run_cmd", side_effect=_ok) as mock_run:
            result = partition_and_format(
                plan=PartitionPlan(disk="/dev/sda", firmware="bios", root_fs="ext4"),
                target_root="/mnt/gentoo",
                dry_run=True,
            )

        assert result.esp_part is None
        argvs = [c[0][0] for c in mock_run.call_args_list]
        assert ["sgdisk", "-n", "1:0:+2M", "-t", "1:ef02", "-c", "1:BIOS Boot", "/dev/sda"] in argvs
        assert not any(a[0] == "mkfs.vfat" for a in argvs)

    def test_invalid_fs_fails_before_wiping(self):
        """Test that a bad filesystem aborts before any command runs."""
        with patch("gentoo_autobuilder.lib.storage.run_cmd", side_effect=_ok) as mock_run:
            with pytest.raises(InstallError):
                partition_and_format(plan=PartitionPlan(disk="/dev/sda", firmware="efi", root_fs="zfs"), target_root="/mnt")
        mock_run.assert_not_called()


class TestWaitForDevice:
    """Test waiting for partition nodes."""

    def test_appears_after_retry(self):
        """Test that a device appearing later is accepted."""
        seen = iter([False, False, True])
        with patch("gentoo_autobuilder.lib.storage.run_cmd", side_effect=_ok):
            wait_for_device("/dev/sda2", "/dev/sda", exists=lambda _p: next(seen), sleep=lambda _s: None)

    def test_timeout(self):
        """Test that a missing device eventually fails."""
        with patch("gentoo_autobuilder.lib.storage.run_cmd", side_effect=_ok):
            with pytest.raises(InstallError):
                wait_for_device("/dev/sda2", "/dev/sda", timeout_s=3, exists=lambda _p: False, sleep=lambda _s: None)


class TestFstab:
    """Test fstab rendering."""

    def test_render(self):
        """Test that entries render tab separated under a header."""
        text = render_fstab([FstabEntry(spec="UUID=abc", mountpoint="/", fstype="xfs", options=root_options("xfs"), passno=1)])
        lines = text.splitlines()
        assert lines[0].startswith("#")
        assert lines[-1] == "UUID=abc\t/\txfs\tdefaults,noatime,logbufs=8,logbsize=256k\t0 1"

    def test_get_uuid(self):
        """Test UUID lookup through blkid."""
        with patch("gentoo_autobuilder.lib.fstab.run_cmd", return_value=CmdResult(["blkid"], 0, "1234-ABCD\n", "")):
            assert get_uuid("/dev/sda1") == "1234-ABCD"

    def test_get_uuid_empty(self):
        """Test that an empty answer is fatal outside dry-run."""
        with patch("gentoo_autobuilder.lib.fstab.run_cmd", return_value=CmdResult(["blkid"], 0, "", "")):
            with pytest.raises(InstallError):
                get_uuid("/dev/sda1")
            assert get_uuid("/dev/sda1", dry_run=True) == "DRY-RUN-UUID"
