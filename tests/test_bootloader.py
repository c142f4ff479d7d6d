"""Unit tests for GRUB helpers."""

from unittest.mock import patch

import pytest

from gentoo_autobuilder.lib.bootloader import (
    find_menuentry_title,
    grub_cfg_path,
    install_grub,
    set_default_entry,
    set_kernel_cmdline,
)
from gentoo_autobuilder.lib.command import CmdResult
from gentoo_autobuilder.lib.conffile import get_config_var

GRUB_CFG = """\
### BEGIN /etc/grub.d/10_linux ###
menuentry 'Gentoo GNU/Linux' --class gentoo {
\tlinux\t/vmlinuz-6.10.1-gentoo root=UUID=abc ro quiet
}
submenu 'Advanced options for Gentoo GNU/Linux' {
\tmenuentry "Gentoo GNU/Linux, with Linux 6.6.30-gentoo" --class gentoo {
\t\tlinux\t/vmlinuz-6.6.30-gentoo root=UUID=abc ro
\t}
}
"""


@pytest.fixture
def target(tmp_path):
    """Provide a target root with a grub.cfg under /boot/grub."""
    (tmp_path / "boot/grub").mkdir(parents=True)
    (tmp_path / "boot/grub/grub.cfg").write_text(GRUB_CFG)
    return tmp_path


class TestGrubConfig:
    """Test grub.cfg discovery and parsing."""

    def test_cfg_path_bios(self, tmp_path):
        """Test the default location."""
        assert grub_cfg_path(str(tmp_path)) == "/boot/grub/grub.cfg"

    def test_cfg_path_efi(self, tmp_path):
        """Test the EFI location when the gentoo EFI directory exists."""
        (tmp_path / "boot/efi/EFI/gentoo").mkdir(parents=True)
        assert grub_cfg_path(str(tmp_path)) == "/boot/efi/EFI/gentoo/grub.cfg"

    def test_find_menuentry_title(self):
        """Test both quote styles and nested submenus."""
        assert find_menuentry_title(GRUB_CFG, "6.10.1-gentoo") == "Gentoo GNU/Linux"
        assert find_menuentry_title(GRUB_CFG, "6.6.30-gentoo") == "Gentoo GNU/Linux, with Linux 6.6.30-gentoo"
        assert find_menuentry_title(GRUB_CFG, "5.15.0") is None

    def test_kernel_cmdline(self, tmp_path):
        """Test that the cmdline goes through set_config_var."""
        (tmp_path / "etc/default").mkdir(parents=True)
        (tmp_path / "etc/default/grub").write_text('GRUB_CMDLINE_LINUX_DEFAULT=""\n')

        assert set_kernel_cmdline(str(tmp_path), "quiet splash") is True
        assert set_kernel_cmdline(str(tmp_path), "quiet splash") is False
        assert get_config_var(tmp_path / "etc/default/grub", "GRUB_CMDLINE_LINUX_DEFAULT") == "quiet splash"


class TestGrubCommands:
    """Test the commands issued for GRUB."""

    def test_install_efi(self):
        """Test the EFI grub-install invocation."""
        with patch("gentoo_autobuilder.lib.bootloader.chroot_cmd") as mock_cmd:
            install_grub(target_root="/mnt/gentoo", firmware="efi", disk="/dev/sda")
        assert "--target=x86_64-efi" in mock_cmd.call_args[0][1]

    def test_install_bios(self):
        """Test that BIOS installs target the disk."""
        with patch("gentoo_autobuilder.lib.bootloader.chroot_cmd") as mock_cmd:
            install_grub(target_root="/mnt/gentoo", firmware="bios", disk="/dev/sda")
        assert mock_cmd.call_args[0][1] == ["grub-install", "--target=i386-pc", "/dev/sda"]

    def test_set_default_entry(self, target):
        """Test grub-set-default receives the matching title."""
        with patch("gentoo_autobuilder.lib.bootloader.chroot_cmd", return_value=CmdResult([], 0, "", "")) as mock_cmd:
            assert set_default_entry(str(target), "6.6.30-gentoo") is True
        assert mock_cmd.call_args[0][1] == ["grub-set-default", "Gentoo GNU/Linux, with Linux 6.6.30-gentoo"]

    def test_set_default_entry_unknown_kernel(self, target):
        """Test that an unknown kernel does not call grub-set-default."""
        with patch("gentoo_autobuilder.lib.bootloader.chroot_cmd") as mock_cmd:
            assert set_default_entry(str(target), "5.15.0") is False
        mock_cmd.assert_not_called()
