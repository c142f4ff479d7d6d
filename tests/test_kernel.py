"""Unit tests for kernel source selection and .config editing."""

from unittest.mock import patch

import pytest

from gentoo_autobuilder.errors import InstallError
from gentoo_autobuilder.lib.kernel import (
    build_kernel,
    enable_builtin_symbols,
    ensure_source_symlink,
    save_kernel_config,
    select_kernel_source,
    version_key,
)


@pytest.fixture
def usr_src(tmp_path):
    """Provide /usr/src with several kernel trees."""
    src = tmp_path / "usr/src"
    for name in ("linux-6.9.12-gentoo", "linux-6.10.1-gentoo", "linux-6.6.30-gentoo"):
        (src / name).mkdir(parents=True)
    return src


class TestSourceSelection:
    """Test picking the newest kernel tree."""

    def test_version_key_is_natural(self):
        """Test that 6.10 sorts after 6.9."""
        assert version_key("linux-6.10.1-gentoo") > version_key("linux-6.9.12-gentoo")

    def test_select_newest(self, usr_src):
        """Test that the highest version is selected."""
        assert select_kernel_source(usr_src).name == "linux-6.10.1-gentoo"

    def test_symlinks_are_ignored(self, usr_src):
        """Test that the linux symlink is not treated as a source tree."""
        (usr_src / "linux-99").symlink_to("linux-6.6.30-gentoo")
        assert select_kernel_source(usr_src).name == "linux-6.10.1-gentoo"

    def test_no_sources(self, tmp_path):
        """Test that an empty /usr/src is an error."""
        with pytest.raises(InstallError):
            select_kernel_source(tmp_path / "usr/src")


class TestSourceSymlink:
    """Test /usr/src/linux maintenance."""

    def test_creates_relative_symlink(self, usr_src):
        """Test that the link points at the selected tree."""
        source = usr_src / "linux-6.10.1-gentoo"
        ensure_source_symlink(usr_src, source)

        link = usr_src / "linux"
        assert link.is_symlink()
        assert link.resolve() == source.resolve()

    def test_real_directory_moved_aside(self, usr_src):
        """Test that a real directory in the way is renamed, not deleted."""
        (usr_src / "linux").mkdir()
        (usr_src / "linux/keep").write_text("x")

        ensure_source_symlink(usr_src, usr_src / "linux-6.10.1-gentoo")

        backups = list(usr_src.glob("linux.backup.*"))
        assert len(backups) == 1
        assert (backups[0] / "keep").read_text() == "x"

    def test_dry_run(self, usr_src):
        """Test that dry-run creates no link."""
        ensure_source_symlink(usr_src, usr_src / "linux-6.10.1-gentoo", dry_run=True)
        assert not (usr_src / "linux").exists()


class TestKernelConfig:
    """Test .config helpers."""

    def test_enable_builtin_symbols(self, tmp_path):
        """Test =m, =n and 'is not set' lines become =y; absent ones are appended."""
        cfg = tmp_path / ".config"
        cfg.write_text(
            "CONFIG_XFS_FS=m\n"
            "# CONFIG_DEVTMPFS is not set\n"
            "CONFIG_TMPFS=y\n"
            "CONFIG_EXT4_FS=n\n"
        )

        changed = enable_builtin_symbols(cfg, ["XFS_FS", "DEVTMPFS", "TMPFS", "CONFIG_EXT4_FS", "EFI_STUB"])

        assert changed == ["XFS_FS", "DEVTMPFS", "CONFIG_EXT4_FS", "EFI_STUB"]
        lines = cfg.read_text().splitlines()
        assert lines == [
            "CONFIG_XFS_FS=y",
            "CONFIG_DEVTMPFS=y",
            "CONFIG_TMPFS=y",
            "CONFIG_EXT4_FS=y",
            "CONFIG_EFI_STUB=y",
        ]

    def test_enable_is_idempotent(self, tmp_path):
        """Test that a second pass changes nothing."""
        cfg = tmp_path / ".config"
        cfg.write_text("CONFIG_XFS_FS=m\n")
        enable_builtin_symbols(cfg, ["XFS_FS"])
        assert enable_builtin_symbols(cfg, ["XFS_FS"]) == []

    def test_save_kernel_config(self, tmp_path):
        """Test that .config is copied into the store."""
        source = tmp_path / "linux-6.6.30-gentoo"
        source.mkdir()
        (source / ".config").write_text("CONFIG_X=y\n")
        store = tmp_path / "etc/kernel-configs"

        saved = save_kernel_config(source, store)

        assert saved is not None
        assert saved.name.startswith("config-linux-6.6.30-gentoo-")
        assert saved.read_text() == "CONFIG_X=y\n"

    def test_save_without_config(self, tmp_path):
        """Test that a tree without .config is skipped."""
        assert save_kernel_config(tmp_path, tmp_path / "store") is None


class TestBuildKernel:
    """Test the build command sequence."""

    def test_build_sequence(self, tmp_path):
        """Test make targets run in order with the job count."""
        source = tmp_path / "usr/src/linux-6.6.30-gentoo"
        with patch("gentoo_autobuilder.lib.kernel.chroot_cmd") as mock_cmd:
            build_kernel(str(tmp_path), source, jobs=4)

        argvs = [c[0][1] for c in mock_cmd.call_args_list]
        assert argvs[0] == ["make", "-C", "/usr/src/linux-6.6.30-gentoo", "olddefconfig"]
        assert ["make", "-C", "/usr/src/linux-6.6.30-gentoo", "-j4"] in argvs
        assert argvs[-1][0] == "genkernel"
