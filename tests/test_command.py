"""Unit tests for the external command runner and chroot helpers."""

import sys
from unittest.mock import patch

import pytest

from gentoo_autobuilder.errors import InstallError
from gentoo_autobuilder.lib.chroot import chroot_binds, chroot_cmd, target_path
from gentoo_autobuilder.lib.command import CommandError, fmt_argv, run_cmd


class TestRunCmd:
    """Test run_cmd execution, dry-run and error reporting."""

    def test_dry_run_does_not_execute(self):
        """Test that dry-run logs the command and never calls subprocess."""
        with patch("gentoo_autobuilder.lib.command.subprocess.run") as mock_run:
            result = run_cmd(["rm", "-rf", "/"], dry_run=True)

        mock_run.assert_not_called()
        assert result.ok
        assert result.argv == ["rm", "-rf", "/"]

    def test_success_captures_output(self):
        """Test that stdout of a successful command is returned."""
        result = run_cmd([sys.executable, "-c", "print('hello')"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_failure_raises_with_returncode(self):
        """Test that a non-zero exit raises CommandError carrying the code."""
        with pytest.raises(CommandError) as exc_info:
            run_cmd([sys.executable, "-c", "import sys; sys.exit(3)"])

        assert exc_info.value.returncode == 3
        assert exc_info.value.exit_code == 3
        assert isinstance(exc_info.value, InstallError)

    def test_failure_without_check(self):
        """Test that check=False returns the failing result."""
        result = run_cmd([sys.executable, "-c", "import sys; sys.exit(5)"], check=False)
        assert result.returncode == 5
        assert not result.ok

    def test_missing_binary(self):
        """Test that a missing program maps to exit code 127."""
        with pytest.raises(CommandError) as exc_info:
            run_cmd(["gentoo-autobuilder-no-such-binary"])
        assert exc_info.value.returncode == 127

        result = run_cmd(["gentoo-autobuilder-no-such-binary"], check=False)
        assert result.returncode == 127

    def test_input_text(self):
        """Test that input_text is passed to stdin."""
        result = run_cmd([sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"], input_text="abc")
        assert result.stdout.strip() == "ABC"

    def test_fmt_argv_quotes(self):
        """Test that arguments with spaces are shell-quoted for logs."""
        assert fmt_argv(["grub-set-default", "Gentoo GNU/Linux"]) == "grub-set-default 'Gentoo GNU/Linux'"


class TestChroot:
    """Test chroot command routing."""

    def test_host_root_runs_directly(self):
        """Test that target root '/' runs the command without chroot."""
        with patch("gentoo_autobuilder.lib.chroot.run_cmd") as mock_run:
            chroot_cmd("/", ["locale-gen"])
        assert mock_run.call_args[0][0] == ["locale-gen"]

    def test_target_root_uses_chroot(self):
        """Test that other target roots go through chroot."""
        with patch("gentoo_autobuilder.lib.chroot.run_cmd") as mock_run:
            chroot_cmd("/mnt/gentoo", ["locale-gen"], dry_run=True)
        assert mock_run.call_args[0][0] == ["chroot", "/mnt/gentoo", "locale-gen"]
        assert mock_run.call_args[1]["dry_run"] is True

    def test_binds_noop_for_host_root(self):
        """Test that no mounts happen when configuring the running system."""
        with patch("gentoo_autobuilder.lib.chroot.run_cmd") as mock_run:
            with chroot_binds("/"):
                pass
        mock_run.assert_not_called()

    def test_binds_unmount_on_error(self):
        """Test that virtual filesystems are unmounted even when the block fails."""
        with patch("gentoo_autobuilder.lib.chroot.run_cmd") as mock_run:
            with pytest.raises(RuntimeError):
                with chroot_binds("/mnt/gentoo"):
                    raise RuntimeError("boom")
        argvs = [c[0][0] for c in mock_run.call_args_list]
        assert ["mount", "--types", "proc", "/proc", "/mnt/gentoo/proc"] in argvs
        assert ["umount", "-R", "-l", "/mnt/gentoo/proc"] in argvs

    def test_target_path(self):
        """Test that absolute paths are re-rooted."""
        assert str(target_path("/mnt/gentoo", "/etc/fstab")) == "/mnt/gentoo/etc/fstab"
