"""Unit tests for execution modes and confirmation prompts."""

from gentoo_autobuilder.lib.mode import ExecutionMode, ask_confirm, mode_from_config


class TestExecutionMode:
    """Test mode flags and their derived properties."""

    def test_normal(self):
        """Test that the default mode is interactive and live."""
        mode = mode_from_config({})
        assert mode == ExecutionMode.NORMAL
        assert not mode.dry_run
        assert not mode.non_interactive
        assert not mode.forced

    def test_flags_combine(self):
        """Test that dry-run and force can be combined."""
        mode = mode_from_config({"dry_run": True, "force": True})
        assert mode.dry_run
        assert mode.forced
        assert mode.non_interactive

    def test_auto_is_not_forced(self):
        """Test that auto answers prompts but does not override safety aborts."""
        mode = mode_from_config({"auto": True})
        assert mode.non_interactive
        assert not mode.forced


class TestAskConfirm:
    """Test ask_confirm answers."""

    def test_auto_answers_yes_without_prompting(self):
        """Test that non-interactive modes never read input."""
        def fail(_prompt):
            raise AssertionError("prompted")

        assert ask_confirm("Continue?", ExecutionMode.AUTO, input_fn=fail) is True
        assert ask_confirm("Continue?", ExecutionMode.FORCE, input_fn=fail) is True

    def test_yes_variants(self):
        """Test accepted spellings of yes."""
        for answer in ("y", "Y", "yes", "YES", " Yes "):
            assert ask_confirm("Continue?", ExecutionMode.NORMAL, input_fn=lambda _p, a=answer: a) is True

    def test_default_is_no(self):
        """Test that empty and other answers mean no."""
        for answer in ("", "n", "no", "yep"):
            assert ask_confirm("Continue?", ExecutionMode.NORMAL, input_fn=lambda _p, a=answer: a) is False

    def test_eof_is_no(self):
        """Test that a closed stdin counts as no."""
        def eof(_prompt):
            raise EOFError

        assert ask_confirm("Continue?", ExecutionMode.NORMAL, input_fn=eof) is False
