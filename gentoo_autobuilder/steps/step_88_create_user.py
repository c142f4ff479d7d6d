from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Optional

from ..errors import InstallError
from ..lib.chroot import chroot_binds, chroot_cmd
from ..lib.mode import ask_confirm
from ..state_store import record_decision
from .context import StepCtx, step_ctx

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*$")


def user_exists(ctx: StepCtx, username: str) -> bool:
    passwd = ctx.path("etc/passwd")
    if not passwd.is_file():
        return False
    return any(line.split(":", 1)[0] == username for line in passwd.read_text(encoding="utf-8").splitlines())


class CreateUserStep:
    step_id = "88_create_user"
    title = "User creation"

    def __init__(self, input_fn: Callable[[str], str] = input):
        self.input_fn = input_fn

    def _prompt_username(self, ctx: StepCtx) -> str:
        while True:
            username = self.input_fn("Enter the desired username: ").strip()
            if not username:
                logger.warning("Username cannot be empty.")
            elif not USERNAME_RE.match(username):
                logger.warning("Invalid username format.")
            elif user_exists(ctx, username):
                logger.warning("User '%s' already exists.", username)
            else:
                return username

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        configured: Optional[str] = ctx.cfg.get("username")

        if configured:
            username = str(configured)
            if not USERNAME_RE.match(username):
                raise InstallError(f"Invalid config.username: {username!r}")
            if user_exists(ctx, username):
                logger.info("User '%s' already exists.", username)
                return state
        elif ctx.mode.non_interactive:
            logger.warning("User creation is skipped in non-interactive modes.")
            return state
        elif not ask_confirm("Would you like to create a new user?", ctx.mode, input_fn=self.input_fn):
            logger.info("Skipping user creation.")
            return state
        else:
            username = self._prompt_username(ctx)

        groups = str(ctx.cfg.get("user_groups") or "wheel,users")
        logger.info("Creating user '%s' (groups: %s)", username, groups)
        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            chroot_cmd(ctx.target_root, ["useradd", "-m", "-G", groups, "-s", "/bin/bash", username], dry_run=ctx.dry_run)
            if ctx.mode.non_interactive:
                logger.warning("No password set for '%s'; run passwd %s after first boot.", username, username)
            else:
                logger.info("Please set a password for the new user '%s'.", username)
                chroot_cmd(ctx.target_root, ["passwd", username], dry_run=ctx.dry_run, capture=False)

        record_decision(state, "user", {"username": username, "groups": groups})
        return state
