from __future__ import annotations

import logging
from typing import Any, Dict

from ..errors import InstallError
from ..lib.chroot import chroot_binds, chroot_cmd
from ..lib.conffile import append_line_once, set_config_var
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)


def sanitize_hostname(name: str) -> str:
    return "".join(c for c in name if c.isascii() and (c.isalnum() or c == "-"))


class LocalizationStep:
    step_id = "40_localization"
    title = "Configuring system localization"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        timezone = str(ctx.cfg.get("timezone") or "UTC")
        locale = str(ctx.cfg.get("locale") or "en_US.UTF-8")
        hostname = sanitize_hostname(str(ctx.cfg.get("hostname") or "gentoo")) or "gentoo"

        if not ctx.dry_run and not ctx.path(f"usr/share/zoneinfo/{timezone}").exists():
            raise InstallError(f"Unknown timezone: {timezone}")

        charset = locale.split(".", 1)[1] if "." in locale else "UTF-8"
        append_line_once(ctx.path("etc/locale.gen"), f"{locale} {charset}", dry_run=ctx.dry_run)
        set_config_var(ctx.path("etc/conf.d/hostname"), "hostname", hostname, dry_run=ctx.dry_run)

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            chroot_cmd(ctx.target_root, ["ln", "-sf", f"/usr/share/zoneinfo/{timezone}", "/etc/localtime"], dry_run=ctx.dry_run)
            chroot_cmd(ctx.target_root, ["locale-gen"], dry_run=ctx.dry_run)
            chroot_cmd(ctx.target_root, ["eselect", "locale", "set", locale], dry_run=ctx.dry_run)
            chroot_cmd(ctx.target_root, ["env-update"], dry_run=ctx.dry_run)

        record_decision(state, "locale", locale)
        record_decision(state, "timezone", timezone)
        record_decision(state, "hostname", hostname)
        logger.info("Localized: timezone=%s locale=%s hostname=%s", timezone, locale, hostname)
        return state
