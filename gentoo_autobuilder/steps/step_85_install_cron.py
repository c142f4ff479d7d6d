from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import chroot_binds
from ..lib.conffile import set_config_var, write_file
from ..lib.portage import emerge_all, rc_update_add
from .context import step_ctx

logger = logging.getLogger(__name__)

CRON_FILE = "etc/cron.d/gentoo_autobuilder"
CRON_LOG = "/var/log/gentoo_autobuilder_cron.log"


def cron_contents(config_path: str) -> str:
    return (
        "# Weekly system maintenance (non-interactive)\n"
        f"0 4 * * 1 root gentoo-autobuilder --force --config {config_path} >> {CRON_LOG} 2>&1\n"
    )


class InstallCronStep:
    step_id = "85_install_cron"
    title = "Installing maintenance cron job"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        if not ctx.cfg.get("cron_enabled", True):
            logger.info("Cron job disabled by config")
            return state

        config_path = str((state.get("execution") or {}).get("paths", {}).get("config") or "/etc/gentoo-autobuilder.yaml")

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            failed = emerge_all(ctx.target_root, ["sys-process/cronie"], mode=ctx.mode, jobs=ctx.jobs)
            if not failed:
                rc_update_add(ctx.target_root, "cronie", dry_run=ctx.dry_run)

        write_file(ctx.path(CRON_FILE), cron_contents(config_path), dry_run=ctx.dry_run, mode=0o644)
        set_config_var(ctx.path("etc/rc.conf"), "rc_parallel", "YES", dry_run=ctx.dry_run)
        logger.info("Cron installed and parallel boot enabled")
        return state
