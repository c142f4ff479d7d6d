from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import chroot_binds
from ..lib.conffile import set_config_var, write_file
from ..lib.portage import emerge_all, rc_update_add
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)

LIGHTDM_CONF = "etc/lightdm/lightdm.conf.d/50-autobuilder.conf"

LIGHTDM_CONTENTS = "\n".join(
    [
        "[LightDM]",
        "minimum-display-server-timeout=10",
        "minimum-vt-timeout=10",
        "",
        "[Seat:*]",
        "user-session=xfce",
        "allow-user-switching=true",
        "allow-guest=false",
        "# No autologin",
        "",
    ]
)


class InstallDesktopStep:
    step_id = "70_install_desktop"
    title = "Installing XFCE desktop environment"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        packages = [str(p) for p in (ctx.cfg.get("desktop_packages") or [])]

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            failed = emerge_all(ctx.target_root, packages, mode=ctx.mode, jobs=ctx.jobs)

            logger.info("Configuring services for automatic startup...")
            write_file(ctx.path(LIGHTDM_CONF), LIGHTDM_CONTENTS, dry_run=ctx.dry_run)
            set_config_var(ctx.path("etc/conf.d/display-manager"), "DISPLAYMANAGER", "lightdm", dry_run=ctx.dry_run)
            for service in ("dbus", "elogind", "display-manager"):
                rc_update_add(ctx.target_root, service, "boot" if service == "elogind" else "default", dry_run=ctx.dry_run)

        record_decision(state, "desktop_failed_packages", failed)
        logger.info("Desktop stack installed (%d packages, %d skipped)", len(packages), len(failed))
        return state
