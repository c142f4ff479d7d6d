from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..lib.chroot import chroot_binds, chroot_cmd
from ..lib.conffile import write_file
from ..lib.portage import emerge_all, rc_update_add
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)

UFW_RULES: List[List[str]] = [
    ["ufw", "default", "deny", "incoming"],
    ["ufw", "default", "allow", "outgoing"],
    ["ufw", "allow", "ssh"],
    ["ufw", "--force", "enable"],
]


class ConfigureServicesStep:
    step_id = "80_configure_services"
    title = "Establishing security foundation and core services"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        firewall = bool(ctx.cfg.get("firewall_enabled", True))

        packages = ["app-admin/sudo", "net-misc/chrony", "net-misc/dhcpcd"]
        if firewall:
            packages.append("net-firewall/ufw")

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            failed = emerge_all(ctx.target_root, packages, mode=ctx.mode, jobs=ctx.jobs)

            logger.info("Setting up sudo for the 'wheel' group...")
            write_file(ctx.path("etc/sudoers.d/wheel"), "%wheel ALL=(ALL:ALL) ALL\n", dry_run=ctx.dry_run, mode=0o440)

            if firewall and "net-firewall/ufw" not in failed:
                for argv in UFW_RULES:
                    chroot_cmd(ctx.target_root, argv, dry_run=ctx.dry_run)
                rc_update_add(ctx.target_root, "ufw", dry_run=ctx.dry_run)

            for service, pkg in (("chronyd", "net-misc/chrony"), ("dhcpcd", "net-misc/dhcpcd")):
                if pkg not in failed:
                    rc_update_add(ctx.target_root, service, dry_run=ctx.dry_run)

        record_decision(state, "firewall_enabled", firewall)
        return state
