from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.bootloader import install_grub, set_default_entry, set_kernel_cmdline, update_grub_config
from ..lib.chroot import chroot_binds
from ..lib.mode import ask_confirm
from ..lib.portage import emerge_all
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)


class InstallBootloaderStep:
    step_id = "60_install_bootloader"
    title = "Configuring bootloader"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        decisions = (state.get("execution") or {}).get("decisions") or {}

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            emerge_all(ctx.target_root, ["sys-boot/grub"], mode=ctx.mode, jobs=ctx.jobs)

            cmdline = str(ctx.cfg.get("grub_cmdline") or "")
            if cmdline:
                set_kernel_cmdline(ctx.target_root, cmdline, dry_run=ctx.dry_run)

            if ctx.fresh_install:
                install_grub(
                    target_root=ctx.target_root,
                    firmware=ctx.firmware,
                    disk=str(ctx.cfg.get("target_disk")),
                    dry_run=ctx.dry_run,
                )

            if not ask_confirm("Update GRUB configuration? This is required for microcode.", ctx.mode):
                logger.warning("GRUB update skipped. Microcode may not be loaded.")
                return state
            cfg_path = update_grub_config(ctx.target_root, dry_run=ctx.dry_run)
            record_decision(state, "grub_cfg", cfg_path)

            kernel = decisions.get("kernel")
            if kernel and not str(kernel).startswith("sys-kernel/"):
                set_default_entry(ctx.target_root, str(kernel), dry_run=ctx.dry_run)

        logger.info("Bootloader configured (firmware=%s)", ctx.firmware)
        return state
