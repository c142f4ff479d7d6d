from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

from ..errors import InstallError
from ..lib.command import command_exists, run_cmd
from ..lib.hwdetect import detect_hardware, free_space_gib, on_battery
from ..lib.net import is_online
from ..lib.storage import is_mountpoint
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)

INSTALL_TOOLS = ["curl", "wget", "sgdisk", "partprobe", "wipefs", "blockdev", "mkfs.vfat", "blkid", "chroot", "tar"]
CONFIGURE_TOOLS = ["emerge", "make", "rc-update"]


class PreflightStep:
    step_id = "10_preflight"
    title = "Running pre-flight safety checks"
    always_run = True

    def _fail(self, ctx, msg: str) -> None:
        if ctx.dry_run:
            logger.warning("%s (ignored in dry-run)", msg)
            return
        raise InstallError(msg)

    def _check_boot_mounts(self, ctx) -> None:
        """Kernel install and grub-mkconfig write to /boot; it must be mounted when separate."""

        if not run_cmd(["findmnt", "--verify"], check=False, dry_run=ctx.dry_run).ok:
            logger.warning("findmnt --verify reported problems in /etc/fstab")

        if is_mountpoint(str(ctx.path("boot")), dry_run=ctx.dry_run) or is_mountpoint(
            str(ctx.path("boot/efi")), dry_run=ctx.dry_run
        ):
            return
        logger.warning("Neither /boot nor /boot/efi mounted. GRUB steps may fail.")
        if ctx.mode.forced:
            logger.warning("Continuing due to --force")
            return
        self._fail(ctx, "Boot mounts required. Rerun with --force to override.")

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        state["hardware"] = detect_hardware()
        ctx = step_ctx(state)

        if os.geteuid() != 0:
            self._fail(ctx, "This program must be run as root.")

        tools = (INSTALL_TOOLS + [f"mkfs.{ctx.cfg.get('root_fs', 'xfs')}"]) if ctx.fresh_install else CONFIGURE_TOOLS
        missing: List[str] = [t for t in tools if not command_exists(t)]
        if missing:
            self._fail(ctx, f"Required commands not found: {' '.join(missing)}")

        if not ctx.fresh_install:
            if on_battery(dry_run=ctx.dry_run):
                if ctx.mode.forced:
                    logger.warning("Running on battery! Proceeding due to --force.")
                else:
                    self._fail(ctx, "System is on battery power. Unsafe for long compilations (use --force to override).")

            required = float(ctx.cfg.get("min_free_gib", 15))
            free = free_space_gib(ctx.path("usr/src"))
            if free is not None and free < required:
                self._fail(ctx, f"Not enough free space in /usr/src. Required: {required:.0f}G, Available: {free:.1f}G.")

            self._check_boot_mounts(ctx)

        online = is_online(dry_run=ctx.dry_run)
        if not online:
            if ctx.fresh_install:
                self._fail(ctx, "No internet connection; a fresh install has to download stage3.")
            else:
                logger.warning("Network is unreachable. Some steps may fail.")

        record_decision(state, "boot_mode", ctx.firmware)
        record_decision(state, "jobs", ctx.jobs)
        logger.info("Pre-flight checks passed (boot_mode=%s, jobs=%s)", ctx.firmware, ctx.jobs)
        return state
