from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from ..errors import InstallError
from ..lib.storage import PartitionPlan, is_mountpoint, partition_and_format, unmount_recursive
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)


class PartitionFilesystemStep:
    step_id = "20_partition_fs"
    title = "Disk partitioning and formatting"

    def __init__(self, input_fn: Callable[[str], str] = input):
        self.input_fn = input_fn

    def _confirm_destruction(self, disk: str, ctx) -> None:
        logger.warning("ALL DATA ON %s WILL BE PERMANENTLY DESTROYED!", disk)
        if ctx.mode.non_interactive or ctx.dry_run:
            return
        answer = self.input_fn(f"To confirm, type the full device name ('{disk}'): ").strip()
        if answer != disk:
            raise InstallError("Confirmation failed. Aborting.")

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        disk = ctx.cfg.get("target_disk")
        if not disk:
            raise InstallError("config.target_disk is required for partitioning")

        self._confirm_destruction(disk, ctx)

        if not ctx.dry_run and is_mountpoint(ctx.target_root):
            logger.warning("Target mountpoint %s is already mounted; unmounting", ctx.target_root)
            unmount_recursive(ctx.target_root)

        plan = PartitionPlan(disk=disk, firmware=ctx.firmware, root_fs=str(ctx.cfg.get("root_fs") or "xfs"))
        result = partition_and_format(plan=plan, target_root=ctx.target_root, dry_run=ctx.dry_run)

        mounts = state.setdefault("execution", {}).setdefault("mounts", {})
        mounts["target_root"] = ctx.target_root
        mounts["root_part"] = result.root_part
        mounts["esp_part"] = result.esp_part
        record_decision(state, "root_fs", plan.root_fs)

        logger.info("Partitioned %s and mounted target_root=%s", disk, ctx.target_root)
        return state
