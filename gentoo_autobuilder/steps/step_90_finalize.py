from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.command import run_cmd
from ..lib.storage import unmount_recursive
from .context import step_ctx

logger = logging.getLogger(__name__)


class FinalizeStep:
    step_id = "90_finalize"
    title = "Finalizing system"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        decisions = (state.get("execution") or {}).get("decisions") or {}

        logger.info("--- RUN COMPLETE ---")
        logger.info("Finalize summary: %s", decisions)

        run_cmd(["sync"], check=False, dry_run=ctx.dry_run)
        if not ctx.fresh_install:
            logger.info("Recommended next step: reboot the system to apply all changes.")
            return state

        # Unmounting and reboot are operational and must be explicitly enabled.
        if bool(ctx.cfg.get("finalize_reboot", False)):
            unmount_recursive(ctx.target_root, dry_run=ctx.dry_run)
            run_cmd(["reboot"], dry_run=ctx.dry_run)
        else:
            logger.info("Installation complete. Run: umount -R %s && reboot", ctx.target_root)
        return state
