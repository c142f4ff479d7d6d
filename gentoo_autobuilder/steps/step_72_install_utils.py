from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import chroot_binds
from ..lib.portage import emerge_all
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)


class InstallUtilsStep:
    step_id = "72_install_utils"
    title = "Installing common utilities"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        packages = [str(p) for p in (ctx.cfg.get("utility_packages") or [])]
        if not packages:
            return state

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            failed = emerge_all(ctx.target_root, packages, mode=ctx.mode, jobs=ctx.jobs)

        record_decision(state, "utils_failed_packages", failed)
        return state
