from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.stage3 import DEFAULT_BASE_URL, deploy_stage3
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)


class DeployStage3Step:
    step_id = "25_deploy_stage3"
    title = "Base system deployment (stage3)"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        stage3 = ctx.cfg.get("stage3") or {}

        result = deploy_stage3(
            target_root=ctx.target_root,
            base_url=str(stage3.get("base_url") or DEFAULT_BASE_URL),
            arch=str(stage3.get("arch") or "amd64"),
            flavour=str(stage3.get("flavour") or "openrc"),
            skip_checksum=bool(ctx.cfg.get("skip_checksum", False)),
            dry_run=ctx.dry_run,
        )
        record_decision(state, "stage3", result["stage3"])
        return state
