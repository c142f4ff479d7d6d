from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.backup import DEFAULT_BACKUP_PATHS, BackupManager
from .context import step_ctx

logger = logging.getLogger(__name__)


class CreateBackupStep:
    """Snapshot configuration before the first mutating configure step.

    Runs on every invocation so a resumed run also has a fresh rollback target.
    """

    step_id = "30_create_backup"
    title = "Creating system backup"
    always_run = True

    def __init__(self, manager: BackupManager):
        self.manager = manager

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        paths = (ctx.cfg.get("backup") or {}).get("paths") or list(DEFAULT_BACKUP_PATHS)

        archive = self.manager.create_snapshot(paths)
        state.setdefault("execution", {})["rollback_target"] = (
            str(self.manager.rollback_target) if self.manager.rollback_target else None
        )
        logger.info("Rollback target: %s", self.manager.rollback_target or f"none (dry-run: {archive})")
        return state
