from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ..lib.chroot import target_path
from ..lib.hwdetect import cpu_cores
from ..lib.mode import ExecutionMode, mode_from_config


@dataclass(frozen=True)
class StepCtx:
    cfg: Dict[str, Any]
    hardware: Dict[str, Any]
    target_root: str
    mode: ExecutionMode
    jobs: int

    @property
    def dry_run(self) -> bool:
        return self.mode.dry_run

    @property
    def fresh_install(self) -> bool:
        return bool(self.cfg.get("target_disk"))

    @property
    def firmware(self) -> str:
        return str(self.hardware.get("firmware") or "efi")

    def path(self, rel: str) -> Path:
        return target_path(self.target_root, rel)


def step_ctx(state: Dict[str, Any]) -> StepCtx:
    cfg = state.get("config") or {}
    return StepCtx(
        cfg=cfg,
        hardware=state.get("hardware") or {},
        target_root=str(cfg.get("target_root") or "/"),
        mode=mode_from_config(cfg),
        jobs=int(cfg.get("jobs") or cpu_cores()),
    )
