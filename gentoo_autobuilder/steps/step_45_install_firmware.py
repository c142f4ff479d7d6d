from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..lib.chroot import chroot_binds
from ..lib.portage import emerge_all
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)

MICROCODE_BY_VENDOR = {
    "intel": "sys-firmware/intel-microcode",
}


class InstallFirmwareStep:
    step_id = "45_install_firmware"
    title = "Installing firmware and microcode"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        vendor = str(ctx.hardware.get("cpu_vendor") or "unknown")

        packages: List[str] = ["sys-kernel/linux-firmware"]
        microcode = MICROCODE_BY_VENDOR.get(vendor)
        if microcode:
            logger.info("%s CPU detected. Installing %s.", vendor, microcode)
            packages.append(microcode)
        else:
            # AMD microcode ships inside linux-firmware
            logger.info("CPU vendor %s: microcode comes with linux-firmware.", vendor)

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            failed = emerge_all(ctx.target_root, packages, mode=ctx.mode, jobs=ctx.jobs)

        record_decision(state, "firmware_packages", [p for p in packages if p not in failed])
        return state
