from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..lib.bootloader import grub_platform
from ..lib.chroot import chroot_binds
from ..lib.conffile import set_config_var, write_file
from ..lib.portage import sync_repository
from ..state_store import record_decision
from .context import StepCtx, step_ctx

logger = logging.getLogger(__name__)

PACKAGE_USE_FILE = "etc/portage/package.use/99_autobuilder_flags"


def make_conf_settings(ctx: StepCtx) -> Dict[str, str]:
    cfg = ctx.cfg
    jobs = ctx.jobs
    return {
        "COMMON_FLAGS": f"-march={cfg.get('cpu_march') or 'native'} -O2 -pipe",
        "CFLAGS": "${COMMON_FLAGS}",
        "CXXFLAGS": "${COMMON_FLAGS}",
        "FCFLAGS": "${COMMON_FLAGS}",
        "FFLAGS": "${COMMON_FLAGS}",
        "MAKEOPTS": f"-j{jobs} -l{jobs}",
        "EMERGE_DEFAULT_OPTS": f"--jobs={jobs} --load-average={jobs} --quiet-build=y --with-bdeps=y",
        "VIDEO_CARDS": str(cfg.get("video_cards") or ""),
        "INPUT_DEVICES": str(cfg.get("input_devices") or ""),
        "USE": str(cfg.get("use_flags") or ""),
        "ACCEPT_LICENSE": str(cfg.get("accept_license") or "@FREE"),
        "GRUB_PLATFORMS": grub_platform(ctx.firmware),
    }


class ConfigurePortageStep:
    step_id = "35_configure_portage"
    title = "Configuring Portage (make.conf, package.use)"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        make_conf = ctx.path("etc/portage/make.conf")

        changed: List[str] = []
        for key, value in make_conf_settings(ctx).items():
            if value and set_config_var(make_conf, key, value, dry_run=ctx.dry_run):
                changed.append(key)

        package_use = [str(line) for line in (ctx.cfg.get("package_use") or [])]
        if package_use:
            write_file(ctx.path(PACKAGE_USE_FILE), "\n".join(package_use) + "\n", dry_run=ctx.dry_run)

        if ctx.fresh_install:
            with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
                sync_repository(ctx.target_root, webrsync=bool(ctx.cfg.get("webrsync", True)), dry_run=ctx.dry_run)

        record_decision(state, "make_conf_changed", changed)
        logger.info("Portage configured (%d make.conf settings changed)", len(changed))
        return state
