from __future__ import annotations

import logging
from typing import Any, Dict

from ..errors import InstallError
from ..lib.chroot import chroot_binds
from ..lib.kernel import (
    DEFAULT_BUILTIN_SYMBOLS,
    KERNEL_CONFIG_STORE,
    build_kernel,
    enable_builtin_symbols,
    ensure_source_symlink,
    prepare_base_config,
    save_kernel_config,
    select_kernel_source,
)
from ..lib.mode import ask_confirm
from ..lib.portage import emerge_all
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)

DIST_KERNEL = "sys-kernel/gentoo-kernel-bin"


class BuildKernelStep:
    step_id = "50_build_kernel"
    title = "Building hardware-aware kernel"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        kcfg = ctx.cfg.get("kernel") or {}
        method = str(kcfg.get("method") or "source").lower()

        with chroot_binds(ctx.target_root, dry_run=ctx.dry_run):
            if method == "dist":
                emerge_all(ctx.target_root, [DIST_KERNEL], mode=ctx.mode, jobs=ctx.jobs)
                record_decision(state, "kernel", DIST_KERNEL)
                return state
            if method != "source":
                raise InstallError(f"Unsupported kernel.method={method!r} (expected 'source' or 'dist')")

            emerge_all(ctx.target_root, ["sys-kernel/gentoo-sources", "sys-kernel/genkernel"], mode=ctx.mode, jobs=ctx.jobs)

            usr_src = ctx.path("usr/src")
            try:
                source = select_kernel_source(usr_src)
            except InstallError:
                if not ctx.dry_run:
                    raise
                logger.warning("No kernel sources under %s yet; skipping kernel build in dry-run", usr_src)
                return state

            logger.info("Target kernel: %s", source.name)
            ensure_source_symlink(usr_src, source, dry_run=ctx.dry_run)
            save_kernel_config(source, ctx.path(KERNEL_CONFIG_STORE), dry_run=ctx.dry_run)
            prepare_base_config(ctx.target_root, source, dry_run=ctx.dry_run)
            symbols = kcfg.get("builtin_symbols") or DEFAULT_BUILTIN_SYMBOLS
            enable_builtin_symbols(source / ".config", symbols, dry_run=ctx.dry_run)

            if ask_confirm("Kernel configured. Begin compilation?", ctx.mode):
                build_kernel(ctx.target_root, source, jobs=ctx.jobs, dry_run=ctx.dry_run)
            else:
                logger.warning("Kernel build skipped by user.")
                record_decision(state, "kernel_build_skipped", True)

        kernel_name = source.name[len("linux-"):]
        record_decision(state, "kernel", kernel_name)
        return state
