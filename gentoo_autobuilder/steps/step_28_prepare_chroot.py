from __future__ import annotations

import logging
import shutil
from typing import Any, Dict

from ..errors import InstallError
from ..lib.conffile import write_file
from ..lib.fstab import FstabEntry, get_uuid, render_fstab, root_options
from ..state_store import record_decision
from .context import step_ctx

logger = logging.getLogger(__name__)


class PrepareChrootStep:
    step_id = "28_prepare_chroot"
    title = "Chroot preparation (repos.conf, DNS, fstab)"

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ctx = step_ctx(state)
        mounts = (state.get("execution") or {}).get("mounts") or {}
        root_part = mounts.get("root_part")
        esp_part = mounts.get("esp_part")
        if not root_part:
            raise InstallError("Missing root_part; run partition step first")

        repos_src = ctx.path("usr/share/portage/config/repos.conf")
        repos_dst = ctx.path("etc/portage/repos.conf/gentoo.conf")
        if ctx.dry_run:
            logger.info("Would copy %s -> %s", repos_src, repos_dst)
            logger.info("Would copy /etc/resolv.conf into the target")
        else:
            repos_dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(repos_src, repos_dst)
            # follow the live system's symlinked resolv.conf
            shutil.copyfile("/etc/resolv.conf", ctx.path("etc/resolv.conf"), follow_symlinks=True)

        fs = str(ctx.cfg.get("root_fs") or "xfs")
        root_uuid = get_uuid(root_part, dry_run=ctx.dry_run)
        entries = [FstabEntry(spec=f"UUID={root_uuid}", mountpoint="/", fstype=fs, options=root_options(fs), passno=1)]
        if esp_part:
            esp_uuid = get_uuid(esp_part, dry_run=ctx.dry_run)
            entries.append(
                FstabEntry(spec=f"UUID={esp_uuid}", mountpoint="/boot/efi", fstype="vfat", options="umask=0077,noatime", passno=2)
            )
        write_file(ctx.path("etc/fstab"), render_fstab(entries), dry_run=ctx.dry_run)

        record_decision(state, "root_uuid", root_uuid)
        logger.info("Chroot prepared at %s (root_uuid=%s)", ctx.target_root, root_uuid)
        return state
