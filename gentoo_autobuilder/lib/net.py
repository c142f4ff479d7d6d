from __future__ import annotations

import logging

from .command import run_cmd

logger = logging.getLogger(__name__)


def is_online(hosts: tuple[str, ...] = ("gentoo.org", "8.8.8.8"), *, dry_run: bool = False) -> bool:
    """Best-effort online check."""

    for host in hosts:
        if run_cmd(["ping", "-c", "1", "-W", "2", host], check=False, dry_run=dry_run).ok:
            return True
    return False
