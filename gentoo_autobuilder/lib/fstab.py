from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import InstallError
from .command import run_cmd


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 0

    def render(self) -> str:
        return f"{self.spec}\t{self.mountpoint}\t{self.fstype}\t{self.options}\t{self.dump} {self.passno}"


def render_fstab(entries: Iterable[FstabEntry]) -> str:
    lines = ["# /etc/fstab: generated by gentoo-autobuilder", "# <fs>\t<mountpoint>\t<type>\t<opts>\t<dump> <pass>"]
    lines += [e.render() for e in entries]
    return "\n".join(lines) + "\n"


def root_options(fstype: str) -> str:
    if fstype == "xfs":
        return "defaults,noatime,logbufs=8,logbsize=256k"
    return "defaults,noatime"


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return filesystem UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], dry_run=dry_run)
    uuid = (r.stdout or "").strip()
    if not uuid and not dry_run:
        raise InstallError(f"Unable to determine UUID for {dev}")
    return uuid or "DRY-RUN-UUID"
