from __future__ import annotations

import logging
import os
import platform
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

from .command import command_exists, run_cmd

logger = logging.getLogger(__name__)


def normalize_arch(machine: str) -> str:
    m = machine.lower()
    return {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
    }.get(m, m)


def _read_text(path: Path) -> Optional[str]:
    try:
        txt = path.read_text(encoding="utf-8", errors="ignore").strip()
        return txt or None
    except OSError:
        return None


def detect_firmware(sys_root: Path = Path("/")) -> str:
    """Boot mode of the running environment: 'efi' or 'bios'."""

    if (sys_root / "sys/firmware/efi").exists():
        return "efi"
    return "bios"


def detect_cpu_vendor(cpuinfo: Path = Path("/proc/cpuinfo")) -> str:
    txt = _read_text(cpuinfo) or ""
    for line in txt.splitlines():
        if line.startswith("vendor_id"):
            value = line.split(":", 1)[1].strip()
            if value == "AuthenticAMD":
                return "amd"
            if value == "GenuineIntel":
                return "intel"
            return value.lower()
    return "unknown"


def cpu_cores() -> int:
    return os.cpu_count() or 4


def on_battery(*, dry_run: bool = False) -> bool:
    """True only when on_ac_power exists and reports battery (exit 1)."""

    if not command_exists("on_ac_power"):
        return False
    return run_cmd(["on_ac_power"], check=False, dry_run=dry_run).returncode == 1


def free_space_gib(path: Path) -> Optional[float]:
    probe = path
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    try:
        return shutil.disk_usage(probe).free / (1024 ** 3)
    except OSError:
        return None


def detect_hardware() -> Dict[str, Any]:
    hw: Dict[str, Any] = {
        "arch": normalize_arch(platform.machine()),
        "firmware": detect_firmware(),
        "cpu_vendor": detect_cpu_vendor(),
        "cpu_cores": cpu_cores(),
    }
    logger.info("Hardware detected: %s", hw)
    return hw
