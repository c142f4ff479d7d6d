from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from .lib.backup import DEFAULT_BACKUP_DIR, DEFAULT_BACKUP_PATHS, DEFAULT_KEEP
from .lib.kernel import DEFAULT_BUILTIN_SYMBOLS
from .lib.stage3 import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/gentoo-autobuilder.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    # Fresh install only when target_disk is set; otherwise the running system is configured.
    "target_disk": None,
    "install_root": "/mnt/gentoo",
    "target_root": "/",
    "root_fs": "xfs",
    "hostname": "gentoo",
    "timezone": "UTC",
    "locale": "en_US.UTF-8",
    "cpu_march": "native",
    "jobs": None,
    "video_cards": "amdgpu radeonsi",
    "input_devices": "libinput",
    "use_flags": "X elogind dbus policykit gtk udev udisks pulseaudio alsa -gnome -kde -systemd",
    "accept_license": "*",
    "package_use": [
        "sys-auth/polkit elogind",
        "x11-base/xorg-server elogind",
        "xfce-base/xfce4-session elogind",
        "x11-misc/lightdm gtk",
        "media-libs/mesa X gallium vulkan",
        "x11-libs/libnotify dbus",
    ],
    "webrsync": True,
    "desktop_packages": [
        "x11-base/xorg-server",
        "x11-misc/lightdm",
        "x11-misc/lightdm-gtk-greeter",
        "xfce-base/xfce4-meta",
        "xfce-extra/xfce4-goodies",
        "media-libs/mesa",
        "sys-auth/elogind",
    ],
    "utility_packages": [
        "app-arch/p7zip",
        "sys-fs/ntfs3g",
        "sys-fs/exfatprogs",
        "app-shells/bash-completion",
    ],
    "kernel": {
        "method": "source",
        "builtin_symbols": list(DEFAULT_BUILTIN_SYMBOLS),
    },
    "grub_cmdline": "quiet splash",
    "firewall_enabled": True,
    "username": None,
    "user_groups": "wheel,users,audio,video,usb,portage",
    "backup": {
        "dir": DEFAULT_BACKUP_DIR,
        "keep": DEFAULT_KEEP,
        "paths": list(DEFAULT_BACKUP_PATHS),
    },
    "stage3": {
        "base_url": DEFAULT_BASE_URL,
        "arch": "amd64",
        "flavour": "openrc",
    },
    "skip_checksum": False,
    "min_free_gib": 15,
    "cron_enabled": True,
    "finalize_reboot": False,
}


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursive merge; mappings merge key by key, everything else replaces."""

    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), dict):
            out[key] = merge_config(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def load_config(path: str) -> Dict[str, Any]:
    """Read the YAML config file and merge it over the defaults."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the autobuilder config") from e

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to load configuration from {path}. Check for syntax errors.") from e
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping/object")

    unknown = sorted(set(raw) - set(DEFAULT_CONFIG))
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        raw = {k: v for k, v in raw.items() if k not in unknown}

    return merge_config(default_config(), raw)


def write_default_config(path: str) -> None:
    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to write the autobuilder config") from e

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    header = (
        "# gentoo-autobuilder configuration\n"
        "# Set target_disk to run a fresh (destructive) installation onto that disk.\n"
        "# Leave it empty to configure the running system.\n"
    )
    p.write_text(header + yaml.safe_dump(default_config(), sort_keys=False), encoding="utf-8")
    logger.info("Default configuration written to %s", p)
