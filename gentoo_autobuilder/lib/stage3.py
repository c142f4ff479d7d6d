from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import InstallError
from .command import run_cmd

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://distfiles.gentoo.org/releases/amd64/autobuilds/"

_HASH_HEADER_RE = re.compile(r"^#\s*(?P<algo>[A-Z0-9]+)\s+HASH", re.IGNORECASE)
_HEX_LINE_RE = re.compile(r"^(?P<digest>[0-9a-fA-F]{32,})\s+\*?(?P<name>\S+)$")


def latest_listing_url(base_url: str, arch: str = "amd64", flavour: str = "openrc") -> str:
    return f"{base_url.rstrip('/')}/latest-stage3-{arch}-{flavour}.txt"


def parse_latest_listing(text: str) -> List[str]:
    """Tarball paths listed in a latest-stage3-*.txt file, in order.

    The file is PGP clear-signed; comment, armour and signature lines are skipped.
    """

    paths: List[str] = []
    in_signature = False
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("-----BEGIN PGP SIGNATURE"):
            in_signature = True
            continue
        if line.startswith("-----END PGP SIGNATURE"):
            in_signature = False
            continue
        if in_signature or not line or line.startswith("#") or line.startswith("-----") or ":" in line.split()[0]:
            continue
        first = line.split()[0]
        if ".tar." in first:
            paths.append(first)
    return paths


def parse_digests(text: str, filename: str, algo: str = "SHA512") -> Optional[str]:
    """Digest of ``filename`` for ``algo`` from a .DIGESTS file.

    Handles both the sectioned format ("# SHA512 HASH" headers) and plain
    "<hex>  <name>" lines; for plain lines the SHA512 length (128 hex chars) is used.
    """

    current: Optional[str] = None
    want_len = 128 if algo.upper() == "SHA512" else None
    for raw in text.splitlines():
        line = raw.strip()
        header = _HASH_HEADER_RE.match(line)
        if header:
            current = header.group("algo").upper()
            continue
        m = _HEX_LINE_RE.match(line)
        if not m or Path(m.group("name")).name != filename:
            continue
        if current is not None and current != algo.upper():
            continue
        if current is None and want_len is not None and len(m.group("digest")) != want_len:
            continue
        return m.group("digest").lower()
    return None


def sha512_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    h = hashlib.sha512()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_tarball(tarball: Path, digests_text: str) -> bool:
    expected = parse_digests(digests_text, tarball.name)
    if not expected:
        logger.warning("No SHA512 digest for %s", tarball.name)
        return False
    actual = sha512_file(tarball)
    if actual != expected:
        logger.warning("Checksum mismatch for %s", tarball.name)
        return False
    logger.info("Checksum OK for %s", tarball.name)
    return True


def fetch_text(url: str, *, dry_run: bool = False) -> str:
    r = run_cmd(["curl", "--fail", "-L", "-s", "--connect-timeout", "15", url], dry_run=dry_run)
    return r.stdout


def download(url: str, dest: Path, *, dry_run: bool = False) -> bool:
    r = run_cmd(["wget", "--tries=3", "--timeout=45", "-c", "-O", str(dest), url], check=False, dry_run=dry_run)
    if dry_run:
        return True
    return r.ok and dest.is_file() and dest.stat().st_size > 0


def unpack_stage3(tarball: Path, target_root: str, *, dry_run: bool = False) -> None:
    run_cmd(
        ["tar", "xpf", str(tarball), "--xattrs-include=*.*", "--numeric-owner", "-C", target_root],
        dry_run=dry_run,
    )


def deploy_stage3(
    *,
    target_root: str,
    base_url: str = DEFAULT_BASE_URL,
    arch: str = "amd64",
    flavour: str = "openrc",
    skip_checksum: bool = False,
    dry_run: bool = False,
) -> Dict[str, str]:
    """Download, verify and unpack the newest verifiable stage3 build."""

    listing_url = latest_listing_url(base_url, arch, flavour)
    logger.info("Fetching list of recent stage3 builds from %s", listing_url)
    if dry_run:
        candidates = [f"current-stage3-{arch}-{flavour}/stage3-{arch}-{flavour}-latest.tar.xz"]
    else:
        candidates = parse_latest_listing(fetch_text(listing_url))
    if not candidates:
        raise InstallError(f"No stage3 builds listed at {listing_url}")

    for attempt, build_path in enumerate(candidates, start=1):
        name = Path(build_path).name
        url = f"{base_url.rstrip('/')}/{build_path}"
        tarball = Path(target_root) / name
        digests = Path(target_root) / f"{name}.DIGESTS"
        logger.info("[Attempt %d] Trying build %s", attempt, build_path)

        if not download(url, tarball, dry_run=dry_run):
            logger.warning("Stage3 download failed. Trying next build...")
            continue

        if skip_checksum:
            logger.warning("DANGER: skipping checksum verification as requested.")
        elif not dry_run:
            if not download(f"{url}.DIGESTS", digests):
                logger.warning("Digests download failed. Trying next build...")
                tarball.unlink(missing_ok=True)
                continue
            if not verify_tarball(tarball, digests.read_text(encoding="utf-8", errors="replace")):
                tarball.unlink(missing_ok=True)
                digests.unlink(missing_ok=True)
                continue

        unpack_stage3(tarball, target_root, dry_run=dry_run)
        if not dry_run:
            tarball.unlink(missing_ok=True)
            digests.unlink(missing_ok=True)
        logger.info("Base system deployed from %s", name)
        return {"stage3": build_path, "url": url}

    raise InstallError(f"Failed to find a verifiable stage3 build after trying {len(candidates)} options")
