from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEACTIVATED_PREFIX = "# (deactivated by autobuilder) "
ADDED_MARKER = "# Added by gentoo-autobuilder"


def _assignment_re(key: str) -> "re.Pattern[str]":
    return re.compile(rf"^\s*{re.escape(key)}=(.*)$")


def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in {'"', "'"}:
        raw = raw[1:-1].replace('\\"', '"')
    return raw


def _quote(value: str) -> str:
    return '"' + str(value).replace('"', '\\"') + '"'


def _read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


def get_config_var(path: str | Path, key: str) -> Optional[str]:
    """Value of the last active KEY=... assignment, or None."""

    pattern = _assignment_re(key)
    value = None
    for line in _read_lines(Path(path)):
        m = pattern.match(line)
        if m:
            value = _unquote(m.group(1))
    return value


def set_config_var(path: str | Path, key: str, value: str, *, dry_run: bool = False) -> bool:
    """Set KEY="value" in a shell-style config file without duplicating assignments.

    Earlier active assignments are commented out (history is kept) and the new
    one is appended. Returns False when the file already holds exactly this
    assignment and nothing was changed.
    """

    p = Path(path)
    pattern = _assignment_re(key)
    lines = _read_lines(p)
    active = [i for i, line in enumerate(lines) if pattern.match(line)]

    if len(active) == 1:
        m = pattern.match(lines[active[0]])
        if m and _unquote(m.group(1)) == str(value):
            logger.info("%s already set in %s", key, p)
            return False

    if dry_run:
        logger.info("Would set %s=%s in %s", key, _quote(value), p)
        return True

    logger.info("Setting %s in %s", key, p)
    for i in active:
        lines[i] = DEACTIVATED_PREFIX + lines[i]
    lines += ["", ADDED_MARKER, f"{key}={_quote(value)}"]

    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("\n".join(lines).lstrip("\n") + "\n", encoding="utf-8")
    return True


def append_line_once(path: str | Path, line: str, *, dry_run: bool = False) -> bool:
    """Append a line unless an identical line is already present."""

    p = Path(path)
    lines = _read_lines(p)
    if any(existing.strip() == line.strip() for existing in lines):
        return False

    if dry_run:
        logger.info("Would append to %s: %s", p, line)
        return True

    p.parent.mkdir(parents=True, exist_ok=True)
    text = p.read_text(encoding="utf-8") if p.exists() else ""
    if text and not text.endswith("\n"):
        text += "\n"
    p.write_text(text + line + "\n", encoding="utf-8")
    logger.info("Appended to %s: %s", p, line)
    return True


def write_file(path: str | Path, contents: str, *, dry_run: bool = False, mode: int | None = None) -> None:
    p = Path(path)
    if dry_run:
        logger.info("Would write %s", p)
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(contents, encoding="utf-8")
    if mode is not None:
        os.chmod(p, mode)
    logger.info("Wrote %s", p)
