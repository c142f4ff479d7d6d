from __future__ import annotations

import enum
import logging
import re
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

_YES = re.compile(r"^[yY]([eE][sS])?$")


class ExecutionMode(enum.Flag):
    NORMAL = 0
    DRY_RUN = enum.auto()
    AUTO = enum.auto()
    FORCE = enum.auto()

    @property
    def dry_run(self) -> bool:
        return bool(self & ExecutionMode.DRY_RUN)

    @property
    def non_interactive(self) -> bool:
        return bool(self & (ExecutionMode.AUTO | ExecutionMode.FORCE))

    @property
    def forced(self) -> bool:
        return bool(self & ExecutionMode.FORCE)


def mode_from_config(cfg: Mapping[str, Any]) -> ExecutionMode:
    mode = ExecutionMode.NORMAL
    if cfg.get("dry_run"):
        mode |= ExecutionMode.DRY_RUN
    if cfg.get("auto"):
        mode |= ExecutionMode.AUTO
    if cfg.get("force"):
        mode |= ExecutionMode.FORCE
    return mode


def ask_confirm(
    prompt: str,
    mode: ExecutionMode,
    *,
    input_fn: Callable[[str], str] = input,
) -> bool:
    """Ask a yes/no question; auto and force modes always answer yes."""

    if mode.non_interactive:
        logger.info("%s [auto-yes]", prompt)
        return True
    try:
        answer = input_fn(f"{prompt} [y/N] ")
    except EOFError:
        answer = ""
    confirmed = bool(_YES.match(answer.strip()))
    logger.info("%s -> %s", prompt, "yes" if confirmed else "no")
    return confirmed
