from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import InstallError

logger = logging.getLogger(__name__)


class CommandError(InstallError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        msg = f"Command failed ({returncode}): {fmt_argv(argv)}"
        if stderr:
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)
        self.argv = list(argv)
        self.returncode = returncode
        self.exit_code = returncode or 1


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
    capture: bool = True,
) -> CmdResult:
    """Run a command with consistent logging.

    - dry_run logs the command and returns success without executing.
    - capture=False lets long builds stream to the terminal.
    - Success is exit code zero; anything else raises CommandError when check is set.
    """

    argv_list = [str(a) for a in argv]

    if dry_run:
        logger.info("DRY-RUN %s", fmt_argv(argv_list))
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    logger.info("RUN %s", fmt_argv(argv_list))

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.PIPE if capture else None,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError as e:
        # exit status of a shell that cannot find the program
        if check:
            raise CommandError(argv_list, 127, str(e)) from e
        return CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(e))

    stdout = p.stdout or ""
    stderr = p.stderr or ""
    if stdout:
        logger.debug("STDOUT %s", stdout.strip())
    if stderr:
        logger.debug("STDERR %s", stderr.strip())

    if p.returncode == 0:
        logger.info("OK %s", argv_list[0])
    else:
        logger.warning("Exit %s from %s", p.returncode, fmt_argv(argv_list))

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout, stderr=stderr)
