from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import DEFAULT_CONFIG_PATH, load_config, merge_config, write_default_config
from .errors import InstallError, InstallInterrupted
from .lib.backup import BackupManager, install_signal_handlers, restore_signal_handlers
from .lib.command import CommandError
from .lib.mode import mode_from_config
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import Step, run_pipeline
from .state_store import ensure_defaults, load_state, save_state
from .steps import (
    BuildKernelStep,
    ConfigurePortageStep,
    ConfigureServicesStep,
    CreateBackupStep,
    CreateUserStep,
    DeployStage3Step,
    FinalizeStep,
    InstallBootloaderStep,
    InstallCronStep,
    InstallDesktopStep,
    InstallFirmwareStep,
    InstallUtilsStep,
    LocalizationStep,
    PartitionFilesystemStep,
    PreflightStep,
    PrepareChrootStep,
)

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = "/var/lib/gentoo-autobuilder/state.json"


def build_steps(
    cfg: Dict[str, Any],
    manager: BackupManager,
    input_fn: Callable[[str], str] = input,
) -> List[Step]:
    """Ordered step list; the disk steps only exist for a fresh install."""

    steps: List[Step] = [PreflightStep()]
    if cfg.get("target_disk"):
        steps += [
            PartitionFilesystemStep(input_fn=input_fn),
            DeployStage3Step(),
            PrepareChrootStep(),
        ]
    steps += [
        CreateBackupStep(manager),
        ConfigurePortageStep(),
        LocalizationStep(),
        InstallFirmwareStep(),
        BuildKernelStep(),
        InstallBootloaderStep(),
        InstallDesktopStep(),
        InstallUtilsStep(),
        ConfigureServicesStep(),
    ]
    if cfg.get("cron_enabled", True):
        steps.append(InstallCronStep())
    steps += [CreateUserStep(input_fn=input_fn), FinalizeStep()]
    return steps


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, (CommandError, InstallInterrupted)):
        return exc.exit_code
    if isinstance(exc, KeyboardInterrupt):
        return 130
    if isinstance(exc, InstallError):
        return exc.exit_code
    return 1


def run(
    *,
    config_path: str = DEFAULT_CONFIG_PATH,
    state_path: str = DEFAULT_STATE_PATH,
    log_path: str = DEFAULT_LOG_PATH,
    overrides: Optional[Dict[str, Any]] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    rerun: bool = False,
    input_fn: Callable[[str], str] = input,
) -> Dict[str, Any]:
    """Run the pipeline, persisting state for resume and rolling back on failure.

    A dry-run never writes the state file: its completed steps only describe
    what would have happened, and a later real run must not skip them.
    """

    actual_log_path = configure_logging(log_path=log_path)

    cfg = merge_config(load_config(config_path), overrides or {})
    if cfg.get("target_disk"):
        cfg["target_root"] = cfg.get("install_root") or "/mnt/gentoo"
    mode = mode_from_config(cfg)

    state = ensure_defaults(load_state(state_path))
    state["config"] = cfg
    paths = state["execution"].setdefault("paths", {})
    paths["config"] = str(Path(config_path).resolve())
    paths["log_path_requested"] = log_path
    paths["log_path_actual"] = actual_log_path

    logger.info("Starting gentoo-autobuilder (mode=%s, target_root=%s)", mode, cfg["target_root"])

    manager = BackupManager.from_config(cfg, dry_run=mode.dry_run)
    steps = build_steps(cfg, manager, input_fn=input_fn)
    previous_handlers = install_signal_handlers()

    try:
        result = run_pipeline(
            state=state,
            steps=steps,
            start_at=start_at,
            stop_after=stop_after,
            rerun=rerun,
        )
        state = result.state
        state["execution"].setdefault("summary", {})["ran_steps"] = result.ran_steps
        state["execution"].setdefault("summary", {})["skipped_steps"] = result.skipped_steps
        return state
    except (Exception, KeyboardInterrupt, InstallInterrupted) as e:
        logger.exception("Run failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e) or type(e).__name__,
            }
        )
        if not mode.dry_run:
            save_state(state_path, state)
        manager.on_failure(exit_code_for(e))
    finally:
        restore_signal_handlers(previous_handlers)
        if mode.dry_run:
            logger.info("Dry-run: state file %s left untouched", state_path)
        else:
            save_state(state_path, state)


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for flag in ("dry_run", "auto", "force", "skip_checksum"):
        if getattr(args, flag):
            out[flag] = True
    if args.jobs is not None:
        out["jobs"] = args.jobs
    if args.target_disk:
        out["target_disk"] = args.target_disk
    backup: Dict[str, Any] = {}
    if args.backup_dir:
        backup["dir"] = args.backup_dir
    if args.keep_backups is not None:
        backup["keep"] = args.keep_backups
    if backup:
        out["backup"] = backup
    return out


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="gentoo-autobuilder")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to YAML configuration")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to run state (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to log file")
    p.add_argument("--dry-run", action="store_true", help="Log commands without executing or writing files")
    p.add_argument("--auto", action="store_true", help="Answer yes to all prompts")
    p.add_argument("--force", action="store_true", help="Like --auto, and override safety aborts")
    p.add_argument("-j", "--jobs", type=int, default=None, help="Parallel build jobs")
    p.add_argument("--skip-checksum", action="store_true", help="Do not verify the stage3 SHA512 digest")
    p.add_argument("--target-disk", default=None, help="Disk to wipe for a fresh install (e.g. /dev/sda)")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 50_build_kernel)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--rerun", action="store_true", help="Re-run steps even if marked completed")
    p.add_argument("--backup-dir", default=None, help="Directory for backup archives")
    p.add_argument("--keep-backups", type=int, default=None, help="Number of backup archives to keep")
    p.add_argument("--init-config", action="store_true", help="Write the default configuration and exit")

    args = p.parse_args(argv)

    if args.init_config or not Path(args.config).exists():
        configure_logging(log_path=args.log)
        write_default_config(args.config)
        logger.info("Review %s, then run gentoo-autobuilder again.", args.config)
        return 0

    run(
        config_path=args.config,
        state_path=args.state,
        log_path=args.log,
        overrides=_cli_overrides(args),
        start_at=args.start_at,
        stop_after=args.stop_after,
        rerun=args.rerun,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
