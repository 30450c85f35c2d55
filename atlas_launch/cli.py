"""Atlas launch CLI: deploy, fund and verify commands."""

import argparse
import signal
import sys
from pathlib import Path
from typing import Optional

import structlog

from . import __version__
from .config.loader import ConfigLoader
from .errors import PersistenceError, PreflightError
from .logging.config import configure_logging
from .pipeline import LaunchPipeline, PhaseResult

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atlas-launch",
        description="Atlas launch orchestrator: resumable deploy, wiring, funding and verification"
    )
    parser.add_argument("--version", action="version", version=f"atlas-launch {__version__}")

    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a flat YAML configuration file"
    )
    parent_parser.add_argument(
        "--checkpoint",
        type=Path,
        default=None,
        help="Path to the deployed addresses checkpoint (overrides CHECKPOINT_PATH)"
    )
    parent_parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overrides LOG_LEVEL)"
    )
    parent_parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit JSON log lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser(
        "deploy",
        help="Deploy missing modules and apply capability grants",
        parents=[parent_parser]
    )
    deploy_parser.add_argument(
        "--force-redeploy",
        action="store_true",
        help="Redeploy recorded modules (only the named one with --module)"
    )
    deploy_parser.add_argument(
        "--module",
        default=None,
        help="Deploy only this module and its dependencies"
    )

    subparsers.add_parser(
        "fund",
        help="Fund allocation sinks and create vesting schedules",
        parents=[parent_parser]
    )
    subparsers.add_parser(
        "verify",
        help="Submit recorded modules for verification",
        parents=[parent_parser]
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point. Returns 0 on success, 1 on any failure."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    overrides = {
        "CHECKPOINT_PATH": str(args.checkpoint) if args.checkpoint else None,
        "LOG_LEVEL": args.log_level,
        "LOG_JSON": True if args.log_json else None,
    }

    try:
        settings = ConfigLoader.create(args.config).load(overrides)
    except PreflightError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(level=settings.log.level, format_json=settings.log.format_json)

    try:
        pipeline = LaunchPipeline(settings)
    except PreflightError as e:
        logger.error("Pipeline setup failed", error=str(e))
        return 1

    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: pipeline.cancel())
    try:
        result = _run_command(pipeline, args)
    except PersistenceError as e:
        logger.error("Checkpoint failure, operator action required",
                     operation=e.operation, target=e.target, error=str(e))
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    _report(result)
    return 0 if result.succeeded else 1


def _run_command(pipeline: LaunchPipeline, args: argparse.Namespace) -> PhaseResult:
    if args.command == "deploy":
        return pipeline.deploy(force_redeploy=args.force_redeploy, module=args.module)
    if args.command == "fund":
        return pipeline.fund()
    return pipeline.verify()


def _report(result: PhaseResult) -> None:
    if result.succeeded:
        logger.info("Phase completed", phase=result.phase)
    else:
        logger.error(
            "Phase failed",
            phase=result.phase,
            error_type=type(result.error).__name__ if result.error else None,
            error=str(result.error) if result.error else None
        )


if __name__ == "__main__":
    sys.exit(main())
