"""
Merge Gate CLI

Command-line entry point. The process exit code carries the verdict:
0 succeeded, 1 failed, 2 timed out, 3 configuration error, 4 reporting
error, 75 still waiting (step), 130 cancelled.
"""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Dict, List

from . import __version__
from .checkpoint import CheckpointStore
from .logging_config import get_logger, setup_logging
from .main import (
    EXIT_CANCELLED,
    EXIT_CONFIGURATION_ERROR,
    EXIT_REPORTING_ERROR,
    CheckState,
    CheckpointError,
    ConfigurationError,
    GateCancelledError,
    GateConfig,
    ReportingError,
    parse_check_names,
)
from .metrics import get_metrics
from .orchestrator import GateOrchestrator
from .reporting import CompositeReporter, ConsoleReporter, GitHubStatusReporter, OutputLevel
from .reporting.base import ResultReporter
from .sources import CheckStatusSource, GitHubChecksSource, ScriptedStatusSource

logger = get_logger("cli")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="merge-gate",
        description="Wait for required checks and publish one merge verdict",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Global options
    parser.add_argument("--verbose", "-v", action="count", default=0, help="Increase verbosity")
    parser.add_argument("--quiet", "-q", action="store_true", help="Quiet mode")
    parser.add_argument("--log-file", help="Log to file")
    parser.add_argument("--config", help="YAML config file path")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    gate_options = argparse.ArgumentParser(add_help=False)
    gate_options.add_argument("--checks", help="Comma-separated required check names")
    gate_options.add_argument("--optional", help="Comma-separated optional check names")
    gate_options.add_argument("--max-wait-ms", type=int, help="Maximum time to wait")
    gate_options.add_argument("--poll-interval-ms", type=int, help="Time between ticks")
    gate_options.add_argument("--fetch-timeout-ms", type=int, help="Per-check fetch timeout")
    gate_options.add_argument("--repository", help="owner/name (default: $GITHUB_REPOSITORY)")
    gate_options.add_argument("--ref", help="Commit SHA to gate (default: $GITHUB_SHA)")
    gate_options.add_argument(
        "--source",
        choices=["github", "static"],
        default="github",
        help="Where check states come from",
    )
    gate_options.add_argument(
        "--state",
        action="append",
        dest="states",
        metavar="NAME=STATE",
        help="Fixed check state for --source static (repeatable)",
    )
    gate_options.add_argument(
        "--no-publish",
        action="store_true",
        help="Print the verdict only; do not post a commit status",
    )

    subparsers.add_parser("run", parents=[gate_options], help="Poll until a verdict is reached")

    step_parser = subparsers.add_parser(
        "step",
        parents=[gate_options],
        help="Poll once against a persisted checkpoint (for scheduled re-invocation)",
    )
    step_parser.add_argument("--checkpoint", help="Checkpoint file path")
    step_parser.add_argument("--reset", action="store_true", help="Discard the checkpoint first")

    config_parser = subparsers.add_parser("config", parents=[gate_options], help="Show configuration")
    config_parser.add_argument("--show", action="store_true", help="Show effective config")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, validate: bool = True) -> GateConfig:
    """Load config from file or environment, then apply CLI overrides"""
    if args.config:
        if not Path(args.config).exists():
            raise ConfigurationError(f"Config file not found: {args.config}")
        config = GateConfig.from_yaml(args.config)
    else:
        config = GateConfig.from_env()

    if args.checks is not None:
        config.required_checks = parse_check_names(args.checks)
    if args.optional is not None:
        config.optional_checks = parse_check_names(args.optional)
    if args.max_wait_ms is not None:
        config.max_wait_ms = args.max_wait_ms
    if args.poll_interval_ms is not None:
        config.poll_interval_ms = args.poll_interval_ms
    if args.fetch_timeout_ms is not None:
        config.fetch_timeout_ms = args.fetch_timeout_ms
    if args.repository:
        config.repository = args.repository
    if args.ref:
        config.ref = args.ref
    if getattr(args, "checkpoint", None):
        config.checkpoint_path = Path(args.checkpoint)

    return config.validate() if validate else config


def parse_states(pairs: List[str]) -> Dict[str, CheckState]:
    """Parse NAME=STATE pairs for the static source"""
    states: Dict[str, CheckState] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"--state expects NAME=STATE, got {pair!r}")
        try:
            states[name.strip()] = CheckState(value.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in CheckState)
            raise ConfigurationError(f"Unknown state {value!r} for {name}; choose from {choices}")
    return states


def build_source(args: argparse.Namespace, config: GateConfig) -> CheckStatusSource:
    if args.source == "static":
        return ScriptedStatusSource.static(parse_states(args.states))

    try:
        return GitHubChecksSource(
            repository=config.repository,
            ref=config.ref,
            token=config.token,
            api_url=config.api_url,
            timeout_ms=config.fetch_timeout_ms,
        )
    except ValueError as e:
        raise ConfigurationError(str(e))


def build_reporter(
    args: argparse.Namespace,
    config: GateConfig,
    console: ConsoleReporter,
) -> ResultReporter:
    reporters: List[ResultReporter] = [console]
    if not args.no_publish:
        try:
            reporters.append(GitHubStatusReporter(
                repository=config.repository,
                sha=config.ref,
                token=config.token,
                context=config.status_context,
                target_url=config.target_url,
                api_url=config.api_url,
            ))
        except ValueError as e:
            raise ConfigurationError(f"{e} (use --no-publish for a dry run)")
    return CompositeReporter(reporters)


def _install_signal_handlers(orchestrator: GateOrchestrator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform's event loop
            pass


async def run_gate(args: argparse.Namespace, console: ConsoleReporter) -> int:
    """Execute `run` or `step`"""
    config = build_config(args)
    source = build_source(args, config)
    reporter = build_reporter(args, config, console)
    metrics = get_metrics()
    metrics.metrics_path = config.metrics_path

    checkpoints = None
    if args.command == "step":
        checkpoints = CheckpointStore(config.checkpoint_path)
        if args.reset:
            checkpoints.clear()

    orchestrator = GateOrchestrator(
        config=config,
        source=source,
        reporter=reporter,
        metrics=metrics,
        checkpoints=checkpoints,
    )

    def on_started(event: str, state, **kwargs):
        console.run_started(
            state.run_id,
            [spec.name for spec in state.specs],
            state.deadline - state.started_at,
        )

    def on_tick(event: str, state, counts=None, **kwargs):
        console.tick_progress(state.ticks, counts or {})

    orchestrator.on("run.started", on_started)
    orchestrator.on("tick.completed", on_tick)
    _install_signal_handlers(orchestrator)

    try:
        if args.command == "step":
            outcome = await orchestrator.step()
        else:
            outcome = await orchestrator.run()
    finally:
        await source.close()

    console.summary(metrics.get_summary())
    return outcome.exit_code


def show_config(args: argparse.Namespace) -> int:
    """Show effective configuration"""
    config = build_config(args, validate=False)
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def main(argv=None) -> int:
    """Main entry point"""
    args = parse_args(argv)

    log_level = "DEBUG" if args.verbose >= 2 else ("INFO" if args.verbose >= 1 else "WARNING")
    if args.quiet:
        log_level = "ERROR"

    setup_logging(
        level=log_level,
        log_file=args.log_file,
        use_colors=not args.no_color,
    )

    output_level = OutputLevel.DEBUG if args.verbose >= 2 else (
        OutputLevel.VERBOSE if args.verbose >= 1 else (
            OutputLevel.QUIET if args.quiet else OutputLevel.NORMAL
        )
    )
    console = ConsoleReporter(level=output_level, use_colors=not args.no_color)

    try:
        if args.command in ("run", "step"):
            return asyncio.run(run_gate(args, console))
        elif args.command == "config":
            return show_config(args)
        else:
            print("Use --help for usage information")
            return 1
    except (ConfigurationError, CheckpointError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except ReportingError as e:
        print(f"Reporting error: {e}", file=sys.stderr)
        return EXIT_REPORTING_ERROR
    except (GateCancelledError, KeyboardInterrupt):
        logger.warning("Merge gate cancelled")
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
