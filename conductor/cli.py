"""
Main CLI interface for QA Conductor.

Provides the ``run`` and ``list`` commands. Progress messages and logs go to
stderr; stdout belongs to the reporter.
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .core.config import Config, VALID_LOG_LEVELS
from .core.exceptions import ConductorError, ConfigurationError
from .core.logging_config import setup_logging
from .execution.driver import ExecutionDriver
from .execution.models import ArtifactCaptureConfig, RunConfig


EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def _status(message: str) -> None:
    print(message, file=sys.stderr)


def _configure_logging(args: argparse.Namespace) -> str:
    config = Config.from_env()
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.verbose:
        config.log_level = "DEBUG"
    config.validate()

    run_id = f"run-{uuid.uuid4().hex[:8]}"
    setup_logging(config, run_id)
    return run_id


def build_run_config(args: argparse.Namespace) -> RunConfig:
    """Merge command-line options over an optional config file."""
    overrides: Dict[str, Any] = {
        "globs": args.globs or None,
        "tag": args.tag,
        "filter": args.filter,
        "flags": args.flag,
        "retries": getattr(args, "retries", None),
        "reporter": getattr(args, "reporter", None),
        "reporter_options": getattr(args, "reporter_options", None),
        "timeout": getattr(args, "timeout", None),
    }

    artifacts_dir = getattr(args, "artifacts_dir", None)
    if artifacts_dir:
        overrides["artifacts"] = ArtifactCaptureConfig(enabled=True, output_dir=Path(artifacts_dir))

    if args.config:
        return RunConfig.from_file(args.config, **overrides)
    return RunConfig.build(**{key: value for key, value in overrides.items() if value is not None})


def cmd_run(args: argparse.Namespace) -> int:
    """Run the selected tests and report."""
    try:
        run_id = _configure_logging(args)
        config = build_run_config(args)

        _status("🚀 Starting test run...")
        driver = ExecutionDriver(config, run_id=run_id)
        stats = asyncio.run(driver.run())

        if stats.ok:
            _status(f"✅ {stats.passes} passing, {stats.pending} pending")
            return EXIT_OK

        _status(
            f"❌ {stats.failures} failing ({stats.hook_failures} in hooks), "
            f"{stats.passes} passing, {stats.pending} pending"
        )
        return EXIT_FAILURES

    except ConfigurationError as e:
        _status(f"❌ Configuration error: {e}")
        for violation in e.violations:
            _status(f"   • {violation}")
        return EXIT_CONFIG_ERROR
    except ConductorError as e:
        _status(f"❌ Run failed: {e}")
        return EXIT_FAILURES
    except KeyboardInterrupt:
        _status("⚠️  Run interrupted")
        return EXIT_INTERRUPTED


def cmd_list(args: argparse.Namespace) -> int:
    """Print the tests a run with these options would select."""
    try:
        run_id = _configure_logging(args)
        config = build_run_config(args)
        plan = ExecutionDriver(config, run_id=run_id).plan()
    except ConfigurationError as e:
        _status(f"❌ Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    for decision in plan.decisions:
        if decision.included:
            print(decision.test.full_title)
        elif args.verbose:
            print(f"# {decision.test.full_title} ({decision.reason})")

    _status(f"📋 {len(plan.selected)} of {plan.total} tests selected")
    return EXIT_OK


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "globs",
        nargs="*",
        help="Suite file patterns (recursive ** supported)",
    )
    parser.add_argument(
        "--tag", "-t",
        action="append",
        help="Tag expression: 'name', '#name' or '!name' (repeatable)",
    )
    parser.add_argument(
        "--filter", "-f",
        help="Regular expression searched in full test titles",
    )
    parser.add_argument(
        "--flag",
        action="append",
        help="Enable a feature flag (repeatable)",
    )
    parser.add_argument(
        "--config", "-c",
        help="YAML or JSON file with run settings",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        help="Log level",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="qa-conductor",
        description="QA Conductor - tag-selected end-to-end test runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  qa-conductor run "suites/**/*.py" --tag smoke --tag '!slow'
  qa-conductor run suites/checkout.py --reporter xunit --reporter-options output=report.xml
  qa-conductor run suites/ui.py --artifacts-dir artifacts/ --retries 2
  qa-conductor list "suites/**/*.py" --tag role:admin
        """
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"qa-conductor {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run selected tests"
    )
    _add_selection_arguments(run_parser)
    run_parser.add_argument(
        "--retries", "-r",
        type=int,
        help="Extra attempts for failing tests",
    )
    run_parser.add_argument(
        "--reporter", "-R",
        help="Reporter name (spec, xunit, json)",
    )
    run_parser.add_argument(
        "--reporter-options", "-O",
        help="Reporter options, e.g. output=report.xml",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        help="Per test and hook timeout in seconds",
    )
    run_parser.add_argument(
        "--artifacts-dir",
        help="Capture failure artifacts into this directory",
    )
    run_parser.set_defaults(func=cmd_run)

    # List command
    list_parser = subparsers.add_parser(
        "list",
        help="List tests selected by the given options"
    )
    _add_selection_arguments(list_parser)
    list_parser.set_defaults(func=cmd_list)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return EXIT_FAILURES

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
