# llm_whip/cli.py

"""
Command line interface: watch, audit, init, tail
"""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core.baseline import open_baseline_store
from .core.exceptions import ConfigError
from .core.pattern_engine import compile_filters
from .processing.audit import AuditScanner, record_baseline
from .reactions.dispatcher import ReactionDispatcher
from .utils.config import Config, load_config
from .utils.logger import setup_logging
from .utils.platform_utils import platform_name
from .watchdog.monitor import FileMonitor
from .watchdog.stream import StreamMonitor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

DEFAULT_INIT_FILE = "llm-whip.yaml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-whip",
        description="Watch source directories and react when an AI assistant writes placeholder code.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (default: from config)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--log-format", choices=["text", "color", "json"], default=None)

    subparsers = parser.add_subparsers(dest="command", required=True)

    watch = subparsers.add_parser("watch", help="Watch directories for new cheating patterns")
    watch.add_argument("directories", nargs="*", default=["."], help="Directories to watch (default: .)")
    watch.add_argument("--config", "-c", help="Config file (default: llm-whip.yaml in the working directory)")
    watch.add_argument("--grep", action="append", default=[], metavar="REGEX",
                       help="Only report files whose content matches REGEX (repeatable)")
    watch.add_argument("--no-gitignore", action="store_true", help="Do not apply .gitignore rules")
    watch.add_argument("--polling", action="store_true", help="Poll for changes instead of OS notifications")
    watch.add_argument("--plain", action="store_true", help="Plain alerts without colors")

    audit = subparsers.add_parser("audit", help="Report existing patterns and record them as the baseline")
    audit.add_argument("directories", nargs="*", default=["."], help="Directories to scan (default: .)")
    audit.add_argument("--config", "-c", help="Config file")
    audit.add_argument("--no-baseline", action="store_true", help="Only report, do not record a baseline")

    init = subparsers.add_parser("init", help="Write a starter configuration file")
    init.add_argument("directory", nargs="?", default=".", help="Where to create the file (default: .)")
    init.add_argument("--format", choices=["yaml", "json"], default="yaml")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    tail = subparsers.add_parser("tail", help="Follow a log of assistant output")
    tail.add_argument("logfile", help="Log file to follow")
    tail.add_argument("--config", "-c", help="Config file")
    tail.add_argument("--from-end", action="store_true", help="Skip content already in the file")

    return parser


def configure_logging(args: argparse.Namespace, config: Optional[Config] = None):
    settings = config.logging if config is not None else None
    setup_logging(
        log_level=args.log_level or (settings.level if settings else "INFO"),
        log_file=args.log_file or (settings.file if settings else None),
        log_format=args.log_format or (settings.format if settings else "text"),
    )


async def _wait_for_shutdown():
    """Block until SIGINT or SIGTERM"""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows: KeyboardInterrupt cancels the main task instead
            pass
    await stop_event.wait()


async def run_watch(config: Config, directories: List[str]) -> int:
    logger.info(f"llm-whip {__version__} starting on {platform_name()}")
    dispatcher = ReactionDispatcher(config.reactions)
    monitor = FileMonitor(config, directories, dispatcher=dispatcher)
    monitor.register_callback(
        'on_watching', lambda directory: logger.info(f"Watching {directory}")
    )
    monitor.register_callback(
        'on_baseline_update', lambda entries: logger.debug(f"Baseline grew by {len(entries)} entries")
    )

    try:
        if not await monitor.start():
            return EXIT_FAILURE
        sys.stderr.write("llm-whip is watching. Press Ctrl+C to stop.\n")
        await _wait_for_shutdown()
    except asyncio.CancelledError:
        pass
    finally:
        await monitor.stop()
        await dispatcher.close()

    return EXIT_OK


def run_audit_command(config: Config, directories: List[str], record: bool) -> int:
    report = AuditScanner(config).scan(directories)

    for match in report.matches:
        print(f"{match.location}  [{match.severity.value}] {match.pattern}: {match.full_line}")

    summary = report.summary()
    if summary:
        print(" | ".join(f"{severity.upper()}: {count}" for severity, count in summary.items()))
    else:
        print("No cheating patterns detected.")

    if record:
        store = open_baseline_store(config.baseline.path, enabled=config.baseline.enabled)
        count = record_baseline(report, store)
        print(f"Recorded baseline with {count} existing patterns")

    return EXIT_OK


def run_init(directory: str, fmt: str, force: bool) -> int:
    target = Path(directory) / ("llm-whip.json" if fmt == "json" else DEFAULT_INIT_FILE)
    if target.exists() and not force:
        sys.stderr.write(f"{target} already exists, use --force to overwrite\n")
        return EXIT_FAILURE

    Config().save(target)
    print(f"Created {target}")
    return EXIT_OK


async def run_tail(config: Config, logfile: str, from_end: bool) -> int:
    dispatcher = ReactionDispatcher(config.reactions)
    monitor = StreamMonitor(config, dispatcher=dispatcher)
    await dispatcher.prepare()

    tail_task = asyncio.create_task(monitor.tail(logfile, from_start=not from_end))
    try:
        await _wait_for_shutdown()
    except asyncio.CancelledError:
        pass
    finally:
        monitor.stop()
        await tail_task
        await dispatcher.close()

    return EXIT_OK


def _apply_watch_overrides(config: Config, args: argparse.Namespace):
    if args.grep:
        config.watch.grep_patterns = list(config.watch.grep_patterns) + list(args.grep)
    if args.no_gitignore:
        config.watch.respect_gitignore = False
    if args.polling:
        config.watch.use_polling = True
    if args.plain:
        config.reactions.alert_format = "plain"


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        configure_logging(args)
        return run_init(args.directory, args.format, args.force)

    try:
        config = load_config(args.config)
        if args.command == "watch":
            compile_filters(args.grep, label="grep")
            _apply_watch_overrides(config, args)
    except ConfigError as e:
        sys.stderr.write(f"llm-whip: configuration error: {e}\n")
        return EXIT_CONFIG_ERROR

    configure_logging(args, config)

    if args.command == "audit":
        return run_audit_command(config, args.directories, record=not args.no_baseline)

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    try:
        if args.command == "watch":
            return asyncio.run(run_watch(config, args.directories))
        if args.command == "tail":
            return asyncio.run(run_tail(config, args.logfile, args.from_end))
    except KeyboardInterrupt:
        return EXIT_OK

    parser.error(f"Unknown command: {args.command}")
    return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
