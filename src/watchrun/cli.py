"""CLI entry point for watchrun: watch paths and run a command pipeline on change."""

import argparse
import asyncio
import logging
import sys

from watchrun import __version__
from watchrun.controller import WatchController, install_signal_handlers
from watchrun_engine.config import EngineConfig, build_engine_config
from watchrun_engine.exceptions import WatchrunError

logger = logging.getLogger("watchrun")

_TRUE = {"1", "t", "true", "yes", "on"}
_FALSE = {"0", "f", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="watchrun",
        description="Run a pipeline of commands whenever watched files change.",
        epilog="Control tokens (exact --cmd values): {check} {kill} {wait}\n"
        "Placeholders inside commands: {file} {dir} {name} {ext}\n\n"
        "Examples:\n"
        "  watchrun -c 'go build' -c {check} -c ./app -p '*.go' src/\n"
        "  watchrun -c {kill} -c 'make run' --delay 2 .\n"
        "  watchrun -c 'gofmt -w {file}' --no-init",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--cmd",
        dest="commands",
        action="append",
        default=[],
        metavar="CMD",
        help="command or control token to append to the pipeline (repeatable)",
    )
    parser.add_argument("-p", "--pattern", default="*", help="include pattern (default: *)")
    parser.add_argument(
        "-e", "--except", dest="exclude", default="", metavar="PATTERN", help="exclude pattern"
    )
    parser.add_argument("-v", dest="verbose", action="store_true", help="verbose output")
    parser.add_argument(
        "--delay", type=int, default=1, metavar="SECONDS", help="debounce window (default: 1)"
    )
    parser.add_argument(
        "--init",
        type=_parse_bool,
        nargs="?",
        const=True,
        default=True,
        metavar="BOOL",
        help="run the pipeline once at startup (default: true)",
    )
    parser.add_argument("--no-init", dest="init", action="store_false", help="same as --init=false")
    parser.add_argument(
        "--wait", type=int, default=1, metavar="SECONDS", help="duration of {wait} (default: 1)"
    )
    parser.add_argument("paths", nargs="*", help="files or directories to watch (default: ./)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    return build_parser().parse_args(argv)


def configure_logging(verbose: bool) -> None:
    """Diagnostics only in verbose mode; errors always."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s" if not verbose else "%(asctime)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )
    # watchdog's own debug output drowns ours
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def config_from_args(args: argparse.Namespace) -> EngineConfig:
    """Build the engine configuration from parsed arguments."""
    return build_engine_config(
        args.commands,
        pattern=args.pattern,
        exclude=args.exclude,
        verbose=args.verbose,
        delay=args.delay,
        run_on_start=args.init,
        wait=args.wait,
        paths=args.paths,
    )


async def _watch(controller: WatchController) -> None:
    stop_event = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), stop_event)
    await controller.run(stop_event)


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the watchrun CLI.

    Exits 0 after a termination signal and 1 on any startup failure.
    """
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = config_from_args(args)
        logger.debug(f"match pattern: {config.include}")
        if config.exclude:
            logger.debug(f"except pattern: {config.exclude}")
        logger.debug("commands:")
        for command in args.commands:
            logger.debug(f"\t{command}")

        controller = WatchController(config)
        asyncio.run(_watch(controller))
    except KeyboardInterrupt:
        # Only reached where the loop cannot install signal handlers
        pass
    except WatchrunError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
