"""Command line entry point for port-kill."""

import argparse
import logging
import sys
import threading

from portkill.config import (
    DEFAULT_END_PORT,
    DEFAULT_START_PORT,
    MonitorConfiguration,
    parse_port_list,
)
from portkill.console import ConsoleReporter
from portkill.engine import LISTERS, Engine, build_engine
from portkill.errors import ConfigurationError, TerminationError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TERMINATION_FAILED = 1
EXIT_CONFIG_ERROR = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="port-kill",
        description="Monitor development processes on TCP ports and kill them on demand.",
    )
    parser.add_argument(
        "-s", "--start-port", type=int, default=DEFAULT_START_PORT,
        help="starting port for range scanning (inclusive, default %(default)s)",
    )
    parser.add_argument(
        "-e", "--end-port", type=int, default=DEFAULT_END_PORT,
        help="ending port for range scanning (inclusive, default %(default)s)",
    )
    parser.add_argument(
        "-p", "--ports", type=str, default=None,
        help="comma-separated ports to monitor, overrides the start/end range",
    )
    parser.add_argument("-c", "--console", action="store_true", help="run in console mode")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable verbose logging")
    parser.add_argument(
        "-d", "--docker", action="store_true", help="enable Docker container monitoring"
    )
    parser.add_argument("-P", "--show-pid", action="store_true", help="show process IDs")
    parser.add_argument(
        "--lister", choices=sorted(LISTERS), default="psutil",
        help="how listening sockets are discovered (default %(default)s)",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument("--kill", type=int, metavar="PID", help="kill one process and exit")
    action.add_argument(
        "--kill-all", action="store_true", help="kill every process on the monitored ports and exit"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> MonitorConfiguration:
    """Build and validate the configuration. Raises ConfigurationError."""
    ports = parse_port_list(args.ports) if args.ports is not None else None
    return MonitorConfiguration.resolve(
        start_port=args.start_port,
        end_port=args.end_port,
        ports=ports,
        docker_enabled=args.docker,
    )


def configure_logging(verbose: bool, tui: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    if tui:
        # Writing to stderr would corrupt the Textual screen
        from textual.logging import TextualHandler

        handler: logging.Handler = TextualHandler()
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def run_kill(engine: Engine, pid: int | None) -> int:
    """Run a one-shot --kill or --kill-all command."""
    try:
        if pid is not None:
            engine.terminator.terminate(pid)
            print(f"Killed process {pid}")
        else:
            count = engine.terminator.terminate_all()
            print(f"Killed {count} process(es) on {engine.config.describe()}")
    except TerminationError as e:
        print(f"port-kill: {e}", file=sys.stderr)
        return EXIT_TERMINATION_FAILED
    return EXIT_OK


def run_console(engine: Engine, show_pid: bool) -> int:
    """Print change events until interrupted."""
    print("Port Kill Console Monitor Started!")
    print(f"Monitoring {engine.config.describe()} every {engine.config.poll_interval:g} seconds...")
    print("Press Ctrl+C to quit")
    print()

    stop_event = threading.Event()
    reporter = ConsoleReporter(engine.updates, show_pid=show_pid)
    engine.monitor.start()
    try:
        reporter.run(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    finally:
        engine.monitor.stop()
    return EXIT_OK


def run_tui(engine: Engine, show_pid: bool) -> int:
    from portkill.app import PortKillApp

    app = PortKillApp(engine, show_pid=show_pid)
    try:
        app.run()
    finally:
        engine.monitor.stop()
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Entry point for the port-kill command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        print(f"port-kill: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    one_shot = args.kill is not None or args.kill_all
    configure_logging(args.verbose, tui=not (args.console or one_shot))
    logger.info("Monitoring %s", config.describe())

    engine = build_engine(config, lister=args.lister)
    if one_shot:
        return run_kill(engine, args.kill)
    if args.console:
        return run_console(engine, args.show_pid)
    return run_tui(engine, args.show_pid)


if __name__ == "__main__":
    sys.exit(main())
