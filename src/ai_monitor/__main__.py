# Main Entry Point - AI Monitoring Agent CLI
#
#   ai-monitor start    Run the agent in the foreground (Ctrl+C stops it)
#   ai-monitor test     Start, run one synthetic detection, stop
#   ai-monitor status   Print the running agent's status snapshot

import argparse
import json
import logging
import signal
import sys
import threading
import time
from typing import List, Optional

from . import __version__
from .agent import AIMonitoringAgent, StatusStore
from .core import AgentConfig, configure_audit_logger, load_config
from .exceptions import InvalidConfiguration, StatusReadError

logger = logging.getLogger("ai_monitor")

NOT_RUNNING_MESSAGE = "Agent is not running or status file is missing."


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run_foreground(agent: AIMonitoringAgent, stop_requested: threading.Event) -> None:
    """Start the agent and block until ``stop_requested`` is set."""
    agent.start()
    print("\n=== AI Monitoring Agent Started ===")
    print("The agent is now monitoring for AI tool usage.")
    print("Press Ctrl+C to stop.\n")

    try:
        while not stop_requested.wait(1.0):
            pass
    finally:
        print("\nStopping agent...")
        agent.stop()
        print("Agent stopped successfully.")


def cmd_start(config: AgentConfig, args: argparse.Namespace) -> int:
    stop_requested = threading.Event()

    def handle_signal(signum, frame):
        stop_requested.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    run_foreground(AIMonitoringAgent(config), stop_requested)
    return 0


def cmd_test(config: AgentConfig, args: argparse.Namespace) -> int:
    agent = AIMonitoringAgent(config)
    print("Starting test mode...")
    agent.start()
    try:
        record = agent.trigger_test()
        print(f"Test detection {record.event.id}: "
              f"decision={record.decision.decision}, action={record.result.action}, "
              f"success={record.result.success}")
        print("Test completed. Stopping agent...")
        time.sleep(args.wait)
    finally:
        agent.stop()
    return 0


def cmd_status(config: AgentConfig, args: argparse.Namespace) -> int:
    print("\n=== Agent Status ===")
    try:
        status = StatusStore(config.status_file).read()
    except StatusReadError as e:
        print(f"Failed to read agent status: {e}", file=sys.stderr)
        return 1

    if status is None:
        print(NOT_RUNNING_MESSAGE)
    else:
        print(json.dumps(status, indent=2))
    return 0


def _common_options(subcommand: bool) -> argparse.ArgumentParser:
    """--config / --verbose, accepted before or after the command.

    The subcommand copy suppresses its defaults so it never overwrites a
    value given before the command.
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=argparse.SUPPRESS if subcommand else None,
                        help="JSON config file (default: $AI_MONITOR_CONFIG)")
    common.add_argument("-v", "--verbose", action="store_true",
                        default=argparse.SUPPRESS if subcommand else False,
                        help="Enable debug logging")
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-monitor",
        description="AI Monitoring Agent - detects AI tool usage and applies policy",
        parents=[_common_options(subcommand=False)],
    )
    parser.add_argument("--version", action="version", version=f"AI Monitor v{__version__}")

    common = _common_options(subcommand=True)
    sub = parser.add_subparsers(dest="command")

    p_start = sub.add_parser("start", parents=[common], help="Start the monitoring agent")
    p_start.set_defaults(func=cmd_start)

    p_test = sub.add_parser("test", parents=[common], help="Run a test detection")
    p_test.add_argument("--wait", type=float, default=3.0,
                        help="Seconds to keep running after the test (default: 3)")
    p_test.set_defaults(func=cmd_test)

    p_status = sub.add_parser("status", parents=[common], help="Show agent status")
    p_status.set_defaults(func=cmd_status)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except InvalidConfiguration as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.command != "status":
        configure_audit_logger(config.log_dir)

    return args.func(config, args)


if __name__ == "__main__":
    sys.exit(main())
