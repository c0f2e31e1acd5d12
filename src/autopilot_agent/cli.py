"""
Command-line interface for autopilot-agent.
"""
import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from typing import Any, Dict

from . import __version__
from .config import AgentConfig
from .exceptions import AutopilotError, ConflictError
from .logging_config import configure_from_config, setup_logging as configure_logging
from .remediation import RemediationEngine

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, quiet: bool = False, debug: bool = False,
                  log_file: str = None) -> None:
    """Configure logging level based on verbosity flags."""
    if debug:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    elif verbose:
        level = 'INFO'
    else:
        level = 'WARNING'
    configure_logging(level=level, log_file=log_file, include_timestamp=verbose or debug)


def _load_config(args: argparse.Namespace) -> AgentConfig:
    config = AgentConfig.load(args.config_file) if args.config_file else AgentConfig.load()
    config.validate()
    return config


def handle_serve(args: argparse.Namespace) -> int:
    """
    Handle the serve subcommand.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    from .web import run_server

    try:
        config = _load_config(args)
        # Verbosity flags on the command line win over the logging section
        if not (args.verbose or args.quiet or args.debug):
            configure_from_config(config, log_file=args.log_file)
        if args.autopilot:
            config.autopilot_enabled = True
        run_server(config, host=args.host, port=args.port, debug=args.debug)
        return 0
    except KeyboardInterrupt:
        return 130
    except AutopilotError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


def handle_simulate(args: argparse.Namespace) -> int:
    """
    Handle the simulate subcommand.

    Runs alert episodes against an in-process engine with no remote target
    and prints the resulting status and incident history as JSON.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        config = _load_config(args)
        if args.delay is not None:
            config = replace(config, autopilot_delay_seconds=args.delay)
        config.validate()
    except AutopilotError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    engine = RemediationEngine(config)
    engine.set_autopilot(args.autopilot)
    steps = []

    try:
        for episode in range(1, args.alerts + 1):
            try:
                alert = engine.trigger_alert()
            except ConflictError as e:
                steps.append({"episode": episode, "alert": None, "error": str(e)})
                continue
            step: Dict[str, Any] = {"episode": episode, "alert": alert}

            if args.autopilot:
                engine.wait_for_autopilot()
                result = engine.autopilot.last_result
                step["autopilot"] = result.to_dict() if result else None
            elif args.scale is not None:
                result = engine.scale(args.scale)
                step["scale"] = result.to_dict()

            step["monitor"] = engine.monitor().to_dict()
            steps.append(step)

            if args.rollback:
                step["rollback"] = engine.rollback().to_dict()
    except KeyboardInterrupt:
        return 130

    report = {
        "config": asdict(config) if args.verbose else None,
        "steps": steps,
        "status": engine.get_status(),
        "pending_approvals": [a.to_dict() for a in engine.list_pending_approvals()],
        "incidents": [i.to_dict() for i in engine.list_incident_history()],
        "statistics": engine.get_incident_statistics(),
    }
    print(json.dumps(report, indent=2, default=str))
    return 0


def handle_version(args: argparse.Namespace) -> int:
    """
    Handle the version subcommand.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    print(f"autopilot-agent version {__version__}")
    print("Policy-gated autonomic remediation controller")

    if args.verbose:
        print(f"\nPython: {sys.version}")

    return 0


def handle_config(args: argparse.Namespace) -> int:
    """
    Handle the config subcommand.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    config = AgentConfig.load(args.config_file) if args.config_file else AgentConfig.load()

    if args.action == "validate":
        try:
            config.validate()
        except AutopilotError as e:
            print(f"ERROR: Configuration validation failed - {e}")
            return 1
        print("Configuration is valid")
        return 0

    print(json.dumps(asdict(config), indent=2))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser with subcommands.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="autopilot-agent",
        description="autopilot-agent: policy-gated autonomic remediation controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the HTTP control plane
  %(prog)s serve --port 3001

  # Run an offline alert scenario with autopilot
  %(prog)s simulate --autopilot --delay 0

  # Manual remediation that needs approval
  %(prog)s simulate --scale 15

  # Show version and configuration
  %(prog)s version
  %(prog)s config show

Environment Variables:
  AUTOPILOT_ENABLED         Start with autopilot on (default: false)
  AUTOPILOT_MAX_REPLICAS    Largest scale admitted without approval (default: 10)
  AUTOPILOT_REGISTRY_PATH   Service registry file (default: services.json)
  AUTOPILOT_LOG_LEVEL       Logging level (default: INFO)
        """
    )

    # Global flags (available to all subcommands)
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Enable quiet mode (only errors)"
    )
    parser.add_argument(
        "--config-file",
        metavar="PATH",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (overrides --verbose and --quiet)"
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Also write logs to this file"
    )

    subparsers = parser.add_subparsers(
        dest="subcommand",
        help="Available subcommands"
    )

    # ========================================
    # SERVE subcommand
    # ========================================
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP control plane",
        description="Serve the controller and service registry over HTTP"
    )
    serve_parser.add_argument("--host", help="Host to bind to (default: from config)")
    serve_parser.add_argument("--port", type=int, help="Port to listen on (default: from config)")
    serve_parser.add_argument(
        "--autopilot",
        action="store_true",
        help="Start with autopilot enabled"
    )
    serve_parser.set_defaults(func=handle_serve)

    # ========================================
    # SIMULATE subcommand
    # ========================================
    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Run alert episodes offline",
        description="Trigger simulated alerts and print the controller's response"
    )
    simulate_parser.add_argument(
        "--alerts",
        type=int,
        default=1,
        help="Number of alert episodes to run (default: 1)"
    )
    simulate_parser.add_argument(
        "--autopilot",
        action="store_true",
        help="Let autopilot remediate each alert"
    )
    simulate_parser.add_argument(
        "--scale",
        type=int,
        metavar="N",
        help="Manually scale to N replicas after each alert (ignored with --autopilot)"
    )
    simulate_parser.add_argument(
        "--rollback",
        action="store_true",
        help="Roll back after each episode"
    )
    simulate_parser.add_argument(
        "--delay",
        type=float,
        metavar="SECONDS",
        help="Override the autopilot delay"
    )
    simulate_parser.set_defaults(func=handle_simulate)

    # ========================================
    # VERSION subcommand
    # ========================================
    version_parser = subparsers.add_parser(
        "version",
        help="Show version information"
    )
    version_parser.set_defaults(func=handle_version)

    # ========================================
    # CONFIG subcommand
    # ========================================
    config_parser = subparsers.add_parser(
        "config",
        help="Show or validate configuration"
    )
    config_parser.add_argument(
        "action",
        nargs="?",
        choices=["show", "validate"],
        default="show",
        help="Config action (default: show)"
    )
    config_parser.set_defaults(func=handle_config)

    return parser


def main() -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(
        verbose=args.verbose,
        quiet=args.quiet,
        debug=args.debug,
        log_file=args.log_file,
    )

    if not hasattr(args, 'func'):
        parser.print_help()
        sys.exit(1)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
