#!/usr/bin/env python3
"""Resource Explorer Setup - Command Line Entry Point.

Runs the same discover, setup and destroy actions as the Lambda handler
from a workstation, using local AWS credentials.
"""

import sys
import json
import argparse
from typing import List, Optional

from botocore.exceptions import NoCredentialsError, ProfileNotFound

from . import __version__
from .core.aws_client import AWSClientManager
from .core.config import Configuration, ConfigurationError
from .handler import build_orchestrator, configure_logging
from .orchestrator import (
    ACTIONS,
    ACTION_SETUP,
    AccountProcessingError,
    InvocationError,
)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="AWS Resource Explorer multi-account setup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s discover                               # List active member accounts
  %(prog)s setup --accounts 111111111111          # Set up one account
  %(prog)s config.yaml setup --skip-aggregator    # Use specific configuration file
  %(prog)s destroy --accounts 111111111111 222222222222
        """,
    )

    parser.add_argument(
        "config_file",
        nargs="?",
        help="Path to configuration file (default: auto-detect config.yaml)",
    )

    parser.add_argument(
        "action",
        nargs="?",
        choices=ACTIONS,
        default=ACTION_SETUP,
        help="Action to run (default: setup)",
    )

    parser.add_argument(
        "--accounts",
        nargs="+",
        metavar="ACCOUNT_ID",
        help="Account ids to process (setup defaults to discovered accounts)",
    )

    parser.add_argument(
        "--skip-aggregator",
        action="store_true",
        help="Do not discover or promote an aggregator index",
    )

    parser.add_argument(
        "--skip-default-view",
        action="store_true",
        help="Do not create the default view",
    )

    parser.add_argument(
        "--profile", help="AWS profile name to use for credentials"
    )

    parser.add_argument(
        "--region", help="Aggregator-home region (overrides configuration file)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Resource Explorer Setup v{__version__}",
    )

    args = parser.parse_args(argv)

    # A lone positional that names an action is the action, not a config file
    if args.config_file in ACTIONS and args.action == ACTION_SETUP:
        args.action, args.config_file = args.config_file, None

    return args


def build_event(args: argparse.Namespace) -> dict:
    """Translate arguments into an invocation payload."""
    event = {"action": args.action}
    if args.accounts:
        event["accounts"] = args.accounts
    if args.skip_aggregator:
        event["skipAggregator"] = True
    if args.skip_default_view:
        event["skipDefaultView"] = True
    return event


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        args = parse_arguments(argv)

        try:
            config = Configuration(args.config_file)
        except ConfigurationError as e:
            print(f"❌ Configuration error: {e}", file=sys.stderr)
            return 1

        if args.region:
            config.set("aws.home_region", args.region)
        if args.profile:
            config.set("aws.profile_name", args.profile)

        configure_logging(config.get_log_level())

        try:
            aws_client = AWSClientManager(
                profile_name=config.get_profile_name(),
                default_region=config.get_control_region(),
            )
        except (NoCredentialsError, ProfileNotFound) as e:
            print(f"❌ AWS client initialization failed: {e}", file=sys.stderr)
            return 1

        orchestrator = build_orchestrator(config, aws_client)

        try:
            result = orchestrator.handle(build_event(args))
        except AccountProcessingError as e:
            print(json.dumps({"error": str(e), "results": e.results}, indent=2))
            print(f"❌ {e}", file=sys.stderr)
            return 1
        except InvocationError as e:
            print(f"❌ Invalid request: {e}", file=sys.stderr)
            return 1

        print(json.dumps(result, indent=2))
        return 0

    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"\n❌ Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
