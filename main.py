"""
Contract Client - Main Entry Point
Runs the Box interaction or account listing flow against a local node
"""

import sys
import argparse
from typing import List, Optional

from utils import configure_logging, load_config
from scripts import get_instance, list_accounts

COMMANDS = {
    'instance': get_instance.main,
    'accounts': list_accounts.main,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser"""
    parser = argparse.ArgumentParser(
        prog="contract-client",
        description="Interact with contracts deployed on a local node",
    )
    parser.add_argument(
        "command",
        choices=sorted(COMMANDS),
        help="instance: read/store/read the Box contract; accounts: list node accounts",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to client_config.json (default: config/client_config.json)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write DEBUG logs to this file",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Cannot load config: {e}", file=sys.stderr)
        return 1

    return COMMANDS[args.command](config)


if __name__ == "__main__":
    sys.exit(main())
