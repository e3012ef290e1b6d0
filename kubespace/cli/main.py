#!/usr/bin/env python3
"""
kubespace CLI Tool
Provisions per-developer workspaces on Kubernetes and bootstraps their agent
"""

import argparse
import asyncio
import logging
import sys

from kubespace._codes import codes
from kubespace.cli.command.bootstrap import BootstrapCommand, RenderScriptCommand
from kubespace.cli.command.command import Command
from kubespace.cli.command.workspace import ApplyCommand, StatusCommand, StopCommand, TeardownCommand
from kubespace.common.exceptions import KubespaceException
from kubespace.logger import init_logger

logger = init_logger("kubespace.cli")

COMMANDS: list[type[Command]] = [
    ApplyCommand,
    StopCommand,
    TeardownCommand,
    StatusCommand,
    RenderScriptCommand,
    BootstrapCommand,
]


def create_parser(command_classes: list[type[Command]]):
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        prog="kubespace",
        description="kubespace workspace provisioning CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start a workspace (volumes are created on first apply)
  kubespace apply --owner alice --workspace dev --owner-email alice@example.com --agent-token $TOKEN

  # Stop it, keeping /home/coder and docker storage
  kubespace apply --owner alice --workspace dev --start-count 0

  # Remove the workspace and its data
  kubespace teardown --owner alice --workspace dev --yes

  # Print the init script the dev container runs
  kubespace render-script --access-url https://coder.example.com
        """,
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", help="Path to config file (default: $KUBESPACE_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for command_class in command_classes:
        asyncio.run(command_class.add_parser_to(subparsers))

    return parser


def find_command(command: str, subclasses: list[type[Command]]) -> type[Command] | None:
    """Find command by name"""
    for subclass in subclasses:
        if command == subclass.name:
            return subclass
    return None


def config_log(args: argparse.Namespace):
    """Configure logging"""
    if not args.verbose:
        return
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("kubespace"):
            logging.getLogger(name).setLevel(logging.DEBUG)
    logging.getLogger("kubernetes").setLevel(logging.INFO)


def main(argv: list[str] | None = None):
    parser = create_parser(COMMANDS)
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config_log(args)

    command = find_command(args.command, COMMANDS)
    if not command:
        raise ValueError(f"Error: Unknown command '{args.command}'")

    try:
        asyncio.run(command().arun(args))
    except KubespaceException as e:
        logger.error(f"{args.command} failed ({e.code} {codes.get_reason_phrase(e.code)}): {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    finally:
        for handler in logging.getLogger().handlers:
            handler.flush()


if __name__ == "__main__":
    main()
