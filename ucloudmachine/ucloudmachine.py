#!/usr/bin/env python3
"""UCloud UHost machine driver — CLI entrypoint."""

import argparse

from ucloudmachine.commands.machine import register_create_command, register_machine_commands
from ucloudmachine.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Provision and manage a UCloud UHost for docker")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_create_command(subparsers)
    register_machine_commands(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
