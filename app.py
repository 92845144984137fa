#!/usr/bin/env python3
"""
Print Agent - relays orders from the backend to local network printers.

Loads (or bootstraps) the agent config, brings the printer registry up to
date, then keeps one backend session per registered printer until
interrupted.
"""

import argparse
import logging
import os
import sys

from print_agent.core.config import get_printers_path, load_or_bootstrap_config
from print_agent.core.errors import ConfigError, RegistryError
from print_agent.core.logging import configure_logging
from print_agent.core.registry import PrinterRegistry
from print_agent.supervisor import Supervisor


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Order print agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: PRINTAGENT_CONFIG_PATH or ~/.config/printagent/config.json)",
    )

    parser.add_argument(
        "--printers",
        default=None,
        help="Path to printers.json (default: PRINTAGENT_PRINTERS_PATH or ~/.config/printagent/printers.json)",
    )

    parser.add_argument(
        "--sync",
        action="store_true",
        default=os.environ.get("PRINTAGENT_SYNC", "false").lower() in ("1", "true", "yes"),
        help="Merge the backend's printer list into the local registry before starting",
    )

    parser.add_argument(
        "--discover",
        action="store_true",
        help="Scan the local network even if printers are already registered",
    )

    parser.add_argument(
        "--subnet",
        default=None,
        help="Subnet prefix to scan, e.g. 192.168.1 (default: the local /24)",
    )

    parser.add_argument(
        "--status-port",
        type=int,
        default=None,
        help="Serve /healthz and /jobs on 127.0.0.1:<port>",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point for the print agent."""
    args = parse_args(argv)

    configure_logging()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    logger = logging.getLogger(__name__)

    try:
        config = load_or_bootstrap_config(args.config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    if args.status_port is not None:
        config = config.model_copy(update={"status_port": args.status_port})

    registry = PrinterRegistry(args.printers or get_printers_path())
    supervisor = Supervisor(config, registry)

    try:
        if args.discover:
            registry.load()
            if supervisor.discover(args.subnet):
                registry.save()
        return supervisor.run(sync=args.sync)
    except RegistryError as e:
        logger.error("Printer registry error: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        supervisor.shutdown()
        return 0
    finally:
        logger.info("Print agent stopped")


if __name__ == "__main__":
    sys.exit(main())
