#!/usr/bin/env python3
"""rtxctl: command-line access to an RTX router.

Usage:
    rtxctl [--router ID --inventory FILE] {run,info,routes,snapshot} ...

Environment variables (used when --router is not given):
    RTX_HOST, RTX_USERNAME, RTX_PASSWORD, RTX_ADMIN_PASSWORD, RTX_PORT,
    RTX_USE_SFTP, RTX_SFTP_CONFIG_PATH, RTX_SKIP_HOST_KEY_CHECK
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from .client import RTXClient
from .config import RouterConfig, RouterInventory
from .errors import RTXError, is_not_found
from .session.runner import Command
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rtxctl",
        description="Run commands against a Yamaha RTX router",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a command using RTX_* environment settings
    rtxctl run show status lan1

    # System information for an inventory router
    rtxctl --router rtx-home info

    # Static routes from the configuration snapshot
    rtxctl snapshot --section "ip route"
""",
    )
    parser.add_argument("--router", type=str, help="Router id from the inventory file")
    parser.add_argument("--inventory", type=str, help="Path to routers.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="action", required=True)

    run = sub.add_parser("run", help="Run one command and print its output")
    run.add_argument("words", nargs="+", help="Command line")
    run.add_argument("--admin", action="store_true", help="Force administrator mode")
    run.add_argument("--timeout", type=float, help="Read timeout in seconds")

    sub.add_parser("info", help="Show model, firmware, serial and uptime")
    sub.add_parser("routes", help="Show the live routing table")

    snapshot = sub.add_parser("snapshot", help="Fetch and parse the configuration")
    snapshot.add_argument("--section", type=str, help="Print one section's raw text")

    return parser


def load_config(router: Optional[str], inventory: Optional[str]) -> RouterConfig:
    if router:
        return RouterInventory(inventory).get_router_config(router)
    return RouterConfig.from_env()


async def run_action(client: RTXClient, args: argparse.Namespace) -> int:
    if args.action == "run":
        line = " ".join(args.words)
        command = Command("cli", line, privileged=True if args.admin else None, timeout=args.timeout)
        print(await client.run(command))
    elif args.action == "info":
        info = await client.get_system_info()
        print(json.dumps(asdict(info), indent=2))
    elif args.action == "routes":
        for route in await client.get_routes():
            print(f"{route.destination:20s} {route.gateway:16s} {route.interface:12s} {route.protocol}")
    elif args.action == "snapshot":
        config = await client.read_config()
        if args.section:
            text = config.section(args.section)
            if not text:
                logger.error(f"Section not configured: {args.section}")
                return EXIT_NOT_FOUND
            print(text)
        else:
            for name in sorted(config.sections):
                print(f"{name:30s} {len(config.sections[name].splitlines()):5d} lines")
    return EXIT_OK


async def _main(args: argparse.Namespace) -> int:
    config = load_config(args.router, args.inventory)
    async with RTXClient(config) as client:
        return await run_action(client, args)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for rtxctl."""
    args = build_parser().parse_args(argv)

    setup_logging(console=True)
    if args.verbose:
        for handler in logging.getLogger("rtx_client").handlers:
            handler.setLevel(logging.DEBUG)

    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_INTERRUPTED
    except (KeyError, ValueError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    except RTXError as e:
        if is_not_found(e):
            logger.error(f"Not found: {e}")
            return EXIT_NOT_FOUND
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
