"""
Command line entrypoint: ``python -m allscreenshots``.

Usage:
    python -m allscreenshots capture https://github.com -o github.png --full-page
    python -m allscreenshots quota
    python -m allscreenshots --show-config
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from .client import AllscreenshotsClient
from .config import ClientSettings, LoggingSettings, load_settings
from .exceptions import AllscreenshotsError, ConfigurationError
from .models import ScreenshotRequest


def setup_logging(settings: LoggingSettings, verbose: bool = False) -> logging.Logger:
    """Configure a console handler on the root logger."""
    root_logger = logging.getLogger()
    level = logging.DEBUG if verbose else getattr(logging, settings.level.value)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        logging.Formatter(settings.format, datefmt=settings.date_format)
    )
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(max(level, logging.INFO))
    return root_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="allscreenshots",
        description="Allscreenshots API command line client",
    )
    parser.add_argument("--api-key", help="API key (default: ALLSCREENSHOTS_API_KEY)")
    parser.add_argument("--base-url", help="API base URL")
    parser.add_argument("--timeout", type=float, help="Per-attempt timeout in milliseconds")
    parser.add_argument("--no-retry", action="store_true", help="Disable automatic retries")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show resolved settings (API key masked) and exit",
    )

    commands = parser.add_subparsers(dest="command")

    capture = commands.add_parser("capture", help="Capture a screenshot to a file")
    capture.add_argument("url")
    capture.add_argument("-o", "--output", type=Path, default=Path("screenshot.png"))
    capture.add_argument("--device")
    capture.add_argument("--format")
    capture.add_argument("--full-page", action="store_true")
    capture.add_argument("--dark-mode", action="store_true")

    commands.add_parser("usage", help="Print usage statistics as JSON")
    commands.add_parser("quota", help="Print quota status as JSON")
    return parser


async def run(args: argparse.Namespace, settings: ClientSettings) -> int:
    client = AllscreenshotsClient(
        api_key=args.api_key,
        base_url=args.base_url,
        timeout_ms=args.timeout,
        auto_retry=False if args.no_retry else None,
        settings=settings,
    )
    async with client:
        if args.command == "capture":
            request = ScreenshotRequest(
                url=args.url,
                device=args.device,
                format=args.format,
                full_page=args.full_page or None,
                dark_mode=args.dark_mode or None,
            )
            image = await client.screenshot(request)
            args.output.write_bytes(image)
            print(f"Saved {len(image)} bytes to {args.output}")
        elif args.command == "usage":
            usage = await client.get_usage()
            print(json.dumps(usage.raw or asdict(usage), indent=2))
        elif args.command == "quota":
            quota = await client.get_quota_status()
            print(json.dumps(quota.raw or asdict(quota), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        setup_logging(settings.logging, verbose=args.verbose)

        if args.show_config:
            print(json.dumps(settings.mask_secrets(), indent=2, default=str))
            return 0

        if not args.command:
            parser.print_help()
            return 2

        return asyncio.run(run(args, settings))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except AllscreenshotsError as e:
        print(f"Request failed: {e.format_message()}", file=sys.stderr)
        if e.validation_errors:
            for name, message in e.validation_errors.items():
                print(f"  - {name}: {message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
