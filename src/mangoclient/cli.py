"""Command-line interface for the Mango client.

Sends single REST requests to a Mango server from the terminal. Connection
settings and credentials come from MANGO_* environment variables or .env.

Usage:
    mango request /rest/v3/data-sources
    mango request /rest/v2/point-values/latest/DP_1 --param limit=5
    mango request /rest/v2/login --method POST --data '{"username": "admin", "password": "admin"}'
    mango request /rest/v2/file-stores/default/report.csv --output report.csv
"""

import argparse
import asyncio
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

from mangoclient import __version__
from mangoclient.client import MangoClient
from mangoclient.config import Settings, get_settings
from mangoclient.http.errors import MangoError
from mangoclient.http.request import DataType, Response

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1)


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser with all commands and arguments.
    """
    parser = argparse.ArgumentParser(
        prog="mango",
        description="Mango REST API client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mango request /rest/v3/data-sources
  mango request /rest/v2/point-values/latest/DP_1 --param limit=5
  mango request /rest/v1/users/current --retries 3 --retry-delay 2

Connection settings are read from MANGO_HOST, MANGO_PORT, MANGO_PROTOCOL,
MANGO_USERNAME and MANGO_PASSWORD (or a .env file).
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # request command
    request_parser = subparsers.add_parser(
        "request",
        help="Send one REST request and print the response body",
        description="Send one REST request, logging in first when credentials are configured",
    )
    request_parser.add_argument(
        "path",
        type=str,
        help="Request path (e.g., /rest/v3/data-sources)",
    )
    request_parser.add_argument(
        "--method",
        type=str,
        default="GET",
        help="HTTP method (default: GET)",
    )
    request_parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="JSON request body",
    )
    request_parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter, may be repeated",
    )
    request_parser.add_argument(
        "--upload",
        action="append",
        default=[],
        metavar="FILE",
        help="File to upload as a multipart field, may be repeated",
    )
    request_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the response body to this file instead of printing it",
    )
    request_parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Retry count on failure (default: MANGO_RETRIES or 0)",
    )
    request_parser.add_argument(
        "--retry-delay",
        type=float,
        default=None,
        help="Seconds between retries (default: MANGO_RETRY_DELAY or 5)",
    )
    request_parser.add_argument(
        "--format",
        type=str,
        choices=["json", "text"],
        default="json",
        help="Response decoding (default: json)",
    )

    # version command
    subparsers.add_parser(
        "version",
        help="Show version information",
    )

    return parser


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context.

    Spins up a new event loop in a dedicated thread to avoid conflicts
    with any existing event loop.
    """
    def _target():
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    future = _executor.submit(_target)
    return future.result()


def parse_params(pairs: list[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` strings into a parameter mapping.

    Raises:
        ValueError: If a pair has no '='
    """
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}', expected KEY=VALUE")
        params[key] = value
    return params


async def send_request(settings: Settings, path: str, options: dict[str, Any]) -> Response:
    """Open a client, log in if credentials are configured, and send one request."""
    async with MangoClient.from_settings(settings) as client:
        if settings.username and settings.password:
            await client.User.login(
                settings.username,
                settings.password,
                retries=options.get("retries", 0),
                retry_delay=options.get("retry_delay", settings.retry_delay),
            )
        return await client.rest_request(path, **options)


def cmd_request(args: argparse.Namespace) -> int:
    """Execute the request command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        settings = get_settings()
        options: dict[str, Any] = {
            "method": args.method,
            "params": parse_params(args.param),
            "data_type": DataType.JSON if args.format == "json" else DataType.STRING,
            "retries": settings.retries if args.retries is None else args.retries,
            "retry_delay": settings.retry_delay if args.retry_delay is None else args.retry_delay,
        }
        if args.data is not None:
            options["data"] = json.loads(args.data)
        if args.upload:
            options["upload_files"] = args.upload
        if args.output is not None:
            options["write_to_file"] = args.output

        logger.info("%s %s on %s", args.method.upper(), args.path, settings.base_url)

        response = _run_async(send_request(settings, args.path, options))

        if args.output is not None:
            print(f"Saved response to {args.output}")
        elif args.format == "json":
            print(json.dumps(response.data, indent=2))
        elif response.data is not None:
            print(response.data)

        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except MangoError as e:
        logger.error("Request failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        if e.data is not None:
            print(json.dumps(e.data, indent=2, default=str), file=sys.stderr)
        return 1
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


def cmd_version(args: argparse.Namespace) -> int:
    """Execute the version command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    print(f"mango-client v{__version__}")
    print("Async client for the Mango automation REST API")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        level = get_settings().log_level
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Route to command handler
    if args.command == "request":
        return cmd_request(args)
    elif args.command == "version":
        return cmd_version(args)
    else:
        # No command specified
        parser.print_help()
        return 0


def cli_entry() -> None:
    """Console script entry point for setuptools."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
