"""
Command line interface.

    blockscan -c tempo.yaml list blocks single-tenant
    blockscan list block single-tenant 4a1f3c2e-... --backend local --bucket /var/tempo/traces
    blockscan list tenants --backend s3 --bucket traces --s3-endpoint minio:9000
    blockscan query http://localhost:3200 2f3e0cee77ae5dc9c17ade3689eb2e54
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from datetime import timedelta
from typing import Any

from . import __version__
from .backends import create_backend
from .config import BACKENDS, CliOverrides, load_settings
from .exceptions import BlockScanError
from .logging_utils import configure_logging
from .presenter import (
    format_block,
    format_blocks_table,
    format_window_summary,
    meta_to_dict,
    result_to_dict,
)
from .query import TraceQueryClient
from .scan.scanner import DEFAULT_CONCURRENCY, DEFAULT_WINDOW, BlockScanner

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _backend_options() -> argparse.ArgumentParser:
    """Options shared by every command that reads a bucket."""
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("backend options")
    group.add_argument(
        "--backend",
        choices=BACKENDS,
        default="",
        help="backend to connect to, overrides backend in config file",
    )
    group.add_argument(
        "--bucket",
        default="",
        help="bucket (or local path) to scan, overrides bucket in config file",
    )
    group.add_argument(
        "--s3-endpoint",
        default="",
        help="s3 endpoint (s3.dualstack.us-east-2.amazonaws.com), overrides endpoint in config file",
    )
    group.add_argument("--s3-user", default="", help="s3 access key, overrides config file")
    group.add_argument("--s3-pass", default="", help="s3 secret key, overrides config file")
    return parent


def _window_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--window",
        type=_positive_int,
        default=int(DEFAULT_WINDOW.total_seconds()),
        metavar="SECONDS",
        help="width of the window buckets in seconds (default: %(default)s)",
    )


def _format_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="output format (default: %(default)s)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="blockscan",
        description="Inspect the blocks of a trace storage backend.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config-file", default="", help="path to tempo config file")
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=("debug", "info", "warning", "error"),
        help="log level (default: %(default)s)",
    )
    parser.add_argument("--log-json", action="store_true", help="log as single-line JSON")

    commands = parser.add_subparsers(dest="command", required=True)
    backend = _backend_options()

    list_parser = commands.add_parser("list", help="list information about blocks")
    list_commands = list_parser.add_subparsers(dest="list_command", required=True)

    blocks = list_commands.add_parser(
        "blocks", parents=[backend], help="list information about all blocks in a bucket"
    )
    blocks.add_argument("tenant_id", help="tenant-id within the bucket")
    _window_option(blocks)
    blocks.add_argument(
        "--concurrency",
        type=_positive_int,
        default=DEFAULT_CONCURRENCY,
        help="maximum concurrent block reads (default: %(default)s)",
    )
    blocks.add_argument(
        "--include-compacted",
        action="store_true",
        help="also list blocks that have been compacted away",
    )
    blocks.add_argument(
        "--windows", action="store_true", help="append block counts per window and level"
    )
    _format_option(blocks)
    blocks.set_defaults(handler=list_blocks)

    block = list_commands.add_parser(
        "block", parents=[backend], help="list information about a block"
    )
    block.add_argument("tenant_id", help="tenant-id within the bucket")
    block.add_argument("block_id", type=uuid.UUID, help="block id to look up")
    _window_option(block)
    _format_option(block)
    block.set_defaults(handler=list_block)

    tenants = list_commands.add_parser(
        "tenants", parents=[backend], help="list the tenants in a bucket"
    )
    tenants.set_defaults(handler=list_tenants)

    query = commands.add_parser("query", help="query the tracing api for a trace")
    query.add_argument("api_endpoint", help="tracing api endpoint, e.g. http://localhost:3200")
    query.add_argument("trace_id", help="trace id in hex")
    query.add_argument("--org-id", default="", help="tenant to query (X-Scope-OrgID)")
    query.add_argument(
        "--timeout", type=float, default=30.0, help="request timeout in seconds"
    )
    query.set_defaults(handler=query_trace)

    return parser


def _overrides(args: argparse.Namespace) -> CliOverrides:
    return CliOverrides(
        backend=args.backend,
        bucket=args.bucket,
        s3_endpoint=args.s3_endpoint,
        s3_user=args.s3_user,
        s3_pass=args.s3_pass,
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def _list_blocks(args: argparse.Namespace) -> int:
    settings = load_settings(args.config_file or None, _overrides(args))
    async with await create_backend(settings) as reader:
        scanner = BlockScanner(
            reader,
            window_duration=timedelta(seconds=args.window),
            concurrency=args.concurrency,
        )
        result = await scanner.scan(args.tenant_id)

    if args.format == "json":
        _print_json(result_to_dict(result, args.include_compacted))
    else:
        print(format_blocks_table(result, args.include_compacted))
        if args.windows:
            print()
            print(format_window_summary(result, args.include_compacted))
    return 0


async def _list_block(args: argparse.Namespace) -> int:
    settings = load_settings(args.config_file or None, _overrides(args))
    async with await create_backend(settings) as reader:
        scanner = BlockScanner(reader, window_duration=timedelta(seconds=args.window))
        meta = await scanner.inspect(args.tenant_id, args.block_id)

    if args.format == "json":
        _print_json(meta_to_dict(meta))
    else:
        print(format_block(meta))
    return 0


async def _list_tenants(args: argparse.Namespace) -> int:
    settings = load_settings(args.config_file or None, _overrides(args))
    async with await create_backend(settings) as reader:
        for tenant_id in await reader.tenants():
            print(tenant_id)
    return 0


def list_blocks(args: argparse.Namespace) -> int:
    """``list blocks``: scan every block of a tenant."""
    return asyncio.run(_list_blocks(args))


def list_block(args: argparse.Namespace) -> int:
    """``list block``: show one block."""
    return asyncio.run(_list_block(args))


def list_tenants(args: argparse.Namespace) -> int:
    """``list tenants``: show the tenants in the bucket."""
    return asyncio.run(_list_tenants(args))


def query_trace(args: argparse.Namespace) -> int:
    """``query``: fetch a trace from a running server and print it."""
    client = TraceQueryClient(args.api_endpoint, org_id=args.org_id or None, timeout=args.timeout)
    _print_json(client.get_trace(args.trace_id))
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(getattr(logging, args.log_level.upper()), json_output=args.log_json)

    try:
        return args.handler(args)
    except BlockScanError as e:
        logger.debug("Command failed", extra={"error_type": type(e).__name__, "details": e.details})
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
