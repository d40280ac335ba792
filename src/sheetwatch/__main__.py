"""CLI entry point for sheetwatch.

Usage:
    python -m sheetwatch serve
    python -m sheetwatch setup
    python -m sheetwatch renew <channel_id> <resource_id>
    python -m sheetwatch stop <channel_id> <resource_id>
    python -m sheetwatch snapshot [output.json]
    python -m sheetwatch diff <previous.json> <current.json> [--json]

Configuration is read from the environment (see sheetwatch.config).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from sheetwatch.config import Settings, get_settings
from sheetwatch.credentials import (
    DRIVE_WATCH_SCOPES,
    AuthorizedClient,
    load_service_account_credentials,
)
from sheetwatch.diff import detect_changes
from sheetwatch.display import format_change
from sheetwatch.drive_watch import DriveWatch, WatchChannel, new_channel_id
from sheetwatch.exceptions import SheetWatchError
from sheetwatch.models import dump_snapshot, load_snapshot
from sheetwatch.server import build_transport, notification_url


def _load_settings() -> Settings | None:
    try:
        return get_settings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return None


def _drive_watch(settings: Settings) -> tuple[DriveWatch, AuthorizedClient]:
    credentials = load_service_account_credentials(
        settings.google_service_account_key, DRIVE_WATCH_SCOPES
    )
    client = AuthorizedClient(credentials, timeout=settings.request_timeout)
    return DriveWatch(client, settings.spreadsheet_id), client


def _print_channel(channel: WatchChannel) -> None:
    print(f"  Channel ID: {channel.channel_id}")
    print(f"  Resource ID: {channel.resource_id}")
    print(f"  Expiration: {channel.expiration.isoformat()}")


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the webhook server."""
    import uvicorn

    settings = _load_settings()
    if settings is None:
        return 1

    uvicorn.run(
        "sheetwatch.server:create_app",
        factory=True,
        host=args.host,
        port=args.port or settings.webhook_port,
        log_config=None,
    )
    return 0


async def cmd_setup(args: argparse.Namespace) -> int:
    """Create a Drive watch channel pointing at the webhook."""
    settings = _load_settings()
    if settings is None:
        return 1

    print("Setting up Drive API watch...\n")
    try:
        watch, client = _drive_watch(settings)
    except SheetWatchError as e:
        print(f"Setup failed: {e}", file=sys.stderr)
        return 1

    channel_id = settings.channel_id or new_channel_id()
    try:
        channel = await watch.setup_watch(
            notification_url(settings), channel_id, token=settings.channel_token
        )
    except SheetWatchError as e:
        print(f"Setup failed: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()

    print("Drive watch channel created")
    _print_channel(channel)

    if not settings.channel_id:
        print("\nWARNING: CHANNEL_ID not set in environment!")
        print(f"  Add this to your .env file: CHANNEL_ID={channel.channel_id}")
        print("  Without it, channel ID validation is skipped on server restart.")

    print("\nNext steps:")
    print("1. Make sure your webhook server is running: python -m sheetwatch serve")
    print(f"2. Make sure {notification_url(settings)} is publicly reachable")
    print("3. Share your Google Sheet with the service account email")
    print("4. Make a change to your sheet to test\n")
    print("The watch expires in 7 days. Run 'renew' before then.")
    print(f"To stop watching, keep the resource ID: {channel.resource_id}")
    return 0


async def cmd_renew(args: argparse.Namespace) -> int:
    """Replace a watch channel with a new one."""
    settings = _load_settings()
    if settings is None:
        return 1

    new_id = args.new_channel_id or new_channel_id()
    try:
        watch, client = _drive_watch(settings)
    except SheetWatchError as e:
        print(f"Renew failed: {e}", file=sys.stderr)
        return 1

    try:
        channel = await watch.renew_watch(
            notification_url(settings),
            args.channel_id,
            args.resource_id,
            new_id,
            token=settings.channel_token,
        )
    except SheetWatchError as e:
        print(f"Renew failed: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()

    print("Drive watch channel renewed")
    _print_channel(channel)
    if settings.channel_id and settings.channel_id != channel.channel_id:
        print(f"\nUpdate your .env file: CHANNEL_ID={channel.channel_id}")
    return 0


async def cmd_stop(args: argparse.Namespace) -> int:
    """Stop a watch channel."""
    settings = _load_settings()
    if settings is None:
        return 1

    try:
        watch, client = _drive_watch(settings)
    except SheetWatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        await watch.stop_watch(args.channel_id, args.resource_id)
    except SheetWatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()

    print(f"Watch channel stopped: {args.channel_id}")
    return 0


async def cmd_snapshot(args: argparse.Namespace) -> int:
    """Fetch the current spreadsheet values into a snapshot file."""
    settings = _load_settings()
    if settings is None:
        return 1

    try:
        transport = build_transport(settings)
    except SheetWatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        snapshot = await transport.get_snapshot(settings.spreadsheet_id)
    except SheetWatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await transport.close()

    path = dump_snapshot(snapshot, Path(args.output))
    print(f"Wrote {len(snapshot)} sheet(s) to {path}")
    return 0


def cmd_diff(args: argparse.Namespace) -> int:
    """Compare two snapshot files."""
    try:
        previous = load_snapshot(Path(args.previous))
        current = load_snapshot(Path(args.current))
    except (OSError, SheetWatchError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    changes = detect_changes(previous, current)

    if args.json:
        print(json.dumps([c.to_dict() for c in changes], indent=2, ensure_ascii=False))
        return 0

    if not changes:
        print("No changes detected")
        return 0

    print(f"Detected {len(changes)} change(s):\n")
    for number, change in enumerate(changes, start=1):
        print("\n".join(format_change(change, number)))
        print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetwatch",
        description="Report changes to a Google Sheet via Drive push notifications",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the webhook server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port (default: WEBHOOK_PORT)")

    subparsers.add_parser("setup", help="Create a Drive watch channel")

    renew_parser = subparsers.add_parser("renew", help="Replace a watch channel")
    renew_parser.add_argument("channel_id", help="Channel ID to replace")
    renew_parser.add_argument("resource_id", help="Resource ID of that channel")
    renew_parser.add_argument("--new-channel-id", help="ID for the new channel")

    stop_parser = subparsers.add_parser("stop", help="Stop a watch channel")
    stop_parser.add_argument("channel_id", help="Channel ID")
    stop_parser.add_argument("resource_id", help="Resource ID")

    snapshot_parser = subparsers.add_parser(
        "snapshot", help="Save the current values of all sheets"
    )
    snapshot_parser.add_argument(
        "output", nargs="?", default="snapshot.json", help="Output file"
    )

    diff_parser = subparsers.add_parser("diff", help="Compare two snapshot files")
    diff_parser.add_argument("previous", help="Earlier snapshot file")
    diff_parser.add_argument("current", help="Later snapshot file")
    diff_parser.add_argument(
        "--json", action="store_true", help="Print change events as JSON"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        return cmd_serve(args)
    if args.command == "diff":
        return cmd_diff(args)

    handlers = {
        "setup": cmd_setup,
        "renew": cmd_renew,
        "stop": cmd_stop,
        "snapshot": cmd_snapshot,
    }
    return asyncio.run(handlers[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
