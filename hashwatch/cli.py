#!/usr/bin/env python3
"""
hashwatch Command Line Entry Point

Usage:
    hashwatch get user:1                     # Whole record
    hashwatch get user:1 name email          # Selected fields
    hashwatch set user:1 name '"alice"'      # VALUE is JSON, else a plain string
    hashwatch set user:1 visits 0 --ttl 60000
    hashwatch incr user:1 visits --max peak
    hashwatch drop user:1 name
    hashwatch lock job:42 5000
    hashwatch unlock job:42
    hashwatch watch user:1 --configure       # Print changes until interrupted

Global options:
    --host, --port, --db    Store address (defaults from HASHWATCH_* env vars)
    --debug                 Enable debug logging

Environment Variables:
    HASHWATCH_HOST      - Store address
    HASHWATCH_PORT      - Store port
    HASHWATCH_DB        - Logical database number
    HASHWATCH_PREFIX    - Diff topic prefix
"""

import argparse
import asyncio
import json
import logging
import sys

from .cache.hash import Hash
from .config.settings import settings
from .errors import HashwatchError


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="hashwatch: watched hash cache client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--host", type=str, default=settings.HOST, help="Store address")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Store port")
    parser.add_argument("--db", type=int, default=settings.DB, help="Logical database number")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Read a record or fields")
    get.add_argument("key")
    get.add_argument("fields", nargs="*")

    set_ = commands.add_parser("set", help="Write a field")
    set_.add_argument("key")
    set_.add_argument("field")
    set_.add_argument("value")
    set_.add_argument("--ttl", type=int, default=None, help="TTL in ms if the key is created")

    drop = commands.add_parser("drop", help="Remove a field or the whole record")
    drop.add_argument("key")
    drop.add_argument("field", nargs="?")

    incr = commands.add_parser("incr", help="Increment an existing numeric field")
    incr.add_argument("key")
    incr.add_argument("field")
    incr.add_argument("--amount", type=float, default=1.0)
    incr.add_argument("--max", dest="max_field", default=None, help="Field tracking the maximum")

    lock = commands.add_parser("lock", help="Try to take a lock")
    lock.add_argument("name")
    lock.add_argument("ttl", type=int, help="Lock lifetime in ms")

    unlock = commands.add_parser("unlock", help="Release a lock")
    unlock.add_argument("name")

    watch = commands.add_parser("watch", help="Print changes to a key")
    watch.add_argument("key")
    watch.add_argument(
        "--configure",
        action="store_true",
        help="Enable keyspace notifications on the store first",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug or settings.DEBUG else getattr(logging, settings.LOG_LEVEL, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def parse_value(text: str):
    """Parse a command line value as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def _print(result) -> None:
    print(json.dumps(result))


def _print_change(error, update, field) -> None:
    if error is not None:
        _print({"error": str(error)})
    elif update is not None:
        _print({"update": update})
    elif field is not None:
        _print({"removed": field})
    else:
        _print({"deleted": True})


async def run(args: argparse.Namespace) -> None:
    """Execute one command against the store."""
    watching = args.command == "watch"
    client = Hash(
        host=args.host,
        port=args.port,
        db=args.db,
        updates=watching,
        configure=watching and args.configure,
    )

    await client.connect()
    try:
        if args.command == "get":
            fields = args.fields
            if len(fields) == 1:
                fields = fields[0]
            _print(await client.get(args.key, fields or None))

        elif args.command == "set":
            await client.set(args.key, args.field, parse_value(args.value), ttl=args.ttl)

        elif args.command == "drop":
            await client.drop(args.key, args.field)

        elif args.command == "incr":
            amount = int(args.amount) if args.amount.is_integer() else args.amount
            _print(await client.increment(args.key, args.field, amount, max_field=args.max_field))

        elif args.command == "lock":
            _print(await client.lock(args.name, args.ttl))

        elif args.command == "unlock":
            await client.unlock(args.name)

        elif watching:
            await client.subscribe(args.key, _print_change)
            await asyncio.Event().wait()
    finally:
        await client.disconnect()


def main(argv=None) -> None:
    """Main entry point for the command line client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except HashwatchError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
