"""
Send a test item to Rollbar.

Usage:
    rollbar-send --token POST_SERVER_ITEM_TOKEN "something broke"
    rollbar-send --level warning --message "disk almost full"
    ROLLBAR_ACCESS_TOKEN=... rollbar-send --environment staging "smoke test"
"""

import argparse
import sys
from typing import List, Optional

from .api.models import Level
from .client import Client
from .config import Settings
from .errors import RollbarError
from .log import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rollbar-send",
        description="Send a single item to the Rollbar items API",
    )
    parser.add_argument("text", help="Error message (or message body with --message)")
    parser.add_argument(
        "--token",
        default=None,
        help="Access token with post_server_item scope (default: ROLLBAR_ACCESS_TOKEN)",
    )
    parser.add_argument(
        "--level",
        default=Level.ERROR.value,
        choices=[level.value for level in Level],
        help="Item level",
    )
    parser.add_argument(
        "--message",
        action="store_true",
        help="Send a message body instead of an error with a stack trace",
    )
    parser.add_argument("--environment", default=None, help="Environment name")
    parser.add_argument("--endpoint", default=None, help="Alternate API endpoint")
    parser.add_argument("--uuid", default=None, help="Occurrence UUID (deduplication key)")
    parser.add_argument("--debug", action="store_true", help="Log request and response bodies")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.token:
        overrides["access_token"] = args.token
    if args.environment:
        overrides["environment"] = args.environment
    if args.endpoint:
        overrides["endpoint"] = args.endpoint
    if args.debug:
        overrides["debug"] = True

    settings = Settings(**overrides)
    configure_logging(settings, json=False)
    client = Client(settings)

    level = Level(args.level)
    if args.message:
        call = client.message(level, args.text)
    else:
        call = getattr(client, level.value)(Exception(args.text))
    if args.uuid:
        call.uuid(args.uuid)

    try:
        resp = call.do()
    except RollbarError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(resp.result.uuid if resp.result and resp.result.uuid else "sent")
    return 0


if __name__ == "__main__":
    sys.exit(main())
