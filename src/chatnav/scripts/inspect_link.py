"""CLI helper to encode, decode and inspect chat URLs."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .. import codec
from ..handoff import HANDOFF_KEY, SHORT_LINK_PREFIX, HandoffStore
from ..host import Location
from ..identity import CharacterIdentity, ChatIdentity, GroupIdentity, identity_to_record
from ..storage import JsonFileStorage
from ..utils import logging as logging_utils


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Encode, decode and inspect chat navigator URLs.")
    parser.add_argument("--debug", action="store_true", help="Log to the console at DEBUG level.")
    parser.add_argument(
        "--storage",
        type=Path,
        help="JSON storage file holding handoff and short-link records.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    encode_parser = sub.add_parser("encode", help="Print the canonical query for a chat.")
    target = encode_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--avatar", help="Character avatar id.")
    target.add_argument("--group", help="Group id.")
    encode_parser.add_argument("--chat", required=True, help="Chat file name.")
    encode_parser.add_argument("--msg", type=int, help="Message index to anchor.")

    decode_parser = sub.add_parser("decode", help="Decode a URL into a chat identity.")
    decode_parser.add_argument("url")

    sub.add_parser("records", help="List handoff and short-link records in --storage.")

    args = parser.parse_args(argv)
    if args.debug:
        logging_utils.setup_logging(logging.DEBUG, console=True)

    store = HandoffStore(JsonFileStorage(args.storage)) if args.storage else None

    if args.command == "encode":
        if args.msg is not None and args.msg < 0:
            print("--msg must be a non-negative integer.", file=sys.stderr)
            return 2
        identity: ChatIdentity
        if args.group:
            identity = GroupIdentity(args.group, args.chat, args.msg)
        else:
            identity = CharacterIdentity(args.avatar, args.chat, args.msg)
        print(codec.encode(identity))
        return 0

    if args.command == "decode":
        decoded = codec.decode_location(Location.from_url(args.url), store)
        if decoded is None:
            print("No chat identity found in URL.", file=sys.stderr)
            return 1
        print(json.dumps(identity_to_record(decoded), indent=2))
        return 0

    if store is None:
        print("--storage is required for 'records'.", file=sys.stderr)
        return 2
    storage = store.storage
    for key in sorted(storage.keys()):
        if key == HANDOFF_KEY or key.startswith(SHORT_LINK_PREFIX):
            print(f"{key}: {storage.get_item(key)}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual entry point
    raise SystemExit(main())
