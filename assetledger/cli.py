#!/usr/bin/env python3
"""
Asset ledger CLI

Command-line interface to a local ledger directory:
  assetledger principal create <username> - Create an identity
  assetledger register <hash> --as <user> - Claim an asset
  assetledger transfer <hash> --to <who> --as <user>
  assetledger verify|exists <hash>, count, at <index>, events [<hash>]
  assetledger serve - Run the HTTP server

Usage:
  assetledger principal create alice
  assetledger register --file art.png --as alice --metadata ipfs://a
  assetledger transfer <hash> --to bob --as alice
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .errors import InvalidArgument, LedgerError, NotFound
from .ledger import Ledger
from .registry import hash_file

DEFAULT_DATA_DIR = os.environ.get("ASSETLEDGER_DIR", "./ledger")


def _acting_principal(ledger: Ledger, username: str):
    principal = ledger.get_principal(username)
    if principal is None:
        raise NotFound("Unknown principal", details={"username": username})
    return principal


def _print_asset(asset, as_json: bool):
    if as_json:
        print(json.dumps(asset.to_dict(), indent=2))
        return
    print(f"Hash:       {asset.asset_hash}")
    print(f"Owner:      {asset.owner}")
    print(f"Registered: {asset.registered_at}")
    print(f"Metadata:   {asset.metadata}")


def cmd_principal(args, ledger: Ledger):
    """Manage principals."""
    if args.action == "create":
        principal = ledger.create_principal(args.username, args.display_name)
        print(f"Created {principal.handle}")
        print(f"Id: {principal.id}")
    else:
        for principal in ledger.principals.list():
            print(f"{principal.username}\t{principal.id}")


def cmd_register(args, ledger: Ledger):
    """Register an asset hash."""
    principal = _acting_principal(ledger, args.as_user)
    if args.file:
        try:
            asset_hash = hash_file(Path(args.file))
        except OSError as e:
            raise InvalidArgument(f"Cannot read {args.file}: {e.strerror}", details={"path": args.file})
    elif args.hash:
        asset_hash = args.hash
    else:
        print("Error: give an asset hash or --file", file=sys.stderr)
        sys.exit(2)

    asset = ledger.register(principal, asset_hash, args.metadata)
    print(f"Registered {asset.asset_hash}")
    print(f"Owner: {asset.owner}")


def cmd_transfer(args, ledger: Ledger):
    """Transfer an asset."""
    principal = _acting_principal(ledger, args.as_user)
    asset = ledger.transfer(principal, args.hash, args.to)
    print(f"Transferred {asset.asset_hash} to {asset.owner}")


def cmd_verify(args, ledger: Ledger):
    _print_asset(ledger.registry.verify_asset(args.hash), args.json)


def cmd_exists(args, ledger: Ledger):
    exists = ledger.registry.asset_exists(args.hash)
    print("yes" if exists else "no")
    if not exists:
        sys.exit(1)


def cmd_count(args, ledger: Ledger):
    print(ledger.registry.get_asset_count())


def cmd_at(args, ledger: Ledger):
    print(ledger.registry.get_asset_hash_at_index(args.index))


def cmd_events(args, ledger: Ledger):
    """Show the event log, optionally for one asset."""
    events = ledger.history(args.hash) if args.hash else ledger.events.list()
    for event in events:
        print(json.dumps(event.to_dict(), sort_keys=True))


def cmd_serve(args, ledger: Ledger):
    from .server import LedgerServer

    LedgerServer(ledger, host=args.host, port=args.port).start()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetledger",
        description="Asset ledger - content hash ownership registry",
    )
    parser.add_argument("--data-dir", default=DEFAULT_DATA_DIR,
                        help="Ledger data directory (default: $ASSETLEDGER_DIR or ./ledger)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # principal command
    principal_parser = subparsers.add_parser("principal", help="Manage principals")
    principal_sub = principal_parser.add_subparsers(dest="action", required=True)
    create_parser = principal_sub.add_parser("create", help="Create a principal")
    create_parser.add_argument("username")
    create_parser.add_argument("--display-name", help="Human-readable name")
    principal_sub.add_parser("list", help="List principals")

    # register command
    register_parser = subparsers.add_parser("register", help="Register an asset hash")
    register_parser.add_argument("hash", nargs="?", help="Asset hash")
    register_parser.add_argument("--file", help="Compute the hash from a local file")
    register_parser.add_argument("--metadata", default="", help="Free-form metadata")
    register_parser.add_argument("--as", dest="as_user", required=True, help="Acting username")

    # transfer command
    transfer_parser = subparsers.add_parser("transfer", help="Transfer an asset")
    transfer_parser.add_argument("hash", help="Asset hash")
    transfer_parser.add_argument("--to", required=True, help="New owner (username or id)")
    transfer_parser.add_argument("--as", dest="as_user", required=True, help="Acting username")

    verify_parser = subparsers.add_parser("verify", help="Show an asset record")
    verify_parser.add_argument("hash", help="Asset hash")
    verify_parser.add_argument("--json", action="store_true", help="Print JSON")

    exists_parser = subparsers.add_parser("exists", help="Check whether a hash is registered")
    exists_parser.add_argument("hash", help="Asset hash")

    subparsers.add_parser("count", help="Number of registered assets")

    at_parser = subparsers.add_parser("at", help="Hash at a registration index")
    at_parser.add_argument("index", type=int, help="0-based index")

    events_parser = subparsers.add_parser("events", help="Show ownership events")
    events_parser.add_argument("hash", nargs="?", help="Only events for this hash")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to")

    return parser


COMMANDS = {
    "principal": cmd_principal,
    "register": cmd_register,
    "transfer": cmd_transfer,
    "verify": cmd_verify,
    "exists": cmd_exists,
    "count": cmd_count,
    "at": cmd_at,
    "events": cmd_events,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        with Ledger(Path(args.data_dir)) as ledger:
            command(args, ledger)
    except LedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
