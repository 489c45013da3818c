import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from .cache import JsonFileStore
from .config import load_config
from .logging_setup import configure_logging
from .rpc_client import DryRunTransport
from .service import ResolverService, links_from_json


def _add_cache_file(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-file",
        required=False,
        help="Optional JSON file used as the name cache across runs. Defaults to in-memory.",
    )


def _add_dry_run(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run-names",
        required=False,
        help="JSON object of address -> name answered locally instead of calling the RPC endpoint.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve Ethereum addresses to WNS names via a batched Multicall3 call.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines on stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve one or more addresses")
    resolve_parser.add_argument(
        "--address",
        required=True,
        action="append",
        help="Address to resolve (0x-prefixed). Repeat for several.",
    )
    _add_cache_file(resolve_parser)
    _add_dry_run(resolve_parser)

    pick_parser = subparsers.add_parser("pick-subject", help="Select the subject address of a link")
    pick_parser.add_argument(
        "--href",
        required=True,
        help="Link target containing one or more addresses.",
    )
    pick_parser.add_argument(
        "--text",
        required=False,
        default="",
        help="Display text of the link.",
    )

    scan_parser = subparsers.add_parser("scan", help="Match, resolve and plan replacements for links")
    scan_parser.add_argument(
        "--links-file",
        required=True,
        help="JSON file with an array of {href, text} objects ('-' for stdin).",
    )
    _add_cache_file(scan_parser)
    _add_dry_run(scan_parser)

    clear_parser = subparsers.add_parser("clear-cache", help="Remove cached names")
    clear_parser.add_argument(
        "--cache-file",
        required=True,
        help="JSON cache file to clear.",
    )

    check_parser = subparsers.add_parser("check-pattern", help="Validate a custom regex")
    check_parser.add_argument(
        "--pattern",
        required=True,
        help="Regular expression to validate.",
    )

    return parser


def _build_service(args: argparse.Namespace) -> ResolverService:
    config = load_config()
    configure_logging(config.log_level, json_format=args.log_json, enabled=config.logging)

    cache_file = getattr(args, "cache_file", None)
    store = JsonFileStore(Path(cache_file)) if cache_file else None

    transport = None
    dry_run = getattr(args, "dry_run_names", None)
    if dry_run:
        names = json.loads(dry_run)
        if not isinstance(names, dict):
            raise ValueError("--dry-run-names must be a JSON object.")
        transport = DryRunTransport(names)

    return ResolverService(config, store=store, transport=transport)


def _read_links(path: str) -> list:
    raw = sys.stdin.read() if path == "-" else Path(path).read_text(encoding="utf-8")
    return links_from_json(json.loads(raw))


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        service = _build_service(args)

        if args.command == "resolve":
            result = service.resolve_addresses(args.address)
        elif args.command == "pick-subject":
            result = service.pick_subject(args.href, args.text)
        elif args.command == "scan":
            result = service.scan_links(_read_links(args.links_file))
        elif args.command == "clear-cache":
            result = service.clear_cache()
        else:
            result = service.check_pattern(args.pattern)
        print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
