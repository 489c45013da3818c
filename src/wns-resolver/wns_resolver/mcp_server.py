"""
MCP server exposing WNS reverse resolution and address-selection helpers.
"""

import argparse
import os
from collections.abc import Mapping
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .logging_setup import configure_logging
from .service import ResolverService

server = FastMCP(
    name="wns-resolver",
    instructions="Resolve Ethereum addresses to WNS names and pick the subject address of a link.",
)

_service: Optional[ResolverService] = None


def _get_service() -> ResolverService:
    global _service
    if _service is None:
        cfg = load_config()
        configure_logging(cfg.log_level, enabled=cfg.logging)
        _service = ResolverService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> list:
    """
    Accept a list/tuple as-is, wrap a lone string, reject objects.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ValueError(f"{name} must be an array of strings.")


@server.tool(
    name="resolve_addresses",
    title="Resolve Addresses",
    description="Resolve 0x addresses to WNS names in batched Multicall3 calls. Addresses without a name are listed under 'unresolved'.",
)
def resolve_addresses(addresses: Any) -> dict:
    svc = _get_service()
    return svc.resolve_addresses(_normalize_array_param(addresses, "addresses"))


@server.tool(
    name="pick_subject_address",
    title="Pick Subject Address",
    description="Pick which of the addresses in an href the link text refers to (display text, then URL structure, then last address).",
)
def pick_subject_address(href: str, display_text: str = "", addresses: Optional[Any] = None) -> dict:
    svc = _get_service()
    return svc.pick_subject(href, display_text, _normalize_array_param(addresses, "addresses"))


@server.tool(
    name="extract_addresses",
    title="Extract Addresses",
    description="List full 0x addresses found in a string, lowercased, in order of appearance.",
)
def extract_addresses(text: str) -> dict:
    svc = _get_service()
    return svc.extract_addresses(text)


@server.tool(
    name="scan_links",
    title="Scan Links",
    description="Match a list of {href, text} links to addresses, resolve them, and return planned text replacements.",
)
def scan_links(links: Any) -> dict:
    svc = _get_service()
    return svc.scan_links(_normalize_array_param(links, "links"))


@server.tool(
    name="clear_cache",
    title="Clear Name Cache",
    description="Remove all cached names (positive and negative).",
)
def clear_cache() -> dict:
    svc = _get_service()
    return svc.clear_cache()


TRANSPORTS = ("stdio", "sse", "streamable-http")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve WNS name resolution over MCP.", allow_abbrev=False)
    parser.add_argument("--transport", choices=TRANSPORTS, default="stdio", help="MCP transport.")
    parser.add_argument(
        "--host",
        default=os.getenv("WNS_MCP_HOST", "127.0.0.1"),
        help="Bind address for sse/streamable-http (env WNS_MCP_HOST).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=os.getenv("WNS_MCP_PORT", "8000"),
        help="Bind port for sse/streamable-http (env WNS_MCP_PORT).",
    )
    parser.add_argument("--mount-path", default="/", help="Mount path, sse only.")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    if args.transport != "stdio":
        server.settings.host = args.host
        server.settings.port = args.port

    # Fail on bad settings before the transport starts.
    _get_service()

    run_kwargs = {"mount_path": args.mount_path} if args.transport == "sse" else {}
    server.run(transport=args.transport, **run_kwargs)


if __name__ == "__main__":
    main()
