from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .cache import KeyValueStore, MemoryStore, ResolutionCache
from .config import Config
from .extractor import compile_pattern, detect_redos, normalize_address, normalize_addresses
from .rate_limit import Cooldown
from .resolver import NameResolver, Transport
from .rpc_client import RpcTransport
from .scanner import AddressExtractor, Link, plan_replacements
from .selector import pick_subject_address

LinkInput = Union[Link, Mapping[str, Any]]


def _to_link(value: LinkInput) -> Link:
    if isinstance(value, Link):
        return value
    if not isinstance(value, Mapping):
        raise ValueError("Each link must be an object with 'href' and optional 'text'.")
    href = value.get("href")
    if not isinstance(href, str):
        raise ValueError("Each link must have an 'href' string.")
    text = value.get("text") or ""
    return Link(href=href, text=str(text))


class ResolverService:
    """Combine configuration, cache, extractor, and transport to serve name lookups."""

    def __init__(
        self,
        config: Config,
        store: Optional[KeyValueStore] = None,
        transport: Optional[Transport] = None,
        cooldown: Optional[Cooldown] = None,
    ) -> None:
        self.config = config
        self.cache = ResolutionCache(store if store is not None else MemoryStore())
        self.extractor = AddressExtractor(
            full_address_pattern=config.full_address_pattern,
            abbreviated_pattern=config.abbreviated_pattern,
            href_rules=config.href_rules,
        )
        self.resolver = NameResolver(
            config,
            self.cache,
            transport
            or RpcTransport(
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                backoff_seconds=config.backoff_seconds,
            ),
            cooldown=cooldown,
        )

    def resolve_addresses(self, addresses: Iterable[str]) -> Dict[str, Any]:
        requested = normalize_addresses(addresses)
        names = self.resolver.resolve(requested)
        return {
            "names": names,
            "unresolved": [address for address in requested if address not in names],
        }

    def extract_addresses(self, text: str) -> Dict[str, Any]:
        return {"addresses": self.extractor.addresses_in(text or "")}

    def pick_subject(
        self, href: str, display_text: str = "", addresses: Optional[Sequence[str]] = None
    ) -> Dict[str, Any]:
        if addresses:
            candidates = [normalize_address(address) for address in addresses]
        else:
            candidates = self.extractor.addresses_in(href or "")
        if not candidates:
            raise ValueError("No Ethereum address found in href.")

        selection = pick_subject_address(href, candidates, display_text, self.config.abbreviated_pattern)
        return {
            "address": selection.address,
            "tier": selection.tier,
            "score": selection.score,
            "candidates": candidates,
        }

    def scan_links(self, links: Iterable[LinkInput]) -> Dict[str, Any]:
        matches, addresses = self.extractor.collect_links(_to_link(link) for link in links)
        names = self.resolver.resolve(addresses) if addresses else {}
        replacements = plan_replacements(
            matches,
            names,
            replace_ens=self.config.replace_ens,
            ignore=set(self.config.ignore_list),
        )
        return {
            "matches": [
                {
                    "href": match.link.href,
                    "text": match.link.text,
                    "address": match.address,
                    "source": match.source,
                    "tier": match.tier,
                    "name": names.get(match.address),
                }
                for match in matches
            ],
            "replacements": [
                {"href": r.link.href, "text": r.link.text, "address": r.address, "name": r.name}
                for r in replacements
            ],
        }

    def clear_cache(self) -> Dict[str, int]:
        return {"cleared": self.cache.clear()}

    def check_pattern(self, pattern: str) -> Dict[str, Any]:
        """Report whether ``pattern`` would be accepted as a configured regex."""
        try:
            compile_pattern(pattern, "Pattern")
        except ValueError as exc:
            return {"pattern": pattern, "valid": False, "reason": str(exc), "redos": detect_redos(pattern)}
        return {"pattern": pattern, "valid": True, "reason": None, "redos": None}


def links_from_json(data: Any) -> List[Link]:
    if not isinstance(data, list):
        raise ValueError("Links file must contain a JSON array of {href, text} objects.")
    return [_to_link(item) for item in data]
