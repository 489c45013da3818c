import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .abi import decode_aggregate3, encode_multicall
from .cache import ResolutionCache
from .config import Config, validate_batch_size, validate_cooldown
from .extractor import normalize_addresses
from .rate_limit import Cooldown

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def call(self, endpoint: str, calldata: str, headers: Mapping[str, str]) -> str: ...


@dataclass(frozen=True)
class ChunkOutcome:
    """
    Result of one aggregate3 round trip.

    ``names`` is aligned with ``addresses`` (``None`` = no name). When the
    call failed ``names`` is None, ``error`` says why, and nothing was cached.
    """

    addresses: Sequence[str]
    names: Optional[Sequence[Optional[str]]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.names is not None

    def resolved(self) -> Dict[str, str]:
        if self.names is None:
            return {}
        return {address: name for address, name in zip(self.addresses, self.names) if name}


def chunked(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class NameResolver:
    """Cache-first batched reverse resolution with a shared cooldown."""

    def __init__(
        self,
        config: Config,
        cache: ResolutionCache,
        transport: Transport,
        cooldown: Optional[Cooldown] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        validate_batch_size(config.max_batch_size)
        validate_cooldown(config.cooldown_ms)
        self.config = config
        self.cache = cache
        self.transport = transport
        self.cooldown = cooldown or Cooldown()
        self._clock = clock

    def partition(self, addresses: Sequence[str]) -> Tuple[Dict[str, str], List[str]]:
        """Split into (fresh positive hits, misses). Fresh negative hits appear in neither."""
        if not self.config.cache_enabled:
            return {}, list(addresses)

        entries = self.cache.get_many(addresses)
        now = self._clock()
        hits: Dict[str, str] = {}
        misses: List[str] = []
        for address in addresses:
            entry = entries.get(address)
            if entry is not None and entry.is_fresh(self.config.cache_ttl_seconds, now):
                if entry.name:
                    hits[address] = entry.name
            else:
                misses.append(address)

        logger.debug("cache hit: %d / miss: %d", len(addresses) - len(misses), len(misses))
        return hits, misses

    def _call_chunk(self, chunk: List[str]) -> ChunkOutcome:
        self.cooldown.wait(self.config.cooldown_ms)
        try:
            payload = self.transport.call(self.config.rpc_url, encode_multicall(chunk), self.config.rpc_headers)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("resolve error for %d addresses: %s", len(chunk), exc)
            return ChunkOutcome(chunk, error=str(exc) or exc.__class__.__name__)

        names = decode_aggregate3(payload)
        if len(names) != len(chunk):
            logger.warning("unparseable aggregate3 result: expected %d slots, got %d", len(chunk), len(names))
            return ChunkOutcome(chunk, error="unparseable result")
        return ChunkOutcome(chunk, names=names)

    def resolve_chunks(self, misses: Sequence[str]) -> List[ChunkOutcome]:
        """Resolve ``misses`` chunk by chunk, caching every successful chunk."""
        outcomes: List[ChunkOutcome] = []
        for chunk in chunked(misses, self.config.max_batch_size):
            outcome = self._call_chunk(chunk)
            if outcome.ok and self.config.cache_enabled:
                try:
                    self.cache.set_many(dict(zip(chunk, outcome.names)), timestamp=self._clock())
                except OSError as exc:
                    logger.warning("cache write failed for %d addresses: %s", len(chunk), exc)
            outcomes.append(outcome)
        return outcomes

    def resolve(self, addresses: Iterable[str]) -> Dict[str, str]:
        """
        Map each address to its name. Addresses without a name, and addresses
        whose lookup failed this time, are absent from the result.
        """
        normalized = normalize_addresses(addresses)
        if not normalized:
            return {}

        results, misses = self.partition(normalized)
        for outcome in self.resolve_chunks(misses):
            results.update(outcome.resolved())

        logger.info("resolved %d names for %d addresses", len(results), len(normalized))
        return results
