from __future__ import annotations

import logging
import os
from typing import Dict, List, Mapping, Optional

import pytest

from wns_resolver.cache import MemoryStore, ResolutionCache
from wns_resolver.config import Config
from wns_resolver.rate_limit import Cooldown
from wns_resolver.resolver import NameResolver
from wns_resolver.rpc_client import DryRunTransport


def make_address(n: int, prefix: str = "") -> str:
    body = f"{prefix}{n:0{40 - len(prefix)}x}"
    return f"0x{body}"


class FakeClock:
    """Manual clock; ``sleep`` advances it instead of blocking."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(DryRunTransport):
    def __init__(
        self,
        names: Optional[Mapping[str, str]] = None,
        clock: Optional[FakeClock] = None,
    ) -> None:
        super().__init__(names)
        self.clock = clock
        self.call_times: List[float] = []
        self.endpoints: List[str] = []
        self.headers: List[Dict[str, str]] = []
        self.fail_calls: set = set()
        self.payload_override: Optional[str] = None

    def call(self, endpoint: str, calldata: str, headers: Mapping[str, str]) -> str:
        index = len(self.call_times)
        self.call_times.append(self.clock.now if self.clock else 0.0)
        self.endpoints.append(endpoint)
        self.headers.append(dict(headers))
        if index in self.fail_calls:
            self.calls.append(calldata)
            raise ConnectionError("connection refused")
        if self.payload_override is not None:
            self.calls.append(calldata)
            return self.payload_override
        return super().call(endpoint, calldata, headers)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cooldown(clock: FakeClock) -> Cooldown:
    return Cooldown(clock=clock, sleep=clock.sleep)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def cache(store: MemoryStore) -> ResolutionCache:
    return ResolutionCache(store)


@pytest.fixture()
def transport(clock: FakeClock) -> RecordingTransport:
    return RecordingTransport(clock=clock)


@pytest.fixture()
def make_resolver(cache, transport, cooldown, clock):
    def _make(**overrides) -> NameResolver:
        config = Config(**{"cooldown_ms": 2000, "max_batch_size": 50, **overrides})
        return NameResolver(config, cache, transport, cooldown=cooldown, clock=clock)

    return _make


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    before, level = set(root.handlers), root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in list(os.environ):
        if key.startswith("WNS_") or key.startswith("REQUEST_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
