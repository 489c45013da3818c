import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Tuple

from .extractor import (
    DEFAULT_ABBREVIATED_RE,
    DEFAULT_FULL_ADDRESS_RE,
    HrefRule,
    compile_pattern,
    parse_href_rules,
)

DEFAULT_RPC_URL = "https://eth.llamarpc.com"
DEFAULT_CACHE_TTL_MINUTES = 60
DEFAULT_MAX_BATCH_SIZE = 50
DEFAULT_RPC_COOLDOWN_MS = 2000

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 500
MIN_COOLDOWN_MS = 0
MAX_COOLDOWN_MS = 30000

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    rpc_url: str = DEFAULT_RPC_URL
    rpc_headers: Dict[str, str] = field(default_factory=dict)
    cache_enabled: bool = True
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_MINUTES * 60
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    cooldown_ms: int = DEFAULT_RPC_COOLDOWN_MS
    full_address_pattern: Pattern[str] = DEFAULT_FULL_ADDRESS_RE
    abbreviated_pattern: Pattern[str] = DEFAULT_ABBREVIATED_RE
    href_rules: Tuple[HrefRule, ...] = ()
    replace_ens: bool = False
    ignore_list: Tuple[str, ...] = ()
    logging: bool = False
    log_level: str = "INFO"
    request_timeout: int = 10
    max_retries: int = 3
    backoff_seconds: float = 0.5


def validate_rpc_url(url: str) -> str:
    """Only HTTPS endpoints are allowed, plus plain HTTP on localhost."""
    candidate = (url or "").strip()
    if candidate.startswith("https://"):
        return candidate
    if candidate.startswith(("http://localhost", "http://127.0.0.1")):
        return candidate
    raise ValueError("RPC URL must use HTTPS (localhost/127.0.0.1 exempt).")


def validate_batch_size(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("max_batch_size must be an integer.")
    if not MIN_BATCH_SIZE <= value <= MAX_BATCH_SIZE:
        raise ValueError(f"max_batch_size must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}, got {value}.")
    return value


def validate_cooldown(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("cooldown_ms must be an integer.")
    if not MIN_COOLDOWN_MS <= value <= MAX_COOLDOWN_MS:
        raise ValueError(f"cooldown_ms must be between {MIN_COOLDOWN_MS} and {MAX_COOLDOWN_MS}, got {value}.")
    return value


def parse_rpc_headers(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``[{"key": "...", "value": "..."}]``; entries without a key are skipped."""
    if raw is None or not raw.strip():
        return {}
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("WNS_RPC_HEADERS must be a JSON array of {key, value} objects.") from exc
    if not isinstance(entries, list):
        raise ValueError("WNS_RPC_HEADERS must be a JSON array of {key, value} objects.")

    headers: Dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        key = str(entry.get("key") or "").strip()
        if key:
            headers[key] = str(entry.get("value") or "").strip()
    return headers


def parse_ignore_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    items = raw.replace(",", "\n").split("\n")
    return tuple(item.strip() for item in items if item.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got '{raw}'.")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got '{raw}'.") from exc


def _env_log_level(name: str, default: str) -> str:
    level = os.getenv(name, default).strip().upper() or default
    if level not in LOG_LEVELS:
        raise ValueError(f"{name} must be one of {', '.join(LOG_LEVELS)}, got '{level}'.")
    return level


def load_config() -> Config:
    """Load and validate configuration from environment variables."""
    rpc_url = validate_rpc_url(os.getenv("WNS_RPC_URL", DEFAULT_RPC_URL))
    ttl_minutes = max(1, _env_int("WNS_CACHE_TTL_MINUTES", DEFAULT_CACHE_TTL_MINUTES))
    batch_size = validate_batch_size(_env_int("WNS_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE))
    cooldown = validate_cooldown(_env_int("WNS_RPC_COOLDOWN_MS", DEFAULT_RPC_COOLDOWN_MS))

    timeout = _env_int("REQUEST_TIMEOUT", 10)
    if timeout < 1:
        raise ValueError(f"REQUEST_TIMEOUT must be at least 1 second, got {timeout}.")
    retries = _env_int("REQUEST_RETRIES", 3)
    if retries < 1:
        raise ValueError(f"REQUEST_RETRIES must be at least 1, got {retries}.")
    backoff = _env_float("REQUEST_BACKOFF_SECONDS", 0.5)
    if not 0 <= backoff <= 60:
        raise ValueError(f"REQUEST_BACKOFF_SECONDS must be between 0 and 60, got {backoff}.")

    full_raw = os.getenv("WNS_FULL_ADDRESS_RE", "").strip()
    abbr_raw = os.getenv("WNS_ABBREVIATED_RE", "").strip()
    full_pattern = (
        compile_pattern(full_raw, "Full Address Pattern") if full_raw else DEFAULT_FULL_ADDRESS_RE
    )
    abbr_pattern = (
        compile_pattern(abbr_raw, "Abbreviated Display Text Pattern") if abbr_raw else DEFAULT_ABBREVIATED_RE
    )

    # WNS_HREF_RE is the older single-rule form; WNS_HREF_RULES wins when both are set.
    rules_raw = os.getenv("WNS_HREF_RULES", "").strip()
    legacy_raw = os.getenv("WNS_HREF_RE", "").strip()
    if rules_raw:
        href_rules = parse_href_rules(rules_raw)
    elif legacy_raw:
        href_rules = parse_href_rules(json.dumps([{"pattern": legacy_raw, "group": 1}]))
    else:
        href_rules = ()

    return Config(
        rpc_url=rpc_url,
        rpc_headers=parse_rpc_headers(os.getenv("WNS_RPC_HEADERS")),
        cache_enabled=_env_bool("WNS_CACHE_ENABLED", True),
        cache_ttl_seconds=ttl_minutes * 60,
        max_batch_size=batch_size,
        cooldown_ms=cooldown,
        full_address_pattern=full_pattern,
        abbreviated_pattern=abbr_pattern,
        href_rules=href_rules,
        replace_ens=_env_bool("WNS_REPLACE_ENS", False),
        ignore_list=parse_ignore_list(os.getenv("WNS_IGNORE_LIST")),
        logging=_env_bool("WNS_LOGGING", False),
        log_level=_env_log_level("WNS_LOG_LEVEL", "INFO"),
        request_timeout=timeout,
        max_retries=retries,
        backoff_seconds=backoff,
    )
