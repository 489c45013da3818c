from __future__ import annotations

import json

import pytest

from wns_resolver.config import (
    DEFAULT_RPC_URL,
    load_config,
    parse_ignore_list,
    parse_rpc_headers,
    validate_batch_size,
    validate_cooldown,
    validate_rpc_url,
)
from wns_resolver.extractor import DEFAULT_ABBREVIATED_RE, DEFAULT_FULL_ADDRESS_RE, PatternError


class TestDefaults:
    def test_load_defaults(self, clean_env):
        config = load_config()
        assert config.rpc_url == DEFAULT_RPC_URL
        assert config.cache_enabled is True
        assert config.cache_ttl_seconds == 3600
        assert config.max_batch_size == 50
        assert config.cooldown_ms == 2000
        assert config.full_address_pattern is DEFAULT_FULL_ADDRESS_RE
        assert config.abbreviated_pattern is DEFAULT_ABBREVIATED_RE
        assert config.href_rules == ()
        assert config.rpc_headers == {}
        assert config.logging is False


class TestLoadConfig:
    def test_env_overrides(self, clean_env):
        clean_env.setenv("WNS_RPC_URL", "http://localhost:8545")
        clean_env.setenv("WNS_CACHE_TTL_MINUTES", "5")
        clean_env.setenv("WNS_MAX_BATCH_SIZE", "10")
        clean_env.setenv("WNS_RPC_COOLDOWN_MS", "0")
        clean_env.setenv("WNS_CACHE_ENABLED", "false")
        clean_env.setenv("WNS_REPLACE_ENS", "yes")
        clean_env.setenv("WNS_IGNORE_LIST", "0xdead, Owner\nvitalik.eth")
        clean_env.setenv("WNS_LOG_LEVEL", "debug")
        clean_env.setenv("WNS_RPC_HEADERS", json.dumps([{"key": "X-Api-Key", "value": "secret"}]))

        config = load_config()
        assert config.rpc_url == "http://localhost:8545"
        assert config.cache_ttl_seconds == 300
        assert config.max_batch_size == 10
        assert config.cooldown_ms == 0
        assert config.cache_enabled is False
        assert config.replace_ens is True
        assert config.ignore_list == ("0xdead", "Owner", "vitalik.eth")
        assert config.log_level == "DEBUG"
        assert config.rpc_headers == {"X-Api-Key": "secret"}

    def test_ttl_floor_is_one_minute(self, clean_env):
        clean_env.setenv("WNS_CACHE_TTL_MINUTES", "0")
        assert load_config().cache_ttl_seconds == 60

    def test_custom_patterns(self, clean_env):
        clean_env.setenv("WNS_FULL_ADDRESS_RE", r"0x[0-9a-f]{40}")
        clean_env.setenv("WNS_HREF_RULES", json.dumps([{"pattern": r"/holder/(0x[0-9a-f]{40})"}]))
        config = load_config()
        assert config.full_address_pattern.pattern == r"0x[0-9a-f]{40}"
        assert len(config.href_rules) == 1

    def test_legacy_href_pattern(self, clean_env):
        clean_env.setenv("WNS_HREF_RE", r"/wallet/(0x[0-9a-f]{40})")
        (rule,) = load_config().href_rules
        assert rule.group == 1
        assert rule.pattern.pattern == r"/wallet/(0x[0-9a-f]{40})"

    def test_href_rules_win_over_legacy(self, clean_env):
        clean_env.setenv("WNS_HREF_RE", r"/wallet/(0x[0-9a-f]{40})")
        clean_env.setenv("WNS_HREF_RULES", json.dumps([{"pattern": r"a=(0x[0-9a-f]{40})", "group": 1}]))
        (rule,) = load_config().href_rules
        assert rule.pattern.pattern == r"a=(0x[0-9a-f]{40})"

    def test_redos_pattern_rejected(self, clean_env):
        clean_env.setenv("WNS_ABBREVIATED_RE", r"(\w+)+x")
        with pytest.raises(PatternError, match="Abbreviated Display Text Pattern"):
            load_config()

    @pytest.mark.parametrize(
        "key, value",
        [
            ("WNS_RPC_URL", "http://rpc.example"),
            ("WNS_MAX_BATCH_SIZE", "0"),
            ("WNS_MAX_BATCH_SIZE", "501"),
            ("WNS_MAX_BATCH_SIZE", "lots"),
            ("WNS_RPC_COOLDOWN_MS", "30001"),
            ("WNS_CACHE_ENABLED", "maybe"),
            ("WNS_RPC_HEADERS", "{}"),
        ],
    )
    def test_invalid_values(self, clean_env, key, value):
        clean_env.setenv(key, value)
        with pytest.raises(ValueError):
            load_config()

    @pytest.mark.parametrize(
        "key, value",
        [
            ("WNS_LOG_LEVEL", "verbose"),
            ("REQUEST_TIMEOUT", "0"),
            ("REQUEST_RETRIES", "0"),
            ("REQUEST_BACKOFF_SECONDS", "soon"),
            ("REQUEST_BACKOFF_SECONDS", "-1"),
        ],
    )
    def test_invalid_request_and_logging_settings_named(self, clean_env, key, value):
        clean_env.setenv(key, value)
        with pytest.raises(ValueError, match=key):
            load_config()

    def test_request_settings(self, clean_env):
        clean_env.setenv("REQUEST_TIMEOUT", "30")
        clean_env.setenv("REQUEST_RETRIES", "5")
        clean_env.setenv("REQUEST_BACKOFF_SECONDS", "1.5")
        clean_env.setenv("WNS_LOG_LEVEL", " warning ")
        config = load_config()
        assert (config.request_timeout, config.max_retries, config.backoff_seconds) == (30, 5, 1.5)
        assert config.log_level == "WARNING"


class TestValidators:
    @pytest.mark.parametrize(
        "url", ["https://eth.llamarpc.com", "http://localhost:8545", "http://127.0.0.1:8545/rpc"]
    )
    def test_allowed_urls(self, url):
        assert validate_rpc_url(f" {url} ") == url

    @pytest.mark.parametrize("url", ["", "ftp://x", "http://rpc.example", "ws://localhost"])
    def test_rejected_urls(self, url):
        with pytest.raises(ValueError, match="HTTPS"):
            validate_rpc_url(url)

    def test_batch_bounds(self):
        assert validate_batch_size(1) == 1
        assert validate_batch_size(500) == 500
        for bad in (0, 501, True, 2.5):
            with pytest.raises(ValueError):
                validate_batch_size(bad)

    def test_cooldown_bounds(self):
        assert validate_cooldown(0) == 0
        assert validate_cooldown(30000) == 30000
        for bad in (-1, 30001, False):
            with pytest.raises(ValueError):
                validate_cooldown(bad)

    def test_headers_skip_blank_keys(self):
        raw = json.dumps([{"key": " Authorization ", "value": "Bearer t "}, {"key": "", "value": "x"}, "junk"])
        assert parse_rpc_headers(raw) == {"Authorization": "Bearer t"}
        assert parse_rpc_headers(None) == {}

    def test_headers_invalid_json(self):
        with pytest.raises(ValueError):
            parse_rpc_headers("[{")

    def test_ignore_list(self):
        assert parse_ignore_list(None) == ()
        assert parse_ignore_list(" a ,,b\n\nc ") == ("a", "b", "c")
