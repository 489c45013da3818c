from __future__ import annotations

import json
import re

import pytest

from wns_resolver.extractor import (
    DEFAULT_ABBREVIATED_PATTERN,
    DEFAULT_FULL_ADDRESS_PATTERN,
    HrefRule,
    PatternError,
    compile_pattern,
    detect_redos,
    find_full_addresses,
    is_valid_address,
    match_abbreviated,
    match_href_rules,
    normalize_address,
    normalize_addresses,
    parse_href_rules,
)

A = "0x357836ff" + "0" * 23 + "3c961902b"
B = "0x" + "b" * 40


class TestFindFullAddresses:
    def test_order_lowercase_duplicates(self):
        text = f"see {B.upper().replace('0X', '0x')} then {A} and {B} again"
        assert find_full_addresses(text) == [B, A, B]

    def test_word_bounded(self):
        assert find_full_addresses("0x" + "a" * 41) == []
        assert find_full_addresses("x0x" + "a" * 40) == []

    def test_in_url(self):
        assert find_full_addresses(f"https://etherscan.io/address/{A}#code") == [A]

    def test_empty(self):
        assert find_full_addresses("") == []
        assert find_full_addresses(None) == []

    def test_custom_pattern(self):
        pattern = re.compile(r"/address/0x[0-9a-f]{40}")
        assert find_full_addresses(f"/token/{B}/address/{A}", pattern) == [f"/address/{A}"]


class TestMatchAbbreviated:
    @pytest.mark.parametrize("display", ["0x357836fF…3c961902b", "0x3578...902b", "Owner 0x3578..902B"])
    def test_matches_prefix_and_suffix(self, display):
        assert match_abbreviated(display, [B, A]) == A

    def test_single_dot_is_not_a_separator(self):
        assert match_abbreviated("0x3578.902b", [A]) is None
        assert match_abbreviated("0x3578....902b", [A]) is None

    def test_no_candidate_matches(self):
        assert match_abbreviated("0x3578…ffff", [A, B]) is None

    def test_not_abbreviated(self):
        assert match_abbreviated("Uniswap", [A]) is None
        assert match_abbreviated("", [A]) is None

    def test_first_candidate_wins(self):
        other = "0x3578" + "1" * 32 + "902b"
        assert match_abbreviated("0x3578…902b", [A, other]) == A
        assert match_abbreviated("0x3578…902b", [other, A]) == other

    def test_pattern_without_groups(self):
        assert match_abbreviated("0x3578…902b", [A], re.compile(r"0x\w+")) is None


class TestHrefRules:
    def test_first_matching_rule_wins(self):
        rules = (
            HrefRule(re.compile(r"/holder/(0x[0-9a-fA-F]{40})")),
            HrefRule(re.compile(r"[?&]a=(0x[0-9a-fA-F]{40})")),
        )
        assert match_href_rules(f"https://x/token/{B}?a={A.upper().replace('0X', '0x')}", rules) == A

    def test_non_address_capture_skipped(self):
        rules = (
            HrefRule(re.compile(r"/user/([^/]+)")),
            HrefRule(re.compile(r"/wallet/(0x[0-9a-f]+)"), group=1),
        )
        assert match_href_rules(f"https://x/user/alice/wallet/{A}", rules) == A

    def test_group_out_of_range(self):
        rules = (HrefRule(re.compile(r"(0x[0-9a-f]{40})"), group=3),)
        assert match_href_rules(f"https://x/{A}", rules) is None

    def test_group_zero(self):
        rules = (HrefRule(re.compile(r"0x[0-9a-f]{40}"), group=0),)
        assert match_href_rules(f"https://x/{A}", rules) == A

    def test_no_rules(self):
        assert match_href_rules(f"https://x/{A}", ()) is None


class TestRedosLint:
    @pytest.mark.parametrize("pattern", [r"(a+)+", r"(.*)*", r"(?:x*)*", r"(\d+){2,}", r"(a|a)+", r"(ab|cd|ab)*"])
    def test_flagged(self, pattern):
        assert detect_redos(pattern)

    @pytest.mark.parametrize(
        "pattern",
        [DEFAULT_FULL_ADDRESS_PATTERN, DEFAULT_ABBREVIATED_PATTERN, r"(a|b)+", r"/address/(0x[0-9a-f]{40})"],
    )
    def test_not_flagged(self, pattern):
        assert detect_redos(pattern) is None

    def test_compile_rejects_flagged(self):
        with pytest.raises(PatternError, match="nested quantifiers"):
            compile_pattern(r"(a+)+$", "Full Address Pattern")

    def test_compile_rejects_invalid(self):
        with pytest.raises(PatternError, match="Invalid regex"):
            compile_pattern(r"(0x[0-9a-f", "Full Address Pattern")

    def test_pattern_error_is_value_error(self):
        with pytest.raises(ValueError):
            compile_pattern("", "Pattern")


class TestParseHrefRules:
    def test_parses_rules(self):
        raw = json.dumps([{"pattern": r"/holder/(0x[0-9a-f]{40})"}, {"pattern": r"a=(0x[0-9a-f]{40})", "group": 1}])
        rules = parse_href_rules(raw)
        assert len(rules) == 2
        assert rules[0].group == 1
        assert rules[1].pattern.pattern == r"a=(0x[0-9a-f]{40})"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty(self, raw):
        assert parse_href_rules(raw) == ()

    @pytest.mark.parametrize(
        "raw, message",
        [
            ("{not json", "invalid JSON"),
            ('{"pattern": "x"}', "JSON array"),
            ('[{"group": 1}]', 'Rule 1: missing "pattern"'),
            ('[{"pattern": "x", "group": "1"}]', "Rule 1: group"),
            ('[{"pattern": "ok"}, {"pattern": "(bad"}]', "Rule 2"),
            ('[{"pattern": "ok"}, {"pattern": "(a+)+"}]', "Rule 2: nested quantifiers"),
        ],
    )
    def test_rejected(self, raw, message):
        with pytest.raises(PatternError, match=re.escape(message)):
            parse_href_rules(raw)


class TestAddressValidation:
    def test_is_valid(self):
        assert is_valid_address(A)
        assert is_valid_address(A.upper().replace("0X", "0x"))
        assert not is_valid_address(A[:-1])
        assert not is_valid_address(None)

    def test_trailing_newline_rejected(self):
        assert not is_valid_address(A + "\n")
        assert normalize_addresses([A + "\n", A]) == [A]
        assert match_href_rules(f"https://x/{A}\n", (HrefRule(re.compile(r"/(0x[0-9a-f]{40}\s*)")),)) is None

    def test_normalize(self):
        assert normalize_address(" " + A.upper().replace("0X", "0x") + " ") == A
        assert normalize_address(A[2:]) == A
        with pytest.raises(ValueError):
            normalize_address("0x123")

    def test_normalize_many(self):
        values = [A.upper().replace("0X", "0x"), "junk", B, A, 42]
        assert normalize_addresses(values) == [A, B]
