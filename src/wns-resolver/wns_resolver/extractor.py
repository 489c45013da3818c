import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Pattern, Sequence, Tuple

DEFAULT_FULL_ADDRESS_PATTERN = r"\b0x[0-9a-fA-F]{40}\b"
DEFAULT_ABBREVIATED_PATTERN = r"\b0x([0-9a-fA-F]{4,})(?:…|[…\.]{2,3})([0-9a-fA-F]{4,})\b"

DEFAULT_FULL_ADDRESS_RE = re.compile(DEFAULT_FULL_ADDRESS_PATTERN)
DEFAULT_ABBREVIATED_RE = re.compile(DEFAULT_ABBREVIATED_PATTERN)

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")

_QUANTIFIER = r"(?:[+*]|\{\d+,\d*\})"
_NESTED_QUANTIFIER_RE = re.compile(r"\([^)]*" + _QUANTIFIER + r"[^)]*\)" + _QUANTIFIER)
_QUANTIFIED_ALTERNATION_RE = re.compile(r"\(([^)]*\|[^)]*)\)" + _QUANTIFIER)
_REGEX_META_RE = re.compile(r"[\\^$.*+?()\[\]{}|]")


class PatternError(ValueError):
    """A user supplied pattern failed validation."""


@dataclass(frozen=True)
class HrefRule:
    pattern: Pattern[str]
    group: int = 1


def is_valid_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_PATTERN.fullmatch(value))


def normalize_address(address: str) -> str:
    if not isinstance(address, str):
        raise ValueError("Address must be a string.")

    candidate = address.strip()
    if not candidate.startswith("0x"):
        candidate = f"0x{candidate}"

    if not ADDRESS_PATTERN.fullmatch(candidate):
        raise ValueError("Invalid address format. Expected 0x-prefixed 40 hex characters.")

    return candidate.lower()


def normalize_addresses(values: Iterable[Any]) -> List[str]:
    """Lowercase valid addresses, dropping invalid ones and duplicates (order kept)."""
    seen = set()
    out: List[str] = []
    for value in values:
        if not is_valid_address(value):
            continue
        address = value.lower()
        if address in seen:
            continue
        seen.add(address)
        out.append(address)
    return out


def find_full_addresses(text: Optional[str], pattern: Optional[Pattern[str]] = None) -> List[str]:
    """Return every full-address match in ``text``, lowercased, in order of appearance."""
    if not text:
        return []
    regex = pattern or DEFAULT_FULL_ADDRESS_RE
    return [m.group(0).lower() for m in regex.finditer(text)]


def match_abbreviated(
    display_text: Optional[str],
    candidates: Sequence[str],
    pattern: Optional[Pattern[str]] = None,
) -> Optional[str]:
    """
    Match abbreviated display text such as ``0x357836fF…3c961902b`` against
    full addresses. Returns the first candidate whose hex body starts with the
    prefix and ends with the suffix.
    """
    if not display_text:
        return None
    regex = pattern or DEFAULT_ABBREVIATED_RE
    m = regex.search(display_text)
    if not m:
        return None
    try:
        prefix, suffix = m.group(1), m.group(2)
    except IndexError:
        return None
    if prefix is None or suffix is None:
        return None

    prefix = prefix.lower()
    suffix = suffix.lower()
    for address in candidates:
        body = address.lower()[2:]
        if body.startswith(prefix) and body.endswith(suffix):
            return address
    return None


def match_href_rules(href: Optional[str], rules: Sequence[HrefRule]) -> Optional[str]:
    """Try each rule in order; return the first captured value that is a full address."""
    if not href:
        return None
    for rule in rules:
        m = rule.pattern.search(href)
        if not m:
            continue
        try:
            captured = m.group(rule.group)
        except IndexError:
            continue
        if is_valid_address(captured):
            return captured.lower()
    return None


def detect_redos(pattern: str) -> Optional[str]:
    """
    Static lint for regex shapes known to backtrack catastrophically.

    Returns a reason string when the pattern looks dangerous, else None. This
    is a heuristic: it flags ``(a+)+``-style nesting and quantified alternation
    with duplicate branches, and misses many other pathological patterns.
    """
    if _NESTED_QUANTIFIER_RE.search(pattern):
        return "nested quantifiers (e.g. (a+)+) can cause catastrophic backtracking"

    for m in _QUANTIFIED_ALTERNATION_RE.finditer(pattern):
        branches = [_REGEX_META_RE.sub("", branch) for branch in m.group(1).split("|")]
        if len(set(branches)) < len(branches):
            return "overlapping alternation with quantifier can cause backtracking"
    return None


def compile_pattern(pattern: str, label: str) -> Pattern[str]:
    if not isinstance(pattern, str) or not pattern:
        raise PatternError(f"{label}: pattern must be a non-empty string.")
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise PatternError(f"Invalid regex: {label} ({exc}).") from exc
    reason = detect_redos(pattern)
    if reason:
        raise PatternError(f"{label}: {reason}.")
    return compiled


def parse_href_rules(raw: Optional[str]) -> Tuple[HrefRule, ...]:
    """
    Parse ``[{"pattern": "...", "group": 1}, ...]`` into compiled rules.

    ``group`` defaults to 1. Any invalid entry rejects the whole list.
    """
    if raw is None or not raw.strip():
        return ()
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PatternError("Custom Href Rules: invalid JSON.") from exc
    if not isinstance(entries, list):
        raise PatternError("Custom Href Rules: must be a JSON array.")

    rules: List[HrefRule] = []
    for idx, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict) or not isinstance(entry.get("pattern"), str):
            raise PatternError(f'Rule {idx}: missing "pattern" string.')
        group = entry.get("group", 1)
        if isinstance(group, bool) or not isinstance(group, int) or group < 0:
            raise PatternError(f"Rule {idx}: group must be a non-negative integer.")
        compiled = compile_pattern(entry["pattern"], f"Rule {idx}")
        rules.append(HrefRule(pattern=compiled, group=group))
    return tuple(rules)
