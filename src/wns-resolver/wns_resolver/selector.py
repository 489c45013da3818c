"""
Pick the subject address among several found in one link.

Tiers, first hit wins:
  1. display text: abbreviated or full address shown to the user
  2. URL structure: path/query/fragment scoring
  3. fallback: the last address in the href
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Sequence
from urllib.parse import SplitResult, parse_qsl, urlsplit

from .extractor import is_valid_address, match_abbreviated

logger = logging.getLogger(__name__)

TIER_SINGLE = "single"
TIER_DISPLAY_ABBREVIATED = "display_abbreviated"
TIER_DISPLAY_EXACT = "display_exact"
TIER_STRUCTURE = "structure"
TIER_FALLBACK = "fallback"

SUBJECT_PATH_SEGMENTS = ("/address/", "/holder/")
ASSET_PATH_SEGMENTS = ("/token/", "/contract/")
SUBJECT_QUERY_KEYS = {"a", "holder", "address"}
ASSET_QUERY_KEYS = {"token", "contract"}
SUBJECT_FRAGMENT_KEYS = ("holder=", "address=")

SUBJECT_WEIGHT = 10
ASSET_WEIGHT = -5


@dataclass(frozen=True)
class SubjectSelection:
    address: str
    tier: str
    score: int = 0


def _parse_url(href: str) -> Optional[SplitResult]:
    try:
        url = urlsplit(href)
    except ValueError:
        return None
    if not url.scheme or not url.netloc:
        return None
    return url


def score_address(url: SplitResult, address: str) -> int:
    score = 0

    path = url.path.lower()
    idx = path.find(address)
    if idx != -1:
        before = path[:idx]
        if before.endswith(SUBJECT_PATH_SEGMENTS):
            score += SUBJECT_WEIGHT
        if before.endswith(ASSET_PATH_SEGMENTS):
            score += ASSET_WEIGHT

    for key, value in parse_qsl(url.query, keep_blank_values=True):
        if value.lower() != address:
            continue
        key = key.lower()
        if key in SUBJECT_QUERY_KEYS:
            score += SUBJECT_WEIGHT
        if key in ASSET_QUERY_KEYS:
            score += ASSET_WEIGHT

    fragment = url.fragment.lower()
    if address in fragment:
        for key in SUBJECT_FRAGMENT_KEYS:
            if key + address in fragment:
                score += SUBJECT_WEIGHT

    return score


def _select_by_display(
    addresses: Sequence[str], display_text: str, abbreviated_pattern: Optional[Pattern[str]]
) -> Optional[SubjectSelection]:
    hit = match_abbreviated(display_text, addresses, abbreviated_pattern)
    if hit:
        return SubjectSelection(hit, TIER_DISPLAY_ABBREVIATED)

    if is_valid_address(display_text):
        lowered = display_text.lower()
        for address in addresses:
            if address == lowered:
                return SubjectSelection(address, TIER_DISPLAY_EXACT)
    return None


def _select_by_structure(href: str, addresses: Sequence[str]) -> Optional[SubjectSelection]:
    url = _parse_url(href)
    if url is None:
        return None

    scores: Dict[str, int] = {address: score_address(url, address) for address in addresses}
    best = addresses[0]
    best_score = scores[best]
    for address in addresses:
        if scores[address] > best_score:
            best, best_score = address, scores[address]
    if best_score == 0:
        return None
    return SubjectSelection(best, TIER_STRUCTURE, best_score)


def pick_subject_address(
    href: str,
    addresses: Sequence[str],
    display_text: str = "",
    abbreviated_pattern: Optional[Pattern[str]] = None,
) -> SubjectSelection:
    """``addresses`` must be lowercase, in extraction order."""
    if not addresses:
        raise ValueError("addresses must contain at least one address.")
    if len(addresses) == 1:
        return SubjectSelection(addresses[0], TIER_SINGLE)

    selection = _select_by_display(addresses, (display_text or "").strip(), abbreviated_pattern)
    if selection is None:
        selection = _select_by_structure(href or "", addresses)
    if selection is None:
        selection = SubjectSelection(addresses[-1], TIER_FALLBACK)

    logger.debug("pick_subject_address: tier %s -> %s", selection.tier, selection.address)
    return selection
