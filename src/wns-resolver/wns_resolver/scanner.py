"""
Link-level address matching and replacement planning.

A link is an ``(href, display_text)`` pair as found on a page. Matching per
link, first hit wins:
  1. custom   - user-defined href rules
  2. primary  - full address(es) in the href, narrowed by the subject selector
  3. secondary - abbreviated display text matched against addresses in the href
"""

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple

from .extractor import (
    DEFAULT_ABBREVIATED_RE,
    DEFAULT_FULL_ADDRESS_RE,
    HrefRule,
    find_full_addresses,
    match_abbreviated,
    match_href_rules,
)
from .selector import pick_subject_address

logger = logging.getLogger(__name__)

SOURCE_CUSTOM = "custom"
SOURCE_PRIMARY = "primary"
SOURCE_SECONDARY = "secondary"


@dataclass(frozen=True)
class Link:
    href: str
    text: str = ""


@dataclass(frozen=True)
class LinkMatch:
    link: Link
    address: str
    source: str
    tier: Optional[str] = None


@dataclass(frozen=True)
class Replacement:
    link: Link
    address: str
    name: str


@dataclass
class AddressExtractor:
    full_address_pattern: Pattern[str] = DEFAULT_FULL_ADDRESS_RE
    abbreviated_pattern: Pattern[str] = DEFAULT_ABBREVIATED_RE
    href_rules: Sequence[HrefRule] = field(default_factory=tuple)

    def addresses_in(self, text: str) -> List[str]:
        return find_full_addresses(text, self.full_address_pattern)

    def match_link(self, link: Link) -> Optional[LinkMatch]:
        href = link.href or ""
        display_text = (link.text or "").strip()

        if self.href_rules:
            hit = match_href_rules(href, self.href_rules)
            if hit:
                return LinkMatch(link, hit, SOURCE_CUSTOM)

        candidates = self.addresses_in(href)
        if candidates:
            selection = pick_subject_address(href, candidates, display_text, self.abbreviated_pattern)
            return LinkMatch(link, selection.address, SOURCE_PRIMARY, selection.tier)

        # A narrower custom full-address pattern can miss addresses the
        # display text still points at.
        hit = match_abbreviated(display_text, find_full_addresses(href), self.abbreviated_pattern)
        if hit:
            return LinkMatch(link, hit, SOURCE_SECONDARY)
        return None

    def collect_links(self, links: Iterable[Link]) -> Tuple[List[LinkMatch], List[str]]:
        """Match every link; returns the matches and the distinct addresses in first-seen order."""
        matches: List[LinkMatch] = []
        addresses: Dict[str, None] = {}
        for link in links:
            match = self.match_link(link)
            if match is None:
                continue
            matches.append(match)
            addresses.setdefault(match.address, None)
        logger.debug("found %d ethereum links", len(matches))
        return matches, list(addresses)


def should_replace(display_text: str, replace_ens: bool, ignore: Collection[str]) -> bool:
    """Only address-looking text is replaced; ``.eth`` names only when ``replace_ens`` is set."""
    text = (display_text or "").strip()
    if not text or text in ignore:
        return False
    if text.endswith(".eth"):
        return replace_ens
    return text.startswith("0x")


def plan_replacements(
    matches: Iterable[LinkMatch],
    names: Mapping[str, str],
    replace_ens: bool = False,
    ignore: Collection[str] = (),
) -> List[Replacement]:
    replacements: List[Replacement] = []
    for match in matches:
        name = names.get(match.address)
        if not name:
            continue
        if not should_replace(match.link.text, replace_ens, ignore):
            logger.debug("skipping %r -> %s", match.link.text, name)
            continue
        replacements.append(Replacement(match.link, match.address, name))
    return replacements
