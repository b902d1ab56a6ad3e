# pricewatch/extractors/strategies.py

"""Independent pricing extraction heuristics.

Every strategy takes a parsed document and returns the tiers it
recognised, in document order. Strategies never raise on odd markup;
they simply return fewer tiers. The cascade in
:mod:`pricewatch.extractors.pricing_extractor` decides which result to
trust.
"""

import logging
import re
from collections.abc import Callable

from bs4 import BeautifulSoup, Comment, Tag

from pricewatch.config.settings import Settings
from pricewatch.extractors.price_parser import (
    PRICE_RE,
    TIER_KEYWORDS,
    contains_keyword,
    display_name,
    find_tier_keyword,
    normalise_text,
    parse_price,
    to_price,
)
from pricewatch.models.pricing_tier import PricingTier

logger = logging.getLogger("pricewatch.extractor")

Strategy = Callable[[BeautifulSoup], list[PricingTier]]

CARD_SELECTORS: list[str] = [
    '[class*="pricing"]',
    '[class*="plan"]',
    '[class*="tier"]',
    '[class*="package"]',
    '[class*="subscription"]',
    '[class*="price-card"]',
    '[class*="priceCard"]',
    "[data-pricing]",
    "[data-plan]",
    "[data-tier]",
    ".card",
    ".pricing-table > *",
    ".plans > *",
    ".tiers > *",
]

CONTAINER_SELECTORS: list[str] = [
    "main",
    "section",
    '[class*="container"]',
    '[class*="wrapper"]',
    '[class*="grid"]',
    '[class*="flex"]',
    '[class*="row"]',
    '[class*="cards"]',
]

HEADING_SELECTOR = (
    'h1, h2, h3, h4, h5, h6, '
    '[class*="title"], [class*="name"], [class*="heading"]'
)
PRICE_ELEMENT_SELECTOR = (
    '[class*="price"], [class*="amount"], [class*="cost"]'
)
BLOCK_TAGS: list[str] = ["div", "section", "article", "li"]

MIN_GRID_CHILDREN = 2
MAX_GRID_CHILDREN = 6

# Only the most common names are worth a "$29 ... Starter" scan
REVERSE_KEYWORDS: list[str] = [
    "starter", "pro", "enterprise", "basic", "premium",
]

_STRUCTURED_TIER_RE = re.compile(
    r"\b(" + "|".join(TIER_KEYWORDS) + r")\b", re.IGNORECASE
)
_PRICE_CAPTURE = PRICE_RE.pattern
_FORWARD_RES: dict[str, re.Pattern[str]] = {
    kw: re.compile(rf"\b{kw}\b[^$]*?{_PRICE_CAPTURE}", re.IGNORECASE)
    for kw in TIER_KEYWORDS
}
_REVERSE_RES: dict[str, re.Pattern[str]] = {
    kw: re.compile(rf"{_PRICE_CAPTURE}[^a-z]*\b{kw}\b", re.IGNORECASE)
    for kw in REVERSE_KEYWORDS
}


def element_text(el: Tag) -> str:
    """Visible text of *el* with whitespace collapsed."""
    return normalise_text(el.get_text(" "))


def own_text(el: Tag) -> str:
    """Text held directly by *el*, excluding its child elements."""
    parts = [
        str(s)
        for s in el.find_all(string=True, recursive=False)
        if not isinstance(s, Comment)
    ]
    return normalise_text(" ".join(parts))


def extract_tier_from_element(el: Tag) -> PricingTier | None:
    """Read one ``{tier, price}`` pair out of a single card-like element.

    Headings are searched for the tier name and price-like children for
    the amount before falling back to the element's whole text. Elements
    with more than ``CARD_TEXT_LIMIT`` characters are containers, not
    cards, and are rejected.
    """
    full_text = element_text(el)
    if not full_text or len(full_text) > Settings.CARD_TEXT_LIMIT:
        return None

    tier_name: str | None = None
    heading = el.select_one(HEADING_SELECTOR)
    if heading is not None:
        tier_name = find_tier_keyword(element_text(heading))
    if tier_name is None:
        tier_name = find_tier_keyword(full_text)
    if tier_name is None:
        return None

    price: float | None = None
    price_el = el.select_one(PRICE_ELEMENT_SELECTOR)
    if price_el is not None:
        price = parse_price(element_text(price_el))
    if price is None:
        price = parse_price(full_text)
    if price is None:
        return None

    return PricingTier(tier=tier_name, price=price)


def _tiers_from_elements(elements: list[Tag]) -> list[PricingTier]:
    tiers: list[PricingTier] = []
    for el in elements:
        tier = extract_tier_from_element(el)
        if tier is not None:
            tiers.append(tier)
    return tiers


def extract_from_pricing_cards(soup: BeautifulSoup) -> list[PricingTier]:
    """Strategy 1: well-known pricing card selectors.

    The first selector that matches at least two elements *and* yields
    at least two tiers wins.
    """
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if len(cards) < 2:
            continue
        tiers = _tiers_from_elements(cards)
        if len(tiers) >= 2:
            logger.debug(
                "Card selector %s yielded %d tiers", selector, len(tiers),
            )
            return tiers
    return []


def extract_from_grid_containers(soup: BeautifulSoup) -> list[PricingTier]:
    """Strategy 2: layout containers whose 2-6 children look like cards."""
    for selector in CONTAINER_SELECTORS:
        for container in soup.select(selector):
            children = [
                c for c in container.children if isinstance(c, Tag)
            ]
            if not MIN_GRID_CHILDREN <= len(children) <= MAX_GRID_CHILDREN:
                continue
            tiers = _tiers_from_elements(children)
            if len(tiers) >= 2:
                logger.debug(
                    "Container %s <%s> yielded %d tiers",
                    selector,
                    container.name,
                    len(tiers),
                )
                return tiers
    return []


def extract_from_sibling_elements(soup: BeautifulSoup) -> list[PricingTier]:
    """Strategy 3: a tier label whose parent also shows a price."""
    tiers: list[PricingTier] = []
    elements = [
        (el, own_text(el).lower()) for el in soup.find_all(True)
    ]
    for keyword in TIER_KEYWORDS:
        for el, text in elements:
            if not text:
                continue
            if not contains_keyword(text, keyword):
                continue
            parent = el.parent
            if not isinstance(parent, Tag) or parent is soup:
                continue
            price = parse_price(element_text(parent))
            if price is not None:
                tiers.append(
                    PricingTier(tier=display_name(keyword), price=price)
                )
    return tiers


def extract_from_structured_text(soup: BeautifulSoup) -> list[PricingTier]:
    """Strategy 4: small blocks mentioning both a tier and a price."""
    tiers: list[PricingTier] = []
    for el in soup.find_all(BLOCK_TAGS):
        text = element_text(el)
        if not text or len(text) > Settings.BLOCK_TEXT_LIMIT:
            continue
        tier_match = _STRUCTURED_TIER_RE.search(text)
        if not tier_match:
            continue
        price = parse_price(text)
        if price is not None:
            tiers.append(
                PricingTier(
                    tier=display_name(tier_match.group(1)), price=price,
                )
            )
    return tiers


def extract_from_page_text(soup: BeautifulSoup) -> list[PricingTier]:
    """Strategy 5: whole-page regex scan, the noisiest last resort.

    ``Tier ... $Price`` patterns are tried for every keyword; the
    reverse ``$Price ... Tier`` form only fills in keywords not found
    when fewer than two tiers turned up.
    """
    body = soup.body or soup
    text = normalise_text(body.get_text(" "))
    if not text:
        return []

    tiers: list[PricingTier] = []
    found: set[str] = set()
    for kw, pattern in _FORWARD_RES.items():
        match = pattern.search(text)
        if not match:
            continue
        price = to_price(match.group(1))
        if price is not None:
            tiers.append(PricingTier(tier=display_name(kw), price=price))
            found.add(kw)

    if len(tiers) < 2:
        for kw, pattern in _REVERSE_RES.items():
            if kw in found:
                continue
            match = pattern.search(text)
            if not match:
                continue
            price = to_price(match.group(1))
            if price is not None:
                tiers.append(
                    PricingTier(tier=display_name(kw), price=price)
                )
                found.add(kw)
    return tiers

