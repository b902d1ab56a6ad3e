# pricewatch/extractors/price_parser.py

"""Currency and tier-keyword matching shared by the extraction strategies."""

import re

from pricewatch.config.settings import Settings

# Common plan names, in the order they are tried when several match
TIER_KEYWORDS: list[str] = [
    "starter",
    "pro",
    "enterprise",
    "basic",
    "premium",
    "free",
    "business",
    "team",
    "individual",
    "professional",
    "plus",
    "growth",
]

# "$29", "$ 1,299", "$79.99"
PRICE_RE = re.compile(r"\$\s*(\d+(?:,\d{3})*(?:\.\d{2})?)")

_KEYWORD_RES: dict[str, re.Pattern[str]] = {
    kw: re.compile(rf"\b{kw}s?\b", re.IGNORECASE)
    for kw in TIER_KEYWORDS
}


def display_name(keyword: str) -> str:
    """Canonical display form of a tier keyword ("pro" -> "Pro")."""
    return keyword[:1].upper() + keyword[1:].lower()


def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Word-bounded, case-insensitive matcher for one keyword."""
    return _KEYWORD_RES[keyword.lower()]


def is_plausible_price(value: float) -> bool:
    """Reject zero, negative and absurd values (years, phone numbers)."""
    return 0 < value < Settings.MAX_PLAUSIBLE_PRICE


def to_price(raw: str) -> float | None:
    """Convert a captured numeral like ``1,299.00`` to a plausible price."""
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        return None
    return value if is_plausible_price(value) else None


def parse_price(text: str | None) -> float | None:
    """Return the first ``$<number>`` in *text* if it is plausible."""
    if not text:
        return None
    match = PRICE_RE.search(text)
    if not match:
        return None
    return to_price(match.group(1))


def find_tier_keyword(text: str | None) -> str | None:
    """Return the display name of the earliest tier keyword in *text*.

    Matching is word-bounded, so "Professional" is never read as "Pro"
    and "products" is not a tier.
    """
    if not text:
        return None
    best: tuple[int, str] | None = None
    for kw in TIER_KEYWORDS:
        match = _KEYWORD_RES[kw].search(text)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), kw)
    return display_name(best[1]) if best else None


def contains_keyword(text: str, keyword: str) -> bool:
    return bool(_KEYWORD_RES[keyword].search(text))


def normalise_text(text: str) -> str:
    """Collapse runs of whitespace to single spaces."""
    return " ".join(text.split())
