# pricewatch/fetchers/url_planner.py

"""Pricing page URL detection."""

import logging
from urllib.parse import urljoin, urlparse

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.urls")


def is_valid_url(url: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_pricing_page(url: str) -> bool:
    """Does the URL path already look like a pricing page?"""
    if not is_valid_url(url):
        return False
    path = urlparse(url).path.lower()
    return any(p in path for p in Settings.PRICING_PATH_PATTERNS)


def get_pricing_page_url(base_url: str) -> str | None:
    """Guess the pricing page for *base_url* (``<origin>/pricing``)."""
    if not is_valid_url(base_url):
        return None
    if is_pricing_page(base_url):
        return base_url
    parsed = urlparse(base_url)
    return f"{parsed.scheme}://{parsed.netloc}/pricing"


def plan_candidate_urls(provided_url: str) -> list[tuple[str, str]]:
    """Ordered ``(url, label)`` pairs to try for a competitor.

    A URL that already points at a pricing page is tried alone;
    otherwise the guessed ``/pricing`` page goes before the homepage.
    """
    if is_pricing_page(provided_url):
        return [(provided_url, "provided pricing URL")]

    candidates: list[tuple[str, str]] = []
    guessed = get_pricing_page_url(provided_url)
    if guessed and guessed != provided_url:
        candidates.append((guessed, "auto-detected pricing page"))
    candidates.append((provided_url, "homepage"))
    logger.debug("Candidate URLs for %s: %s", provided_url, candidates)
    return candidates


def resolve_link(base_url: str, href: str) -> str | None:
    """Absolute http(s) URL for *href*, or ``None`` for mailto/js links."""
    absolute = urljoin(base_url, href.strip())
    return absolute if is_valid_url(absolute) else None
