# pricewatch/extractors/pricing_extractor.py

"""Cascade of pricing extraction strategies over raw HTML."""

import logging

from bs4 import BeautifulSoup

from pricewatch.config.settings import Settings
from pricewatch.extractors.strategies import (
    Strategy,
    extract_from_grid_containers,
    extract_from_page_text,
    extract_from_pricing_cards,
    extract_from_sibling_elements,
    extract_from_structured_text,
)
from pricewatch.filters.tier_deduplicator import TierDeduplicator
from pricewatch.models.pricing_tier import PricingTier, Snapshot

logger = logging.getLogger("pricewatch.extractor")

# Tags whose text is never shown to a visitor
_INVISIBLE_TAGS: list[str] = ["script", "style", "noscript", "template"]


class PricingExtractor:
    """Turn a pricing page into a sorted, deduplicated snapshot.

    Strategies run left to right. The first one producing at least
    ``MIN_TIERS_THRESHOLD`` distinct tiers wins; the final strategy is
    also accepted with a single tier. Append to ``strategies`` to add a
    heuristic without touching the others.
    """

    DEFAULT_STRATEGIES: list[tuple[str, Strategy]] = [
        ("pricing cards", extract_from_pricing_cards),
        ("grid containers", extract_from_grid_containers),
        ("sibling elements", extract_from_sibling_elements),
        ("structured text", extract_from_structured_text),
        ("page text", extract_from_page_text),
    ]

    def __init__(
        self,
        strategies: list[tuple[str, Strategy]] | None = None,
    ) -> None:
        self.strategies = list(strategies or self.DEFAULT_STRATEGIES)
        self.min_tiers = Settings.MIN_TIERS_THRESHOLD

    @staticmethod
    def _parse(html: str) -> BeautifulSoup:
        soup = BeautifulSoup(html, "lxml")
        for tag in soup(_INVISIBLE_TAGS):
            tag.decompose()
        return soup

    def _run_cascade(self, soup: BeautifulSoup) -> list[PricingTier]:
        last_index = len(self.strategies) - 1
        for index, (name, strategy) in enumerate(self.strategies):
            try:
                raw = strategy(soup)
            except Exception as exc:
                logger.warning(
                    "Strategy '%s' raised, skipping: %s",
                    name,
                    exc,
                    exc_info=True,
                )
                continue
            tiers, _ = TierDeduplicator.deduplicate(raw)
            required = 1 if index == last_index else self.min_tiers
            if len(tiers) >= required:
                logger.info(
                    "Strategy %d (%s) found %d tiers",
                    index + 1,
                    name,
                    len(tiers),
                )
                return tiers
            logger.debug(
                "Strategy %d (%s) found %d tiers, moving on",
                index + 1,
                name,
                len(tiers),
            )
        return []

    def extract(self, html: str | None) -> Snapshot:
        """Extract pricing tiers from *html*. Never raises."""
        if not html or not html.strip():
            return Snapshot(pricing=[])
        try:
            soup = self._parse(html)
            tiers = self._run_cascade(soup)
        except Exception as exc:
            logger.error(
                "Pricing extraction failed: %s", exc, exc_info=True,
            )
            return Snapshot(pricing=[])

        if not tiers:
            logger.info("All strategies exhausted, no pricing found")
        for idx, t in enumerate(tiers, 1):
            logger.debug("  %d. %s: $%.2f", idx, t.tier, t.price)
        return Snapshot(pricing=tiers)


def extract_pricing(html: str | None) -> Snapshot:
    """Convenience wrapper around a default :class:`PricingExtractor`."""
    return PricingExtractor().extract(html)
