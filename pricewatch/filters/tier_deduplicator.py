# pricewatch/filters/tier_deduplicator.py

"""Pricing tier deduplication and ordering."""

import logging

from pricewatch.models.pricing_tier import PricingTier

logger = logging.getLogger("pricewatch.filters")


class TierDeduplicator:
    """Collapse repeated tier names and order tiers by price."""

    @staticmethod
    def _normalise_name(name: str) -> str:
        """Lowercase and collapse whitespace for comparison."""
        return " ".join(name.lower().split())

    @staticmethod
    def deduplicate(
        tiers: list[PricingTier],
    ) -> tuple[list[PricingTier], int]:
        """Keep the first tier per case-insensitive name, sorted by price.

        The first occurrence wins even when a later duplicate is
        cheaper.

        Returns the deduplicated list and the count of removed dupes.
        """
        if not tiers:
            return [], 0

        seen: set[str] = set()
        kept: list[PricingTier] = []
        removed = 0

        for tier in tiers:
            key = TierDeduplicator._normalise_name(tier.tier)
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(tier)

        # Stable sort keeps document order between equal prices
        kept.sort(key=lambda t: t.price)

        if removed:
            logger.debug(
                "Deduplication removed %d repeated tiers", removed,
            )
        return kept, removed
