# pricewatch/models/pricing_tier.py

"""Pricing tier and snapshot models."""

from dataclasses import dataclass, field
from typing import Any

# Snapshot provenance tags
SOURCE_DIRECT = "direct"
SOURCE_RENDER = "render"
SOURCE_NAVIGATION = "navigation"
SOURCE_SYNTHETIC = "synthetic"
SOURCE_UNKNOWN = "unknown"


@dataclass(frozen=True)
class PricingTier:
    """A named pricing plan and its price."""

    tier: str
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"tier": self.tier, "price": self.price}


@dataclass
class Snapshot:
    """Every tier observed for a competitor at one point in time."""

    pricing: list[PricingTier] = field(
        default_factory=lambda: list[PricingTier]()
    )
    source: str = SOURCE_UNKNOWN

    @property
    def is_empty(self) -> bool:
        return not self.pricing

    @property
    def is_synthetic(self) -> bool:
        return self.source == SOURCE_SYNTHETIC

    def to_dict(self) -> dict[str, Any]:
        return {
            "pricing": [t.to_dict() for t in self.pricing],
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        """Rebuild a snapshot from stored JSON, skipping malformed rows."""
        tiers: list[PricingTier] = []
        for row in data.get("pricing") or []:
            if not isinstance(row, dict):
                continue
            try:
                tiers.append(
                    PricingTier(
                        tier=str(row["tier"]),
                        price=float(row["price"]),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        source = str(data.get("source") or SOURCE_UNKNOWN)
        return cls(pricing=tiers, source=source)
