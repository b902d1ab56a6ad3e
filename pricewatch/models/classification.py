# pricewatch/models/classification.py

"""Strategic classification labels for a pricing delta."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Classification(str, Enum):
    """Coarse strategic reading of a competitor's price move."""

    STABLE = "Stable"
    AGGRESSIVE_EXPANSION = "Aggressive Expansion"
    PREMIUM_REPOSITIONING = "Premium Repositioning"
    MARKET_PENETRATION = "Market Penetration"

    @classmethod
    def parse(cls, value: Any) -> "Classification | None":
        """Return the matching label, or ``None`` if *value* is not one."""
        for member in cls:
            if value == member.value:
                return member
        return None


class Impact(str, Enum):
    """How urgently the user should look at a change."""

    LOW = "Low"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value: Any) -> "Impact | None":
        for member in cls:
            if value == member.value:
                return member
        return None


@dataclass(frozen=True)
class ClassificationResult:
    """Classification, display confidence (80-95) and impact."""

    classification: Classification
    confidence: int
    impact: Impact

    def to_dict(self) -> dict[str, Any]:
        return {
            "classification": self.classification.value,
            "confidence": self.confidence,
            "impact": self.impact.value,
        }
