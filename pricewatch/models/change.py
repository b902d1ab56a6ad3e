# pricewatch/models/change.py

"""Tagged change variants and the delta container."""

from dataclasses import dataclass, field
from typing import Any, Union

from pricewatch.models.pricing_tier import PricingTier


@dataclass(frozen=True)
class AddedChange:
    """A tier that appeared in the new snapshot."""

    tier: str
    current_price: float
    type: str = field(default="added", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "tier": self.tier,
            "current_price": self.current_price,
        }


@dataclass(frozen=True)
class RemovedChange:
    """A tier that disappeared from the new snapshot."""

    tier: str
    old_price: float
    type: str = field(default="removed", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "tier": self.tier,
            "old_price": self.old_price,
        }


@dataclass(frozen=True)
class IncreasedChange:
    """A tier whose price went up."""

    tier: str
    old_price: float
    current_price: float
    percent_change: float
    type: str = field(default="increased", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "tier": self.tier,
            "old_price": self.old_price,
            "current_price": self.current_price,
            "percent_change": self.percent_change,
        }


@dataclass(frozen=True)
class DecreasedChange:
    """A tier whose price went down."""

    tier: str
    old_price: float
    current_price: float
    percent_change: float
    type: str = field(default="decreased", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "tier": self.tier,
            "old_price": self.old_price,
            "current_price": self.current_price,
            "percent_change": self.percent_change,
        }


Change = Union[AddedChange, RemovedChange, IncreasedChange, DecreasedChange]


def change_from_dict(data: dict[str, Any]) -> Change:
    """Rebuild a change from its serialised form.

    Raises:
        ValueError: if ``type`` is not one of the four variants.
    """
    kind = data.get("type")
    tier = str(data["tier"])
    if kind == "added":
        return AddedChange(tier, float(data["current_price"]))
    if kind == "removed":
        return RemovedChange(tier, float(data["old_price"]))
    if kind in ("increased", "decreased"):
        cls = IncreasedChange if kind == "increased" else DecreasedChange
        return cls(
            tier,
            float(data["old_price"]),
            float(data["current_price"]),
            float(data["percent_change"]),
        )
    raise ValueError(f"Unknown change type: {kind!r}")


@dataclass
class Delta:
    """Structured diff between two snapshots plus the current tiers."""

    changes: list[Change] = field(
        default_factory=lambda: list[Change]()
    )
    current_pricing: list[PricingTier] = field(
        default_factory=lambda: list[PricingTier]()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "current_pricing": [
                t.to_dict() for t in self.current_pricing
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Delta":
        return cls(
            changes=[
                change_from_dict(c) for c in data.get("changes") or []
            ],
            current_pricing=[
                PricingTier(str(t["tier"]), float(t["price"]))
                for t in data.get("current_pricing") or []
            ],
        )
