# pricewatch/engine/delta_engine.py

"""Snapshot comparison and change classification."""

import logging
import random
from dataclasses import dataclass

from pricewatch.config.settings import Settings
from pricewatch.models.change import (
    AddedChange,
    Change,
    DecreasedChange,
    Delta,
    IncreasedChange,
    RemovedChange,
)
from pricewatch.models.classification import (
    Classification,
    ClassificationResult,
    Impact,
)
from pricewatch.models.pricing_tier import Snapshot

logger = logging.getLogger("pricewatch.delta")

AGGRESSIVE_THRESHOLD = 20.0
DECREASE_HIGH_IMPACT_THRESHOLD = 10.0


@dataclass
class DeltaResult:
    """Outcome of comparing the previous snapshot with a new one."""

    is_first_run: bool
    has_significant_change: bool
    classification: Classification
    confidence: int
    impact: Impact
    delta: Delta

    @property
    def classification_result(self) -> ClassificationResult:
        return ClassificationResult(
            classification=self.classification,
            confidence=self.confidence,
            impact=self.impact,
        )


def percent_change(old_price: float, new_price: float) -> float:
    """``|new - old| / old * 100``; a change from zero counts as 100%."""
    if old_price == 0:
        return 100.0
    return abs(new_price - old_price) * 100.0 / abs(old_price)


class DeltaEngine:
    """Pure comparison of two snapshots.

    The only non-determinism is the display confidence, drawn from
    ``rng`` so tests can seed it.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        significance_threshold: float | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.threshold = (
            Settings.SIGNIFICANCE_THRESHOLD
            if significance_threshold is None
            else significance_threshold
        )

    def draw_confidence(self) -> int:
        """Uniform display confidence in ``[CONFIDENCE_MIN, CONFIDENCE_MAX]``."""
        return self.rng.randint(
            Settings.CONFIDENCE_MIN, Settings.CONFIDENCE_MAX
        )

    def calculate_classification(
        self, changes: list[Change],
    ) -> ClassificationResult:
        """Map a change list to a strategic label and impact."""
        confidence = self.draw_confidence()
        if not changes:
            return ClassificationResult(
                Classification.STABLE, confidence, Impact.LOW
            )

        max_pct = max(
            (
                c.percent_change
                for c in changes
                if isinstance(c, (IncreasedChange, DecreasedChange))
            ),
            default=0.0,
        )
        has_increase = any(
            isinstance(c, IncreasedChange)
            or (isinstance(c, AddedChange) and c.current_price > 0)
            for c in changes
        )
        has_decrease = any(
            isinstance(c, DecreasedChange) for c in changes
        )

        # Without an increase, a large move can only be a price cut
        fallback = (
            Classification.MARKET_PENETRATION
            if has_decrease
            else Classification.STABLE
        )

        if max_pct > AGGRESSIVE_THRESHOLD:
            label = (
                Classification.AGGRESSIVE_EXPANSION
                if has_increase
                else fallback
            )
            return ClassificationResult(label, confidence, Impact.CRITICAL)

        if max_pct >= self.threshold:
            label = (
                Classification.PREMIUM_REPOSITIONING
                if has_increase
                else fallback
            )
            return ClassificationResult(label, confidence, Impact.HIGH)

        if has_decrease:
            impact = (
                Impact.HIGH
                if max_pct > DECREASE_HIGH_IMPACT_THRESHOLD
                else Impact.LOW
            )
            return ClassificationResult(
                Classification.MARKET_PENETRATION, confidence, impact
            )

        return ClassificationResult(
            Classification.STABLE, confidence, Impact.LOW
        )

    def _diff(
        self, old: Snapshot, new: Snapshot,
    ) -> tuple[list[Change], bool]:
        """Return the change list and whether any change is significant."""
        old_prices: dict[str, float] = {
            t.tier: t.price for t in old.pricing
        }
        changes: list[Change] = []
        significant = False

        for tier in new.pricing:
            if tier.tier not in old_prices:
                changes.append(AddedChange(tier.tier, tier.price))
                significant = True
                continue

            old_price = old_prices.pop(tier.tier)
            if old_price == tier.price:
                continue

            pct = percent_change(old_price, tier.price)
            cls = (
                IncreasedChange
                if tier.price > old_price
                else DecreasedChange
            )
            changes.append(cls(tier.tier, old_price, tier.price, pct))
            if pct >= self.threshold:
                significant = True

        for name, old_price in old_prices.items():
            changes.append(RemovedChange(name, old_price))
            significant = True

        return changes, bool(changes) and significant

    def compute_delta(
        self, old: Snapshot | None, new: Snapshot,
    ) -> DeltaResult:
        """Compare *old* (may be absent) against *new*."""
        delta = Delta(current_pricing=list(new.pricing))

        if old is None or old.is_empty:
            result = self.calculate_classification([])
            logger.info(
                "No previous snapshot, establishing baseline with %d tiers",
                len(new.pricing),
            )
            return DeltaResult(
                is_first_run=True,
                has_significant_change=False,
                classification=result.classification,
                confidence=result.confidence,
                impact=result.impact,
                delta=delta,
            )

        changes, significant = self._diff(old, new)
        delta.changes = changes
        result = self.calculate_classification(changes)
        logger.info(
            "Delta computed: %d changes, significant=%s, %s/%s",
            len(changes),
            significant,
            result.classification.value,
            result.impact.value,
        )
        return DeltaResult(
            is_first_run=False,
            has_significant_change=significant,
            classification=result.classification,
            confidence=result.confidence,
            impact=result.impact,
            delta=delta,
        )


def compute_delta(
    old: Snapshot | None,
    new: Snapshot,
    rng: random.Random | None = None,
) -> DeltaResult:
    """Functional form of :meth:`DeltaEngine.compute_delta`."""
    return DeltaEngine(rng=rng).compute_delta(old, new)


def calculate_classification(
    changes: list[Change],
    rng: random.Random | None = None,
) -> ClassificationResult:
    """Functional form of :meth:`DeltaEngine.calculate_classification`."""
    return DeltaEngine(rng=rng).calculate_classification(changes)
