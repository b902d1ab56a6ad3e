# tests/test_delta_engine.py

"""Tests for snapshot diffing and change classification."""

import random
import unittest

from pricewatch.engine.delta_engine import (
    DeltaEngine,
    calculate_classification,
    compute_delta,
    percent_change,
)
from pricewatch.models.change import (
    AddedChange,
    Change,
    DecreasedChange,
    IncreasedChange,
    RemovedChange,
)
from pricewatch.models.classification import Classification, Impact
from pricewatch.models.pricing_tier import PricingTier, Snapshot


def _snap(*pairs: tuple[str, float]) -> Snapshot:
    return Snapshot(pricing=[PricingTier(name, price) for name, price in pairs])


class TestPercentChange(unittest.TestCase):

    def test_increase_and_decrease_are_positive(self) -> None:
        self.assertEqual(percent_change(100.0, 105.0), 5.0)
        self.assertEqual(percent_change(100.0, 97.0), 3.0)

    def test_from_zero(self) -> None:
        self.assertEqual(percent_change(0.0, 10.0), 100.0)


class TestComputeDelta(unittest.TestCase):
    """DeltaEngine.compute_delta behaviour."""

    def setUp(self) -> None:
        self.engine = DeltaEngine(rng=random.Random(7))

    def test_identical_snapshots_no_change(self) -> None:
        snap = _snap(("Starter", 10.0), ("Pro", 50.0))
        result = self.engine.compute_delta(snap, snap)
        self.assertFalse(result.is_first_run)
        self.assertFalse(result.has_significant_change)
        self.assertEqual(result.delta.changes, [])
        self.assertEqual(result.classification, Classification.STABLE)
        self.assertEqual(result.impact, Impact.LOW)

    def test_first_run_mirrors_new_snapshot(self) -> None:
        snap = _snap(("Starter", 10.0))
        result = self.engine.compute_delta(None, snap)
        self.assertTrue(result.is_first_run)
        self.assertFalse(result.has_significant_change)
        self.assertEqual(result.classification, Classification.STABLE)
        self.assertEqual(result.delta.current_pricing, snap.pricing)
        self.assertEqual(result.delta.changes, [])

    def test_empty_old_snapshot_is_first_run(self) -> None:
        result = self.engine.compute_delta(Snapshot(), _snap(("Pro", 5.0)))
        self.assertTrue(result.is_first_run)

    def test_threshold_boundary(self) -> None:
        below = self.engine.compute_delta(
            _snap(("Pro", 100.0)), _snap(("Pro", 104.99)),
        )
        self.assertFalse(below.has_significant_change)
        self.assertEqual(len(below.delta.changes), 1)

        at = self.engine.compute_delta(
            _snap(("Pro", 100.0)), _snap(("Pro", 105.0)),
        )
        self.assertTrue(at.has_significant_change)

    def test_added_tier_always_significant(self) -> None:
        result = self.engine.compute_delta(
            _snap(("Pro", 100.0)), _snap(("Pro", 100.0), ("Team", 1.0)),
        )
        self.assertTrue(result.has_significant_change)
        self.assertEqual(result.delta.changes, [AddedChange("Team", 1.0)])

    def test_removed_tier_always_significant(self) -> None:
        result = self.engine.compute_delta(
            _snap(("Pro", 100.0), ("Team", 1.0)), _snap(("Pro", 100.0)),
        )
        self.assertTrue(result.has_significant_change)
        self.assertEqual(result.delta.changes, [RemovedChange("Team", 1.0)])

    def test_removed_after_new_snapshot_changes(self) -> None:
        result = self.engine.compute_delta(
            _snap(("Basic", 5.0), ("Pro", 50.0)),
            _snap(("Pro", 60.0)),
        )
        types = [c.type for c in result.delta.changes]
        self.assertEqual(types, ["increased", "removed"])

    def test_current_pricing_present_without_significance(self) -> None:
        new = _snap(("Pro", 101.0))
        result = self.engine.compute_delta(_snap(("Pro", 100.0)), new)
        self.assertFalse(result.has_significant_change)
        self.assertEqual(result.delta.current_pricing, new.pricing)

    def test_increase_with_new_tier(self) -> None:
        result = self.engine.compute_delta(
            _snap(("Starter", 29.0), ("Pro", 79.0)),
            _snap(("Starter", 29.0), ("Pro", 99.0), ("Enterprise", 249.0)),
        )
        self.assertTrue(result.has_significant_change)
        self.assertEqual(len(result.delta.changes), 2)
        increase, added = result.delta.changes
        assert isinstance(increase, IncreasedChange)
        self.assertEqual(increase.tier, "Pro")
        self.assertEqual(increase.old_price, 79.0)
        self.assertEqual(increase.current_price, 99.0)
        self.assertAlmostEqual(increase.percent_change, 25.3165, places=3)
        self.assertEqual(added, AddedChange("Enterprise", 249.0))
        self.assertEqual(
            result.classification, Classification.AGGRESSIVE_EXPANSION,
        )
        self.assertEqual(result.impact, Impact.CRITICAL)

    def test_small_decrease_not_significant(self) -> None:
        result = self.engine.compute_delta(
            _snap(("Pro", 100.0)), _snap(("Pro", 97.0)),
        )
        self.assertFalse(result.has_significant_change)
        (change,) = result.delta.changes
        assert isinstance(change, DecreasedChange)
        self.assertEqual(change.percent_change, 3.0)

    def test_confidence_in_band(self) -> None:
        for seed in range(50):
            engine = DeltaEngine(rng=random.Random(seed))
            result = engine.compute_delta(None, _snap(("Pro", 1.0)))
            self.assertGreaterEqual(result.confidence, 80)
            self.assertLessEqual(result.confidence, 95)

    def test_seeded_confidence_reproducible(self) -> None:
        a = compute_delta(None, _snap(("Pro", 1.0)), rng=random.Random(3))
        b = compute_delta(None, _snap(("Pro", 1.0)), rng=random.Random(3))
        self.assertEqual(a.confidence, b.confidence)


class TestCalculateClassification(unittest.TestCase):
    """Classification policy."""

    def _classify(self, changes: list[Change]) -> tuple[Classification, Impact]:
        result = calculate_classification(changes, rng=random.Random(1))
        return result.classification, result.impact

    def test_no_changes_stable(self) -> None:
        self.assertEqual(
            self._classify([]), (Classification.STABLE, Impact.LOW),
        )

    def test_increase_monotonicity(self) -> None:
        cases = [
            (4.99, (Classification.STABLE, Impact.LOW)),
            (5.0, (Classification.PREMIUM_REPOSITIONING, Impact.HIGH)),
            (10.0, (Classification.PREMIUM_REPOSITIONING, Impact.HIGH)),
            (20.0, (Classification.PREMIUM_REPOSITIONING, Impact.HIGH)),
            (20.5, (Classification.AGGRESSIVE_EXPANSION, Impact.CRITICAL)),
        ]
        for pct, expected in cases:
            with self.subTest(pct=pct):
                change = IncreasedChange("Pro", 100.0, 100.0 + pct, pct)
                self.assertEqual(self._classify([change]), expected)

    def test_small_increase_stable(self) -> None:
        change = IncreasedChange("Pro", 100.0, 102.0, 2.0)
        self.assertEqual(
            self._classify([change]), (Classification.STABLE, Impact.LOW),
        )

    def test_pure_decrease_never_expansion(self) -> None:
        change = DecreasedChange("Pro", 100.0, 85.0, 15.0)
        self.assertEqual(
            self._classify([change]),
            (Classification.MARKET_PENETRATION, Impact.HIGH),
        )

    def test_large_decrease_is_critical_cut(self) -> None:
        change = DecreasedChange("Pro", 100.0, 50.0, 50.0)
        self.assertEqual(
            self._classify([change]),
            (Classification.MARKET_PENETRATION, Impact.CRITICAL),
        )

    def test_small_decrease_low_impact(self) -> None:
        change = DecreasedChange("Pro", 100.0, 97.0, 3.0)
        self.assertEqual(
            self._classify([change]),
            (Classification.MARKET_PENETRATION, Impact.LOW),
        )

    def test_added_tier_counts_as_increase(self) -> None:
        changes = [
            AddedChange("Enterprise", 300.0),
            DecreasedChange("Pro", 100.0, 90.0, 10.0),
        ]
        self.assertEqual(
            self._classify(changes),
            (Classification.PREMIUM_REPOSITIONING, Impact.HIGH),
        )

    def test_removal_only_stable(self) -> None:
        self.assertEqual(
            self._classify([RemovedChange("Team", 10.0)]),
            (Classification.STABLE, Impact.LOW),
        )


if __name__ == "__main__":
    unittest.main()
