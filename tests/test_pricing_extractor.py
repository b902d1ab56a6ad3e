# tests/test_pricing_extractor.py

"""Tests for the PricingExtractor strategy cascade."""

import unittest
from pathlib import Path

from bs4 import BeautifulSoup

from pricewatch.extractors.pricing_extractor import (
    PricingExtractor,
    extract_pricing,
)
from pricewatch.models.pricing_tier import PricingTier

FIXTURES = Path(__file__).parent / "fixtures"


def _fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def _boom(soup: BeautifulSoup) -> list[PricingTier]:
    raise RuntimeError("broken heuristic")


class TestPricingExtractor(unittest.TestCase):
    """End-to-end extraction over HTML fixtures."""

    def setUp(self) -> None:
        self.extractor = PricingExtractor()

    def test_pricing_cards_page(self) -> None:
        """Cards are found, deduplicated and sorted by price."""
        snapshot = self.extractor.extract(_fixture("pricing_cards.html"))
        self.assertEqual(
            snapshot.pricing,
            [
                PricingTier("Starter", 29.0),
                PricingTier("Pro", 79.99),
                PricingTier("Enterprise", 1299.0),
            ],
        )

    def test_script_and_style_ignored(self) -> None:
        """Prices inside <script>/<style> never become tiers."""
        snapshot = self.extractor.extract(_fixture("pricing_cards.html"))
        self.assertNotIn(1.0, [t.price for t in snapshot.pricing])
        self.assertNotIn(2.0, [t.price for t in snapshot.pricing])

    def test_grid_layout_page(self) -> None:
        snapshot = self.extractor.extract(_fixture("grid_layout.html"))
        self.assertEqual(
            snapshot.pricing,
            [PricingTier("Basic", 10.0), PricingTier("Premium", 25.0)],
        )

    def test_no_pricing_markup(self) -> None:
        """A page without pricing yields an empty snapshot, not an error."""
        snapshot = self.extractor.extract(_fixture("no_pricing.html"))
        self.assertTrue(snapshot.is_empty)

    def test_empty_input(self) -> None:
        self.assertTrue(self.extractor.extract("").is_empty)
        self.assertTrue(self.extractor.extract("   ").is_empty)
        self.assertTrue(self.extractor.extract(None).is_empty)

    def test_duplicate_tier_first_wins(self) -> None:
        html = (
            '<div class="plan"><h3>Pro</h3><span class="price">$20</span></div>'
            '<div class="plan"><h3>Starter</h3><span class="price">$10</span></div>'
            '<div class="plan"><h3>Pro</h3><span class="price">$200</span></div>'
        )
        snapshot = self.extractor.extract(html)
        self.assertEqual(
            snapshot.pricing,
            [PricingTier("Starter", 10.0), PricingTier("Pro", 20.0)],
        )

    def test_output_sorted_regardless_of_order(self) -> None:
        html = (
            '<div class="tier"><h3>Enterprise</h3><p>$99</p></div>'
            '<div class="tier"><h3>Team</h3><p>$49</p></div>'
            '<div class="tier"><h3>Starter</h3><p>$9</p></div>'
        )
        prices = [t.price for t in self.extractor.extract(html).pricing]
        self.assertEqual(prices, sorted(prices))
        self.assertEqual(prices, [9.0, 49.0, 99.0])

    def test_last_strategy_accepts_single_tier(self) -> None:
        snapshot = self.extractor.extract(
            "<html><body><p>Our Growth offering is $149.</p></body></html>"
        )
        self.assertEqual(snapshot.pricing, [PricingTier("Growth", 149.0)])

    def test_raising_strategy_skipped(self) -> None:
        two = [PricingTier("Pro", 20.0), PricingTier("Free", 0.5)]
        extractor = PricingExtractor(
            strategies=[("boom", _boom), ("fixed", lambda soup: two)],
        )
        snapshot = extractor.extract("<p>anything</p>")
        self.assertEqual(
            snapshot.pricing,
            [PricingTier("Free", 0.5), PricingTier("Pro", 20.0)],
        )

    def test_duplicates_do_not_meet_threshold(self) -> None:
        """Two copies of one tier count as one for the cascade."""
        calls: list[str] = []

        def dupes(soup: BeautifulSoup) -> list[PricingTier]:
            calls.append("dupes")
            return [PricingTier("Pro", 10.0), PricingTier("pro", 20.0)]

        def nothing(soup: BeautifulSoup) -> list[PricingTier]:
            calls.append("nothing")
            return []

        extractor = PricingExtractor(
            strategies=[("dupes", dupes), ("nothing", nothing)],
        )
        self.assertTrue(extractor.extract("<p>x</p>").is_empty)
        self.assertEqual(calls, ["dupes", "nothing"])

    def test_first_qualifying_strategy_wins(self) -> None:
        later_called = False

        def later(soup: BeautifulSoup) -> list[PricingTier]:
            nonlocal later_called
            later_called = True
            return []

        first = [PricingTier("Basic", 5.0), PricingTier("Plus", 8.0)]
        extractor = PricingExtractor(
            strategies=[("first", lambda soup: first), ("later", later)],
        )
        self.assertEqual(extractor.extract("<p>x</p>").pricing, first)
        self.assertFalse(later_called)

    def test_extract_pricing_wrapper(self) -> None:
        snapshot = extract_pricing(_fixture("grid_layout.html"))
        self.assertEqual(len(snapshot.pricing), 2)


if __name__ == "__main__":
    unittest.main()
