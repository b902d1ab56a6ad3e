# tests/test_price_parser.py

"""Tests for currency parsing and tier keyword matching."""

import unittest

from pricewatch.extractors.price_parser import (
    display_name,
    find_tier_keyword,
    is_plausible_price,
    parse_price,
    to_price,
)


class TestParsePrice(unittest.TestCase):
    """parse_price / to_price behaviour."""

    def test_simple_dollar_amount(self) -> None:
        self.assertEqual(parse_price("Only $29 a month"), 29.0)

    def test_cents(self) -> None:
        self.assertEqual(parse_price("$79.99/mo"), 79.99)

    def test_thousands_separator_stripped(self) -> None:
        """"$1,299.00" parses as 1299."""
        self.assertEqual(parse_price("$1,299.00"), 1299.0)

    def test_space_after_symbol(self) -> None:
        self.assertEqual(parse_price("$ 49"), 49.0)

    def test_first_match_wins(self) -> None:
        self.assertEqual(parse_price("$10 then $20"), 10.0)

    def test_zero_rejected(self) -> None:
        self.assertIsNone(parse_price("$0"))

    def test_absurd_value_rejected(self) -> None:
        """Values at or above 10000 are noise."""
        self.assertIsNone(parse_price("$10,000"))
        self.assertEqual(parse_price("$9,999.99"), 9999.99)

    def test_no_currency(self) -> None:
        self.assertIsNone(parse_price("Free forever"))
        self.assertIsNone(parse_price("Founded 2009"))

    def test_empty_and_none(self) -> None:
        self.assertIsNone(parse_price(""))
        self.assertIsNone(parse_price(None))

    def test_to_price_invalid(self) -> None:
        self.assertIsNone(to_price("abc"))

    def test_is_plausible_price_bounds(self) -> None:
        self.assertFalse(is_plausible_price(0))
        self.assertFalse(is_plausible_price(-5))
        self.assertTrue(is_plausible_price(0.5))
        self.assertFalse(is_plausible_price(10000))


class TestFindTierKeyword(unittest.TestCase):
    """find_tier_keyword matching rules."""

    def test_display_name_capitalised(self) -> None:
        self.assertEqual(find_tier_keyword("STARTER PLAN"), "Starter")
        self.assertEqual(display_name("pro"), "Pro")

    def test_word_boundary(self) -> None:
        """"Professional" is its own tier, never "Pro"."""
        self.assertEqual(
            find_tier_keyword("Professional plan"), "Professional",
        )

    def test_substring_not_matched(self) -> None:
        self.assertIsNone(find_tier_keyword("Browse our products"))

    def test_earliest_keyword_wins(self) -> None:
        self.assertEqual(find_tier_keyword("Team Pro bundle"), "Team")

    def test_plural_form(self) -> None:
        self.assertEqual(find_tier_keyword("Built for teams"), "Team")

    def test_no_keyword(self) -> None:
        self.assertIsNone(find_tier_keyword("Contact sales"))
        self.assertIsNone(find_tier_keyword(None))


if __name__ == "__main__":
    unittest.main()
