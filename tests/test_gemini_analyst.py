# tests/test_gemini_analyst.py

"""Tests for the Gemini insight client."""

import json
import unittest
from unittest.mock import MagicMock, patch

from pricewatch.models.change import Delta, IncreasedChange
from pricewatch.models.pricing_tier import PricingTier
from pricewatch.services.gemini_analyst import GeminiAnalyst, build_prompt

GENAI_PATH = "pricewatch.services.gemini_analyst.genai"


def _delta() -> Delta:
    return Delta(
        changes=[IncreasedChange("Pro", 79.0, 99.0, 25.3)],
        current_pricing=[PricingTier("Pro", 99.0)],
    )


class TestBuildPrompt(unittest.TestCase):

    def test_contains_delta_json_and_limits(self) -> None:
        prompt = build_prompt(_delta())
        self.assertIn(json.dumps(_delta().to_dict(), indent=2), prompt)
        self.assertIn("120 words", prompt)
        self.assertIn("between 80 and 95", prompt)
        self.assertIn('"Market Penetration"', prompt)


class TestGeminiAnalyst(unittest.TestCase):

    def test_unconfigured_raises(self) -> None:
        analyst = GeminiAnalyst(api_key="")
        self.assertFalse(analyst.is_configured)
        with self.assertRaises(RuntimeError):
            analyst.analyze(_delta())

    @patch(GENAI_PATH)
    def test_analyze_returns_text(self, mock_genai: MagicMock) -> None:
        model = MagicMock()
        model.generate_content.return_value = MagicMock(text='{"a": 1}')
        mock_genai.GenerativeModel.return_value = model

        analyst = GeminiAnalyst(api_key="k", model_name="m", timeout=7)
        self.assertEqual(analyst.analyze(_delta()), '{"a": 1}')

        mock_genai.configure.assert_called_once_with(api_key="k")
        mock_genai.GenerativeModel.assert_called_once_with("m")
        _, kwargs = model.generate_content.call_args
        self.assertEqual(kwargs["request_options"], {"timeout": 7})

    @patch(GENAI_PATH)
    def test_model_built_once(self, mock_genai: MagicMock) -> None:
        mock_genai.GenerativeModel.return_value.generate_content.return_value = (
            MagicMock(text="{}")
        )
        analyst = GeminiAnalyst(api_key="k")
        analyst.analyze(_delta())
        analyst.analyze(_delta())
        self.assertEqual(mock_genai.GenerativeModel.call_count, 1)

    @patch(GENAI_PATH)
    def test_client_errors_propagate(self, mock_genai: MagicMock) -> None:
        mock_genai.GenerativeModel.return_value.generate_content.side_effect = (
            ConnectionError("down")
        )
        with self.assertRaises(ConnectionError):
            GeminiAnalyst(api_key="k").analyze(_delta())


if __name__ == "__main__":
    unittest.main()
