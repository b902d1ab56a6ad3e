# pricewatch/services/gemini_analyst.py

"""Gemini client that explains a pricing delta in plain language."""

import json
import logging

import google.generativeai as genai

from pricewatch.config.settings import Settings
from pricewatch.models.change import Delta

logger = logging.getLogger("pricewatch.gemini")

_PROMPT_TEMPLATE = """\
Analyze this competitor pricing change strictly as JSON.
Provide a concise strategic insight. Limit the insight to {max_words} words.
Return only a valid JSON object with this structure:
{{
  "insight": "string (max {max_words} words)",
  "classification": "Aggressive Expansion" | "Premium Repositioning" | "Stable" | "Market Penetration",
  "confidence": number between {conf_min} and {conf_max},
  "impact": "Critical" | "High" | "Low"
}}

Delta Data:
{delta_json}
"""


def build_prompt(delta: Delta) -> str:
    """Render the analysis prompt for *delta*."""
    return _PROMPT_TEMPLATE.format(
        max_words=Settings.INSIGHT_MAX_WORDS,
        conf_min=Settings.CONFIDENCE_MIN,
        conf_max=Settings.CONFIDENCE_MAX,
        delta_json=json.dumps(delta.to_dict(), indent=2),
    )


class GeminiAnalyst:
    """Thin wrapper over ``google.generativeai`` returning raw model text."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = (
            Settings.GEMINI_API_KEY if api_key is None else api_key
        )
        self.model_name = model_name or Settings.GEMINI_MODEL
        self.timeout = timeout or Settings.INSIGHT_TIMEOUT
        self._model: genai.GenerativeModel | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_model(self) -> genai.GenerativeModel:
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def analyze(self, delta: Delta) -> str:
        """Ask the model for a strategic reading of *delta*.

        Raises whatever the client raises; callers own the fallback.
        """
        if not self.is_configured:
            raise RuntimeError("GEMINI_API_KEY is not configured")
        model = self._get_model()
        logger.info(
            "Requesting insight from %s for %d changes",
            self.model_name,
            len(delta.changes),
        )
        response = model.generate_content(
            build_prompt(delta),
            request_options={"timeout": self.timeout},
        )
        text: str = response.text
        logger.debug("Gemini raw response: %s", text)
        return text
