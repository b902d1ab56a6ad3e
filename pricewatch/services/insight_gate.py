# pricewatch/services/insight_gate.py

"""Cost gate in front of the language model insight call.

The model is only consulted when the delta engine reports a significant
change. First runs and quiet scans get canned text, and any failure of
the model (missing key, timeout, bad JSON) degrades to a fixed
``Stable / 80 / Low`` result instead of raising.
"""

import json
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Protocol

from pricewatch.config.settings import Settings
from pricewatch.engine.delta_engine import DeltaResult
from pricewatch.models.change import Delta
from pricewatch.models.classification import Classification, Impact
from pricewatch.services.gemini_analyst import GeminiAnalyst

logger = logging.getLogger("pricewatch.insight")

BASELINE_INSIGHT = "Initial baseline established."
NO_CHANGE_INSIGHT = "No material changes detected."
UNCONFIGURED_INSIGHT = "Insight service not configured."
DEGRADED_INSIGHT = "Error generating insight."
EMPTY_INSIGHT = "No insight provided."

# Origin of an InsightResult
ORIGIN_MODEL = "model"
ORIGIN_BASELINE = "baseline"
ORIGIN_NO_CHANGE = "no_change"
ORIGIN_DEGRADED = "degraded"


class InsightAnalyst(Protocol):
    """Anything that turns a delta into raw model text."""

    @property
    def is_configured(self) -> bool: ...

    def analyze(self, delta: Delta) -> str: ...


@dataclass
class InsightResult:
    """Insight text plus the classification shown to the user."""

    insight: str
    classification: Classification
    confidence: int
    impact: Impact
    origin: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "insight": self.insight,
            "classification": self.classification.value,
            "confidence": self.confidence,
            "impact": self.impact.value,
        }


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Decode the first JSON object embedded in *text*.

    Markdown fences and surrounding prose are tolerated.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except ValueError:  # JSONDecodeError, or an int past the digit limit
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    return None


def degraded_result(message: str = DEGRADED_INSIGHT) -> InsightResult:
    return InsightResult(
        insight=message,
        classification=Classification.STABLE,
        confidence=Settings.CONFIDENCE_MIN,
        impact=Impact.LOW,
        origin=ORIGIN_DEGRADED,
    )


class InsightGate:
    """Decides whether a delta is worth a model call and cleans the reply."""

    def __init__(
        self,
        analyst: InsightAnalyst | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.analyst: InsightAnalyst = (
            analyst if analyst is not None else GeminiAnalyst()
        )
        self.rng = rng or random.Random()

    # ── Normalisation ────────────────────────────────────

    def _normalise_confidence(self, value: Any) -> int:
        """Clamp to the display band, drawing a random value if unusable."""
        if isinstance(value, bool):
            value = None
        try:
            number = float(value)
        except OverflowError:  # int too large for a float
            number = math.inf if value > 0 else -math.inf
        except (TypeError, ValueError):
            number = float("nan")
        if number != number:  # NaN
            return self.rng.randint(
                Settings.CONFIDENCE_MIN, Settings.CONFIDENCE_MAX
            )
        clamped = min(
            float(Settings.CONFIDENCE_MAX),
            max(float(Settings.CONFIDENCE_MIN), number),
        )
        return int(round(clamped))

    @staticmethod
    def _normalise_insight(value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return EMPTY_INSIGHT
        words = value.split()
        if len(words) > Settings.INSIGHT_MAX_WORDS:
            return " ".join(words[: Settings.INSIGHT_MAX_WORDS]) + "..."
        return value.strip()

    def parse_response(self, text: str) -> InsightResult | None:
        """Validate raw model text. Returns ``None`` when no JSON is found."""
        payload = extract_json_object(text)
        if payload is None:
            return None

        classification = Classification.parse(
            payload.get("classification")
        )
        if classification is None:
            logger.warning(
                "Model returned unknown classification %r, using Stable",
                payload.get("classification"),
            )
            classification = Classification.STABLE

        impact = Impact.parse(payload.get("impact"))
        if impact is None:
            logger.warning(
                "Model returned unknown impact %r, using Low",
                payload.get("impact"),
            )
            impact = Impact.LOW

        return InsightResult(
            insight=self._normalise_insight(payload.get("insight")),
            classification=classification,
            confidence=self._normalise_confidence(
                payload.get("confidence")
            ),
            impact=impact,
            origin=ORIGIN_MODEL,
        )

    # ── Gate ─────────────────────────────────────────────

    def _ask_model(self, delta: Delta) -> InsightResult:
        if not self.analyst.is_configured:
            logger.warning("Insight analyst not configured, degrading")
            return degraded_result(UNCONFIGURED_INSIGHT)
        try:
            raw = self.analyst.analyze(delta)
            parsed = self.parse_response(raw or "")
        except Exception as exc:
            logger.error(
                "Insight call failed: %s", exc, exc_info=True,
            )
            return degraded_result()

        if parsed is None:
            logger.error("Insight response held no JSON object")
            return degraded_result()
        return parsed

    def evaluate(self, result: DeltaResult) -> InsightResult:
        """Produce the insight for one scan's delta. Never raises."""
        if result.has_significant_change:
            logger.info(
                "Significant change, requesting model insight",
            )
            return self._ask_model(result.delta)

        if result.is_first_run:
            logger.info("First run, skipping model insight")
            return InsightResult(
                insight=BASELINE_INSIGHT,
                classification=result.classification,
                confidence=result.confidence,
                impact=result.impact,
                origin=ORIGIN_BASELINE,
            )

        logger.info("No significant change, skipping model insight")
        return InsightResult(
            insight=NO_CHANGE_INSIGHT,
            classification=Classification.STABLE,
            confidence=result.confidence,
            impact=Impact.LOW,
            origin=ORIGIN_NO_CHANGE,
        )
