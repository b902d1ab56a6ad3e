# pricewatch/models/report.py

"""Competitor and scan report models."""

from dataclasses import dataclass
from typing import Any

from pricewatch.models.change import Delta


@dataclass
class Competitor:
    """The single competitor a user is tracking."""

    id: int
    user_id: str
    name: str
    url: str


@dataclass
class Report:
    """Persisted, user-facing result of one scan."""

    competitor_id: int
    user_id: str
    delta: Delta
    insight: str
    classification: str
    last_scan_time: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "competitor_id": self.competitor_id,
            "user_id": self.user_id,
            "delta": self.delta.to_dict(),
            "insight": self.insight,
            "classification": self.classification,
            "last_scan_time": self.last_scan_time,
        }
