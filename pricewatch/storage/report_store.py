# pricewatch/storage/report_store.py

"""Append-only scan reports and the per-user competitor record."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from pricewatch.errors import PricewatchError, ValidationError
from pricewatch.fetchers.url_planner import is_valid_url
from pricewatch.models.change import Delta
from pricewatch.models.report import Competitor, Report
from pricewatch.storage.database import connect

logger = logging.getLogger("pricewatch.reports")


class ReportStore:
    """SQLite store of scan reports; rows are never updated."""

    def __init__(
        self,
        db_path: Path | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        self._conn = conn or connect(db_path)

    def close(self) -> None:
        self._conn.close()

    def save(self, report: Report) -> int:
        """Insert *report* and return its row id."""
        cur = self._conn.execute(
            "INSERT INTO reports (competitor_id, user_id, delta, insight, "
            "classification, last_scan_time) VALUES (?, ?, ?, ?, ?, ?)",
            (
                report.competitor_id,
                report.user_id,
                json.dumps(report.delta.to_dict()),
                report.insight,
                report.classification,
                report.last_scan_time,
            ),
        )
        self._conn.commit()
        report_id = int(cur.lastrowid or 0)
        logger.info(
            "Saved report %d for %s (%s)",
            report_id,
            report.user_id,
            report.classification,
        )
        return report_id

    @staticmethod
    def _row_to_report(row: tuple[object, ...]) -> Report:
        return Report(
            competitor_id=int(str(row[0])),
            user_id=str(row[1]),
            delta=Delta.from_dict(json.loads(str(row[2]))),
            insight=str(row[3]),
            classification=str(row[4]),
            last_scan_time=str(row[5]),
        )

    def list_reports(
        self, user_id: str, limit: int = 20,
    ) -> list[Report]:
        """Most recent reports for *user_id*, newest first."""
        rows = self._conn.execute(
            "SELECT competitor_id, user_id, delta, insight, "
            "       classification, last_scan_time "
            "FROM reports WHERE user_id = ? "
            "ORDER BY last_scan_time DESC, id DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
        return [self._row_to_report(r) for r in rows]

    def get_latest(self, user_id: str) -> Report | None:
        reports = self.list_reports(user_id, limit=1)
        return reports[0] if reports else None


class CompetitorRegistry:
    """One tracked competitor per user."""

    def __init__(
        self,
        db_path: Path | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        self._conn = conn or connect(db_path)

    def close(self) -> None:
        self._conn.close()

    def get_for_user(self, user_id: str) -> Competitor | None:
        row = self._conn.execute(
            "SELECT id, user_id, name, url FROM competitors "
            "WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return Competitor(
            id=row[0], user_id=row[1], name=row[2], url=row[3],
        )

    def set_competitor(
        self, user_id: str, name: str, url: str,
    ) -> Competitor:
        """Create or replace the user's competitor.

        Raises:
            ValidationError: on an empty name or a non-http(s) URL.
        """
        name = name.strip()
        url = url.strip()
        if not name:
            raise ValidationError("Competitor name is required")
        if not is_valid_url(url):
            raise ValidationError(f"Invalid competitor URL: {url!r}")

        self._conn.execute(
            "INSERT INTO competitors (user_id, name, url, created_at) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET "
            "name=excluded.name, url=excluded.url",
            (user_id, name, url, datetime.now().isoformat()),
        )
        self._conn.commit()
        competitor = self.get_for_user(user_id)
        if competitor is None:
            raise PricewatchError(
                f"Competitor for {user_id!r} missing right after saving it"
            )
        logger.info(
            "Tracking %s (%s) for %s", competitor.name, competitor.url, user_id,
        )
        return competitor
