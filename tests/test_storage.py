# tests/test_storage.py

"""Tests for the SQLite snapshot, report and competitor stores."""

import sqlite3
import tempfile
import unittest
from pathlib import Path

from pricewatch.errors import PricewatchError, ValidationError
from pricewatch.models.change import AddedChange, Delta
from pricewatch.models.pricing_tier import PricingTier, Snapshot
from pricewatch.models.report import Report
from pricewatch.storage.database import connect
from pricewatch.storage.report_store import CompetitorRegistry, ReportStore
from pricewatch.storage.snapshot_store import (
    InMemorySnapshotStore,
    SqliteSnapshotStore,
)


def _snapshot() -> Snapshot:
    return Snapshot(
        pricing=[PricingTier("Starter", 10.0), PricingTier("Pro", 50.0)],
        source="direct",
    )


def _report(user_id: str = "u1", when: str = "2026-01-01T00:00:00") -> Report:
    return Report(
        competitor_id=1,
        user_id=user_id,
        delta=Delta(
            changes=[AddedChange("Pro", 50.0)],
            current_pricing=[PricingTier("Pro", 50.0)],
        ),
        insight="Initial baseline established.",
        classification="Stable",
        last_scan_time=when,
    )


class TestInMemorySnapshotStore(unittest.TestCase):

    def test_get_missing(self) -> None:
        self.assertIsNone(InMemorySnapshotStore().get("u1"))

    def test_set_replaces_and_copies(self) -> None:
        store = InMemorySnapshotStore()
        snap = _snapshot()
        store.set("u1", snap)
        snap.pricing.append(PricingTier("Team", 99.0))
        self.assertEqual(len(store.get("u1").pricing), 2)  # type: ignore[union-attr]

        store.set("u1", Snapshot(pricing=[PricingTier("Free", 1.0)]))
        self.assertEqual(
            store.get("u1").pricing, [PricingTier("Free", 1.0)],  # type: ignore[union-attr]
        )


class TestSqliteSnapshotStore(unittest.TestCase):

    def setUp(self) -> None:
        self.store = SqliteSnapshotStore(conn=connect(Path(":memory:")))

    def tearDown(self) -> None:
        self.store.close()

    def test_round_trip(self) -> None:
        self.store.set("u1", _snapshot())
        loaded = self.store.get("u1")
        assert loaded is not None
        self.assertEqual(loaded.pricing, _snapshot().pricing)
        self.assertEqual(loaded.source, "direct")

    def test_latest_only(self) -> None:
        self.store.set("u1", _snapshot())
        self.store.set("u1", Snapshot(pricing=[PricingTier("Free", 1.0)]))
        loaded = self.store.get("u1")
        assert loaded is not None
        self.assertEqual(loaded.pricing, [PricingTier("Free", 1.0)])

    def test_users_isolated(self) -> None:
        self.store.set("u1", _snapshot())
        self.assertIsNone(self.store.get("u2"))

    def test_corrupt_row_ignored(self) -> None:
        self.store._conn.execute(
            "INSERT INTO latest_snapshots VALUES ('u1', 'not json', 'now')"
        )
        self.assertIsNone(self.store.get("u1"))


class TestFileDatabase(unittest.TestCase):

    def test_creates_parent_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "pw.db"
            conn = connect(path)
            try:
                self.assertTrue(path.exists())
                SqliteSnapshotStore(conn=conn).set("u1", _snapshot())
            finally:
                conn.close()

            reopened = SqliteSnapshotStore(db_path=path)
            try:
                self.assertIsNotNone(reopened.get("u1"))
            finally:
                reopened.close()


class TestReportStore(unittest.TestCase):

    def setUp(self) -> None:
        self.conn = connect(Path(":memory:"))
        self.store = ReportStore(conn=self.conn)

    def tearDown(self) -> None:
        self.conn.close()

    def test_save_returns_id(self) -> None:
        first = self.store.save(_report())
        second = self.store.save(_report())
        self.assertGreater(second, first)

    def test_list_newest_first(self) -> None:
        self.store.save(_report(when="2026-01-01T00:00:00"))
        self.store.save(_report(when="2026-03-01T00:00:00"))
        self.store.save(_report(when="2026-02-01T00:00:00"))
        times = [r.last_scan_time for r in self.store.list_reports("u1")]
        self.assertEqual(
            times,
            [
                "2026-03-01T00:00:00",
                "2026-02-01T00:00:00",
                "2026-01-01T00:00:00",
            ],
        )

    def test_delta_round_trip(self) -> None:
        self.store.save(_report())
        latest = self.store.get_latest("u1")
        assert latest is not None
        self.assertEqual(latest.delta.changes, [AddedChange("Pro", 50.0)])
        self.assertEqual(latest.to_dict(), _report().to_dict())

    def test_get_latest_none(self) -> None:
        self.assertIsNone(self.store.get_latest("nobody"))

    def test_limit(self) -> None:
        for i in range(5):
            self.store.save(_report(when=f"2026-01-0{i + 1}T00:00:00"))
        self.assertEqual(len(self.store.list_reports("u1", limit=2)), 2)


class TestCompetitorRegistry(unittest.TestCase):

    def setUp(self) -> None:
        self.conn: sqlite3.Connection = connect(Path(":memory:"))
        self.registry = CompetitorRegistry(conn=self.conn)

    def tearDown(self) -> None:
        self.conn.close()

    def test_none_configured(self) -> None:
        self.assertIsNone(self.registry.get_for_user("u1"))

    def test_set_and_replace(self) -> None:
        first = self.registry.set_competitor("u1", " Acme ", "https://acme.test")
        self.assertEqual(first.name, "Acme")
        second = self.registry.set_competitor("u1", "Globex", "https://globex.test/pricing")
        self.assertEqual(second.id, first.id)
        self.assertEqual(second.url, "https://globex.test/pricing")
        self.assertEqual(self.registry.get_for_user("u1"), second)

    def test_validation(self) -> None:
        with self.assertRaises(ValidationError):
            self.registry.set_competitor("u1", "", "https://acme.test")
        with self.assertRaises(ValidationError):
            self.registry.set_competitor("u1", "Acme", "acme.test")

    def test_row_missing_after_save_raises(self) -> None:
        self.conn.execute(
            "CREATE TRIGGER drop_competitor AFTER INSERT ON competitors "
            "BEGIN DELETE FROM competitors WHERE user_id = NEW.user_id; END"
        )
        with self.assertRaises(PricewatchError):
            self.registry.set_competitor("u1", "Acme", "https://acme.test")


if __name__ == "__main__":
    unittest.main()
