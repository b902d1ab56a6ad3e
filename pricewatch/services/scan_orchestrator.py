# pricewatch/services/scan_orchestrator.py

"""Runs one competitor scan: fetch, extract, diff, explain, persist."""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

from pricewatch.config.logging_config import set_scan_stage
from pricewatch.config.settings import Settings
from pricewatch.engine.delta_engine import DeltaEngine, DeltaResult
from pricewatch.errors import PipelineError, ValidationError
from pricewatch.extractors.pricing_extractor import PricingExtractor
from pricewatch.fetchers.page_fetcher import PageFetcher
from pricewatch.fetchers.render_client import NavigationResult, RenderClient
from pricewatch.fetchers.url_planner import is_valid_url, plan_candidate_urls
from pricewatch.models.change import Delta
from pricewatch.models.pricing_tier import (
    SOURCE_DIRECT,
    SOURCE_NAVIGATION,
    SOURCE_RENDER,
    SOURCE_SYNTHETIC,
    PricingTier,
    Snapshot,
)
from pricewatch.models.report import Competitor, Report
from pricewatch.services.insight_gate import (
    InsightGate,
    InsightResult,
    degraded_result,
)
from pricewatch.storage.snapshot_store import SnapshotStore

logger = logging.getLogger("pricewatch.scan")

T = TypeVar("T")

STAGES: list[str] = [
    "fetching_page",
    "agent_navigating",
    "extracting_pricing",
    "computing_delta",
    "generating_insight",
    "saving_report",
]


def _retrieve_outcome(task: asyncio.Future[Any]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Timed-out fetch ended with: %s", task.exception())


class CompetitorSource(Protocol):
    def get_for_user(self, user_id: str) -> Competitor | None: ...


class ReportSink(Protocol):
    def save(self, report: Report) -> Any: ...


@dataclass
class ScanStep:
    """One line of the scan's trace, shown to the user."""

    type: str
    message: str
    detail: str | None
    timestamp_ms: int


@dataclass
class ScanMeta:
    """How a scan got its data."""

    data_source: str = "none"
    render_used: bool = False
    pricing_page_url: str | None = None
    tiers_found: int = 0
    duration_ms: int = 0
    stages: dict[str, bool | None] = field(
        default_factory=lambda: dict[str, bool | None]()
    )
    steps: list[ScanStep] = field(
        default_factory=lambda: list[ScanStep]()
    )


@dataclass
class ScanResult:
    """What a scan returns to its caller."""

    is_first_run: bool
    has_significant_change: bool
    classification: str
    confidence: int
    impact: str
    insight: str
    delta: Delta | None
    last_scan_time: str
    scan_meta: ScanMeta

    def to_dict(self) -> dict[str, Any]:
        meta = self.scan_meta
        return {
            "isFirstRun": self.is_first_run,
            "hasSignificantChange": self.has_significant_change,
            "classification": self.classification,
            "confidence": self.confidence,
            "impact": self.impact,
            "insight": self.insight,
            "delta": self.delta.to_dict() if self.delta else None,
            "last_scan_time": self.last_scan_time,
            "scanMeta": {
                "dataSource": meta.data_source,
                "renderUsed": meta.render_used,
                "pricingPageUrl": meta.pricing_page_url,
                "tiersFound": meta.tiers_found,
                "durationMs": meta.duration_ms,
                "stages": dict(meta.stages),
                "steps": [
                    {
                        "type": s.type,
                        "message": s.message,
                        "detail": s.detail,
                        "timestamp": s.timestamp_ms,
                    }
                    for s in meta.steps
                ],
            },
        }


def synthetic_snapshot(rng: random.Random) -> Snapshot:
    """Fixed three-tier demo snapshot used when every source failed."""
    pro_price = 89.99 if rng.random() > 0.5 else 79.99
    return Snapshot(
        pricing=[
            PricingTier("Starter", 29.99),
            PricingTier("Pro", pro_price),
            PricingTier("Enterprise", 199.99),
        ],
        source=SOURCE_SYNTHETIC,
    )


class _ScanRun:
    """Mutable bookkeeping for a single scan."""

    def __init__(self) -> None:
        self.started = time.monotonic()
        self.stage = "init"
        self.meta = ScanMeta(stages={s: None for s in STAGES})

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def step(
        self, step_type: str, message: str, detail: str | None = None,
    ) -> None:
        self.meta.steps.append(
            ScanStep(step_type, message, detail, self.elapsed_ms())
        )
        logger.info(
            "[step] %s%s", message, f" ({detail})" if detail else "",
        )

    def enter(self, stage: str) -> None:
        self.stage = stage
        set_scan_stage(stage)
        self.meta.stages[stage] = False

    def complete(self, stage: str, ok: bool = True) -> None:
        self.meta.stages[stage] = ok


class ScanOrchestrator:
    """Sequences one scan over injected collaborators.

    Extraction and diffing are pure; every external call runs in a
    worker thread under a timeout and degrades to its fallback (no
    HTML, canned insight) instead of failing the scan. Only a missing
    competitor is reported as a client error, and only a failing report
    sink aborts the scan.
    """

    def __init__(
        self,
        competitors: CompetitorSource,
        snapshot_store: SnapshotStore,
        report_sink: ReportSink,
        fetcher: PageFetcher | None = None,
        render_client: RenderClient | None = None,
        extractor: PricingExtractor | None = None,
        delta_engine: DeltaEngine | None = None,
        insight_gate: InsightGate | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = Settings()
        self.rng = rng or random.Random()
        self.competitors = competitors
        self.snapshot_store = snapshot_store
        self.report_sink = report_sink
        self.fetcher = fetcher or PageFetcher()
        self.render_client = render_client or RenderClient()
        self.extractor = extractor or PricingExtractor()
        self.delta_engine = delta_engine or DeltaEngine(rng=self.rng)
        self.insight_gate = insight_gate or InsightGate(rng=self.rng)
        self._abandoned_fetch: asyncio.Future[str] | None = None

    # ── Bounded external calls ───────────────────────────

    @staticmethod
    async def _call(
        fn: Callable[..., T], *args: Any, timeout: float,
    ) -> T:
        """Run blocking *fn* in a thread, abandoning it after *timeout*."""
        return await asyncio.wait_for(
            asyncio.to_thread(fn, *args), timeout=timeout
        )

    async def _await_abandoned_fetch(self) -> None:
        """Block until a fetch that outlived its timeout has finished."""
        task = self._abandoned_fetch
        self._abandoned_fetch = None
        if task is None or task.done():
            return
        logger.warning("Waiting for a timed-out fetch to finish")
        await asyncio.wait({task})

    async def _fetch_html(self, url: str, run: _ScanRun, label: str) -> str:
        await self._await_abandoned_fetch()
        budget = self.settings.FETCH_TIMEOUT
        task = asyncio.ensure_future(
            asyncio.to_thread(self.fetcher.fetch, url, budget)
        )
        try:
            html = await asyncio.wait_for(
                asyncio.shield(task),
                timeout=budget + self.settings.FETCH_GRACE,
            )
        except Exception as exc:
            logger.warning("Failed to fetch %s: %s", label, exc)
            run.step("error", f"Failed to fetch {label}", str(exc))
            return ""
        finally:
            if not task.done():
                task.add_done_callback(_retrieve_outcome)
                self._abandoned_fetch = task
        run.step("loaded", "Page loaded successfully", f"{len(html) / 1024:.1f}KB")
        return html

    # ── Stages ───────────────────────────────────────────

    async def _fetch_stage(
        self, competitor: Competitor, run: _ScanRun,
    ) -> Snapshot:
        run.enter("fetching_page")
        snapshot = Snapshot(pricing=[])
        for url, label in plan_candidate_urls(competitor.url):
            run.step("fetch", f"Fetching {label}", url)
            html = await self._fetch_html(url, run, label)
            if not html:
                continue
            parsed = self.extractor.extract(html)
            count = len(parsed.pricing)
            if count >= self.settings.MIN_TIERS_THRESHOLD:
                parsed.source = SOURCE_DIRECT
                run.meta.pricing_page_url = url
                run.meta.data_source = SOURCE_DIRECT
                run.step(
                    "extract",
                    f"Extracted {count} pricing tiers",
                    ", ".join(t.tier for t in parsed.pricing),
                )
                snapshot = parsed
                break
            if count > 0 and snapshot.is_empty:
                parsed.source = SOURCE_DIRECT
                run.meta.pricing_page_url = url
                run.meta.data_source = SOURCE_DIRECT
                run.step("partial", f"Found {count} tier(s), searching for more...")
                snapshot = parsed
            else:
                run.step("search", "No pricing found on this page, continuing search...")
        run.complete("fetching_page", not snapshot.is_empty)
        return snapshot

    async def _render_stage(
        self, competitor: Competitor, current: Snapshot, run: _ScanRun,
    ) -> Snapshot:
        run.enter("agent_navigating")
        await self._await_abandoned_fetch()
        run.meta.render_used = True
        run.step("agent", "Activating rendering agent", competitor.url)

        candidate: Snapshot | None = None
        candidate_url: str | None = None
        try:
            nav: NavigationResult | None = await self._call(
                self.render_client.navigate,
                competitor.url,
                timeout=self.settings.RENDER_TIMEOUT * 2,
            )
        except Exception as exc:
            logger.warning("Navigation failed: %s", exc)
            nav = None
        if nav is not None and nav.html:
            run.step("discover", "Pricing page discovered", nav.final_url)
            candidate = self.extractor.extract(nav.html)
            candidate.source = SOURCE_NAVIGATION
            candidate_url = nav.final_url

        if candidate is None or candidate.is_empty:
            target = plan_candidate_urls(competitor.url)[0][0]
            try:
                html = await self._call(
                    self.render_client.render,
                    target,
                    timeout=self.settings.RENDER_TIMEOUT,
                )
            except Exception as exc:
                logger.warning("Render failed: %s", exc)
                html = ""
            if html:
                candidate = self.extractor.extract(html)
                candidate.source = SOURCE_RENDER
                candidate_url = target

        if candidate is None or len(candidate.pricing) <= len(current.pricing):
            run.step("warn", "Rendering agent could not improve on fetched pricing")
            run.complete("agent_navigating", False)
            return current

        run.meta.pricing_page_url = candidate_url
        run.meta.data_source = candidate.source
        run.step(
            "extract",
            f"Extracted {len(candidate.pricing)} pricing tiers",
            ", ".join(t.tier for t in candidate.pricing),
        )
        run.complete("agent_navigating")
        return candidate

    def _finalise_snapshot(self, snapshot: Snapshot, run: _ScanRun) -> Snapshot:
        run.enter("extracting_pricing")
        if snapshot.is_empty:
            snapshot = synthetic_snapshot(self.rng)
            run.meta.data_source = SOURCE_SYNTHETIC
            logger.warning(
                "FALLBACK: all sources failed, using synthetic demo data "
                "(source=%s)",
                SOURCE_SYNTHETIC,
            )
            run.step("fallback", "Using synthetic demo data")
        summary = ", ".join(f"{t.tier}: ${t.price:.2f}" for t in snapshot.pricing)
        run.step("pricing", f"Final pricing: {len(snapshot.pricing)} tiers", summary)
        run.meta.tiers_found = len(snapshot.pricing)
        run.complete("extracting_pricing")
        return snapshot

    def _load_previous(self, user_id: str) -> Snapshot | None:
        try:
            return self.snapshot_store.get(user_id)
        except Exception as exc:
            logger.error(
                "Snapshot store read failed, treating as first run: %s",
                exc,
                exc_info=True,
            )
            return None

    async def _insight_stage(
        self, result: DeltaResult, run: _ScanRun,
    ) -> InsightResult:
        run.enter("generating_insight")
        if result.has_significant_change:
            run.step("ai", "Generating AI strategic insight...")
        try:
            insight = await self._call(
                self.insight_gate.evaluate,
                result,
                timeout=self.settings.INSIGHT_TIMEOUT,
            )
        except Exception as exc:
            logger.error("Insight stage failed: %s", exc, exc_info=True)
            insight = degraded_result()
        run.step("insight", f"Classification: {insight.classification.value}", insight.origin)
        run.complete("generating_insight")
        return insight

    def _persist(
        self,
        competitor: Competitor,
        snapshot: Snapshot,
        result: DeltaResult,
        insight: InsightResult,
        scan_time: str,
        run: _ScanRun,
    ) -> None:
        run.enter("saving_report")
        run.step("save", "Saving report")
        self.report_sink.save(
            Report(
                competitor_id=competitor.id,
                user_id=competitor.user_id,
                delta=result.delta,
                insight=insight.insight,
                classification=insight.classification.value,
                last_scan_time=scan_time,
            )
        )
        try:
            self.snapshot_store.set(competitor.user_id, snapshot)
        except Exception as exc:
            logger.error(
                "Snapshot store write failed: %s", exc, exc_info=True,
            )
        run.complete("saving_report")

    # ── Entry point ──────────────────────────────────────

    async def run_scan(self, user_id: str) -> ScanResult:
        """Scan the competitor tracked by *user_id*.

        Raises:
            ValidationError: if the user tracks no (valid) competitor.
            PipelineError: on any unexpected failure; nothing is saved.
        """
        run = _ScanRun()
        competitor = self.competitors.get_for_user(user_id)
        if competitor is None:
            logger.warning("No competitor configured for %s", user_id)
            raise ValidationError("No competitor configured")
        if not is_valid_url(competitor.url):
            raise ValidationError(f"Invalid competitor URL: {competitor.url!r}")

        logger.info(
            "Starting scan of %s (%s) for %s",
            competitor.name,
            competitor.url,
            user_id,
        )
        run.step("init", "Initializing scan", competitor.name)

        try:
            snapshot = await self._fetch_stage(competitor, run)
            if len(snapshot.pricing) < self.settings.MIN_TIERS_THRESHOLD:
                snapshot = await self._render_stage(competitor, snapshot, run)
            snapshot = self._finalise_snapshot(snapshot, run)

            run.enter("computing_delta")
            run.step("compare", "Comparing against baseline snapshot")
            previous = self._load_previous(user_id)
            result = self.delta_engine.compute_delta(previous, snapshot)
            if result.has_significant_change:
                run.step(
                    "delta",
                    f"Detected {len(result.delta.changes)} change(s)",
                    f">={self.settings.SIGNIFICANCE_THRESHOLD:g}% threshold",
                )
            elif result.is_first_run:
                run.step("delta", "First run - baseline established")
            else:
                run.step("delta", "No significant changes detected")
            run.complete("computing_delta")

            insight = await self._insight_stage(result, run)

            scan_time = datetime.now(timezone.utc).isoformat()
            self._persist(competitor, snapshot, result, insight, scan_time, run)
        except asyncio.CancelledError:
            logger.warning("Scan for %s cancelled during %s", user_id, run.stage)
            raise
        except Exception as exc:
            duration = run.elapsed_ms()
            logger.error(
                "Scan failed during %s after %dms: %s",
                run.stage,
                duration,
                exc,
                exc_info=True,
            )
            raise PipelineError(run.stage, duration, exc) from exc
        finally:
            set_scan_stage(None)

        run.step("complete", "Analysis complete")
        run.meta.duration_ms = run.elapsed_ms()
        logger.info(
            "Scan complete in %dms: source=%s tiers=%d classification=%s",
            run.meta.duration_ms,
            run.meta.data_source,
            run.meta.tiers_found,
            insight.classification.value,
        )
        return ScanResult(
            is_first_run=result.is_first_run,
            has_significant_change=result.has_significant_change,
            classification=insight.classification.value,
            confidence=insight.confidence,
            impact=insight.impact.value,
            insight=insight.insight,
            delta=result.delta if result.has_significant_change else None,
            last_scan_time=scan_time,
            scan_meta=run.meta,
        )
