# pricewatch/services/health_checker.py

"""Connectivity health check for each fetch strategy and collaborator."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from pricewatch.fetchers.page_fetcher import PageFetcher, StrategyUnavailable
from pricewatch.fetchers.render_client import RenderClient
from pricewatch.services.gemini_analyst import GeminiAnalyst

logger = logging.getLogger("pricewatch.health")

_SLOW_MS = 5000.0


@dataclass
class HealthResult:
    """Result of a single strategy health check."""

    name: str
    status: str  # "ok", "slow", "down", "skipped"
    latency_ms: float
    message: str
    fetch_probe: bool = True


def probe_strategy(
    name: str,
    fetch_fn: Callable[[str], str],
    url: str,
    min_length: int = 100,
) -> HealthResult:
    """Fetch *url* once with *fetch_fn* and time it."""
    start = time.monotonic()
    try:
        html = fetch_fn(url)
    except StrategyUnavailable as exc:
        return HealthResult(name, "skipped", 0.0, str(exc))
    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(name, "down", elapsed_ms, str(exc)[:80])

    elapsed_ms = (time.monotonic() - start) * 1000
    if len(html) < min_length:
        return HealthResult(
            name, "down", elapsed_ms, f"Only {len(html)} bytes returned",
        )
    if elapsed_ms > _SLOW_MS:
        return HealthResult(name, "slow", elapsed_ms, "High latency")
    return HealthResult(name, "ok", elapsed_ms, "")


def _config_result(name: str, configured: bool, missing: str) -> HealthResult:
    if configured:
        return HealthResult(name, "ok", 0.0, "configured", fetch_probe=False)
    return HealthResult(
        name, "skipped", 0.0, f"{missing} not set", fetch_probe=False,
    )


class HealthChecker:
    """Probes every fetch strategy concurrently against one URL.

    Each probe gets its own ``PageFetcher`` so no two threads share a
    session or circuit breaker.
    """

    def __init__(
        self,
        fetcher_factory: Callable[[], PageFetcher] = PageFetcher,
        render_client: RenderClient | None = None,
        analyst: GeminiAnalyst | None = None,
    ) -> None:
        self.fetcher_factory = fetcher_factory
        self.render_client = render_client or RenderClient()
        self.analyst = analyst or GeminiAnalyst()

    def _probe(self, index: int, url: str) -> HealthResult:
        fetcher = self.fetcher_factory()
        name, fn = fetcher.strategies()[index]
        return probe_strategy(name, fn, url, fetcher.settings.MIN_HTML_LENGTH)

    async def check_all(self, url: str) -> list[HealthResult]:
        """Probe each strategy for *url*, then report collaborator config."""
        tasks = [
            asyncio.to_thread(self._probe, index, url)
            for index in range(len(PageFetcher.STRATEGY_NAMES))
        ]
        results: list[HealthResult] = list(await asyncio.gather(*tasks))
        results.append(
            _config_result(
                "ActionBook render",
                self.render_client.is_configured,
                "ACTIONBOOK_API_KEY",
            )
        )
        results.append(
            _config_result(
                "Gemini insight",
                self.analyst.is_configured,
                "GEMINI_API_KEY",
            )
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.name,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
