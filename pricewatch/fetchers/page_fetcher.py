# pricewatch/fetchers/page_fetcher.py

"""Multi-strategy page retrieval for competitor pricing pages."""

import logging
import time
from collections.abc import Callable
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings
from pricewatch.errors import FetchError, ValidationError
from pricewatch.fetchers.url_planner import is_valid_url


class StrategyUnavailable(Exception):
    """A fetch strategy is not configured and should be skipped."""


class PageFetcher:
    """Fetch raw HTML, falling through proxy, curl_cffi and cloudscraper.

    Strategies are tried in order, each up to ``MAX_RETRIES`` times with
    a linear backoff. A response only counts when it is at least
    ``MIN_HTML_LENGTH`` characters and not a Cloudflare/CAPTCHA wall.
    A circuit breaker stops hammering a site after repeated total
    failures.
    """

    STRATEGY_NAMES: tuple[str, ...] = ("BrightData Proxy", "curl_cffi", "cloudscraper")

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(self) -> None:
        self.logger = logging.getLogger("pricewatch.fetcher")
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    # ── Response checks ──────────────────────────────────

    def _validate_html(self, text: str) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "Cloudflare challenge detected (marker: '%s')",
                    marker,
                )
                return False

        # Large pages with a real body mention "captcha" in scripts
        has_body_content = "<body" in lower and len(text) > 5000
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "CAPTCHA keyword '%s' detected", keyword,
                    )
                    return False
        return True

    def _accept(self, html: Any) -> str:
        """Return *html* if usable, otherwise raise with the reason."""
        if not isinstance(html, str) or len(html) < self.settings.MIN_HTML_LENGTH:
            raise ValueError("Response too short or invalid")
        if not self._validate_html(html):
            raise ValueError("Blocked by bot challenge")
        return html

    # ── Circuit breaker ──────────────────────────────────

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "Circuit breaker half-open after %.0fs", elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        if self._consecutive_failures >= self.settings.CIRCUIT_BREAKER_THRESHOLD:
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "Circuit breaker opened after %d consecutive failures",
                self._consecutive_failures,
            )

    # ── Strategies ───────────────────────────────────────

    def _proxy_url(self) -> str:
        s = self.settings
        if not (
            s.BRIGHTDATA_PROXY_HOST
            and s.BRIGHTDATA_USERNAME
            and s.BRIGHTDATA_PASSWORD
        ):
            raise StrategyUnavailable(
                "BrightData proxy credentials not configured"
            )
        return (
            f"http://{s.BRIGHTDATA_USERNAME}:{s.BRIGHTDATA_PASSWORD}"
            f"@{s.BRIGHTDATA_PROXY_HOST}:{s.BRIGHTDATA_PROXY_PORT}"
        )

    def _get(self, url: str, timeout: float | None, **kwargs: Any) -> str:
        resp = self.session.get(
            url,
            headers=self.settings.DEFAULT_HEADERS,
            timeout=timeout or self._request_timeout,
            **kwargs,
        )
        if not 200 <= resp.status_code < 300:
            raise ConnectionError(f"HTTP {resp.status_code}")
        return str(resp.text)

    def fetch_via_proxy(self, url: str, timeout: float | None = None) -> str:
        """Fetch through the Bright Data residential proxy."""
        proxy = self._proxy_url()
        self.logger.info("Fetching via BrightData proxy: %s", url)
        return self._get(url, timeout, proxies={"http": proxy, "https": proxy})

    def fetch_via_curl(self, url: str, timeout: float | None = None) -> str:
        """Fetch directly with browser-impersonating TLS."""
        self.logger.info("Fetching via curl_cffi: %s", url)
        return self._get(url, timeout)

    def fetch_via_cloudscraper(
        self, url: str, timeout: float | None = None,
    ) -> str:
        """Fetch with cloudscraper's JS challenge solver."""
        self.logger.info("Fetching via cloudscraper: %s", url)
        _cs: Any = cloudscraper
        scraper: Any = _cs.create_scraper()
        resp: Any = scraper.get(
            url,
            headers=self.settings.DEFAULT_HEADERS,
            timeout=timeout or self._request_timeout,
        )
        if not 200 <= resp.status_code < 300:
            raise ConnectionError(f"HTTP {resp.status_code}")
        return str(resp.text)

    def strategies(self) -> list[tuple[str, Callable[..., str]]]:
        """Ordered ``(name, fetch_fn)`` pairs."""
        fns = [
            self.fetch_via_proxy,
            self.fetch_via_curl,
            self.fetch_via_cloudscraper,
        ]
        return list(zip(self.STRATEGY_NAMES, fns))

    # ── Entry point ──────────────────────────────────────

    def fetch(self, url: str, budget: float | None = None) -> str:
        """Return the page HTML for *url* within *budget* seconds.

        *budget* defaults to ``FETCH_TIMEOUT``. Each request timeout and
        backoff is capped by what is left of it, so the call returns
        before the budget runs out plus at most one in-flight request.

        Raises:
            ValidationError: if *url* is not an absolute http(s) URL.
            FetchError: if every strategy failed or the budget ran out.
        """
        if not is_valid_url(url):
            raise ValidationError(f"Invalid URL: {url!r}")
        if self._check_circuit():
            raise FetchError(url, ["circuit breaker open"])

        if budget is None:
            budget = self.settings.FETCH_TIMEOUT
        deadline = time.monotonic() + budget

        errors: list[str] = []
        for name, fetch_fn in self.strategies():
            for attempt in range(1, self.settings.MAX_RETRIES + 1):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    html = self._accept(fetch_fn(
                        url, timeout=min(self._request_timeout, remaining),
                    ))
                except StrategyUnavailable as exc:
                    self.logger.debug("Skipping %s: %s", name, exc)
                    errors.append(f"{name}: {exc}")
                    break
                except Exception as exc:
                    msg = f"{name} attempt {attempt}: {exc}"
                    self.logger.warning("%s", msg)
                    errors.append(msg)
                    if attempt < self.settings.MAX_RETRIES:
                        time.sleep(min(
                            self.settings.RETRY_BACKOFF * attempt,
                            max(0.0, deadline - time.monotonic()),
                        ))
                    continue
                self.logger.info(
                    "Fetched %d bytes via %s", len(html), name,
                )
                self._record_success()
                return html
            if time.monotonic() >= deadline:
                errors.append(f"fetch budget of {budget:.0f}s exhausted")
                break

        self._record_failure()
        self.logger.error("All fetch strategies failed for %s", url)
        raise FetchError(url, errors)
