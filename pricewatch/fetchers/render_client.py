# pricewatch/fetchers/render_client.py

"""Client for the hosted browser-rendering service (ActionBook)."""

import logging
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag
from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings
from pricewatch.fetchers.url_planner import (
    is_pricing_page,
    is_valid_url,
    resolve_link,
)

_LINK_TEXT_HINTS: list[str] = ["pricing", "plans", "price"]


@dataclass
class NavigationResult:
    """Rendered pricing page found by following links from a start URL."""

    html: str
    final_url: str


class RenderClient:
    """Render JavaScript-heavy pages through a remote headless browser.

    Both entry points are best effort: on any failure ``render`` returns
    an empty string and ``navigate`` returns ``None``.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self.logger = logging.getLogger("pricewatch.render")
        self.settings = Settings()
        self.api_url = (api_url or self.settings.ACTIONBOOK_API_URL).rstrip("/")
        self.api_key = (
            self.settings.ACTIONBOOK_API_KEY if api_key is None else api_key
        )
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def render(self, url: str) -> str:
        """Return the rendered HTML of *url*, or ``""`` on failure."""
        if not self.is_configured:
            self.logger.warning("ActionBook API key missing, skipping render")
            return ""
        if not is_valid_url(url):
            return ""
        try:
            self.logger.info("Rendering %s", url)
            resp = self.session.post(
                f"{self.api_url}/render",
                json={
                    "url": url,
                    "wait_for_selector": self.settings.RENDER_WAIT_SELECTOR,
                    "timeout": self.settings.RENDER_TIMEOUT * 1000,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.settings.RENDER_TIMEOUT,
            )
            if resp.status_code != 200:
                self.logger.warning(
                    "Render returned HTTP %d for %s", resp.status_code, url,
                )
                return ""
            return self._html_from_response(resp)
        except Exception as exc:
            self.logger.error(
                "Render failed for %s: %s", url, exc, exc_info=True,
            )
            return ""

    @staticmethod
    def _html_from_response(resp: curl_requests.Response) -> str:
        """The service answers either ``{"html": ...}`` or bare HTML."""
        try:
            data: Any = resp.json()
        except ValueError:
            return str(resp.text or "")
        if isinstance(data, dict):
            html = data.get("html")
            return html if isinstance(html, str) else ""
        return data if isinstance(data, str) else ""

    @staticmethod
    def find_pricing_link(html: str, base_url: str) -> str | None:
        """First anchor on the page that looks like it leads to pricing."""
        soup = BeautifulSoup(html, "lxml")
        for anchor in soup.find_all("a", href=True):
            if not isinstance(anchor, Tag):
                continue
            target = resolve_link(base_url, str(anchor["href"]))
            if target is None:
                continue
            text = anchor.get_text(" ", strip=True).lower()
            if is_pricing_page(target) or any(
                hint in text for hint in _LINK_TEXT_HINTS
            ):
                return target
        return None

    def navigate(self, start_url: str) -> NavigationResult | None:
        """Render *start_url* and follow its pricing link, if any."""
        try:
            start_html = self.render(start_url)
            if not start_html:
                return None
            if is_pricing_page(start_url):
                return NavigationResult(html=start_html, final_url=start_url)

            link = self.find_pricing_link(start_html, start_url)
            if link is None:
                self.logger.info("No pricing link found on %s", start_url)
                return None

            self.logger.info("Following pricing link %s", link)
            pricing_html = self.render(link)
            if not pricing_html:
                return None
            return NavigationResult(html=pricing_html, final_url=link)
        except Exception as exc:
            self.logger.error(
                "Navigation from %s failed: %s", start_url, exc, exc_info=True,
            )
            return None
