# pricewatch/config/settings.py

"""Central configuration for the pricewatch monitor."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, ignoring junk values."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    """Central configuration for the pricewatch monitor."""

    # --- Fetching ---
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Attempts per fetch strategy
    RETRY_BACKOFF: float = 1.0          # Seconds, multiplied by attempt
    MIN_HTML_LENGTH: int = 100          # Shorter bodies are not a page
    FETCH_TIMEOUT: float = 120.0        # Budget the fetcher enforces itself
    FETCH_GRACE: float = float(REQUEST_TIMEOUT)  # Outer slack for one in-flight request

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 300.0
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Bright Data proxy (optional) ---
    BRIGHTDATA_PROXY_HOST: str = os.getenv("BRIGHTDATA_PROXY_HOST", "")
    BRIGHTDATA_PROXY_PORT: int = _env_int("BRIGHTDATA_PROXY_PORT", 22225)
    BRIGHTDATA_USERNAME: str = os.getenv("BRIGHTDATA_USERNAME", "")
    BRIGHTDATA_PASSWORD: str = os.getenv("BRIGHTDATA_PASSWORD", "")

    # --- Render collaborator (ActionBook) ---
    ACTIONBOOK_API_URL: str = os.getenv(
        "ACTIONBOOK_API_URL", "https://api.actionbook.dev/v1"
    )
    ACTIONBOOK_API_KEY: str = os.getenv("ACTIONBOOK_API_KEY", "")
    RENDER_TIMEOUT: int = 45
    RENDER_WAIT_SELECTOR: str = (
        '.pricing-card, [data-test="pricing"], .tier'
    )

    # --- Insight (Gemini) ---
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    INSIGHT_TIMEOUT: float = 60.0
    INSIGHT_MAX_WORDS: int = 120

    # --- Extraction & delta thresholds ---
    MIN_TIERS_THRESHOLD: int = 2        # Tiers needed to stop searching
    SIGNIFICANCE_THRESHOLD: float = 5.0  # Percent change that alerts
    CONFIDENCE_MIN: int = 80
    CONFIDENCE_MAX: int = 95
    MAX_PLAUSIBLE_PRICE: float = 10000.0
    CARD_TEXT_LIMIT: int = 1000         # Larger cards are containers
    BLOCK_TEXT_LIMIT: int = 500

    # --- URL discovery ---
    PRICING_PATH_PATTERNS: list[str] = [
        "/pricing",
        "/plans",
        "/price",
        "/packages",
        "/subscriptions",
    ]

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = DATA_DIR / "pricewatch.db"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Users ---
    DEFAULT_USER_ID: str = os.getenv("PRICEWATCH_USER", "local")
