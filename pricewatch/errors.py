# pricewatch/errors.py

"""Exception types raised across pricewatch."""


class PricewatchError(Exception):
    """Base class for pricewatch failures."""


class FetchError(PricewatchError):
    """Every fetch strategy failed for a URL."""

    def __init__(self, url: str, attempts: list[str]) -> None:
        self.url = url
        self.attempts = attempts
        summary = "; ".join(attempts) or "no strategies available"
        super().__init__(
            f"Failed to fetch {url}. Tried: {summary}"
        )


class ValidationError(PricewatchError):
    """Caller supplied missing or invalid input."""


class PipelineError(PricewatchError):
    """A scan stage failed unexpectedly; nothing was persisted."""

    def __init__(
        self, stage: str, duration_ms: int, cause: BaseException,
    ) -> None:
        self.stage = stage
        self.duration_ms = duration_ms
        self.cause = cause
        super().__init__(
            f"Scan failed during '{stage}' after {duration_ms}ms: {cause}"
        )
