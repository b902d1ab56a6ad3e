# pricewatch/config/logging_config.py

"""Per-run timestamped logging configuration for pricewatch.

Each launch creates a dedicated log file inside ``logs/`` named with
the launch timestamp (e.g. ``logs/run_20260214_153045.log``). All
``pricewatch.*`` loggers route through this file handler, so a scan's
fetch attempts, extractor decisions and insight calls land in one
per-run log.

Records carry the scan stage they were emitted in (``fetching_page``,
``generating_insight``, ...), or ``-`` outside a scan.
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path

from pricewatch.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(scan_stage)-18s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(scan_stage)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Stage of the scan running in the current task; worker threads started
# with asyncio.to_thread inherit it
_scan_stage: ContextVar[str] = ContextVar("scan_stage", default="-")


def set_scan_stage(stage: str | None) -> None:
    """Tag subsequent log records in this context with *stage*."""
    _scan_stage.set(stage or "-")


class ScanStageFilter(logging.Filter):
    """Adds ``scan_stage`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.scan_stage = _scan_stage.get()
        return True


def setup_logging() -> Path:
    """Initialise the root ``pricewatch`` logger for the current run.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger("pricewatch")
    root_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, CLI re-entry) keep the first handlers
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    stage_filter = ScanStageFilter()
    file_handler.addFilter(stage_filter)
    console_handler.addFilter(stage_filter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialised, log file: %s", log_file)

    return log_file
