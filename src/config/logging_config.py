# src/config/logging_config.py

"""Run-scoped logging for price_intel.

Every run writes ``run_<timestamp>.log`` into ``Settings.LOGS_DIR`` and
only the newest ``Settings.LOG_RETENTION`` run files are kept.  Each
component logs under ``price_intel.<component>``; a component can be
made quieter or noisier on its own through ``PRICE_INTEL_LOG_LEVELS``,
for example ``comparison=INFO,storage=WARNING``.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER_NAME = "price_intel"

COMPONENTS: tuple[str, ...] = (
    "main",
    "cli",
    "recorder",
    "history",
    "comparison",
    "ingestion",
    "registry",
    "storage",
    "filters",
    "models",
    "chart",
)

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-24s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def component_logger_name(component: str) -> str:
    """Full logger name for a component, e.g. ``price_intel.recorder``."""
    return f"{ROOT_LOGGER_NAME}.{component}"


def parse_level_overrides(raw: str) -> dict[str, int]:
    """Parse ``"comparison=INFO,storage=WARNING"`` into component levels."""
    overrides: dict[str, int] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, level_name = entry.partition("=")
        component = name.strip().lower()
        level = logging.getLevelName(level_name.strip().upper())
        if not sep or component not in COMPONENTS or not isinstance(level, int):
            msg = f"Invalid log level override: {entry!r}"
            raise ValueError(msg)
        overrides[component] = level
    return overrides


def _active_log_file(root_logger: logging.Logger) -> Path | None:
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def _prune_old_runs(logs_dir: Path, keep: int) -> int:
    """Delete all but the newest ``keep`` run logs; ``keep <= 0`` keeps all."""
    if keep <= 0:
        return 0
    runs = sorted(logs_dir.glob("run_*.log"))
    stale = runs[:-keep]
    for path in stale:
        path.unlink(missing_ok=True)
    return len(stale)


def setup_logging(verbose: bool = False) -> Path:
    """Configure the ``price_intel`` logger tree for this run.

    Calling it again while handlers are attached returns the log file
    already in use.  ``verbose`` lowers the console threshold to INFO.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    existing = _active_log_file(root_logger)
    if existing is not None:
        return existing

    overrides = parse_level_overrides(Settings.LOG_LEVEL_OVERRIDES)

    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    root_logger.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(Settings.LOG_LEVEL)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(
        logging.INFO if verbose else Settings.CONSOLE_LOG_LEVEL
    )
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for component in COMPONENTS:
        logging.getLogger(component_logger_name(component)).setLevel(
            overrides.get(component, logging.NOTSET)
        )

    pruned = _prune_old_runs(logs_dir, Settings.LOG_RETENTION)
    root_logger.info(
        "Logging initialised, log file: %s, overrides: %s, pruned: %d",
        log_file,
        overrides or "none",
        pruned,
    )
    return log_file


def reset_logging() -> None:
    """Close and detach handlers and clear component levels."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    for component in COMPONENTS:
        logging.getLogger(component_logger_name(component)).setLevel(
            logging.NOTSET
        )
