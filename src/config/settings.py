# src/config/settings.py

"""Central configuration for the price_intel engine."""

import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the price_intel engine."""

    # --- Recording ---
    DUPLICATE_WINDOW: timedelta = timedelta(minutes=30)

    # --- Comparison ---
    MIN_COMPARABLE_ITEMS: int = 2       # Fewer items cannot be compared
    MAX_BATCH_SIZE: int = 2000          # Max listing ids per comparison
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # --- Decimal policy ---
    MONEY_SCALE: int = 2                # Places for prices and averages
    PERCENT_SCALE: int = 4              # Intermediate ratio places

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    PRICE_DB_PATH: Path = Path(
        os.getenv("PRICE_INTEL_DB_PATH", str(DATA_DIR / "price_intel.db"))
    )
    LOGS_DIR: Path = Path(
        os.getenv("PRICE_INTEL_LOGS_DIR", str(BASE_DIR / "logs"))
    )
    CHARTS_DIR: Path = DATA_DIR / "charts"

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("PRICE_INTEL_LOG_LEVEL", "DEBUG").upper()
    CONSOLE_LOG_LEVEL: str = "WARNING"
    # e.g. "comparison=INFO,storage=WARNING"
    LOG_LEVEL_OVERRIDES: str = os.getenv("PRICE_INTEL_LOG_LEVELS", "")
    LOG_RETENTION: int = int(os.getenv("PRICE_INTEL_LOG_RETENTION", "20"))  # 0 keeps all
