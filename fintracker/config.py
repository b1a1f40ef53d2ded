import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from fintracker.models import to_decimal
from fintracker.service import DEFAULT_MONTHLY_BUDGET

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data"
DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_AI_TIMEOUT = 60.0
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    transactions_file: Path
    notifications_file: Path
    monthly_budget: Decimal = DEFAULT_MONTHLY_BUDGET
    log_level: str = "WARNING"
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_MODEL
    ai_timeout: float = DEFAULT_AI_TIMEOUT


def _budget_from_env(raw: Optional[str]) -> Decimal:
    if raw is None or not raw.strip():
        return DEFAULT_MONTHLY_BUDGET
    try:
        return to_decimal(raw)
    except ValueError:
        logger.warning("Ignoring FINTRACKER_MONTHLY_BUDGET=%r, using %s", raw, DEFAULT_MONTHLY_BUDGET)
        return DEFAULT_MONTHLY_BUDGET


def _timeout_from_env(raw: Optional[str]) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_AI_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        timeout = -1.0
    if timeout <= 0:
        logger.warning("Ignoring FINTRACKER_AI_TIMEOUT=%r, using %s", raw, DEFAULT_AI_TIMEOUT)
        return DEFAULT_AI_TIMEOUT
    return timeout


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read settings from the environment, after loading a .env file if present."""
    load_dotenv(env_file)

    data_dir = Path(os.getenv("FINTRACKER_DATA_DIR", DEFAULT_DATA_DIR))
    return Settings(
        transactions_file=Path(os.getenv("FINTRACKER_TRANSACTIONS_FILE", data_dir / "transactions.json")),
        notifications_file=Path(os.getenv("FINTRACKER_NOTIFICATIONS_FILE", data_dir / "notifications.log")),
        monthly_budget=_budget_from_env(os.getenv("FINTRACKER_MONTHLY_BUDGET")),
        log_level=os.getenv("FINTRACKER_LOG_LEVEL", "WARNING").upper(),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
        ai_timeout=_timeout_from_env(os.getenv("FINTRACKER_AI_TIMEOUT")),
    )


def configure_logging(level: str = "WARNING") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
