import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        credit_card_logic: str,
        report_months_ahead: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.credit_card_logic = credit_card_logic
        self.report_months_ahead = report_months_ahead
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("CARDCYCLE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "cardcycle.db"
    database_url = os.getenv("CARDCYCLE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("CARDCYCLE_TIMEZONE", "America/Sao_Paulo")
    credit_card_logic = os.getenv("CARDCYCLE_CREDIT_CARD_LOGIC", "transaction_date")
    report_months_ahead = int(os.getenv("CARDCYCLE_REPORT_MONTHS_AHEAD", "12"))
    log_level = os.getenv("CARDCYCLE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        credit_card_logic=credit_card_logic,
        report_months_ahead=report_months_ahead,
        log_level=log_level,
    )
