from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".fixer-marketplace"
    api_prefix: str = "/api/v1"
    # Share of the gross amount kept by the platform on settlement.
    platform_fee_rate: Decimal = Decimal("0.05")
    currency: str = "usd"
    default_page_size: int = 20
    max_page_size: int = 100
    default_search_radius_km: float = 25.0
    max_bulk_rows: int = 500
    sqlite_busy_timeout_seconds: int = 15
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def db_path(self) -> Path:
        return self.data_dir / "marketplace.sqlite"

    model_config = {"env_prefix": "MARKETPLACE_"}


settings = Settings()
