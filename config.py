"""Centralized configuration using pydantic-settings."""

from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings

from wwfm.exceptions import ConfigError

# Schedule days and times are always expressed in UK local time
LONDON_TZ = ZoneInfo("Europe/London")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Cosmic headless CMS
    cosmic_bucket_slug: str = ""
    cosmic_read_key: str = ""
    cosmic_write_key: str = ""
    cosmic_webhook_secret: str = ""
    cosmic_api_url: str = "https://api.cosmicjs.com/v3"
    cosmic_write_api_url: str = "https://workers.cosmicjs.com/v3"

    # RadioCult live scheduling
    radiocult_station_id: str = ""
    radiocult_publishable_key: str = ""
    radiocult_secret_key: str = ""
    radiocult_api_url: str = "https://api.radiocult.fm"

    # Mixcloud archive
    mixcloud_account: str = "worldwidefm"
    mixcloud_api_url: str = "https://api.mixcloud.com"

    # Stripe memberships
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_id: str = ""

    # Secret for the manual revalidation endpoint
    revalidate_secret: str = ""

    # Bearer token expected by the /api/cron/* endpoints
    cron_secret: str = ""

    # Legacy Craft CMS export API (migration only)
    craft_url: str = ""
    craft_token: str = ""

    # Gemini API for migration genre classification
    gemini_api_key: str = ""

    # Serving
    base_url: str = "https://worldwidefm.net"
    site_name: str = "Worldwide FM"
    cache_ttl_seconds: int = 900

    # Weekly schedule (comma-separated weekday names; empty = whole week)
    schedule_days: str = ""
    rerun_schedule_id: str = ""

    # Migration
    data_dir: str = "data"
    ledger_db_path: str = "data/migration.db"
    dry_run: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def craft_export_dir(self) -> Path:
        return Path(self.data_dir) / "craft-export"

    @property
    def ledger_path(self) -> Path:
        return Path(self.ledger_db_path)


settings = Settings()


def require(*names: str) -> None:
    """Fail fast when required settings are missing.

    Args:
        names: Settings field names, e.g. "cosmic_write_key".

    Raises:
        ConfigError: Naming the missing environment variables.
    """
    missing = [name.upper() for name in names if not getattr(settings, name, "")]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
