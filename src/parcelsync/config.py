"""Application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PARCELSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Application
    app_name: str = "ParcelSync"
    debug: bool = False
    log_level: str = "INFO"
    # Local timezone for quiet hours and reminder wording
    timezone: str = "UTC"

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/parcelsync.db"

    # Paths
    carriers_dir: Path = Path(__file__).parent / "carriers"
    data_dir: Path = Path("data")

    # HTTP
    http_timeout_seconds: float = 15.0
    user_agent: str = (
        "Mozilla/5.0 (Linux; Android 14; Pixel 8) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Mobile Safari/537.36"
    )

    # Aggregator (AfterShip)
    aftership_base_url: str = "https://api.aftership.com/v4/"
    aftership_api_key: str = ""

    # Merchant order tracking
    merchant_base_url: str = "https://www.amazon.com"
    merchant_session_file: str = "merchant_session.txt"

    # Event location geocoding (OpenStreetMap Nominatim)
    geocoding_enabled: bool = False
    geocoding_url: str = "https://nominatim.openstreetmap.org/search"
    geocoding_region: str = "Colombia"

    # Sync
    refresh_interval_minutes: int = 30
    max_concurrent_refreshes: int = 8
    sync_max_attempts: int = 3
    sync_timeout_seconds: float = 600.0

    # Notifications
    notifications_enabled: bool = True
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "23:00"
    quiet_hours_end: str = "07:00"
    only_important_events: bool = False


settings = Settings()
