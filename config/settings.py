"""relsync – Application Configuration.

Pydantic Settings, loaded from .env file or environment variables.
Content-type relation descriptors live in `config/content_types.yaml`.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Gateway ---
    environment: str = "development"
    log_level: str = "info"
    gateway_host: str = "0.0.0.0"
    gateway_port: int = 8000

    # --- Upstream CMS ---
    upstream_url: str = "http://127.0.0.1:1337"
    upstream_api_token: str = ""
    upstream_timeout: float = 20.0

    # --- Localization sync ---
    sync_config_path: str = str(CONFIG_DIR / "content_types.yaml")
    sync_max_workers: int = 4
    # Overrides `defaultLocale` from the content-type file when set
    default_locale: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def get_settings() -> Settings:
    """Factory function for settings singleton."""
    return Settings()
