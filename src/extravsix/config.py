"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from EXTRAVSIX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EXTRAVSIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Marketplace
    marketplace_url: str = "https://marketplace.visualstudio.com"
    extensions_report_url: str = (
        "https://az764295.vo.msecnd.net/extensions/marketplace.json"
    )
    timeout: int = 60  # seconds

    # Credential store
    store_path: Path = Path.home() / ".config" / "extravsix" / "store.json"

    # PAT fallback used when --pat is not given (VSCE_PAT is what CI usually sets)
    pat: str | None = Field(
        default=None,
        validation_alias=AliasChoices("EXTRAVSIX_PAT", "VSCE_PAT"),
    )

    log_level: str = "INFO"

    def published_url(self, extension_id: str) -> str:
        """Public listing URL for an extension id (publisher.name)."""
        return f"{self.marketplace_url.rstrip('/')}/items?itemName={extension_id}"

    def hub_url(self, publisher: str, name: str) -> str:
        """Publisher hub URL for managing an extension."""
        return (
            f"{self.marketplace_url.rstrip('/')}/manage/publishers/"
            f"{publisher}/extensions/{name}/hub"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
