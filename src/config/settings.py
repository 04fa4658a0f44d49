"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a real storage zone.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.storage.models import BunnyStorageConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Bunny Storage API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys allowed to request direct uploads."
    )

    # BunnyCDN Storage Configuration
    bunny_access_key: str = Field(
        default="",
        description="Storage zone password (sent as AccessKey to the storage API)"
    )
    bunny_api_key: str = Field(
        default="",
        description="Account API key, used for CDN cache purges"
    )
    bunny_storage_zone: str = Field(
        default="",
        description="Storage zone name"
    )
    bunny_region: Optional[str] = Field(
        default=None,
        description="Storage region prefix (ny, la, sg, uk, ...). Empty means Falkenstein."
    )
    bunny_cdn_url: Optional[str] = Field(
        default=None,
        description="Public CDN base URL. Defaults to https://{zone}.b-cdn.net"
    )
    bunny_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for storage API calls"
    )
    bunny_strict_capabilities: bool = Field(
        default=False,
        description="Raise instead of silently ignoring features Bunny doesn't support."
    )
    bunny_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of Bunny. Enables local dev without a storage zone."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def storage_config(self) -> BunnyStorageConfig:
        """
        Adapter configuration built from the bunny_* settings.

        In mock mode the credentials may be blank, so placeholders keep
        BunnyStorageConfig's validation happy.
        """
        access_key = self.bunny_access_key
        storage_zone = self.bunny_storage_zone
        if self.bunny_mock_mode:
            access_key = access_key or "mock-access-key"
            storage_zone = storage_zone or "mock-zone"

        return BunnyStorageConfig(
            access_key=access_key,
            api_key=self.bunny_api_key,
            storage_zone=storage_zone,
            region=self.bunny_region or None,
            cdn_url=self.bunny_cdn_url or None,
            strict_capabilities=self.bunny_strict_capabilities,
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.bunny_mock_mode:
            if not self.bunny_access_key:
                missing.append("BUNNY_ACCESS_KEY")
            if not self.bunny_api_key:
                missing.append("BUNNY_API_KEY")
            if not self.bunny_storage_zone:
                missing.append("BUNNY_STORAGE_ZONE")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
