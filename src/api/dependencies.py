"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.storage.service import BunnyStorageService
from ..infrastructure.storage.client import create_storage_service

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global instances (shared across requests)
_mock_storage_service = None
_storage_service = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Direct uploads hand out the storage zone's AccessKey, so only known
    callers may request them. Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> BunnyStorageService:
    """
    Provide the storage adapter.

    In mock mode, we reuse the same in-memory zone across requests so
    that uploaded objects persist during the session. The real adapter is
    also shared so its HTTP connection pool is reused.
    """
    global _mock_storage_service, _storage_service

    if settings.bunny_mock_mode:
        if _mock_storage_service is None:
            _mock_storage_service = create_storage_service(
                settings.storage_config, mock_mode=True
            )
            logger.info("Created shared mock storage service for session")
        return _mock_storage_service

    if _storage_service is None:
        _storage_service = create_storage_service(
            settings.storage_config,
            timeout=settings.bunny_timeout_seconds,
        )
        logger.debug("Created Bunny storage service")

    return _storage_service


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
StorageServiceDep = Annotated[BunnyStorageService, Depends(get_storage_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
