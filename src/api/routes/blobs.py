"""
Public blob endpoints.

Redirects to the CDN so that stored URLs in the application stay stable
even if the pull zone or custom domain changes.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import RedirectResponse

from ..dependencies import StorageServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/{key:path}",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Redirect to blob",
    description="Redirects to the public CDN URL for the object.",
    response_class=RedirectResponse,
)
async def redirect_to_blob(key: str, storage: StorageServiceDep) -> RedirectResponse:
    """No existence check - the CDN answers 404 for missing objects."""
    url = storage.url_for(key)
    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
