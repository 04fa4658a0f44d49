"""
Direct upload endpoints.

Browsers upload straight to Bunny instead of streaming bytes through this
API. The flow:
1. Client describes the file (name, type, size, checksum)
2. We mint a key and return the storage URL and headers to PUT with
3. Client PUTs the bytes to Bunny
4. Client refers to the object by key from then on

The returned headers include the storage zone's AccessKey, so this
endpoint requires an API key.
"""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.storage.models import UnsupportedCapabilityError
from ..dependencies import AuthenticatedUser, StorageServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class DirectUploadRequest(BaseModel):
    """What the client intends to upload."""
    filename: str = Field(min_length=1, description="Original filename")
    content_type: str = Field(
        default="application/octet-stream",
        description="Intended media type (Bunny stores everything as octet-stream)"
    )
    byte_size: int = Field(ge=0, description="Size of the file in bytes")
    checksum: Optional[str] = Field(
        default=None,
        description="Client-computed checksum. Accepted but not verified by Bunny."
    )
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Custom metadata. Not transmitted to Bunny."
    )


class DirectUploadResponse(BaseModel):
    """Where and how to upload."""
    key: str = Field(description="Object key to refer to the upload by")
    url: str = Field(description="Storage API URL to PUT the bytes to")
    headers: dict[str, str] = Field(description="Headers to send with the PUT")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=DirectUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Prepare a direct upload",
    description="Returns a storage URL and headers for uploading a file straight to Bunny.",
)
async def create_direct_upload(
    request: DirectUploadRequest,
    api_key: AuthenticatedUser,
    storage: StorageServiceDep,
) -> DirectUploadResponse:
    key = uuid4().hex

    try:
        url = storage.url_for_direct_upload(
            key,
            expires_in=None,
            content_type=request.content_type,
            content_length=request.byte_size,
            checksum=request.checksum,
            custom_metadata=request.metadata,
        )
        headers = storage.headers_for_direct_upload(
            key,
            content_type=request.content_type,
            checksum=request.checksum,
            filename=request.filename,
            custom_metadata=request.metadata,
        )
    except UnsupportedCapabilityError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    logger.info(
        "Direct upload prepared",
        extra={
            "key": key,
            "upload_filename": request.filename,
            "byte_size": request.byte_size,
        }
    )

    return DirectUploadResponse(key=key, url=url, headers=headers)
