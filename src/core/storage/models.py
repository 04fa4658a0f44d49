"""
Domain models for the storage adapter.

These are plain values with no knowledge of HTTP or of any particular
backend. The adapter and the Remote Object Client both speak in terms of
these types, which keeps the translation layer small.
"""

from dataclasses import dataclass
from typing import Optional, Union


class IntegrityError(Exception):
    """
    Raised when an upload cannot be confirmed.

    Transport failures, backend rejections and cache purge failures all
    collapse into this one signal. The caller retries or aborts the whole
    upload either way.
    """
    pass


class UnsupportedCapabilityError(Exception):
    """Raised in strict mode when a caller asks for something the backend can't do."""

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"Storage backend does not support: {capability}")


@dataclass(frozen=True)
class Capabilities:
    """
    What the backend actually honours out of the generic storage contract.

    Every flag here is an argument the contract accepts. False means the
    argument is accepted and ignored, not that it failed.
    """
    custom_metadata: bool = False
    checksum_verification: bool = False
    signed_urls: bool = False
    content_disposition: bool = False
    recursive_prefix_delete: bool = False
    direct_upload_content_type: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {
            "custom_metadata": self.custom_metadata,
            "checksum_verification": self.checksum_verification,
            "signed_urls": self.signed_urls,
            "content_disposition": self.content_disposition,
            "recursive_prefix_delete": self.recursive_prefix_delete,
            "direct_upload_content_type": self.direct_upload_content_type,
        }


@dataclass(frozen=True)
class BunnyStorageConfig:
    """
    Configuration for a BunnyCDN storage zone.

    Frozen because the adapter reads it for its whole lifetime and
    nothing should be able to swap credentials underneath it.
    """
    access_key: str
    api_key: str
    storage_zone: str
    region: Optional[str] = None  # None means the default (Falkenstein) endpoint
    cdn_url: Optional[str] = None  # Pull zone / custom domain for public URLs
    strict_capabilities: bool = False

    def __post_init__(self) -> None:
        if not self.access_key:
            raise ValueError("access_key is required")
        if not self.storage_zone:
            raise ValueError("storage_zone is required")


@dataclass(frozen=True)
class ByteRange:
    """
    A span of bytes within an object.

    Half-open by default, like Python slices: ByteRange(0, 10) covers
    bytes 0..9. Pass exclude_end=False for a closed range where end is
    the last byte wanted.
    """
    start: int
    end: int
    exclude_end: bool = True

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < 0:
            raise ValueError("Byte offsets cannot be negative")
        if self.end < self.start:
            raise ValueError("End offset must not be before start offset")
        if self.exclude_end and self.end == self.start:
            raise ValueError("Byte range is empty")

    @classmethod
    def from_range(cls, value: range) -> "ByteRange":
        """Convert a built-in range (step 1) into a half-open ByteRange."""
        if value.step != 1:
            raise ValueError("Byte ranges must have a step of 1")
        return cls(start=value.start, end=value.stop)

    @property
    def inclusive_end(self) -> int:
        return self.end - 1 if self.exclude_end else self.end

    @property
    def length(self) -> int:
        return self.inclusive_end - self.start + 1

    def to_header(self) -> str:
        """HTTP Range header value, e.g. 'bytes=0-9'."""
        return f"bytes={self.start}-{self.inclusive_end}"


RangeLike = Union[ByteRange, range]


def as_byte_range(value: RangeLike) -> ByteRange:
    """Accept either a ByteRange or a built-in range."""
    if isinstance(value, ByteRange):
        return value
    if isinstance(value, range):
        return ByteRange.from_range(value)
    raise TypeError(f"Expected ByteRange or range, got {type(value).__name__}")
