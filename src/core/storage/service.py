"""
Generic storage-service contract and its BunnyCDN implementation.

The host application talks to BunnyStorageService through a small, fixed
operation set (upload, download, delete, exists, URL generation). This
module translates that contract into calls on a Remote Object Client and
maps upload failures onto IntegrityError. Everything else the client
raises passes through untouched.

It's framework-agnostic - no HTTP library, no FastAPI. The concrete
client lives in infrastructure.storage.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Optional, Protocol, Union

from .models import (
    BunnyStorageConfig,
    Capabilities,
    IntegrityError,
    RangeLike,
    UnsupportedCapabilityError,
    as_byte_range,
)

logger = logging.getLogger(__name__)

UploadBody = Union[bytes, BinaryIO]
ChunkSink = Callable[[bytes], None]


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class RemoteObject(Protocol):
    """
    A single object in the remote store.

    Handles are cheap and short-lived: the adapter asks the client for a
    new one on every operation and drops it afterwards.
    """

    def get_file(self, range: Optional[str] = None) -> bytes:
        """Fetch the body, or the part named by a 'bytes=a-b' range."""
        ...

    def stream_file(self) -> Iterable[bytes]:
        """Yield the body incrementally, as the backend sends it."""
        ...

    def upload_file(self, body: UploadBody) -> None:
        ...

    def purge_cache(self) -> None:
        ...

    def delete_file(self) -> None:
        ...

    def exists(self) -> bool:
        ...


class RemoteObjectClient(Protocol):
    """Something that can bind a key to a RemoteObject."""

    def object(self, key: str) -> RemoteObject:
        ...


class StorageService(Protocol):
    """
    The generic storage contract the host application depends on.

    Using a Protocol means routes and tests don't care which backend
    is behind it.
    """

    def upload(
        self,
        key: str,
        io: UploadBody,
        checksum: Optional[str] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        disposition: Optional[str] = None,
        custom_metadata: Optional[dict[str, str]] = None,
    ) -> None:
        ...

    def download(self, key: str, sink: Optional[ChunkSink] = None) -> Optional[bytes]:
        ...

    def download_chunk(self, key: str, range: RangeLike) -> bytes:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_prefixed(self, prefix: str) -> None:
        ...

    def exists(self, key: str) -> bool:
        ...

    def url_for(self, key: str, **options: Any) -> str:
        ...

    def url_for_direct_upload(
        self,
        key: str,
        expires_in: Optional[int],
        content_type: Optional[str],
        content_length: Optional[int],
        checksum: Optional[str],
        custom_metadata: Optional[dict[str, str]] = None,
    ) -> str:
        ...

    def headers_for_direct_upload(
        self,
        key: str,
        content_type: Optional[str],
        checksum: Optional[str],
        **options: Any,
    ) -> dict[str, str]:
        ...


# ---------------------------------------------------------------------------
# BunnyCDN implementation
# ---------------------------------------------------------------------------

class BunnyStorageService:
    """
    Exposes a BunnyCDN storage zone through the generic storage contract.

    Stateless apart from its configuration, so one instance can be shared
    across requests. Whether concurrent calls are safe beyond that is up
    to the client it wraps.
    """

    DOWNLOAD_CHUNK_SIZE = 5 * 1024 * 1024  # 5 MiB

    capabilities = Capabilities()

    def __init__(self, config: BunnyStorageConfig, client: RemoteObjectClient) -> None:
        self._config = config
        self._client = client

        if config.cdn_url:
            self.base_url = config.cdn_url.rstrip("/")
        else:
            self.base_url = f"https://{config.storage_zone}.b-cdn.net"

    @property
    def config(self) -> BunnyStorageConfig:
        return self._config

    @property
    def access_key(self) -> str:
        return self._config.access_key

    @property
    def storage_zone(self) -> str:
        return self._config.storage_zone

    @property
    def region(self) -> Optional[str]:
        return self._config.region

    # -- upload -------------------------------------------------------------

    def upload(
        self,
        key: str,
        io: UploadBody,
        checksum: Optional[str] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        disposition: Optional[str] = None,
        custom_metadata: Optional[dict[str, str]] = None,
    ) -> None:
        """
        Upload an object, then purge its CDN copy.

        checksum, filename, content_type and disposition are accepted for
        contract compatibility but Bunny stores everything as opaque bytes.
        Any client failure surfaces as IntegrityError.
        """
        with self._instrument("upload", key=key, checksum=checksum):
            self._check_custom_metadata(custom_metadata)
            self._upload_with_single_part(key, io)

    def _upload_with_single_part(self, key: str, io: UploadBody) -> None:
        obj = self._object_for(key)
        try:
            obj.upload_file(io)
            # Without this the CDN keeps serving the previous version
            obj.purge_cache()
        except Exception as e:
            raise IntegrityError(f"Upload failed for {key}: {e}") from e

    # -- download -----------------------------------------------------------

    def download(self, key: str, sink: Optional[ChunkSink] = None) -> Optional[bytes]:
        """
        Download an object.

        Without a sink, returns the whole body. With one, streams the body
        and calls sink(chunk) for each DOWNLOAD_CHUNK_SIZE chunk in order,
        returning None.
        """
        if sink is not None:
            with self._instrument("streaming_download", key=key):
                for chunk in self.stream(key):
                    sink(chunk)
            return None

        with self._instrument("download", key=key):
            return bytes(self._object_for(key).get_file())

    def stream(self, key: str, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        """
        Yield the object in fixed-size chunks.

        Reads from the client's streaming body, so memory stays bounded by
        one chunk plus whatever piece the transport just handed over.
        Every chunk is exactly chunk_size bytes except the last.
        """
        size = chunk_size or self.DOWNLOAD_CHUNK_SIZE
        yield from _rechunk(self._object_for(key).stream_file(), size)

    def download_chunk(self, key: str, range: RangeLike) -> bytes:
        """Fetch part of an object. range may be a ByteRange or a built-in range."""
        byte_range = as_byte_range(range)
        with self._instrument("download_chunk", key=key, range=byte_range.to_header()):
            return bytes(self._object_for(key).get_file(range=byte_range.to_header()))

    # -- delete / exists ----------------------------------------------------

    def delete(self, key: str) -> None:
        with self._instrument("delete", key=key):
            self._object_for(key).delete_file()

    def delete_prefixed(self, prefix: str) -> None:
        """
        Delete the object keyed exactly by prefix.

        NOT recursive. Bunny has no native prefix delete, so "foo" removes
        only the object named "foo" and leaves "foo/bar" and "foobar" alone.
        """
        with self._instrument("delete_prefixed", prefix=prefix):
            logger.info(
                "Prefix delete is non-recursive, deleting single key",
                extra={"prefix": prefix}
            )
            self._object_for(prefix).delete_file()

    def exists(self, key: str) -> bool:
        with self._instrument("exist", key=key) as payload:
            answer = self._object_for(key).exists()
            payload["exist"] = answer
            return answer

    # -- URLs ---------------------------------------------------------------

    def url_for(
        self,
        key: str,
        expires_in: Optional[int] = None,
        disposition: Optional[str] = None,
        filename: Optional[str] = None,
        **options: Any,
    ) -> str:
        """
        Public CDN URL for an object.

        URLs are neither signed nor time-limited, and disposition/filename
        are not encoded into them.
        """
        with self._instrument("url", key=key) as payload:
            url = self.public_url(key)
            payload["url"] = url
            return url

    def private_url(
        self,
        key: str,
        expires_in: Optional[int] = None,
        filename: Optional[str] = None,
        disposition: Optional[str] = None,
        content_type: Optional[str] = None,
        **options: Any,
    ) -> str:
        """Bunny can't sign URLs; falls back to the public one unless strict."""
        if self._config.strict_capabilities:
            raise UnsupportedCapabilityError("signed_urls")
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    def url_for_direct_upload(
        self,
        key: str,
        expires_in: Optional[int],
        content_type: Optional[str],
        content_length: Optional[int],
        checksum: Optional[str],
        custom_metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Storage API endpoint a client can PUT to directly."""
        with self._instrument("url", key=key) as payload:
            self._check_custom_metadata(custom_metadata)
            if self.region:
                upload_host = f"{self.region}.storage.bunnycdn.com"
            else:
                upload_host = "storage.bunnycdn.com"
            url = f"https://{upload_host}/{self.storage_zone}/{key}"
            payload["url"] = url
            return url

    def headers_for_direct_upload(
        self,
        key: str,
        content_type: Optional[str],
        checksum: Optional[str],
        filename: Optional[str] = None,
        disposition: Optional[str] = None,
        custom_metadata: Optional[dict[str, str]] = None,
        **options: Any,
    ) -> dict[str, str]:
        """
        Headers to send with a direct upload.

        Content-Type is always application/octet-stream, whatever the
        caller asked for.
        """
        self._check_custom_metadata(custom_metadata)
        return {"AccessKey": self.access_key, "Content-Type": "application/octet-stream"}

    # -- helpers ------------------------------------------------------------

    def _object_for(self, key: str) -> RemoteObject:
        return self._client.object(key)

    def _check_custom_metadata(self, custom_metadata: Optional[dict[str, str]]) -> None:
        if not custom_metadata:
            return
        if self._config.strict_capabilities:
            raise UnsupportedCapabilityError("custom_metadata")
        logger.debug(
            "Ignoring custom metadata",
            extra={"metadata_keys": sorted(custom_metadata)}
        )

    @contextmanager
    def _instrument(self, operation: str, **payload: Any) -> Iterator[dict[str, Any]]:
        """
        Log one storage operation.

        Yields the payload dict so the operation can add results to it
        (e.g. the generated URL) before it's logged.
        """
        started = time.perf_counter()
        try:
            yield payload
        except Exception as e:
            logger.error(
                "Storage operation failed",
                extra={
                    "service": "bunny",
                    "operation": operation,
                    "error": str(e),
                    **payload,
                }
            )
            raise
        logger.debug(
            "Storage operation",
            extra={
                "service": "bunny",
                "operation": operation,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                **payload,
            }
        )


def _rechunk(pieces: Iterable[bytes], chunk_size: int) -> Iterator[bytes]:
    """Regroup arbitrarily sized pieces into chunk_size chunks."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")

    buffer = bytearray()
    for piece in pieces:
        buffer.extend(piece)
        while len(buffer) >= chunk_size:
            yield bytes(buffer[:chunk_size])
            del buffer[:chunk_size]

    if buffer:
        yield bytes(buffer)
