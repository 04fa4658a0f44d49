"""
BunnyCDN Edge Storage client.

Talks to Bunny's Storage HTTP API directly with httpx. Bunny is not
S3-compatible, so there's no boto3 here: objects are plain HTTP resources
under https://{region}.storage.bunnycdn.com/{zone}/{path}, authenticated
with the zone's AccessKey header. Cache purges go through the account API
at api.bunny.net with the account API key.

Mock mode stores objects in memory, enabling API testing without
provisioning a storage zone.
"""

import json
import logging
import re
from typing import Iterator, Optional, Union
from urllib.parse import quote

import httpx

from src.core.storage.models import BunnyStorageConfig
from src.core.storage.service import BunnyStorageService, RemoteObjectClient, UploadBody

logger = logging.getLogger(__name__)

PURGE_URL = "https://api.bunny.net/purge"
UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MiB per read when streaming an upload


class BunnyStorageError(Exception):
    """Raised when a storage API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ObjectNotFoundError(BunnyStorageError):
    """The object (or its directory) doesn't exist. HTTP 404."""
    pass


class RangeNotSatisfiableError(BunnyStorageError):
    """The requested byte range lies outside the object. HTTP 416."""
    pass


def storage_host(region: Optional[str]) -> str:
    """Storage API hostname for a region; the bare host is Falkenstein."""
    return f"{region}.storage.bunnycdn.com" if region else "storage.bunnycdn.com"


def public_base_url(storage_zone: str, cdn_url: Optional[str] = None) -> str:
    if cdn_url:
        return cdn_url.rstrip("/")
    return f"https://{storage_zone}.b-cdn.net"


def _raise_for_status(response: httpx.Response, key: str) -> None:
    """Translate an error response into the matching BunnyStorageError."""
    if response.status_code < 400:
        return

    detail = f"{response.request.method} {key} failed with HTTP {response.status_code}"
    if response.status_code == 404:
        raise ObjectNotFoundError(f"Object not found: {key}", status_code=404)
    if response.status_code == 416:
        raise RangeNotSatisfiableError(
            f"Range not satisfiable for {key}", status_code=416
        )
    raise BunnyStorageError(detail, status_code=response.status_code)


def _iter_body(body: UploadBody) -> Union[bytes, Iterator[bytes]]:
    """Pass bytes through as-is; read file-like objects a chunk at a time."""
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    return iter(lambda: body.read(UPLOAD_CHUNK_SIZE), b"")


def _remaining_length(body: UploadBody) -> Optional[int]:
    """Bytes left in a seekable stream, so we can send Content-Length."""
    if isinstance(body, (bytes, bytearray, memoryview)):
        return None
    try:
        position = body.tell()
        end = body.seek(0, 2)
        body.seek(position)
    except (AttributeError, OSError, ValueError):
        return None
    return end - position


class BunnyObject:
    """
    One object in a storage zone.

    Holds nothing but the key and a reference back to the client; build
    a new one whenever you need it.
    """

    def __init__(self, client: "BunnyStorageClient", key: str) -> None:
        self._client = client
        self.key = key

    @property
    def url(self) -> str:
        return self._client.object_url(self.key)

    def get_file(self, range: Optional[str] = None) -> bytes:
        """GET the object body. range is a raw header value like 'bytes=0-99'."""
        headers = self._client.auth_headers()
        if range:
            headers["Range"] = range

        response = self._client.request("GET", self.url, self.key, headers=headers)
        _raise_for_status(response, self.key)
        return response.content

    def stream_file(self) -> Iterator[bytes]:
        """
        Stream the body without buffering it.

        The connection stays open while the caller iterates and is
        released when the generator finishes or is closed.
        """
        try:
            with self._client.http.stream(
                "GET", self.url, headers=self._client.auth_headers()
            ) as response:
                if response.status_code >= 400:
                    response.read()
                    _raise_for_status(response, self.key)
                yield from response.iter_bytes()
        except httpx.TransportError as e:
            raise BunnyStorageError(f"Download failed for {self.key}: {e}") from e

    def upload_file(self, body: UploadBody) -> None:
        headers = self._client.auth_headers()
        headers["Content-Type"] = "application/octet-stream"
        length = _remaining_length(body)
        if length is not None:
            headers["Content-Length"] = str(length)

        response = self._client.request(
            "PUT", self.url, self.key, headers=headers, content=_iter_body(body)
        )
        _raise_for_status(response, self.key)

        logger.debug("Uploaded object", extra={"key": self.key, "size_bytes": length})

    def delete_file(self) -> None:
        """DELETE the object. Missing objects count as already deleted."""
        response = self._client.request(
            "DELETE", self.url, self.key, headers=self._client.auth_headers()
        )
        if response.status_code == 404:
            logger.debug("Delete of missing object ignored", extra={"key": self.key})
            return
        _raise_for_status(response, self.key)

    def exists(self) -> bool:
        """
        Check the parent directory listing for this object.

        Bunny's storage API has no HEAD, so we list the directory and look
        for a file entry with a matching name.
        """
        directory, _, name = self.key.rstrip("/").rpartition("/")
        response = self._client.request(
            "GET",
            self._client.directory_url(directory),
            self.key,
            headers={**self._client.auth_headers(), "Accept": "application/json"},
        )
        if response.status_code == 404:
            return False
        _raise_for_status(response, self.key)

        try:
            entries = response.json()
        except json.JSONDecodeError as e:
            raise BunnyStorageError(f"Unreadable directory listing for {self.key}") from e

        return any(
            entry.get("ObjectName") == name and not entry.get("IsDirectory", False)
            for entry in entries
        )

    def purge_cache(self) -> None:
        """Invalidate the CDN copy of this object."""
        public_url = f"{self._client.public_base_url}/{self.key.lstrip('/')}"
        response = self._client.request(
            "POST",
            PURGE_URL,
            self.key,
            params={"url": public_url, "async": "false"},
            headers={"AccessKey": self._client.api_key},
        )
        _raise_for_status(response, self.key)

        logger.debug("Purged CDN cache", extra={"key": self.key, "url": public_url})


class BunnyStorageClient:
    """
    HTTP client for one BunnyCDN storage zone.

    Two credentials are involved: the zone's access key (storage API) and
    the account API key (purges). The httpx client is injectable so tests
    can swap in a MockTransport.
    """

    def __init__(
        self,
        access_key: str,
        api_key: str,
        storage_zone: str,
        region: Optional[str] = None,
        cdn_url: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.access_key = access_key
        self.api_key = api_key
        self.storage_zone = storage_zone
        self.region = region
        self.public_base_url = public_base_url(storage_zone, cdn_url)
        self.http = http_client or httpx.Client(timeout=timeout)

        logger.info(
            "Initialized Bunny storage client",
            extra={
                "storage_zone": storage_zone,
                "host": storage_host(region),
            }
        )

    def object(self, key: str) -> BunnyObject:
        return BunnyObject(self, key)

    def object_url(self, key: str) -> str:
        return (
            f"https://{storage_host(self.region)}/"
            f"{quote(self.storage_zone)}/{quote(key.lstrip('/'), safe='/')}"
        )

    def directory_url(self, directory: str) -> str:
        path = quote(directory.strip("/"), safe="/")
        base = f"https://{storage_host(self.region)}/{quote(self.storage_zone)}/"
        return f"{base}{path}/" if path else base

    def auth_headers(self) -> dict[str, str]:
        return {"AccessKey": self.access_key}

    def request(self, method: str, url: str, key: str, **kwargs) -> httpx.Response:
        """Send a request, wrapping transport failures in BunnyStorageError."""
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error(
                "Storage request failed",
                extra={"method": method, "key": key, "error": str(e)}
            )
            raise BunnyStorageError(f"{method} {key} failed: {e}") from e

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "BunnyStorageClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

_RANGE_PATTERN = re.compile(r"^bytes=(\d+)-(\d*)$")


class MockBunnyObject:
    """In-memory counterpart of BunnyObject."""

    STREAM_PIECE_SIZE = 64 * 1024

    def __init__(self, client: "MockBunnyStorageClient", key: str) -> None:
        self._client = client
        self.key = key

    def _body(self) -> bytes:
        if self.key not in self._client.objects:
            raise ObjectNotFoundError(f"Object not found: {self.key}", status_code=404)
        return self._client.objects[self.key]

    def get_file(self, range: Optional[str] = None) -> bytes:
        body = self._body()
        if not range:
            return body

        match = _RANGE_PATTERN.match(range)
        if not match:
            raise BunnyStorageError(f"Malformed range: {range}", status_code=400)
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else len(body) - 1
        if start >= len(body) or end < start:
            raise RangeNotSatisfiableError(
                f"Range not satisfiable for {self.key}", status_code=416
            )
        return body[start:end + 1]

    def stream_file(self) -> Iterator[bytes]:
        body = self._body()
        for offset in range(0, len(body), self.STREAM_PIECE_SIZE):
            yield body[offset:offset + self.STREAM_PIECE_SIZE]

    def upload_file(self, body: UploadBody) -> None:
        content = _iter_body(body)
        if not isinstance(content, bytes):
            content = b"".join(content)
        self._client.objects[self.key] = content

        logger.debug(
            "Stored object in mock storage",
            extra={"key": self.key, "size_bytes": len(content)}
        )

    def delete_file(self) -> None:
        self._client.objects.pop(self.key, None)

    def exists(self) -> bool:
        return self.key in self._client.objects

    def purge_cache(self) -> None:
        self._client.purged.append(self.key)


class MockBunnyStorageClient:
    """
    In-memory storage zone for local development.

    Objects live in a dict keyed by object key. Purges are recorded in
    `purged` so tests can check them. Not suitable for production.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.purged: list[str] = []
        logger.info("Initialized mock Bunny storage client (in-memory)")

    def object(self, key: str) -> MockBunnyObject:
        return MockBunnyObject(self, key)


# ---------------------------------------------------------------------------
# Factory Functions
# ---------------------------------------------------------------------------

def create_bunny_client(
    config: BunnyStorageConfig,
    mock_mode: bool = False,
    timeout: float = 30.0,
) -> RemoteObjectClient:
    """
    Create the Remote Object Client for a storage zone.

    Args:
        config: Zone credentials and addressing
        mock_mode: If True, return an in-memory client
        timeout: HTTP timeout in seconds for the real client

    Returns:
        BunnyStorageClient or MockBunnyStorageClient
    """
    if mock_mode:
        return MockBunnyStorageClient()

    return BunnyStorageClient(
        access_key=config.access_key,
        api_key=config.api_key,
        storage_zone=config.storage_zone,
        region=config.region,
        cdn_url=config.cdn_url,
        timeout=timeout,
    )


def create_storage_service(
    config: BunnyStorageConfig,
    mock_mode: bool = False,
    timeout: float = 30.0,
) -> BunnyStorageService:
    """Build the adapter together with its client."""
    client = create_bunny_client(config, mock_mode=mock_mode, timeout=timeout)
    return BunnyStorageService(config, client)
