"""
Unit tests for BunnyStorageService.

The adapter runs against the in-memory mock client, or against small
hand-written objects where a test needs to control failures or watch
how the body is consumed.
"""

import io

import pytest

from src.core.storage.models import (
    BunnyStorageConfig,
    ByteRange,
    IntegrityError,
    UnsupportedCapabilityError,
)
from src.core.storage.service import BunnyStorageService
from src.infrastructure.storage.client import (
    BunnyStorageError,
    MockBunnyStorageClient,
    ObjectNotFoundError,
    RangeNotSatisfiableError,
)

MIB = 1024 * 1024


@pytest.fixture
def config() -> BunnyStorageConfig:
    return BunnyStorageConfig(access_key="zone-password", api_key="account-key", storage_zone="z1")


@pytest.fixture
def client() -> MockBunnyStorageClient:
    return MockBunnyStorageClient()


@pytest.fixture
def service(config, client) -> BunnyStorageService:
    return BunnyStorageService(config, client)


@pytest.fixture
def payload() -> bytes:
    """A few KB of non-repeating-looking binary, including NUL bytes."""
    return bytes(range(256)) * 40


class SingleObjectClient:
    """Client that hands out the same object for every key and records the keys."""

    def __init__(self, obj) -> None:
        self.obj = obj
        self.keys: list[str] = []

    def object(self, key: str):
        self.keys.append(key)
        return self.obj


class FailingObject:
    """Object whose upload or purge raises."""

    def __init__(self, fail_upload: bool = True, fail_purge: bool = False) -> None:
        self.fail_upload = fail_upload
        self.fail_purge = fail_purge
        self.purged = False

    def upload_file(self, body) -> None:
        if self.fail_upload:
            raise ConnectionError("connection reset")

    def purge_cache(self) -> None:
        if self.fail_purge:
            raise BunnyStorageError("purge rejected", status_code=401)
        self.purged = True


# ---------------------------------------------------------------------------
# Upload / Download Tests
# ---------------------------------------------------------------------------

class TestUploadAndDownload:
    """Round trips through the in-memory zone."""

    def test_round_trip_bytes(self, service, payload):
        """What goes up comes back unchanged."""
        service.upload("docs/report.bin", payload)
        assert service.download("docs/report.bin") == payload

    def test_round_trip_file_object(self, service, payload):
        """File-like bodies are read to completion."""
        service.upload("docs/report.bin", io.BytesIO(payload))
        assert service.download("docs/report.bin") == payload

    def test_upload_purges_cdn_copy(self, service, client):
        """A successful upload invalidates the CDN cache for that key."""
        service.upload("avatar.png", b"new")
        assert client.purged == ["avatar.png"]

    def test_upload_overwrites(self, service):
        service.upload("k", b"old")
        service.upload("k", b"new")
        assert service.download("k") == b"new"

    def test_upload_ignores_checksum_and_content_type(self, service):
        """These are accepted for the contract but change nothing."""
        service.upload(
            "k",
            b"data",
            checksum="bogus",
            filename="data.txt",
            content_type="text/plain",
            disposition="attachment",
        )
        assert service.download("k") == b"data"

    def test_download_missing_key_propagates_not_found(self, service):
        """Not-found comes straight from the client, untranslated."""
        with pytest.raises(ObjectNotFoundError):
            service.download("missing")


class TestUploadErrors:
    """Upload failures always surface as IntegrityError."""

    def test_transport_failure_becomes_integrity_error(self, config):
        obj = FailingObject(fail_upload=True)
        service = BunnyStorageService(config, SingleObjectClient(obj))

        with pytest.raises(IntegrityError) as excinfo:
            service.upload("k", b"data")

        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert not obj.purged

    def test_purge_failure_becomes_integrity_error(self, config):
        """The bytes may be stored, but the caller can't trust what the CDN serves."""
        obj = FailingObject(fail_upload=False, fail_purge=True)
        service = BunnyStorageService(config, SingleObjectClient(obj))

        with pytest.raises(IntegrityError) as excinfo:
            service.upload("k", b"data")

        assert isinstance(excinfo.value.__cause__, BunnyStorageError)

    def test_backend_rejection_becomes_integrity_error(self, config):
        class RejectingObject(FailingObject):
            def upload_file(self, body):
                raise BunnyStorageError("quota exceeded", status_code=400)

        service = BunnyStorageService(config, SingleObjectClient(RejectingObject()))

        with pytest.raises(IntegrityError):
            service.upload("k", b"data")


# ---------------------------------------------------------------------------
# Range Tests
# ---------------------------------------------------------------------------

class TestDownloadChunk:
    """Byte-range reads."""

    @pytest.mark.parametrize("start,end", [(0, 1), (0, 10), (100, 356), (5000, 10240), (0, 10240)])
    def test_half_open_range_returns_slice(self, service, payload, start, end):
        """[a, b) returns exactly payload[a:b]."""
        service.upload("k", payload)
        assert service.download_chunk("k", range(start, end)) == payload[start:end]

    def test_byte_range_object_is_accepted(self, service, payload):
        service.upload("k", payload)
        assert service.download_chunk("k", ByteRange(10, 20)) == payload[10:20]

    def test_closed_range_includes_end(self, service, payload):
        service.upload("k", payload)
        chunk = service.download_chunk("k", ByteRange(10, 20, exclude_end=False))
        assert chunk == payload[10:21]

    def test_sends_backend_range_syntax(self, config):
        """The handle receives 'bytes=a-b' with an inclusive end."""
        received = {}

        class RecordingObject:
            def get_file(self, range=None):
                received["range"] = range
                return b"x" * 10

        service = BunnyStorageService(config, SingleObjectClient(RecordingObject()))
        service.download_chunk("k", range(0, 10))

        assert received["range"] == "bytes=0-9"

    def test_unsatisfiable_range_propagates(self, service):
        service.upload("k", b"short")
        with pytest.raises(RangeNotSatisfiableError):
            service.download_chunk("k", range(100, 200))


# ---------------------------------------------------------------------------
# Streaming Tests
# ---------------------------------------------------------------------------

class TestStreamingDownload:
    """download(key, sink) delivers fixed-size chunks in order."""

    def test_chunks_are_five_mib_except_last(self, service):
        payload = bytes(range(256)) * (4096 * 10) + b"tail-bytes"  # 10 MiB + 10
        service.upload("big", payload)
        chunks: list[bytes] = []

        result = service.download("big", chunks.append)

        assert result is None
        assert [len(c) for c in chunks] == [5 * MIB, 5 * MIB, 10]
        assert b"".join(chunks) == payload

    def test_exact_multiple_has_no_short_chunk(self, service):
        payload = b"\x00" * (2 * 5 * MIB)
        service.upload("big", payload)
        chunks: list[bytes] = []

        service.download("big", chunks.append)

        assert [len(c) for c in chunks] == [5 * MIB, 5 * MIB]

    def test_small_object_is_one_chunk(self, service, payload):
        service.upload("small", payload)
        chunks: list[bytes] = []

        service.download("small", chunks.append)

        assert chunks == [payload]

    def test_empty_object_delivers_nothing(self, service):
        service.upload("empty", b"")
        chunks: list[bytes] = []

        service.download("empty", chunks.append)

        assert chunks == []

    def test_rechunks_irregular_pieces(self, config):
        """Whatever piece sizes the transport yields, chunks come out even."""

        class PiecesObject:
            def stream_file(self):
                yield b"abc"
                yield b"d"
                yield b"efghij"
                yield b"k"

        service = BunnyStorageService(config, SingleObjectClient(PiecesObject()))

        assert list(service.stream("k", chunk_size=4)) == [b"abcd", b"efgh", b"ijk"]

    def test_streams_without_buffering_whole_object(self, config):
        """
        The sink sees the first chunk before the body has been fully read.

        The object refuses get_file, so the adapter can only have used the
        incremental body.
        """
        piece = b"\x01" * MIB
        progress = {"pieces_read": 0}

        class LazyObject:
            def get_file(self, range=None):
                raise AssertionError("streaming must not fetch the whole body")

            def stream_file(self):
                for _ in range(12):
                    progress["pieces_read"] += 1
                    yield piece

        service = BunnyStorageService(config, SingleObjectClient(LazyObject()))
        seen_at: list[int] = []

        service.download("k", lambda chunk: seen_at.append(progress["pieces_read"]))

        # 12 MiB in 5 MiB chunks: 5, 5, 2
        assert seen_at == [5, 10, 12]

    def test_missing_object_propagates_not_found(self, service):
        with pytest.raises(ObjectNotFoundError):
            service.download("missing", lambda chunk: None)


# ---------------------------------------------------------------------------
# Delete / Exists Tests
# ---------------------------------------------------------------------------

class TestDeleteAndExists:
    """Lifecycle of a key."""

    def test_exists_lifecycle(self, service):
        """False before upload, True after, False after delete."""
        assert not service.exists("k")
        service.upload("k", b"data")
        assert service.exists("k")
        service.delete("k")
        assert not service.exists("k")

    def test_delete_missing_key_is_quiet(self, service):
        service.delete("never-uploaded")

    def test_delete_prefixed_is_not_recursive(self, service, client):
        """Only the key equal to the prefix goes; children and siblings stay."""
        for key in ("foo", "foo/bar", "foobar"):
            service.upload(key, b"data")

        service.delete_prefixed("foo")

        assert sorted(client.objects) == ["foo/bar", "foobar"]

    def test_exists_errors_pass_through(self, config):
        class BrokenObject:
            def exists(self):
                raise BunnyStorageError("timeout")

        service = BunnyStorageService(config, SingleObjectClient(BrokenObject()))

        with pytest.raises(BunnyStorageError):
            service.exists("k")

    def test_handle_is_fresh_for_every_operation(self, config):
        """The adapter asks the client for a handle each time instead of caching."""
        client = SingleObjectClient(MockBunnyStorageClient().object("k"))
        service = BunnyStorageService(config, client)

        service.exists("k")
        service.exists("k")
        service.delete("k")

        assert client.keys == ["k", "k", "k"]


# ---------------------------------------------------------------------------
# URL Tests
# ---------------------------------------------------------------------------

class TestUrls:
    """Public and direct-upload URL generation."""

    def test_url_without_cdn_uses_pull_zone_domain(self, service):
        assert service.url_for("a/b.png") == "https://z1.b-cdn.net/a/b.png"

    def test_url_with_cdn_override(self, client):
        config = BunnyStorageConfig(
            access_key="ak", api_key="api", storage_zone="z1", cdn_url="https://cdn.example.com"
        )
        service = BunnyStorageService(config, client)

        assert service.url_for("a/b.png") == "https://cdn.example.com/a/b.png"

    def test_url_joins_with_single_slash(self, client):
        config = BunnyStorageConfig(
            access_key="ak", api_key="api", storage_zone="z1", cdn_url="https://cdn.example.com/"
        )
        service = BunnyStorageService(config, client)

        assert service.url_for("/a.png") == "https://cdn.example.com/a.png"

    def test_url_ignores_expiry_and_disposition(self, service):
        url = service.url_for("k", expires_in=300, disposition="attachment", filename="k.txt")
        assert url == "https://z1.b-cdn.net/k"

    def test_direct_upload_url_with_region(self, client):
        config = BunnyStorageConfig(access_key="ak", api_key="api", storage_zone="z1", region="ny")
        service = BunnyStorageService(config, client)

        url = service.url_for_direct_upload(
            "k", expires_in=300, content_type="image/png", content_length=10, checksum="abc"
        )

        assert url == "https://ny.storage.bunnycdn.com/z1/k"

    def test_direct_upload_url_without_region(self, service):
        url = service.url_for_direct_upload(
            "k", expires_in=300, content_type="image/png", content_length=10, checksum="abc"
        )
        assert url == "https://storage.bunnycdn.com/z1/k"

    def test_direct_upload_headers_are_fixed(self, service):
        """Content-Type is always octet-stream, whatever was asked for."""
        headers = service.headers_for_direct_upload("k", content_type="image/png", checksum="abc")
        assert headers == {"AccessKey": "zone-password", "Content-Type": "application/octet-stream"}

    def test_private_url_falls_back_to_public(self, service):
        assert service.private_url("k", expires_in=60) == "https://z1.b-cdn.net/k"


# ---------------------------------------------------------------------------
# Capability Tests
# ---------------------------------------------------------------------------

class TestCapabilities:
    """Capability gaps are visible, and strict mode turns them into errors."""

    @pytest.fixture
    def strict_service(self, client) -> BunnyStorageService:
        config = BunnyStorageConfig(
            access_key="ak", api_key="api", storage_zone="z1", strict_capabilities=True
        )
        return BunnyStorageService(config, client)

    def test_reports_no_optional_capabilities(self, service):
        assert not any(service.capabilities.as_dict().values())

    def test_metadata_ignored_when_not_strict(self, service):
        service.upload("k", b"data", custom_metadata={"owner": "alice"})
        assert service.download("k") == b"data"

    def test_strict_upload_rejects_metadata_before_io(self, strict_service, client):
        with pytest.raises(UnsupportedCapabilityError) as excinfo:
            strict_service.upload("k", b"data", custom_metadata={"owner": "alice"})

        assert excinfo.value.capability == "custom_metadata"
        assert client.objects == {}

    def test_strict_upload_allows_empty_metadata(self, strict_service):
        strict_service.upload("k", b"data", custom_metadata={})
        assert strict_service.exists("k")

    def test_strict_direct_upload_rejects_metadata(self, strict_service):
        with pytest.raises(UnsupportedCapabilityError):
            strict_service.url_for_direct_upload(
                "k", None, "image/png", 10, "abc", custom_metadata={"a": "b"}
            )
        with pytest.raises(UnsupportedCapabilityError):
            strict_service.headers_for_direct_upload(
                "k", "image/png", "abc", custom_metadata={"a": "b"}
            )

    def test_strict_private_url_raises(self, strict_service):
        with pytest.raises(UnsupportedCapabilityError) as excinfo:
            strict_service.private_url("k", expires_in=60)

        assert excinfo.value.capability == "signed_urls"
