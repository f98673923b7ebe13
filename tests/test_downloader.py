"""Tests for ArtifactDownloader: streaming, credentials, failures."""

import asyncio
import hashlib

import httpx
import pytest

from conftest import ArtifactServer
from genmedia.video_generation.downloader import ArtifactDownloader, redact, with_credential
from genmedia.video_generation.errors import DownloadError, GenerationCancelled
from genmedia.video_generation.models import ArtifactReference

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + bytes(range(256)) * 4


def make_downloader(server: ArtifactServer, chunk_size: int = 16) -> ArtifactDownloader:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return ArtifactDownloader(http_client=client, chunk_size=chunk_size)


class TestCredentialHandling:

    def test_with_credential_adds_key_param(self):
        url = with_credential("https://files.example/v1/video:download?alt=media", "secret")
        assert url.params["alt"] == "media"
        assert url.params["key"] == "secret"

    def test_with_credential_on_uri_without_query(self):
        url = with_credential("https://files.example/a.mp4", "secret")
        assert str(url) == "https://files.example/a.mp4?key=secret"

    def test_without_credential_leaves_uri_alone(self):
        url = with_credential("https://files.example/a.mp4?alt=media", None)
        assert "key" not in url.params

    def test_redact_hides_key(self):
        safe = redact("https://files.example/a.mp4?alt=media&key=secret")
        assert "secret" not in safe
        assert "key=REDACTED" in safe


class TestArtifactDownloader:

    @pytest.mark.asyncio
    async def test_streams_bytes_to_file(self, tmp_path):
        server = ArtifactServer({"/a.mp4": VIDEO_BYTES})
        downloader = make_downloader(server)
        target = tmp_path / "out.mp4"

        result = await downloader.download(
            ArtifactReference(uri="http://x/a.mp4", mime_type="video/mp4"), str(target)
        )

        assert target.read_bytes() == VIDEO_BYTES
        assert result.path == str(target)
        assert result.index == 0
        assert result.size_bytes == len(VIDEO_BYTES)

    @pytest.mark.asyncio
    async def test_accepts_plain_uri_and_creates_directories(self, tmp_path):
        server = ArtifactServer({"/a.mp4": VIDEO_BYTES})
        downloader = make_downloader(server)
        target = tmp_path / "nested" / "deeper" / "out.mp4"

        await downloader.download("http://x/a.mp4", str(target), index=3)

        assert target.read_bytes() == VIDEO_BYTES

    @pytest.mark.asyncio
    async def test_overwrites_existing_file(self, tmp_path):
        server = ArtifactServer({"/a.mp4": b"new"})
        downloader = make_downloader(server)
        target = tmp_path / "out.mp4"
        target.write_bytes(b"old content that is longer")

        await downloader.download("http://x/a.mp4", str(target))

        assert target.read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_sends_credential_as_key_param(self, tmp_path):
        server = ArtifactServer({"/a.mp4": VIDEO_BYTES})
        downloader = make_downloader(server)

        await downloader.download("http://x/a.mp4", str(tmp_path / "out.mp4"), credential="secret")

        assert server.requests[0].url.params["key"] == "secret"

    @pytest.mark.asyncio
    async def test_same_reference_twice_gives_identical_files(self, tmp_path):
        server = ArtifactServer({"/a.mp4": VIDEO_BYTES})
        downloader = make_downloader(server)
        reference = ArtifactReference(uri="http://x/a.mp4")

        first = await downloader.download(reference, str(tmp_path / "one.mp4"))
        second = await downloader.download(reference, str(tmp_path / "two.mp4"))

        digest = lambda p: hashlib.sha256(open(p, "rb").read()).hexdigest()
        assert digest(first.path) == digest(second.path)

    @pytest.mark.asyncio
    async def test_http_error_raises_download_error(self, tmp_path):
        server = ArtifactServer({}, failing={"/a.mp4": 403})
        downloader = make_downloader(server)

        with pytest.raises(DownloadError) as exc_info:
            await downloader.download("http://x/a.mp4", str(tmp_path / "out.mp4"), credential="secret")

        assert "403" in str(exc_info.value)
        assert "secret" not in str(exc_info.value)
        assert exc_info.value.stage == "download"

    @pytest.mark.asyncio
    async def test_transport_error_raises_download_error(self, tmp_path):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        downloader = ArtifactDownloader(http_client=client)

        with pytest.raises(DownloadError) as exc_info:
            await downloader.download("http://x/a.mp4", str(tmp_path / "out.mp4"))

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_malformed_uri_raises_download_error(self, tmp_path):
        server = ArtifactServer({})
        downloader = make_downloader(server)

        with pytest.raises(DownloadError) as exc_info:
            await downloader.download(
                "http://[::1/a.mp4", str(tmp_path / "out.mp4"), credential="secret"
            )

        assert isinstance(exc_info.value.__cause__, httpx.InvalidURL)
        assert exc_info.value.stage == "download"
        assert "secret" not in str(exc_info.value)
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_write_error_raises_download_error(self, tmp_path):
        server = ArtifactServer({"/a.mp4": VIDEO_BYTES})
        downloader = make_downloader(server)
        # The target is an existing directory, so opening it for writing fails
        target = tmp_path / "taken"
        target.mkdir()

        with pytest.raises(DownloadError):
            await downloader.download("http://x/a.mp4", str(target))

    @pytest.mark.asyncio
    async def test_inline_artifact_written_without_request(self, tmp_path):
        server = ArtifactServer({})
        downloader = make_downloader(server)
        target = tmp_path / "inline.mp4"

        result = await downloader.download(
            ArtifactReference(uri=None, mime_type="video/mp4", inline_data=VIDEO_BYTES),
            str(target),
            index=1,
        )

        assert target.read_bytes() == VIDEO_BYTES
        assert result.index == 1
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_artifact_without_uri_or_data(self, tmp_path):
        downloader = make_downloader(ArtifactServer({}))

        with pytest.raises(DownloadError):
            await downloader.download(ArtifactReference(uri=None), str(tmp_path / "out.mp4"))

    @pytest.mark.asyncio
    async def test_cancel_event_stops_stream(self, tmp_path):
        server = ArtifactServer({"/a.mp4": VIDEO_BYTES})
        downloader = make_downloader(server)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(GenerationCancelled):
            await downloader.download("http://x/a.mp4", str(tmp_path / "out.mp4"), cancel_event=cancel)

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(ArtifactServer({})))
        downloader = ArtifactDownloader(http_client=client)

        await downloader.close()

        assert not client.is_closed
        await client.aclose()
