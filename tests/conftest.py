"""
Shared fixtures: a scripted in-memory endpoint and an httpx mock transport
serving artifact bytes.
"""

import os
import sys
from typing import Optional

import httpx
import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from genmedia.core.config import APIConfig, Config, DownloadConfig, PollingConfig
from genmedia.video_generation.client import VideoGenerationClient
from genmedia.video_generation.downloader import ArtifactDownloader
from genmedia.video_generation.models import ArtifactReference, Job


class FakeEndpoint:
    """Endpoint that replays scripted job snapshots and records every call."""

    provider = "fake"

    def __init__(
        self,
        submit_job: Optional[Job] = None,
        poll_jobs: Optional[list] = None,
        images: Optional[list[bytes]] = None,
        submit_error: Optional[Exception] = None,
        image_error: Optional[Exception] = None,
    ):
        self.submit_job = submit_job or Job.pending("op-0", name="operations/test")
        self.poll_jobs = list(poll_jobs or [])
        self.images = images if images is not None else [b"\x89PNG-seed"]
        self.submit_error = submit_error
        self.image_error = image_error

        self.submitted = []
        self.polled = []
        self.image_requests = []

    async def submit(self, request):
        self.submitted.append(request)
        if self.submit_error:
            raise self.submit_error
        return self.submit_job

    async def poll(self, job):
        self.polled.append(job)
        if not self.poll_jobs:
            raise AssertionError("poll called more often than scripted")
        result = self.poll_jobs.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def generate_image(self, request):
        self.image_requests.append(request)
        if self.image_error:
            raise self.image_error
        return self.images


def done_job(*uris: str) -> Job:
    return Job.succeeded(
        "op-done",
        [ArtifactReference(uri=uri, mime_type="video/mp4") for uri in uris],
        name="operations/test",
    )


class ArtifactServer:
    """httpx MockTransport handler serving fixed bytes per URL path."""

    def __init__(self, files: dict[str, bytes], failing: Optional[dict[str, int]] = None):
        self.files = files
        self.failing = failing or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.failing:
            return httpx.Response(self.failing[path])
        if path not in self.files:
            return httpx.Response(404)
        return httpx.Response(200, content=self.files[path])

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def fast_config():
    """Config with a zero poll interval so tests never sleep."""
    return Config(
        api=APIConfig(api_key="test-key"),
        polling=PollingConfig(interval_seconds=0),
    )


@pytest_asyncio.fixture
async def make_client(fast_config):
    """Factory: client wired to a FakeEndpoint and an ArtifactServer."""
    http_clients = []

    def _make(
        endpoint: FakeEndpoint,
        server: ArtifactServer,
        config: Optional[Config] = None,
        on_progress=None,
    ) -> VideoGenerationClient:
        config = config or fast_config
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(server))
        http_clients.append(http_client)
        downloader = ArtifactDownloader(http_client=http_client, chunk_size=4)
        return VideoGenerationClient(
            config=config,
            endpoint=endpoint,
            downloader=downloader,
            on_progress=on_progress,
        )

    yield _make

    for http_client in http_clients:
        await http_client.aclose()


def config_with_downloads(base: Config, **download) -> Config:
    return Config(api=base.api, models=base.models, polling=base.polling, download=DownloadConfig(**download))
