"""
Video Generation Client

Single-stage orchestrator for long-running video jobs:
- Submit a text-to-video or image-to-video request
- Poll the job until it is done
- Stream every resulting artifact to disk under a deterministic name

Features:
- Circuit breaker protection for submissions
- Cancellation through an asyncio.Event or a polling deadline
- Optional bounded-concurrency downloads, ordered by result index
- Progress callback support
"""

import asyncio
import dataclasses
import logging
from typing import Any, Callable, Optional, Sequence

import aiofiles

from ..core.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from ..core.config import Config
from .downloader import ArtifactDownloader
from .endpoint import GeminiEndpoint, GenerationEndpoint
from .errors import (
    DownloadError,
    GenerationCancelled,
    JobFailedError,
    SubmissionError,
    VideoGenerationError,
)
from .models import (
    ArtifactFile,
    ArtifactReference,
    GenerationConfig,
    GenerationRequest,
    Job,
    SeedArtifact,
    artifact_path,
    mime_type_for_path,
)
from .poller import JobPoller

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, str], None]


def build_config(options: Optional[GenerationConfig] = None, **overrides: Any) -> GenerationConfig:
    """Per-call configuration: ``options`` (or defaults) with ``overrides`` applied."""
    base = options or GenerationConfig()
    if not overrides:
        return base
    return dataclasses.replace(base, **overrides)


class VideoGenerationClient:
    """
    Orchestrates one long-running generation job end to end.

    Usage:
        async with VideoGenerationClient(Config.from_env()) as client:
            paths = await client.generate_from_text(
                "Panning wide shot of a calico kitten sleeping in the sunshine",
                "output/kitten.mp4",
                aspect_ratio="16:9",
            )

            # Two outputs -> output/fox_1.mp4, output/fox_2.mp4
            paths = await client.generate_from_image(
                "The fox turns its head", "input/fox.png", "output/fox.mp4",
                number_of_outputs=2,
            )
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        endpoint: Optional[GenerationEndpoint] = None,
        downloader: Optional[ArtifactDownloader] = None,
        on_progress: Optional[ProgressCallback] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Args:
            config: Immutable configuration (loaded from the environment if None)
            endpoint: Remote endpoint (GeminiEndpoint if None)
            downloader: Artifact downloader (created from config if None)
            on_progress: Callback for progress updates (request_id, percent, message)
            breaker: Circuit breaker guarding submissions
        """
        self.config = config or Config.from_env()
        self.endpoint = endpoint or GeminiEndpoint(self.config)
        self.downloader = downloader or ArtifactDownloader(
            chunk_size=self.config.download.chunk_size,
            timeout=self.config.api.download_timeout,
        )
        self.on_progress = on_progress
        self.breaker = breaker or CircuitBreaker(self.provider)

    @property
    def provider(self) -> str:
        return getattr(self.endpoint, "provider", "unknown")

    async def close(self):
        """Release the downloader's HTTP client."""
        await self.downloader.close()

    async def __aenter__(self) -> "VideoGenerationClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _emit_progress(self, request_id: str, percent: int, message: str):
        """Emit progress update via callback."""
        if self.on_progress:
            try:
                self.on_progress(request_id, percent, message)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def generate(
        self,
        request: GenerationRequest,
        output_path: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[ArtifactFile]:
        """
        Submit ``request``, wait for it, and download every artifact.

        Args:
            request: The generation request (text-only or seeded)
            output_path: Base path; with several outputs ``_1``, ``_2``...
                are inserted before the extension
            cancel_event: Set it to abandon polling or an in-flight download

        Returns:
            One ArtifactFile per remote artifact, in remote order

        Raises:
            VideoGenerationError: "Video generation failed: <cause>", with
                ``stage`` naming where it broke and the cause chained
            GenerationCancelled: the caller cancelled or the deadline passed
        """
        return await self._generate(request, output_path, cancel_event, "Video generation failed")

    async def generate_from_text(
        self,
        prompt: str,
        output_path: str,
        options: Optional[GenerationConfig] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides: Any,
    ) -> list[str]:
        """Text-to-video. Returns the local paths written."""
        request = GenerationRequest(prompt=prompt, config=build_config(options, **overrides))
        files = await self.generate(request, output_path, cancel_event=cancel_event)
        return [f.path for f in files]

    async def generate_from_image(
        self,
        prompt: str,
        image_path: str,
        output_path: str,
        options: Optional[GenerationConfig] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides: Any,
    ) -> list[str]:
        """
        Image-to-video with the image at ``image_path`` as the first frame.

        The seed mime type is taken from the file extension.
        """
        prefix = "Video generation from image failed"
        config = build_config(options, **overrides)

        try:
            async with aiofiles.open(image_path, "rb") as f:
                image_bytes = await f.read()
        except OSError as e:
            raise VideoGenerationError(
                f"{prefix}: cannot read {image_path}: {e}",
                error_code="SEED_UNREADABLE",
                stage="seed",
            ) from e

        request = GenerationRequest(
            prompt=prompt,
            config=config,
            seed=SeedArtifact(data=image_bytes, mime_type=mime_type_for_path(image_path)),
        )
        files = await self._generate(request, output_path, cancel_event, prefix)
        return [f.path for f in files]

    async def generate_from_bytes(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        output_path: str,
        options: Optional[GenerationConfig] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides: Any,
    ) -> list[ArtifactFile]:
        """Image-to-video from an in-memory seed."""
        request = GenerationRequest(
            prompt=prompt,
            config=build_config(options, **overrides),
            seed=SeedArtifact(data=image_bytes, mime_type=mime_type),
        )
        return await self.generate(request, output_path, cancel_event=cancel_event)

    def get_circuit_breaker_status(self) -> dict:
        """Status of the submission circuit breaker."""
        return self.breaker.get_status()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _generate(
        self,
        request: GenerationRequest,
        output_path: str,
        cancel_event: Optional[asyncio.Event],
        prefix: str,
    ) -> list[ArtifactFile]:
        try:
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled("Cancelled before submission", stage="submit")

            job = await self._submit(request)
            job = await self._wait(request, job, cancel_event)

            if job.failed:
                logger.error(f"Job {job.name} failed: {job.failure_reason}")
                self._emit_progress(request.request_id, 100, f"Failed: {job.failure_reason}")
                raise JobFailedError(
                    job.failure_reason or "Generation failed (no specific reason)",
                    job_name=job.name,
                    provider=self.provider,
                )

            files = await self._download_all(request, job, output_path, cancel_event)

        except GenerationCancelled:
            raise
        except VideoGenerationError as e:
            raise VideoGenerationError(
                f"{prefix}: {e}",
                error_code=e.error_code,
                provider=e.provider or self.provider,
                stage=e.stage,
            ) from e

        self._emit_progress(request.request_id, 100, "Generation complete")
        return files

    async def _submit(self, request: GenerationRequest) -> Job:
        self._emit_progress(request.request_id, 10, f"Submitting to {self.provider}")

        try:
            job = await self.breaker.call(self.endpoint.submit, request)
        except CircuitBreakerOpen as e:
            logger.warning(str(e))
            raise SubmissionError(
                f"Circuit breaker open for {e.service_name}, retry after {e.retry_after:.1f}s",
                error_code="CIRCUIT_BREAKER_OPEN",
                provider=self.provider,
            ) from e
        except VideoGenerationError:
            raise
        except Exception as e:
            raise SubmissionError(
                f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
                provider=self.provider,
            ) from e

        self._emit_progress(request.request_id, 20, f"Job queued: {job.name}")
        return job

    async def _wait(
        self,
        request: GenerationRequest,
        job: Job,
        cancel_event: Optional[asyncio.Event],
    ) -> Job:
        def on_poll(snapshot: Job, polls: int):
            progress = min(20 + polls * 5, 90)
            self._emit_progress(request.request_id, progress, f"Processing: {snapshot.status.value}")

        poller = JobPoller(
            self.endpoint,
            interval=self.config.polling.interval_seconds,
            on_poll=on_poll,
        )

        try:
            return await poller.wait(
                job,
                cancel_event=cancel_event,
                timeout=self.config.polling.timeout_seconds,
            )
        except VideoGenerationError:
            raise
        except Exception as e:
            raise VideoGenerationError(
                f"Polling job {job.name} failed: {type(e).__name__}: {e}",
                error_code="POLL_ERROR",
                provider=self.provider,
                stage="poll",
            ) from e

    async def _download_all(
        self,
        request: GenerationRequest,
        job: Job,
        output_path: str,
        cancel_event: Optional[asyncio.Event],
    ) -> list[ArtifactFile]:
        artifacts = job.artifacts
        if not artifacts:
            logger.warning(f"Job {job.name} finished without artifacts")
            return []

        count = max(request.config.number_of_outputs, len(artifacts))
        targets = [artifact_path(output_path, i, count) for i in range(len(artifacts))]

        self._emit_progress(request.request_id, 90, f"Downloading {len(artifacts)} artifact(s)")

        limit = self.config.download.max_concurrent
        if limit <= 1 or len(artifacts) == 1:
            return await self._download_sequential(request, artifacts, targets, cancel_event)
        return await self._download_concurrent(request, artifacts, targets, cancel_event, limit)

    async def _download_one(
        self,
        request: GenerationRequest,
        index: int,
        artifact: ArtifactReference,
        target: str,
        cancel_event: Optional[asyncio.Event],
    ) -> ArtifactFile:
        return await self.downloader.download(
            artifact,
            target,
            credential=request.config.credential,
            index=index,
            cancel_event=cancel_event,
        )

    async def _download_sequential(
        self,
        request: GenerationRequest,
        artifacts: Sequence[ArtifactReference],
        targets: list[str],
        cancel_event: Optional[asyncio.Event],
    ) -> list[ArtifactFile]:
        files = []
        for index, (artifact, target) in enumerate(zip(artifacts, targets)):
            try:
                files.append(await self._download_one(request, index, artifact, target, cancel_event))
            except DownloadError as e:
                if not self.config.download.allow_partial_results:
                    raise
                logger.warning(f"Skipping artifact {index}: {e}")
        return files

    async def _download_concurrent(
        self,
        request: GenerationRequest,
        artifacts: Sequence[ArtifactReference],
        targets: list[str],
        cancel_event: Optional[asyncio.Event],
        limit: int,
    ) -> list[ArtifactFile]:
        semaphore = asyncio.Semaphore(limit)

        async def fetch(index: int, artifact: ArtifactReference, target: str) -> ArtifactFile:
            async with semaphore:
                return await self._download_one(request, index, artifact, target, cancel_event)

        tasks = [
            asyncio.create_task(fetch(index, artifact, target))
            for index, (artifact, target) in enumerate(zip(artifacts, targets))
        ]

        try:
            if not self.config.download.allow_partial_results:
                # gather keeps index order regardless of completion order
                return list(await asyncio.gather(*tasks))

            results = await asyncio.gather(*tasks, return_exceptions=True)
            files = []
            for index, result in enumerate(results):
                if isinstance(result, DownloadError):
                    logger.warning(f"Skipping artifact {index}: {result}")
                    continue
                if isinstance(result, BaseException):
                    raise result
                files.append(result)
            return files

        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
