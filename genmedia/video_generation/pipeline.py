"""
Image-to-Video Pipeline

Two dependent jobs:
  1. Imagen generates a still (synchronous, bytes come back inline)
  2. Veo animates it, using the still as the first frame (long-running)

Stage 2 consumes stage 1's bytes, so the stages never overlap. If stage 2
fails, an image already saved in stage 1 stays on disk.
"""

import asyncio
import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Optional

import aiofiles

from ..core.circuit_breaker import CircuitBreakerOpen
from .client import VideoGenerationClient
from .errors import GenerationCancelled, PipelineStageError, VideoGenerationError
from .models import (
    DEFAULT_SEED_MIME_TYPE,
    GenerationConfig,
    ImageRequest,
    PipelineOptions,
    PipelineResult,
)

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Image-to-video generation failed"


def default_image_path(output_path: str) -> str:
    """``output/clip.mp4`` -> ``output/clip.png``"""
    return f"{os.path.splitext(output_path)[0]}.png"


class ImageToVideoPipeline:
    """
    Generates an image, then a video seeded with it.

    Usage:
        pipeline = ImageToVideoPipeline(client)
        result = await pipeline.generate(
            "Panning wide shot of a calico kitten sleeping in the sunshine",
            "output/kitten.mp4",
            PipelineOptions(save_image=True, image_output_path="output/kitten.png"),
        )
        result.image_path   # "output/kitten.png"
        result.video_paths  # ["output/kitten.mp4"]
    """

    def __init__(self, client: VideoGenerationClient):
        self.client = client

    @property
    def endpoint(self):
        return self.client.endpoint

    async def generate(
        self,
        prompt: str,
        output_path: str,
        options: Optional[PipelineOptions] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        **overrides: Any,
    ) -> PipelineResult:
        """
        Run both stages.

        Raises:
            PipelineStageError: ``stage`` is "image" or "video"
            GenerationCancelled: the caller cancelled before submission or during
                the video stage
        """
        options = options or PipelineOptions()
        if overrides:
            options = dataclasses.replace(options, **overrides)

        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled("Cancelled before the image stage", stage="submit")

        image_bytes = await self._generate_image(prompt, options)

        image_path = None
        if options.save_image:
            image_path = await self._save_image(
                image_bytes, options.image_output_path or default_image_path(output_path)
            )

        video_paths = await self._generate_video(prompt, image_bytes, output_path, options, cancel_event)
        return PipelineResult(video_paths=video_paths, image_path=image_path)

    async def _generate_image(self, prompt: str, options: PipelineOptions) -> bytes:
        # Imagen and Veo share the 16:9 / 9:16 ratios
        aspect_ratio = "9:16" if options.aspect_ratio == "9:16" else "16:9"
        request = ImageRequest(
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            number_of_images=1,
            model=self.client.config.models.image_model,
        )

        try:
            images = await self.client.breaker.call(self.endpoint.generate_image, request)
        except CircuitBreakerOpen as e:
            raise PipelineStageError(
                f"{ERROR_PREFIX}: image stage: {e}",
                stage="image",
                error_code="CIRCUIT_BREAKER_OPEN",
            ) from e
        except Exception as e:
            raise PipelineStageError(
                f"{ERROR_PREFIX}: image stage: {type(e).__name__}: {e}",
                stage="image",
                error_code="IMAGE_FAILED",
            ) from e

        if not images:
            raise PipelineStageError(
                f"{ERROR_PREFIX}: Failed to generate image",
                stage="image",
                error_code="NO_IMAGE",
            )

        logger.info(f"Image stage complete ({len(images[0])} bytes)")
        return images[0]

    async def _save_image(self, image_bytes: bytes, path: str) -> str:
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(image_bytes)
        except OSError as e:
            raise PipelineStageError(
                f"{ERROR_PREFIX}: cannot save image to {path}: {e}",
                stage="image",
                error_code="IMAGE_SAVE_FAILED",
            ) from e

        logger.info(f"Intermediate image saved: {path}")
        return path

    async def _generate_video(
        self,
        prompt: str,
        image_bytes: bytes,
        output_path: str,
        options: PipelineOptions,
        cancel_event: Optional[asyncio.Event],
    ) -> list[str]:
        # PipelineOptions extends GenerationConfig; hand over every generation field
        config = GenerationConfig(
            **{f.name: getattr(options, f.name) for f in dataclasses.fields(GenerationConfig)}
        )

        try:
            files = await self.client.generate_from_bytes(
                prompt,
                image_bytes,
                DEFAULT_SEED_MIME_TYPE,
                output_path,
                config,
                cancel_event=cancel_event,
            )
        except GenerationCancelled:
            raise
        except VideoGenerationError as e:
            raise PipelineStageError(
                f"{ERROR_PREFIX}: video stage: {e}",
                stage="video",
                error_code=e.error_code,
            ) from e

        if not files:
            raise PipelineStageError(
                f"{ERROR_PREFIX}: video stage produced no videos",
                stage="video",
                error_code="NO_VIDEO",
            )

        return [f.path for f in files]
