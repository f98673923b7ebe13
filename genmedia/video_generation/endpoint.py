"""
Remote generation endpoint.

The orchestrator only needs three remote capabilities:

    submit(request) -> Job          start a long-running video job
    poll(job) -> Job                fetch a fresh snapshot of that job
    generate_image(request) -> list[bytes]
                                    synchronous image generation (inline bytes)

GeminiEndpoint implements them on the google-genai SDK (Veo + Imagen).
SDK operation objects are decoded into Job here and nowhere else.
"""

import logging
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from ..core.config import Config
from .models import ArtifactReference, GenerationRequest, ImageRequest, Job

logger = logging.getLogger(__name__)


class GenerationEndpoint(Protocol):
    """What the orchestrator needs from a remote generation service."""

    provider: str

    async def submit(self, request: GenerationRequest) -> Job:
        ...

    async def poll(self, job: Job) -> Job:
        ...

    async def generate_image(self, request: ImageRequest) -> list[bytes]:
        ...


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message")
        code = error.get("code")
        if message and code is not None:
            return f"{message} (code {code})"
        return message or str(error)
    return str(error)


def decode_operation(operation: Any) -> Job:
    """
    Turn a GenerateVideosOperation snapshot into a Job.

    done=False               -> pending
    done=True with error     -> failed
    done=True otherwise      -> succeeded, one ArtifactReference per
                                generated video, in response order
    """
    name = getattr(operation, "name", None)

    if not getattr(operation, "done", False):
        return Job.pending(operation, name=name)

    error = getattr(operation, "error", None)
    if error:
        return Job.failure(operation, _error_message(error), name=name)

    response = getattr(operation, "response", None) or getattr(operation, "result", None)
    generated = list(getattr(response, "generated_videos", None) or [])

    if not generated:
        reasons = getattr(response, "rai_media_filtered_reasons", None)
        if reasons:
            logger.warning(f"Job {name} returned no videos, filtered: {'; '.join(reasons)}")

    artifacts = []
    for item in generated:
        video = getattr(item, "video", None)
        artifacts.append(
            ArtifactReference(
                uri=getattr(video, "uri", None),
                mime_type=getattr(video, "mime_type", None),
                inline_data=getattr(video, "video_bytes", None),
            )
        )

    return Job.succeeded(operation, artifacts, name=name)


class GeminiEndpoint:
    """
    Veo / Imagen through the google-genai SDK.

    Usage:
        endpoint = GeminiEndpoint(Config.from_env())
        job = await endpoint.submit(request)
        job = await endpoint.poll(job)
    """

    provider = "gemini"

    def __init__(self, config: Config, client: Optional[genai.Client] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> genai.Client:
        """Get or create the SDK client."""
        if self._client is None:
            if not self.config.api.api_key:
                raise ValueError("Gemini API key is required")
            http_options = None
            if self.config.api.base_url:
                http_options = types.HttpOptions(base_url=self.config.api.base_url)
            self._client = genai.Client(
                api_key=self.config.api.api_key,
                http_options=http_options,
            )
        return self._client

    def _video_config(self, request: GenerationRequest) -> types.GenerateVideosConfig:
        cfg = request.config
        kwargs: dict[str, Any] = {
            "number_of_videos": cfg.number_of_outputs,
            "aspect_ratio": cfg.aspect_ratio,
            "duration_seconds": cfg.duration_seconds,
            "negative_prompt": cfg.negative_prompt,
            "enhance_prompt": cfg.enhance_prompt,
        }
        # Person policy only applies to text-to-video; seeded jobs take the
        # service default.
        if request.seed is None:
            kwargs["person_generation"] = cfg.person_policy.value
        return types.GenerateVideosConfig(**kwargs)

    async def submit(self, request: GenerationRequest) -> Job:
        client = self._get_client()
        model = request.model or self.config.models.video_model

        kwargs: dict[str, Any] = {
            "model": model,
            "prompt": request.prompt,
            "config": self._video_config(request),
        }
        if request.seed is not None:
            kwargs["image"] = types.Image(
                image_bytes=request.seed.data,
                mime_type=request.seed.mime_type,
            )

        logger.info(
            f"Submitting video job: model={model}, seeded={request.seed is not None}, "
            f"prompt={request.prompt[:50]}..."
        )
        operation = await client.aio.models.generate_videos(**kwargs)
        job = decode_operation(operation)
        logger.info(f"Video job submitted: {job.name}")
        return job

    async def poll(self, job: Job) -> Job:
        client = self._get_client()
        operation = await client.aio.operations.get(job.handle)
        return decode_operation(operation)

    async def generate_image(self, request: ImageRequest) -> list[bytes]:
        client = self._get_client()
        model = request.model or self.config.models.image_model

        logger.info(f"Generating image: model={model}, aspect_ratio={request.aspect_ratio}")
        response = await client.aio.models.generate_images(
            model=model,
            prompt=request.prompt,
            config=types.GenerateImagesConfig(
                number_of_images=request.number_of_images,
                aspect_ratio=request.aspect_ratio,
            ),
        )

        images = []
        for generated in getattr(response, "generated_images", None) or []:
            image = getattr(generated, "image", None)
            data = getattr(image, "image_bytes", None)
            if data:
                images.append(data)
        return images
