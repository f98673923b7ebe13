"""
Video Generation Service

Long-running media generation against Gemini (Veo for video, Imagen for
images):
- VideoGenerationClient: submit, poll, download (text- or image-seeded)
- ImageToVideoPipeline: Imagen still -> Veo video seeded with it

Submissions go through a circuit breaker; nothing is retried.
"""

from .client import VideoGenerationClient, build_config
from .downloader import ArtifactDownloader
from .endpoint import GeminiEndpoint, GenerationEndpoint, decode_operation
from .errors import (
    DownloadError,
    GenerationCancelled,
    GenerationTimeout,
    JobFailedError,
    PipelineStageError,
    SubmissionError,
    VideoGenerationError,
)
from .models import (
    ArtifactFile,
    ArtifactReference,
    GenerationConfig,
    GenerationRequest,
    ImageRequest,
    Job,
    JobStatus,
    PersonPolicy,
    PipelineOptions,
    PipelineResult,
    SeedArtifact,
    artifact_path,
    mime_type_for_path,
)
from .pipeline import ImageToVideoPipeline
from .poller import JobPoller

__all__ = [
    "VideoGenerationClient",
    "build_config",
    "ArtifactDownloader",
    "GeminiEndpoint",
    "GenerationEndpoint",
    "decode_operation",
    "DownloadError",
    "GenerationCancelled",
    "GenerationTimeout",
    "JobFailedError",
    "PipelineStageError",
    "SubmissionError",
    "VideoGenerationError",
    "ArtifactFile",
    "ArtifactReference",
    "GenerationConfig",
    "GenerationRequest",
    "ImageRequest",
    "Job",
    "JobStatus",
    "PersonPolicy",
    "PipelineOptions",
    "PipelineResult",
    "SeedArtifact",
    "artifact_path",
    "mime_type_for_path",
    "ImageToVideoPipeline",
    "JobPoller",
]
