"""
Data model for long-running media generation.

Requests are immutable values built once per call. Remote operation
objects are decoded into Job exactly once, at the endpoint boundary;
nothing past that point touches the untyped SDK objects.
"""

import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

VIDEO_ASPECT_RATIOS = ("16:9", "9:16")
IMAGE_ASPECT_RATIOS = ("1:1", "4:3", "3:4", "16:9", "9:16")

MIN_DURATION_SECONDS = 5
MAX_DURATION_SECONDS = 8
DEFAULT_DURATION_SECONDS = 5

MAX_OUTPUTS = 2

DEFAULT_SEED_MIME_TYPE = "image/png"

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "pdf": "application/pdf",
}


def mime_type_for_path(path: str) -> str:
    """Guess a mime type from the file extension."""
    extension = os.path.splitext(path)[1].lstrip(".").lower()
    return _MIME_TYPES.get(extension, "application/octet-stream")


class PersonPolicy(str, Enum):
    """Whether generated media may depict people."""
    DONT_ALLOW = "dont_allow"
    ALLOW_ADULT = "allow_adult"


class JobStatus(str, Enum):
    """Status of a remote generation job."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationConfig:
    """Options recognized by a video generation request."""
    aspect_ratio: str = "16:9"
    number_of_outputs: int = 1
    duration_seconds: int = DEFAULT_DURATION_SECONDS
    negative_prompt: Optional[str] = None
    enhance_prompt: Optional[bool] = None
    person_policy: PersonPolicy = PersonPolicy.DONT_ALLOW

    # Only used to authorize artifact retrieval; never sent with the request
    credential: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        if self.aspect_ratio not in VIDEO_ASPECT_RATIOS:
            raise ValueError(
                f"aspect_ratio must be one of {VIDEO_ASPECT_RATIOS}, got {self.aspect_ratio!r}"
            )
        if self.number_of_outputs not in range(1, MAX_OUTPUTS + 1):
            raise ValueError(
                f"number_of_outputs must be between 1 and {MAX_OUTPUTS}, got {self.number_of_outputs}"
            )
        if not MIN_DURATION_SECONDS <= self.duration_seconds <= MAX_DURATION_SECONDS:
            raise ValueError(
                f"duration_seconds must be between {MIN_DURATION_SECONDS} and "
                f"{MAX_DURATION_SECONDS}, got {self.duration_seconds}"
            )
        # Accept plain strings ("allow_adult") as well as the enum
        object.__setattr__(self, "person_policy", PersonPolicy(self.person_policy))


@dataclass(frozen=True)
class PipelineOptions(GenerationConfig):
    """GenerationConfig plus what the image-to-video pipeline needs."""
    save_image: bool = False
    image_output_path: Optional[str] = None


@dataclass(frozen=True)
class SeedArtifact:
    """Input media used to initialize a generation job."""
    data: bytes = field(repr=False)
    mime_type: str = DEFAULT_SEED_MIME_TYPE


@dataclass(frozen=True)
class GenerationRequest:
    """Request for video generation."""
    prompt: str
    config: GenerationConfig = field(default_factory=GenerationConfig)
    seed: Optional[SeedArtifact] = None
    model: Optional[str] = None  # None uses the client's configured model

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()), compare=False)


@dataclass(frozen=True)
class ImageRequest:
    """Request for a synchronous image generation."""
    prompt: str
    aspect_ratio: str = "16:9"
    number_of_images: int = 1
    model: Optional[str] = None

    def __post_init__(self):
        if self.aspect_ratio not in IMAGE_ASPECT_RATIOS:
            raise ValueError(
                f"aspect_ratio must be one of {IMAGE_ASPECT_RATIOS}, got {self.aspect_ratio!r}"
            )


@dataclass(frozen=True)
class ArtifactReference:
    """A generated artifact still held by the remote service."""
    uri: Optional[str]
    mime_type: Optional[str] = None

    # Some responses carry the bytes inline instead of a download URI
    inline_data: Optional[bytes] = field(default=None, repr=False)


@dataclass(frozen=True)
class Job:
    """
    Snapshot of one remote asynchronous unit of work.

    Polling never mutates a Job; each poll returns a new snapshot and
    callers rebind to it.
    """
    handle: Any = field(repr=False, compare=False)
    status: JobStatus = JobStatus.PENDING
    name: Optional[str] = None
    artifacts: tuple[ArtifactReference, ...] = ()
    failure_reason: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status != JobStatus.PENDING

    @property
    def failed(self) -> bool:
        return self.status == JobStatus.FAILED

    @classmethod
    def pending(cls, handle: Any, name: Optional[str] = None) -> "Job":
        return cls(handle=handle, status=JobStatus.PENDING, name=name)

    @classmethod
    def succeeded(
        cls,
        handle: Any,
        artifacts: Sequence[ArtifactReference] = (),
        name: Optional[str] = None,
    ) -> "Job":
        return cls(
            handle=handle,
            status=JobStatus.SUCCEEDED,
            name=name,
            artifacts=tuple(artifacts),
        )

    @classmethod
    def failure(cls, handle: Any, reason: str, name: Optional[str] = None) -> "Job":
        return cls(
            handle=handle,
            status=JobStatus.FAILED,
            name=name,
            failure_reason=reason,
        )


@dataclass(frozen=True)
class ArtifactFile:
    """An artifact written to local storage."""
    path: str
    index: int
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class PipelineResult:
    """Result of the image-to-video pipeline."""
    video_paths: list[str]
    image_path: Optional[str] = None


def artifact_path(base_path: str, index: int, count: int) -> str:
    """
    Local path for artifact ``index`` (0-based) of a job asked for ``count``
    outputs.

    A single output keeps ``base_path`` verbatim. Otherwise ``_<index+1>``
    goes before the extension: ``out.mp4`` -> ``out_1.mp4``, ``out_2.mp4``.
    """
    if count <= 1:
        return base_path
    root, extension = os.path.splitext(base_path)
    return f"{root}_{index + 1}{extension}"
