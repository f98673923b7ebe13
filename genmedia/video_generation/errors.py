"""Exceptions raised by the generation services."""

from typing import Optional


class VideoGenerationError(Exception):
    """Raised when video generation fails."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        self.error_code = error_code
        self.provider = provider
        self.stage = stage
        super().__init__(message)


class SubmissionError(VideoGenerationError):
    """The endpoint rejected the request; nothing was polled."""

    def __init__(self, message: str, error_code: str = "SUBMIT_FAILED", provider: Optional[str] = None):
        super().__init__(message, error_code=error_code, provider=provider, stage="submit")


class JobFailedError(VideoGenerationError):
    """The remote job finished but reported failure."""

    def __init__(self, reason: str, job_name: Optional[str] = None, provider: Optional[str] = None):
        self.reason = reason
        self.job_name = job_name
        super().__init__(
            f"Job {job_name or '<unnamed>'} failed: {reason}",
            error_code="JOB_FAILED",
            provider=provider,
            stage="job",
        )


class DownloadError(VideoGenerationError):
    """An artifact could not be streamed to disk."""

    def __init__(self, message: str, uri: Optional[str] = None, path: Optional[str] = None):
        self.uri = uri
        self.path = path
        super().__init__(message, error_code="DOWNLOAD_FAILED", stage="download")


class PipelineStageError(VideoGenerationError):
    """One stage of the image-to-video pipeline failed."""

    def __init__(self, message: str, stage: str, error_code: Optional[str] = None):
        super().__init__(message, error_code=error_code, stage=stage)


class GenerationCancelled(VideoGenerationError):
    """The caller gave up waiting on a job or a download."""

    def __init__(self, message: str = "Generation cancelled", stage: Optional[str] = None):
        super().__init__(message, error_code="CANCELLED", stage=stage)


class GenerationTimeout(GenerationCancelled):
    """The polling deadline passed before the job finished."""

    def __init__(self, message: str, stage: Optional[str] = "poll"):
        super().__init__(message, stage=stage)
        self.error_code = "TIMEOUT"
