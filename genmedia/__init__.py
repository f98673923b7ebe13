"""
genmedia - long-running media generation jobs for Gemini (Veo / Imagen).

Usage:
    from genmedia import Config, VideoGenerationClient

    async with VideoGenerationClient(Config.from_env()) as client:
        paths = await client.generate_from_text("A red kite over the sea", "output/kite.mp4")
"""

from .core import Config
from .video_generation import (
    GenerationConfig,
    ImageToVideoPipeline,
    PipelineOptions,
    PipelineResult,
    VideoGenerationClient,
    VideoGenerationError,
)

__version__ = "0.1.0"

__all__ = [
    "Config",
    "GenerationConfig",
    "ImageToVideoPipeline",
    "PipelineOptions",
    "PipelineResult",
    "VideoGenerationClient",
    "VideoGenerationError",
]
