"""
Artifact Downloader - streams generated media from the remote service to disk.

Bytes are piped chunk by chunk from the HTTP response into the file; the
artifact is never held in memory as a whole.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

import aiofiles
import httpx

from .errors import DownloadError, GenerationCancelled
from .models import ArtifactFile, ArtifactReference

logger = logging.getLogger(__name__)

CREDENTIAL_PARAM = "key"


def with_credential(uri: str, credential: Optional[str]) -> httpx.URL:
    """Add the credential to ``uri`` as the ``key`` query parameter."""
    url = httpx.URL(uri)
    if credential:
        url = url.copy_merge_params({CREDENTIAL_PARAM: credential})
    return url


def redact(url: Union[str, httpx.URL]) -> str:
    """URL safe to log or put in an error message."""
    url = httpx.URL(str(url))
    if CREDENTIAL_PARAM in url.params:
        url = url.copy_set_param(CREDENTIAL_PARAM, "REDACTED")
    return str(url)


class ArtifactDownloader:
    """
    Streams artifacts to local files.

    Usage:
        downloader = ArtifactDownloader()
        artifact_file = await downloader.download(reference, "output/video.mp4", credential=api_key)
        await downloader.close()
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = 64 * 1024,
        timeout: float = 600.0,
    ):
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        """Close the HTTP client if this downloader created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def download(
        self,
        artifact: Union[ArtifactReference, str],
        path: Union[str, Path],
        *,
        credential: Optional[str] = None,
        index: int = 0,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ArtifactFile:
        """
        Write one artifact to ``path``, creating parent directories.

        An existing file at ``path`` is overwritten.

        Raises:
            DownloadError: malformed URI, transport error, non-2xx status, or
                write failure
            GenerationCancelled: cancel_event was set mid-stream
        """
        if isinstance(artifact, str):
            artifact = ArtifactReference(uri=artifact)

        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(
                f"Cannot create directory {target.parent}: {e}", uri=None, path=str(target)
            ) from e

        if not artifact.uri:
            if artifact.inline_data is None:
                raise DownloadError(
                    f"Artifact {index} has neither a URI nor inline data", path=str(target)
                )
            return await self._write_inline(artifact.inline_data, target, str(path), index)

        # Remote-supplied URI; carries no credential until with_credential adds one
        safe_url = artifact.uri
        size = 0

        try:
            url = with_credential(artifact.uri, credential)
            safe_url = redact(url)
            client = await self._get_client()
            async with client.stream("GET", url, follow_redirects=True) as response:
                if not response.is_success:
                    raise DownloadError(
                        f"HTTP {response.status_code} downloading {safe_url}",
                        uri=safe_url,
                        path=str(target),
                    )
                async with aiofiles.open(target, "wb") as f:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        if cancel_event is not None and cancel_event.is_set():
                            raise GenerationCancelled(
                                f"Download of {safe_url} cancelled", stage="download"
                            )
                        await f.write(chunk)
                        size += len(chunk)

        except (DownloadError, GenerationCancelled):
            raise
        except httpx.InvalidURL as e:
            raise DownloadError(
                f"Invalid artifact URI {safe_url}: {e}", uri=safe_url, path=str(target)
            ) from e
        except httpx.TimeoutException as e:
            raise DownloadError(
                f"Timeout downloading {safe_url}: {type(e).__name__}",
                uri=safe_url,
                path=str(target),
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(
                f"Request failed downloading {safe_url}: {type(e).__name__}",
                uri=safe_url,
                path=str(target),
            ) from e
        except OSError as e:
            raise DownloadError(
                f"Cannot write {target}: {e}", uri=safe_url, path=str(target)
            ) from e

        logger.info(f"Artifact downloaded: {target} ({size / 1024 / 1024:.1f} MB)")
        return ArtifactFile(path=str(path), index=index, size_bytes=size)

    async def _write_inline(self, data: bytes, target: Path, path: str, index: int) -> ArtifactFile:
        try:
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise DownloadError(f"Cannot write {target}: {e}", path=str(target)) from e

        logger.info(f"Inline artifact written: {target} ({len(data) / 1024 / 1024:.1f} MB)")
        return ArtifactFile(path=path, index=index, size_bytes=len(data))
