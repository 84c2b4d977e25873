"""Artifact downloader.

Fetches finished artifacts (synthesized audio) from the URL a remote job
reports, classifying failures so the retry executor and the completion
tracker can tell transient transport problems from permanent ones.
"""

import asyncio
import logging

import aiohttp

from newscast.errors import CollaboratorError, TransientError
from newscast.services.interfaces import DownloadedArtifact

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Newscast/1.0"


async def raise_for_status(response: aiohttp.ClientResponse, context: str) -> None:
    """Raise a classified error for a non-2xx response.

    Args:
        response: The response to check.
        context: Short description of the request, used in the error message.

    Raises:
        TransientError: For 5xx and 429 responses.
        CollaboratorError: For any other 4xx response.
    """
    if response.status < 400:
        return

    body = (await response.text())[:500]
    message = f"{context} failed: HTTP {response.status} {response.reason or ''} {body}".strip()
    if response.status >= 500 or response.status == 429:
        raise TransientError(message, status=response.status)
    raise CollaboratorError(message, status=response.status)


class ArtifactDownloader:
    """Downloads artifacts over HTTP into memory.

    Example:
        downloader = ArtifactDownloader(timeout=120)
        artifact = await downloader.download("https://tts.example.com/file=out.wav")
    """

    DEFAULT_CHUNK_SIZE = 65536
    DEFAULT_TIMEOUT = 300  # 5 minutes

    def __init__(
        self,
        timeout: int = DEFAULT_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.user_agent = user_agent

    async def download(self, url: str) -> DownloadedArtifact:
        """Download the bytes behind a URL.

        Raises:
            TransientError: On connection failures, timeouts and 5xx responses.
            CollaboratorError: On other HTTP errors.
        """
        logger.info(f"Downloading artifact: {url}")
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        chunks = []

        try:
            async with aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self.user_agent},
            ) as session:
                async with session.get(url, allow_redirects=True) as response:
                    await raise_for_status(response, f"Download of {url}")
                    content_type = response.headers.get(
                        "Content-Type", "application/octet-stream"
                    )
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        if chunk:
                            chunks.append(chunk)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise TransientError(f"Download of {url} failed: {e}") from e

        data = b"".join(chunks)
        logger.info(f"Downloaded artifact: {url} ({len(data) / 1024:.1f} KB)")
        return DownloadedArtifact(data=data, content_type=content_type.split(";")[0].strip())
