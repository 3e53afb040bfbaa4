"""Content hash verification through the public retrieval path.

The digest certifies what a downstream consumer receives when fetching a
document, so content is fetched over HTTP from the retrieval URL rather than
read from blob storage directly.
"""

import asyncio
import hashlib
from collections.abc import Callable
from urllib.parse import quote

import httpx

from docvault_core.exceptions import RetrievalError
from docvault_core.logging import get_vault_logger
from docvault_core.settings import Settings

logger = get_vault_logger(__name__)


def retrieval_url_builder(base_url: str) -> Callable[[str], str]:
    """Build the storage-key-to-URL mapping for a retrieval endpoint prefix.

    >>> retrieval_url_builder("http://localhost:5000/api/documents")("license.png")
    'http://localhost:5000/api/documents/license.png'
    """
    prefix = base_url.rstrip("/") + "/"

    def url_for(storage_key: str) -> str:
        return prefix + quote(storage_key, safe="/")

    return url_for


class HashVerifier:
    """Computes the MD5 hex digest of a document as served by the retrieval URL.

    Every fetch is bounded by ``timeout`` seconds end to end. Any failure
    (transport error, non-2xx status, timeout) raises RetrievalError; a digest
    is only returned after the full body was received.
    """

    def __init__(
        self,
        url_for: Callable[[str], str],
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url_for = url_for
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> "HashVerifier":
        return cls(
            retrieval_url_builder(settings.retrieval_base_url),
            timeout=settings.hash_timeout_seconds,
            transport=transport,
        )

    async def compute_digest(self, storage_key: str) -> str:
        """Fetch the content for storage_key and return its MD5 hex digest.

        Raises:
            RetrievalError: The content could not be fetched completely in time.
        """
        url = self._url_for(storage_key)
        try:
            async with asyncio.timeout(self._timeout):
                return await self._fetch_digest(url)
        except TimeoutError as e:
            raise RetrievalError(f"Timed out after {self._timeout}s retrieving '{storage_key}' from {url}") from e
        except httpx.HTTPError as e:
            raise RetrievalError(f"Could not retrieve '{storage_key}' from {url}: {e}") from e

    async def _fetch_digest(self, url: str) -> str:
        digest = hashlib.md5()
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    digest.update(chunk)
        return digest.hexdigest()
