"""
Supplier file retrieval.

Fetches the uploaded CSV/XLSX by URL before staging.
"""

from dataclasses import dataclass
from typing import Optional
import requests
import structlog

from config import settings
from exceptions import FileDownloadError

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadedFile:
    """Bytes of a fetched file plus what the server said about them."""
    url: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


def download_file(
    url: str,
    timeout: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> DownloadedFile:
    """
    Download a file into memory.

    Args:
        url: File URL
        timeout: Seconds before giving up (defaults to settings)
        max_bytes: Largest accepted body (defaults to settings)

    Returns:
        DownloadedFile

    Raises:
        FileDownloadError: Network error, non-2xx response or oversized body
    """
    timeout = timeout or settings.download_timeout_seconds
    max_bytes = max_bytes or settings.max_download_bytes

    logger.info("downloading_file", url=url[:120])

    try:
        response = requests.get(url, timeout=timeout, stream=True)
    except requests.exceptions.RequestException as e:
        logger.error("file_download_failed", url=url[:120], error=str(e))
        raise FileDownloadError(url, f"Failed to download file: {e}")

    with response:
        if not response.ok:
            logger.error(
                "file_download_bad_status",
                url=url[:120],
                status=response.status_code
            )
            raise FileDownloadError(
                url,
                f"Failed to download file: {response.status_code} {response.reason}",
                status=response.status_code
            )

        chunks = []
        total = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                total += len(chunk)
                if total > max_bytes:
                    raise FileDownloadError(
                        url,
                        f"File exceeds {max_bytes} bytes",
                        status=response.status_code
                    )
                chunks.append(chunk)
        except requests.exceptions.RequestException as e:
            logger.error("file_download_interrupted", url=url[:120], error=str(e))
            raise FileDownloadError(url, f"Failed to download file: {e}")

        content_type = response.headers.get("Content-Type")

    logger.info("file_downloaded", url=url[:120], size=total, content_type=content_type)

    return DownloadedFile(url=url, content=b"".join(chunks), content_type=content_type)
