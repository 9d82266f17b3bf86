"""
Bounded Content Reader

Validates a terminal upstream response and buffers its body under a
hard byte ceiling. Content-Length is checked up front, and a running
counter is kept while streaming since the header can be absent or wrong.
Only identity-encoded bodies are accepted, so nothing is decompressed and
the bytes counted are the bytes held in memory.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .errors import NetworkError, NotAnImage, PayloadTooLarge

logger = logging.getLogger(__name__)


@dataclass
class ProxiedImage:
    """Fully buffered image body plus the content type to forward."""
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def is_image_content_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.strip().lower().startswith("image/")


def declared_length(response: httpx.Response) -> Optional[int]:
    """Content-Length as an int, or None if missing/unparseable."""
    raw = response.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


async def read_image(
    response: httpx.Response,
    max_bytes: int,
    chunk_size: int = 64 * 1024,
) -> ProxiedImage:
    """
    Check headers, then stream the body with a byte ceiling.

    Args:
        response: Streaming response (opened with ``stream=True``)
        max_bytes: Hard ceiling on buffered bytes
        chunk_size: Read size per iteration

    Raises:
        NotAnImage: Content-Type isn't image/*
        PayloadTooLarge: Declared or streamed size exceeds max_bytes
        NetworkError: Body arrived with a Content-Encoding despite identity being requested
    """
    content_type = response.headers.get("content-type", "")
    if not is_image_content_type(content_type):
        raise NotAnImage(content_type)

    encoding = response.headers.get("content-encoding", "identity").strip().lower()
    if encoding not in ("", "identity"):
        raise NetworkError(f"unrequested content-encoding {encoding!r}")

    length = declared_length(response)
    if length is not None and length > max_bytes:
        raise PayloadTooLarge(f"declared {length} bytes")

    chunks = []
    total = 0
    async for chunk in response.aiter_bytes(chunk_size=chunk_size):
        total += len(chunk)
        if total > max_bytes:
            raise PayloadTooLarge(f"streamed more than {max_bytes} bytes")
        chunks.append(chunk)

    return ProxiedImage(data=b"".join(chunks), content_type=content_type)
