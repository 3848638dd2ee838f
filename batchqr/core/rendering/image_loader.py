"""
Image Loader
============

Asynchronous image decoding for image elements. Sources may be http(s) URLs,
data URIs, file:// URLs or plain local paths.
"""

from typing import Any, Optional
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes, urlparse
import asyncio
import base64
import binascii
import io

import aiohttp
from PIL import Image, UnidentifiedImageError

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import ImageDecodeError

logger = get_logger(__name__)


class ImageLoader:
    """Decode image sources into RGBA bitmaps."""

    def __init__(self, timeout: Optional[float] = None, max_bytes: Optional[int] = None):
        self.settings = get_settings()
        self.timeout = timeout or self.settings.image_fetch_timeout
        self.max_bytes = max_bytes or self.settings.image_max_bytes
        self.logger: Any = logger.bind(component="image_loader")  # structlog.BoundLoggerBase
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def decode(self, source: str) -> Image.Image:
        """
        Load and decode an image source.

        Args:
            source: http(s) URL, data URI, file:// URL or local path

        Returns:
            Decoded RGBA bitmap

        Raises:
            ImageDecodeError: If the source is unreachable or not a decodable image
        """
        source = source.strip()
        if not source:
            raise ImageDecodeError("Empty image source")

        try:
            parsed = urlparse(source)
        except ValueError as e:
            raise ImageDecodeError(f"Malformed image source: {e}") from e

        scheme = parsed.scheme.lower()
        if scheme == "data":
            data = self._read_data_uri(source)
        elif scheme in ("http", "https"):
            data = await self._fetch(source)
        elif scheme == "file":
            data = await self._read_file(Path(unquote(parsed.path)))
        else:
            data = await self._read_file(Path(source))

        return self._decode_bytes(data, source)

    def _read_data_uri(self, source: str) -> bytes:
        header, sep, payload = source.partition(",")
        if not sep:
            raise ImageDecodeError("Malformed data URI")
        try:
            if header.endswith(";base64"):
                return base64.b64decode(payload, validate=False)
            return unquote_to_bytes(payload)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Invalid data URI payload: {e}") from e

    async def _fetch(self, url: str) -> bytes:
        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status != 200:
                    raise ImageDecodeError(f"Image request failed: {response.status} {url}")
                if (response.content_length or 0) > self.max_bytes:
                    raise ImageDecodeError(f"Image exceeds {self.max_bytes} bytes: {url}")
                data = await response.read()
        except ImageDecodeError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ImageDecodeError(f"Image request failed: {e}") from e

        if len(data) > self.max_bytes:
            raise ImageDecodeError(f"Image exceeds {self.max_bytes} bytes: {url}")
        return data

    async def _read_file(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (OSError, ValueError) as e:
            raise ImageDecodeError(f"Cannot read image file {path}: {e}") from e

    def _decode_bytes(self, data: bytes, source: str) -> Image.Image:
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                return image.convert("RGBA")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            label = source if len(source) <= 80 else source[:77] + "..."
            raise ImageDecodeError(f"Cannot decode image {label}: {e}") from e
