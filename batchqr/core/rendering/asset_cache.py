"""
Asset Cache
===========

Session-scoped memoization of generated QR bitmaps and decoded images.

Entries are keyed by the exact tuple of inputs that determine the bitmap, so an
unchanged element never regenerates while any changed input always does. The
cache is unbounded: its working set is the number of distinct qrcode elements
times the distinct content values seen during the session.
"""

from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, Union
import inspect

from PIL import Image

from batchqr.config.logging import get_logger
from batchqr.models.schemas import Element, QRConfig

logger = get_logger(__name__)


class QRAssetKey(NamedTuple):
    """Inputs that fully determine a generated QR bitmap."""

    content: str
    element_width: int
    error_correction_level: str
    margin: int
    version: Optional[int]
    dark_color: str
    light_color: str

    @classmethod
    def for_element(cls, content: str, element: Element, qr_config: QRConfig) -> "QRAssetKey":
        return cls(
            content=content,
            element_width=element.width,
            error_correction_level=qr_config.error_correction_level.value,
            margin=qr_config.margin,
            version=qr_config.version,
            dark_color=qr_config.dark_color,
            light_color=qr_config.light_color,
        )


class ImageAssetKey(NamedTuple):
    """Decoded image elements are keyed by their source alone."""

    kind: str
    source: str

    @classmethod
    def for_source(cls, source: str) -> "ImageAssetKey":
        return cls(kind="image", source=source)


AssetKey = Union[QRAssetKey, ImageAssetKey]
Generator = Callable[[], Union[Image.Image, Awaitable[Image.Image]]]


class AssetCache:
    """Memoize generated bitmaps for one rendering session."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="asset_cache")  # structlog.BoundLoggerBase
        self._entries: Dict[AssetKey, Image.Image] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: AssetKey) -> bool:
        return key in self._entries

    async def get_or_generate(self, key: AssetKey, generator: Generator) -> Image.Image:
        """
        Return the cached bitmap for key, generating and storing it on a miss.

        Args:
            key: Cache key
            generator: Zero-argument callable returning a bitmap or an awaitable of one

        Returns:
            Cached or freshly generated bitmap
        """
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        bitmap = generator()
        if inspect.isawaitable(bitmap):
            bitmap = await bitmap

        self._entries[key] = bitmap
        self.logger.debug(
            "Generated asset",
            key_type=type(key).__name__,
            entries=len(self._entries),
        )
        return bitmap

    def clear(self) -> None:
        """Drop every cached bitmap."""
        count = len(self._entries)
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        self.logger.debug("Asset cache cleared", dropped=count)

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
