"""
Layered Renderer
================

Pillow-based compositing of a template against one data row.

Elements are painted in template order onto an opaque white RGBA surface, so
later elements cover earlier ones wherever they overlap. QR bitmaps and decoded
images come from the session asset cache.
"""

from typing import Any, Dict, Optional, Tuple
import asyncio
import io
import re

from PIL import Image, ImageColor, ImageDraw, ImageFont

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import ImageDecodeError
from batchqr.core.rendering.asset_cache import AssetCache, ImageAssetKey, QRAssetKey
from batchqr.core.rendering.content import resolve
from batchqr.core.rendering.image_loader import ImageLoader
from batchqr.core.rendering.qr_encoder import QREncoder
from batchqr.models.schemas import (
    CanvasSize,
    Dataset,
    Element,
    ElementKind,
    PNGResult,
    QRConfig,
    RenderOptions,
    Template,
    TextAlign,
)

logger = get_logger(__name__)

BACKGROUND = (255, 255, 255, 255)
LINE_BREAKS = re.compile(r"[\r\n\t\f\v]")

Font = Any  # ImageFont.FreeTypeFont or ImageFont.ImageFont


class LayeredRenderer:
    """Compose template elements onto a raster surface."""

    def __init__(
        self,
        asset_cache: Optional[AssetCache] = None,
        qr_encoder: Optional[QREncoder] = None,
        image_loader: Optional[ImageLoader] = None,
    ):
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="renderer")  # structlog.BoundLoggerBase
        self.asset_cache = asset_cache if asset_cache is not None else AssetCache()
        self.qr_encoder = qr_encoder or QREncoder()
        self.image_loader = image_loader or ImageLoader()
        self._fonts: Dict[Tuple[int, bool], Tuple[Font, bool]] = {}

    async def close(self) -> None:
        await self.image_loader.close()

    async def render(
        self,
        template: Template,
        canvas: CanvasSize,
        dataset: Optional[Dataset],
        row_index: int,
        qr_config: QRConfig,
        options: Optional[RenderOptions] = None,
    ) -> Image.Image:
        """
        Render one data row.

        Args:
            template: Ordered elements; index order is paint order
            canvas: Output size
            dataset: Imported dataset, if any
            row_index: Zero-based data row
            qr_config: Shared QR parameters
            options: Render options (scale)

        Returns:
            RGBA image of canvas size times scale on an opaque white background

        Raises:
            QREncodeError: If a qrcode element's content cannot be encoded
        """
        scale = options.scale if options else 1
        surface = Image.new("RGBA", (canvas.width * scale, canvas.height * scale), BACKGROUND)

        for element in template.elements:
            if element.kind == ElementKind.TEXT:
                self._paint_text(surface, element, resolve(element, dataset, row_index), scale)
            elif element.kind == ElementKind.QRCODE:
                content = resolve(element, dataset, row_index)
                if content:
                    await self._paint_qrcode(surface, element, content, qr_config, scale)
            elif element.kind == ElementKind.IMAGE:
                if element.image_url:
                    await self._paint_image(surface, element, scale)

        return surface

    async def render_png(
        self,
        template: Template,
        canvas: CanvasSize,
        dataset: Optional[Dataset],
        row_index: int,
        qr_config: QRConfig,
        options: Optional[RenderOptions] = None,
    ) -> PNGResult:
        """Render one data row and encode it as PNG."""
        options = options or RenderOptions()
        image = await self.render(template, canvas, dataset, row_index, qr_config, options)
        png_data = await asyncio.to_thread(encode_png, image, options.optimize_png)

        return PNGResult(
            png_data=png_data,
            width=image.width,
            height=image.height,
            file_size=len(png_data),
            row_index=row_index,
        )

    def _paint_text(self, surface: Image.Image, element: Element, text: str, scale: int) -> None:
        if not text:
            return

        # Single line only; control whitespace renders as spaces.
        text = LINE_BREAKS.sub(" ", text)
        font, needs_stroke = self._get_font(element.font_size * scale, element.is_bold)
        inset = self.settings.text_inset * scale
        x, y = element.x * scale, element.y * scale
        width, height = element.width * scale, element.height * scale
        middle = y + height / 2

        if element.text_align == TextAlign.CENTER:
            position, anchor = (x + width / 2, middle), "mm"
        elif element.text_align == TextAlign.RIGHT:
            position, anchor = (x + width - inset, middle), "rm"
        else:
            position, anchor = (x + inset, middle), "lm"

        stroke_width = scale if needs_stroke else 0
        left, top, right, bottom = ImageDraw.Draw(surface).textbbox(
            position, text, font=font, anchor=anchor, stroke_width=stroke_width
        )
        # The layer covers only the glyphs; text may overflow its box but not the surface.
        left, top = max(0, int(left)), max(0, int(top))
        right, bottom = min(surface.width, int(right) + 1), min(surface.height, int(bottom) + 1)
        if right <= left or bottom <= top:
            return

        layer = Image.new("RGBA", (right - left, bottom - top), (0, 0, 0, 0))
        color = ImageColor.getcolor(element.font_color, "RGBA")
        ImageDraw.Draw(layer).text(
            (position[0] - left, position[1] - top),
            text,
            font=font,
            fill=color,
            anchor=anchor,
            stroke_width=stroke_width,
            stroke_fill=color,
        )
        surface.alpha_composite(layer, dest=(left, top))

    async def _paint_qrcode(
        self, surface: Image.Image, element: Element, content: str, qr_config: QRConfig, scale: int
    ) -> None:
        if element.width == 0 or element.height == 0:
            return

        key = QRAssetKey.for_element(content, element, qr_config)
        bitmap = await self.asset_cache.get_or_generate(
            key, lambda: self.qr_encoder.encode_async(content, qr_config, element.width)
        )

        # QR bitmaps are square; a non-square box stretches them.
        box = (element.width * scale, element.height * scale)
        stretched = bitmap.resize(box, Image.Resampling.NEAREST)
        surface.alpha_composite(stretched, dest=(element.x * scale, element.y * scale))

    async def _paint_image(self, surface: Image.Image, element: Element, scale: int) -> None:
        if element.width == 0 or element.height == 0:
            return

        try:
            bitmap = await self.asset_cache.get_or_generate(
                ImageAssetKey.for_source(element.image_url),
                lambda: self.image_loader.decode(element.image_url),
            )
        except ImageDecodeError as e:
            self.logger.warning(
                "Image element skipped", element_id=element.id, name=element.name, error=str(e)
            )
            return

        box_width, box_height = element.width * scale, element.height * scale
        ratio = min(box_width / bitmap.width, box_height / bitmap.height)
        size = (
            min(box_width, max(1, round(bitmap.width * ratio))),
            min(box_height, max(1, round(bitmap.height * ratio))),
        )
        fitted = bitmap.resize(size, Image.Resampling.LANCZOS)

        dest = (
            element.x * scale + (box_width - size[0]) // 2,
            element.y * scale + (box_height - size[1]) // 2,
        )
        surface.alpha_composite(fitted, dest=dest)

    def _get_font(self, size: int, bold: bool) -> Tuple[Font, bool]:
        """Return (font, needs_stroke) for a pixel size and weight."""
        cache_key = (size, bold)
        if cache_key not in self._fonts:
            self._fonts[cache_key] = self._load_font(size, bold)
        return self._fonts[cache_key]

    def _load_font(self, size: int, bold: bool) -> Tuple[Font, bool]:
        if bold and self.settings.bold_font_path:
            try:
                return ImageFont.truetype(str(self.settings.bold_font_path), size), False
            except OSError as e:
                self.logger.warning(
                    "Bold font unavailable", path=str(self.settings.bold_font_path), error=str(e)
                )

        if self.settings.font_path:
            try:
                return ImageFont.truetype(str(self.settings.font_path), size), bold
            except OSError as e:
                self.logger.warning(
                    "Font unavailable, using default", path=str(self.settings.font_path), error=str(e)
                )

        return ImageFont.load_default(size=size), bold


def encode_png(image: Image.Image, optimize: bool = False) -> bytes:
    """Encode a rendered surface as PNG bytes."""
    output = io.BytesIO()
    image.save(output, format="PNG", optimize=optimize)
    return output.getvalue()
