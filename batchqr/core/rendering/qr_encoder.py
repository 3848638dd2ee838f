"""
QR Encoder
==========

Encode a payload into a square, two-color QR bitmap using the qrcode library.
"""

from typing import Any
import asyncio

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image, ImageColor

from batchqr.config.logging import get_logger
from batchqr.core.errors import QREncodeError
from batchqr.models.schemas import QRConfig

logger = get_logger(__name__)

ERROR_CORRECTION = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


class QREncoder:
    """Encode payloads into RGBA bitmaps of a requested pixel width."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="qr_encoder")  # structlog.BoundLoggerBase

    def encode(self, payload: str, qr_config: QRConfig, width: int) -> Image.Image:
        """
        Encode payload as a QR symbol.

        The module matrix, quiet zone included, is painted with the configured
        colors and scaled with nearest-neighbour sampling to width x width pixels.
        Widths smaller than the matrix fall back to four pixels per module.

        Args:
            payload: Text to encode
            qr_config: Error correction, margin, version and colors
            width: Requested bitmap width in pixels

        Returns:
            Square RGBA bitmap

        Raises:
            QREncodeError: If the payload does not fit (fixed version or version 40)
        """
        qr = qrcode.QRCode(
            version=qr_config.version,
            error_correction=ERROR_CORRECTION[qr_config.error_correction_level.value],
            box_size=1,
            border=qr_config.margin,
        )
        qr.add_data(payload)

        try:
            qr.make(fit=qr_config.version is None)
        except DataOverflowError as e:
            self.logger.error(
                "QR payload does not fit",
                payload_length=len(payload),
                version=qr_config.version,
                error_correction=qr_config.error_correction_level.value,
            )
            raise QREncodeError(
                f"Payload of {len(payload)} characters does not fit QR version "
                f"{qr_config.version or 'auto'} at level {qr_config.error_correction_level.value}"
            ) from e
        except ValueError as e:
            raise QREncodeError(f"QR encoding failed: {e}") from e

        matrix = qr.get_matrix()
        size = len(matrix)
        dark = ImageColor.getcolor(qr_config.dark_color, "RGBA")
        light = ImageColor.getcolor(qr_config.light_color, "RGBA")

        bitmap = Image.new("RGBA", (size, size), light)
        pixels = bitmap.load()
        for y, row in enumerate(matrix):
            for x, is_dark in enumerate(row):
                if is_dark:
                    pixels[x, y] = dark

        target = width if width >= size else size * 4
        return bitmap.resize((target, target), Image.Resampling.NEAREST)

    async def encode_async(self, payload: str, qr_config: QRConfig, width: int) -> Image.Image:
        """Encode in a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.encode, payload, qr_config, width)
