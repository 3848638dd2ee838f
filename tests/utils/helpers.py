"""
Test Helpers
============

Helper functions for building spreadsheets, decoding outputs and waiting on
background work.
"""

import asyncio
import csv
import io
import time
import zipfile
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from PIL import Image, ImageChops


async def wait_for_condition(
    condition: Callable[[], bool],
    timeout: float = 10.0,
    interval: float = 0.05,
    error_message: str = "Condition not met within timeout",
) -> None:
    """Wait for a condition to become true."""
    start_time = time.time()

    while time.time() - start_time < timeout:
        if condition():
            return
        await asyncio.sleep(interval)

    raise TimeoutError(error_message)


def poll_until(
    fetch: Callable[[], Any],
    predicate: Callable[[Any], bool],
    timeout: float = 10.0,
    interval: float = 0.05,
) -> Any:
    """Call fetch until predicate(result) holds; returns the last result."""
    start_time = time.time()
    result = fetch()
    while not predicate(result):
        if time.time() - start_time > timeout:
            raise TimeoutError(f"Condition not met within {timeout}s: {result!r}")
        time.sleep(interval)
        result = fetch()
    return result


def make_xlsx_bytes(rows: Sequence[Sequence[Any]], sheet_title: str = "Sheet1") -> bytes:
    """Build an xlsx workbook whose first sheet holds rows."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def make_csv_bytes(rows: Sequence[Sequence[Any]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue().encode("utf-8")


def make_png_bytes(size: Tuple[int, int], color: Tuple[int, int, int, int]) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def decode_png(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as image:
        return image.convert("RGBA")


def read_zip(data: bytes) -> Dict[str, bytes]:
    """Archive entries by name, in archive order."""
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def ink_bbox(
    image: Image.Image,
    region: Optional[Tuple[int, int, int, int]] = None,
    background: Tuple[int, int, int] = (255, 255, 255),
) -> Optional[Tuple[int, int, int, int]]:
    """Bounding box of pixels that differ from the background, in image coordinates."""
    crop = image.convert("RGB")
    offset = (0, 0)
    if region is not None:
        crop = crop.crop(region)
        offset = (region[0], region[1])

    bbox = ImageChops.difference(crop, Image.new("RGB", crop.size, background)).getbbox()
    if bbox is None:
        return None
    return (bbox[0] + offset[0], bbox[1] + offset[1], bbox[2] + offset[0], bbox[3] + offset[1])


def element_payload(kind: str, **fields: Any) -> Dict[str, Any]:
    """Camel-case element mapping as the editor sends it."""
    payload: Dict[str, Any] = {"type": kind}
    payload.update(fields)
    return payload


def sample_rows() -> List[List[str]]:
    return [["name", "code"], ["Alice", "A1"], ["Bob", "B2"]]
