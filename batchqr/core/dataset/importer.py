"""
Spreadsheet Importer
====================

Parse uploaded spreadsheets into Dataset snapshots. The first sheet's first row
holds the headers; every following non-empty row is a data row. Trailing empty
cells are trimmed, so rows may be shorter than the header sequence.
"""

from typing import Any, Iterable, List, Optional, Sequence
from datetime import date, datetime
from pathlib import Path
from zipfile import BadZipFile
import asyncio
import csv
import io

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import DatasetParseError, UnsupportedFileTypeError
from batchqr.models.schemas import CellValue, Dataset

logger = get_logger(__name__)

EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
CSV_EXTENSIONS = {".csv"}


def _is_empty(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str) and not v.strip():
        return True
    return False


def _cell(value: Any) -> CellValue:
    if value is None or isinstance(value, (str, bool, int, float, datetime, date)):
        return value
    return str(value)


def _trim_row(row: Sequence[Any]) -> List[CellValue]:
    cells = [_cell(value) for value in row]
    while cells and _is_empty(cells[-1]):
        cells.pop()
    return cells


def _header_name(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class SpreadsheetImporter:
    """Parse xlsx and csv files into datasets."""

    def __init__(self, allowed_extensions: Optional[Iterable[str]] = None):
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="importer")  # structlog.BoundLoggerBase
        self.allowed_extensions = {
            ext.lower() for ext in (allowed_extensions or self.settings.allowed_dataset_extensions)
        }

    def parse(self, data: bytes, filename: str) -> Dataset:
        """
        Parse spreadsheet bytes.

        Args:
            data: Raw file contents
            filename: Original file name; its extension selects the reader

        Returns:
            Dataset with headers and non-empty rows

        Raises:
            UnsupportedFileTypeError: If the extension is not an accepted spreadsheet type
            DatasetParseError: If the file cannot be read
        """
        extension = Path(filename).suffix.lower()
        if extension not in self.allowed_extensions:
            raise UnsupportedFileTypeError(
                f"Unsupported file type '{extension or filename}'. "
                f"Upload one of: {', '.join(sorted(self.allowed_extensions))}"
            )

        if extension in EXCEL_EXTENSIONS:
            table = self._read_workbook(data)
        elif extension in CSV_EXTENSIONS:
            table = self._read_csv(data)
        else:
            raise UnsupportedFileTypeError(f"No reader for '{extension}'")

        dataset = self._to_dataset(table, filename)
        self.logger.info(
            "Dataset imported",
            filename=filename,
            columns=len(dataset.headers),
            rows=dataset.total_rows,
        )
        return dataset

    async def parse_async(self, data: bytes, filename: str) -> Dataset:
        """Parse in a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.parse, data, filename)

    def parse_file(self, path: Path) -> Dataset:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DatasetParseError(f"Cannot read {path}: {e}") from e
        return self.parse(data, path.name)

    def _read_workbook(self, data: bytes) -> List[List[CellValue]]:
        try:
            workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
            self.logger.error("Workbook parsing failed", error=str(e))
            raise DatasetParseError(f"Failed to parse workbook: {e}") from e

        try:
            if not workbook.worksheets:
                raise DatasetParseError("Workbook has no sheets")
            sheet = workbook.worksheets[0]
            return [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    def _read_csv(self, data: bytes) -> List[List[CellValue]]:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DatasetParseError(f"CSV file is not UTF-8 encoded: {e}") from e

        try:
            reader = csv.reader(io.StringIO(text, newline=""))
            return [[cell if cell != "" else None for cell in row] for row in reader]
        except csv.Error as e:
            self.logger.error("CSV parsing failed", error=str(e))
            raise DatasetParseError(f"Failed to parse CSV: {e}") from e

    def _to_dataset(self, table: List[List[CellValue]], filename: str) -> Dataset:
        rows = [_trim_row(row) for row in table]
        rows = [row for row in rows if row]
        if not rows:
            return Dataset(headers=(), rows=(), source_name=filename)

        headers = tuple(_header_name(value) for value in rows[0])
        body = tuple(tuple(row) for row in rows[1:])
        return Dataset(headers=headers, rows=body, source_name=filename)


def load_dataset(path: Path) -> Dataset:
    """Import a spreadsheet file from disk."""
    return SpreadsheetImporter().parse_file(path)
