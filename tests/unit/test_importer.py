"""
Unit Tests for the Spreadsheet Importer
=======================================
"""

from datetime import datetime

import pytest

from batchqr.core.dataset.importer import SpreadsheetImporter, load_dataset
from batchqr.core.errors import DatasetImportError, DatasetParseError, UnsupportedFileTypeError

from tests.utils import make_csv_bytes, make_xlsx_bytes


@pytest.fixture
def importer() -> SpreadsheetImporter:
    return SpreadsheetImporter()


class TestWorkbookImport:
    def test_first_row_is_header(self, importer):
        data = make_xlsx_bytes([["name", "code"], ["Alice", "A1"], ["Bob", "B2"]])
        dataset = importer.parse(data, "people.xlsx")

        assert dataset.headers == ("name", "code")
        assert dataset.rows == (("Alice", "A1"), ("Bob", "B2"))
        assert dataset.total_rows == 2
        assert dataset.source_name == "people.xlsx"

    def test_empty_rows_are_dropped(self, importer):
        data = make_xlsx_bytes([["name"], ["Alice"], [None], ["Bob"]])
        dataset = importer.parse(data, "people.xlsx")
        assert dataset.rows == (("Alice",), ("Bob",))

    def test_trailing_empty_cells_are_trimmed(self, importer):
        data = make_xlsx_bytes([["name", "code", "note"], ["Alice", None, None]])
        dataset = importer.parse(data, "people.xlsx")
        assert dataset.rows == (("Alice",),)

    def test_cell_types_are_preserved(self, importer):
        stamp = datetime(2024, 1, 2, 3, 4, 5)
        data = make_xlsx_bytes([["qty", "price", "ok", "when"], [3, 2.5, True, stamp]])
        dataset = importer.parse(data, "items.xlsx")
        assert dataset.rows[0] == (3, 2.5, True, stamp)

    def test_only_first_sheet_is_read(self, importer):
        from openpyxl import Workbook
        import io

        workbook = Workbook()
        workbook.active.append(["first"])
        workbook.active.append(["one"])
        second = workbook.create_sheet("Other")
        second.append(["second"])
        buffer = io.BytesIO()
        workbook.save(buffer)

        dataset = importer.parse(buffer.getvalue(), "book.xlsx")
        assert dataset.headers == ("first",)

    def test_numeric_headers_become_strings(self, importer):
        data = make_xlsx_bytes([[2024, "name"], [1, "Alice"]])
        dataset = importer.parse(data, "years.xlsx")
        assert dataset.headers == ("2024", "name")

    def test_empty_workbook(self, importer):
        dataset = importer.parse(make_xlsx_bytes([]), "empty.xlsx")
        assert dataset.headers == ()
        assert dataset.total_rows == 0

    def test_corrupt_workbook_raises(self, importer):
        with pytest.raises(DatasetParseError):
            importer.parse(b"not a zip file", "broken.xlsx")


class TestCSVImport:
    def test_csv_rows(self, importer):
        data = make_csv_bytes([["name", "code"], ["Alice", "A1"], ["Bob", ""]])
        dataset = importer.parse(data, "people.csv")

        assert dataset.headers == ("name", "code")
        assert dataset.rows == (("Alice", "A1"), ("Bob",))

    def test_csv_with_byte_order_mark(self, importer):
        data = "\ufeffname,code\nAlice,A1\n".encode("utf-8")
        dataset = importer.parse(data, "people.CSV")
        assert dataset.headers == ("name", "code")

    def test_csv_cells_stay_strings(self, importer):
        dataset = importer.parse(make_csv_bytes([["qty"], ["007"]]), "qty.csv")
        assert dataset.rows == (("007",),)

    def test_non_utf8_csv_raises(self, importer):
        with pytest.raises(DatasetParseError):
            importer.parse("name\nJos\xe9\n".encode("latin-1"), "people.csv")


class TestFileTypes:
    @pytest.mark.parametrize("filename", ["people.txt", "people.xls", "people"])
    def test_unsupported_extension_raises(self, importer, filename):
        with pytest.raises(UnsupportedFileTypeError):
            importer.parse(b"data", filename)

    def test_unsupported_type_is_an_import_error(self, importer):
        with pytest.raises(DatasetImportError):
            importer.parse(b"data", "people.pdf")

    @pytest.mark.asyncio
    async def test_parse_async(self, importer):
        dataset = await importer.parse_async(make_csv_bytes([["a"], ["1"]]), "a.csv")
        assert dataset.rows == (("1",),)

    def test_load_dataset_from_path(self, tmp_path):
        path = tmp_path / "people.xlsx"
        path.write_bytes(make_xlsx_bytes([["name"], ["Alice"]]))
        assert load_dataset(path).rows == (("Alice",),)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DatasetParseError):
            load_dataset(tmp_path / "missing.csv")
