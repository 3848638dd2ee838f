"""
Unit Tests for the Batch Orchestrator
=====================================
"""

import io
import zipfile

import pytest

from batchqr.core.errors import EmptyTemplateError, ExportCancelledError, ExportError, QREncodeError
from batchqr.core.export.archive import ArchiveWriter
from batchqr.core.export.orchestrator import BatchExporter, CancellationToken, entry_name, percent
from batchqr.models.schemas import (
    Dataset,
    Element,
    ElementKind,
    QRConfig,
    RenderOptions,
    Template,
)

from tests.utils import assert_export_entries, decode_png, read_zip


@pytest.fixture
def exporter(renderer) -> BatchExporter:
    return BatchExporter(renderer)


class TestArchiveWriter:
    def test_entries_are_deflated(self):
        writer = ArchiveWriter()
        writer.add("a.png", b"x" * 1000)
        with zipfile.ZipFile(io.BytesIO(writer.finalize())) as archive:
            info = archive.getinfo("a.png")
        assert info.compress_type == zipfile.ZIP_DEFLATED

    def test_duplicate_names_keep_last_write(self):
        writer = ArchiveWriter()
        writer.add("same.png", b"first")
        writer.add("other.png", b"other")
        writer.add("same.png", b"second")

        assert len(writer) == 2
        assert read_zip(writer.finalize()) == {"same.png": b"second", "other.png": b"other"}


class TestEntryNames:
    def test_sequential_names_without_column(self, people_dataset):
        assert entry_name(people_dataset, 0, None) == "qrcode_1"
        assert entry_name(people_dataset, 1, None) == "qrcode_2"

    def test_column_value(self, people_dataset):
        assert entry_name(people_dataset, 1, "name") == "Bob"

    def test_unknown_column_falls_back(self, people_dataset):
        assert entry_name(people_dataset, 0, "email") == "qrcode_1"

    def test_empty_cell_falls_back(self):
        dataset = Dataset(headers=("name",), rows=(("Alice",), ()))
        assert entry_name(dataset, 1, "name") == "qrcode_2"

    def test_numeric_value_uses_display_string(self):
        dataset = Dataset(headers=("id",), rows=((1001.0,),))
        assert entry_name(dataset, 0, "id") == "1001"

    @pytest.mark.parametrize("done, total, expected", [(1, 2, 50), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100)])
    def test_percent_rounds_half_up(self, done, total, expected):
        assert percent(done, total) == expected


class TestExportAll:
    @pytest.mark.asyncio
    async def test_sequential_entry_names(self, exporter, canvas, qr_config, code_template, people_dataset):
        result = await exporter.export_all(code_template, canvas, people_dataset, qr_config)

        assert_export_entries(result, ["qrcode_1.png", "qrcode_2.png"])
        assert result.total_rows == 2
        assert result.archive_name == "qrcodes.zip"

    @pytest.mark.asyncio
    async def test_entries_encode_each_rows_content(
        self, exporter, renderer, canvas, qr_config, code_qr_element, people_dataset
    ):
        result = await exporter.export_all(
            Template(elements=(code_qr_element,)), canvas, people_dataset, qr_config
        )
        entries = read_zip(result.archive_data)

        for name, payload in (("qrcode_1.png", "A1"), ("qrcode_2.png", "B2")):
            static = code_qr_element.model_copy(update={"column": None, "content": payload})
            expected = await renderer.render_png(Template(elements=(static,)), canvas, None, 0, qr_config)
            assert entries[name] == expected.png_data

    @pytest.mark.asyncio
    async def test_filename_column(self, exporter, canvas, qr_config, code_template, people_dataset):
        result = await exporter.export_all(
            code_template, canvas, people_dataset, qr_config, filename_column="name"
        )
        assert_export_entries(result, ["Alice.png", "Bob.png"])

    @pytest.mark.asyncio
    async def test_duplicate_filenames_last_row_wins(self, exporter, canvas, qr_config, code_template):
        dataset = Dataset(headers=("name", "code"), rows=(("same", "A1"), ("same", "B2")))
        result = await exporter.export_all(code_template, canvas, dataset, qr_config, filename_column="name")

        assert result.entries == ["same.png"]
        assert result.total_rows == 2

    @pytest.mark.asyncio
    async def test_entry_count_matches_rows(self, exporter, canvas, qr_config, code_template):
        dataset = Dataset(headers=("code",), rows=tuple((f"C{i}",) for i in range(7)))
        result = await exporter.export_all(code_template, canvas, dataset, qr_config)
        assert len(result.entries) == 7

    @pytest.mark.asyncio
    async def test_scale_option(self, exporter, canvas, qr_config, code_template, people_dataset):
        result = await exporter.export_all(
            code_template, canvas, people_dataset, qr_config, options=RenderOptions(scale=2)
        )
        image = decode_png(read_zip(result.archive_data)["qrcode_1.png"])
        assert image.size == (800, 800)

    @pytest.mark.asyncio
    async def test_empty_template_fails_immediately(self, exporter, canvas, qr_config, people_dataset):
        reported = []
        with pytest.raises(EmptyTemplateError):
            await exporter.export_all(Template(), canvas, people_dataset, qr_config, progress=reported.append)
        assert reported == []

    @pytest.mark.asyncio
    async def test_progress_reports_each_row(self, exporter, canvas, qr_config, code_template):
        dataset = Dataset(headers=("code",), rows=(("a",), ("b",), ("c",)))
        reported = []
        await exporter.export_all(code_template, canvas, dataset, qr_config, progress=reported.append)
        assert reported == [33, 67, 100]

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, exporter, canvas, qr_config, code_template, people_dataset):
        reported = []

        async def on_progress(value):
            reported.append(value)

        await exporter.export_all(code_template, canvas, people_dataset, qr_config, progress=on_progress)
        assert reported == [50, 100]

    @pytest.mark.asyncio
    async def test_row_failure_aborts_export(self, exporter, canvas, code_template):
        dataset = Dataset(headers=("code",), rows=(("ok",), ("x" * 300,), ("never",)))
        config = QRConfig(version=1, error_correction_level="H")
        reported = []

        with pytest.raises(ExportError) as exc_info:
            await exporter.export_all(code_template, canvas, dataset, config, progress=reported.append)

        assert exc_info.value.row_index == 1
        assert isinstance(exc_info.value.__cause__, QREncodeError)
        assert reported == [33, 0]

    @pytest.mark.asyncio
    async def test_cancellation_between_rows(self, exporter, canvas, qr_config, code_template):
        dataset = Dataset(headers=("code",), rows=tuple((f"C{i}",) for i in range(4)))
        token = CancellationToken()
        reported = []

        def on_progress(value):
            reported.append(value)
            if value >= 50:
                token.cancel()

        with pytest.raises(ExportCancelledError) as exc_info:
            await exporter.export_all(
                code_template, canvas, dataset, qr_config, progress=on_progress, cancellation=token
            )

        assert exc_info.value.rows_completed == 2
        assert reported == [25, 50, 0]

    @pytest.mark.asyncio
    async def test_malformed_image_source_does_not_abort(
        self, exporter, canvas, qr_config, code_qr_element, people_dataset
    ):
        broken = Element(
            id="logo", kind=ElementKind.IMAGE, x=0, y=0, width=40, height=40,
            image_url="http://[::1/logo.png",
        )
        template = Template(elements=(code_qr_element, broken))

        result = await exporter.export_all(template, canvas, people_dataset, qr_config)
        assert_export_entries(result, ["qrcode_1.png", "qrcode_2.png"])

    @pytest.mark.asyncio
    async def test_empty_dataset_produces_empty_archive(self, exporter, canvas, qr_config, code_template):
        result = await exporter.export_all(code_template, canvas, Dataset(headers=("code",)), qr_config)
        assert result.entries == []
        assert read_zip(result.archive_data) == {}

    @pytest.mark.asyncio
    async def test_summary_excludes_archive_bytes(self, exporter, canvas, qr_config, code_template, people_dataset):
        result = await exporter.export_all(code_template, canvas, people_dataset, qr_config)
        summary = result.summary()
        assert summary.entries == result.entries
        assert "archive_data" not in result.model_dump()

    @pytest.mark.asyncio
    async def test_images_are_rendered_per_row(self, exporter, canvas, qr_config):
        text = Element(id="t", kind=ElementKind.TEXT, x=0, y=0, width=400, height=40, column="name")
        dataset = Dataset(headers=("name",), rows=(("Alice",), ("Bob",)))
        result = await exporter.export_all(Template(elements=(text,)), canvas, dataset, qr_config)

        entries = read_zip(result.archive_data)
        assert entries["qrcode_1.png"] != entries["qrcode_2.png"]
