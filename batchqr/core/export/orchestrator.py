"""
Batch Orchestrator
==================

Renders every dataset row in sequence, names each PNG, packs them into one
ZIP archive and reports integer progress. An export either completes with the
whole archive or fails without one.
"""

from typing import Any, Awaitable, Callable, Optional, Union
import inspect
import time

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import (
    EmptyTemplateError,
    ExportCancelledError,
    ExportError,
)
from batchqr.core.export.archive import ArchiveWriter
from batchqr.core.rendering.content import display_string
from batchqr.core.rendering.renderer import LayeredRenderer
from batchqr.models.schemas import (
    CanvasSize,
    Dataset,
    ExportResult,
    QRConfig,
    RenderOptions,
    Template,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[int], Union[None, Awaitable[None]]]


class CancellationToken:
    """Cooperative cancellation flag checked between rows."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def entry_name(dataset: Dataset, row_index: int, filename_column: Optional[str]) -> str:
    """
    Archive entry name (without extension) for one row.

    The display string of filename_column is used when that column exists and
    the cell is non-empty; otherwise the name is qrcode_{row_index + 1}.
    """
    if filename_column:
        column = dataset.column_index(filename_column)
        if column is not None:
            value = display_string(dataset.cell(row_index, column))
            if value:
                return value
    return f"qrcode_{row_index + 1}"


def percent(done: int, total: int) -> int:
    """Integer percentage, rounding halves up."""
    return (200 * done + total) // (2 * total)


class BatchExporter:
    """Export every dataset row through a renderer into a ZIP archive."""

    def __init__(self, renderer: LayeredRenderer):
        self.settings = get_settings()
        self.renderer = renderer
        self.logger: Any = logger.bind(component="exporter")  # structlog.BoundLoggerBase

    async def export_all(
        self,
        template: Template,
        canvas: CanvasSize,
        dataset: Dataset,
        qr_config: QRConfig,
        filename_column: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        options: Optional[RenderOptions] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ExportResult:
        """
        Render all rows and pack them into one archive.

        Args:
            template: Ordered elements to render
            canvas: Output size
            dataset: Rows to export, one image each
            qr_config: Shared QR parameters
            filename_column: Column whose value names each file
            progress: Called with percent(i + 1, n) after each row, and
                with 0 when the export fails or is cancelled
            options: Render options (scale)
            cancellation: Token checked before each row

        Returns:
            ExportResult with archive bytes and entry names

        Raises:
            EmptyTemplateError: If the template has no elements
            ExportCancelledError: If cancellation was requested
            ExportError: If any row fails; the cause is chained
        """
        if template.is_empty:
            raise EmptyTemplateError()

        start_time = time.time()
        total = dataset.total_rows
        writer = ArchiveWriter()
        self.logger.info(
            "Starting batch export",
            rows=total,
            elements=len(template.elements),
            filename_column=filename_column,
        )

        for row_index in range(total):
            if cancellation is not None and cancellation.cancelled:
                self.logger.info("Batch export cancelled", rows_completed=row_index)
                await self._report(progress, 0)
                raise ExportCancelledError(rows_completed=row_index)

            try:
                result = await self.renderer.render_png(
                    template, canvas, dataset, row_index, qr_config, options
                )
            except Exception as e:
                self.logger.error(
                    "Batch export failed", row_index=row_index, error=str(e), error_type=type(e).__name__
                )
                await self._report(progress, 0)
                raise ExportError(f"Export failed at row {row_index + 1}: {e}", row_index=row_index) from e

            writer.add(f"{entry_name(dataset, row_index, filename_column)}.png", result.png_data)
            await self._report(progress, percent(row_index + 1, total))

        archive_data = writer.finalize()
        processing_time = time.time() - start_time

        self.logger.info(
            "Batch export completed",
            rows=total,
            entries=len(writer),
            archive_size=len(archive_data),
            processing_time=processing_time,
            cache=self.renderer.asset_cache.stats(),
        )

        return ExportResult(
            archive_name=self.settings.archive_name,
            archive_data=archive_data,
            entries=writer.names,
            total_rows=total,
            file_size=len(archive_data),
            processing_time=processing_time,
        )

    async def _report(self, progress: Optional[ProgressCallback], value: int) -> None:
        if progress is None:
            return
        outcome = progress(value)
        if inspect.isawaitable(outcome):
            await outcome
