"""
Editing Session
===============

An editing session owns the mutable state of one editor: the current template,
canvas size, QR configuration and dataset, plus the asset cache that lives as
long as the session does. Core components only ever receive immutable
snapshots of this state.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import MissingDatasetError, SessionNotFoundError
from batchqr.core.export.orchestrator import BatchExporter, CancellationToken, ProgressCallback
from batchqr.core.rendering.asset_cache import AssetCache
from batchqr.core.rendering.renderer import LayeredRenderer
from batchqr.core.template import operations
from batchqr.models.schemas import (
    CanvasSize,
    Dataset,
    DatasetSummary,
    Element,
    ElementKind,
    ExportResult,
    PNGResult,
    QRConfig,
    RenderOptions,
    SessionResponse,
    Template,
    TemplateDocument,
    utcnow,
)

logger = get_logger(__name__)


def default_canvas() -> CanvasSize:
    settings = get_settings()
    return CanvasSize(width=settings.default_canvas_width, height=settings.default_canvas_height)


def default_qr_config() -> QRConfig:
    settings = get_settings()
    return QRConfig(
        error_correction_level=settings.default_qr_error_correction,
        margin=settings.default_qr_margin,
        dark_color=settings.default_qr_dark_color,
        light_color=settings.default_qr_light_color,
    )


class EditingSession:
    """Mutable editor state and its session-scoped asset cache."""

    def __init__(
        self,
        document: Optional[TemplateDocument] = None,
        session_id: Optional[str] = None,
        renderer: Optional[LayeredRenderer] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.created_at: datetime = utcnow()
        self.logger: Any = logger.bind(component="session", session_id=self.session_id)  # structlog.BoundLoggerBase

        self.template = Template()
        self.canvas = default_canvas()
        self.qr_config = default_qr_config()
        self.dataset: Optional[Dataset] = None

        self.asset_cache = renderer.asset_cache if renderer else AssetCache()
        self.renderer = renderer or LayeredRenderer(asset_cache=self.asset_cache)
        self.exporter = BatchExporter(self.renderer)

        if document is not None:
            self.load_document(document)

    # Template state
    def load_document(self, document: TemplateDocument) -> None:
        """Replace template, canvas and QR configuration; the asset cache starts over."""
        self.template = document.to_template()
        self.canvas = document.canvas
        self.qr_config = document.qr_config
        self.asset_cache.clear()
        self.logger.info("Template loaded", elements=len(self.template.elements))

    def to_document(self, title: Optional[str] = None) -> TemplateDocument:
        return TemplateDocument(
            title=title,
            canvas=self.canvas,
            elements=list(self.template.elements),
            qr_config=self.qr_config,
        )

    def set_canvas(self, canvas: CanvasSize) -> None:
        self.canvas = canvas

    def set_qr_config(self, qr_config: QRConfig) -> None:
        self.qr_config = qr_config

    def set_dataset(self, dataset: Dataset) -> None:
        self.dataset = dataset
        self.logger.info(
            "Dataset attached",
            source=dataset.source_name,
            columns=len(dataset.headers),
            rows=dataset.total_rows,
        )

    # Element operations
    def add_element(self, kind: ElementKind, element_id: Optional[str] = None) -> Element:
        self.template = operations.add_element(self.template, kind, element_id)
        return self.template.elements[-1]

    def update_element(self, element_id: str, **changes: Any) -> Element:
        self.template = operations.update_element(self.template, element_id, **changes)
        return operations.get_element(self.template, element_id)

    def delete_element(self, element_id: str) -> None:
        self.template = operations.delete_element(self.template, element_id)

    def move_element(self, element_id: str, index: int) -> List[Element]:
        self.template = operations.move_element(self.template, element_id, index)
        return list(self.template.elements)

    # Rendering
    async def render_preview(
        self, row_index: int = 0, options: Optional[RenderOptions] = None
    ) -> PNGResult:
        """Render one row of the current state (or static content without a dataset)."""
        return await self.renderer.render_png(
            self.template, self.canvas, self.dataset, row_index, self.qr_config, options
        )

    async def export_all(
        self,
        filename_column: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        options: Optional[RenderOptions] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> ExportResult:
        """
        Export every dataset row using the state captured at call time.

        Raises:
            MissingDatasetError: If no dataset has been imported
            EmptyTemplateError, ExportError, ExportCancelledError: From the exporter
        """
        if self.dataset is None:
            raise MissingDatasetError()

        return await self.exporter.export_all(
            self.template,
            self.canvas,
            self.dataset,
            self.qr_config,
            filename_column=filename_column,
            progress=progress,
            options=options,
            cancellation=cancellation,
        )

    def snapshot(self) -> SessionResponse:
        dataset = None
        if self.dataset is not None:
            dataset = DatasetSummary(
                source_name=self.dataset.source_name,
                headers=list(self.dataset.headers),
                total_rows=self.dataset.total_rows,
            )

        return SessionResponse(
            session_id=self.session_id,
            canvas=self.canvas,
            qr_config=self.qr_config,
            elements=list(self.template.elements),
            dataset=dataset,
            cached_assets=len(self.asset_cache),
            created_at=self.created_at,
        )

    async def close(self) -> None:
        self.asset_cache.clear()
        await self.renderer.close()
        self.logger.info("Session closed")


class SessionStore:
    """In-memory registry of open editing sessions."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="session_store")  # structlog.BoundLoggerBase
        self._sessions: Dict[str, EditingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, document: Optional[TemplateDocument] = None) -> EditingSession:
        session = EditingSession(document=document)
        self._sessions[session.session_id] = session
        self.logger.info("Session created", session_id=session.session_id)
        return session

    def get(self, session_id: str) -> EditingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        await session.close()

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
