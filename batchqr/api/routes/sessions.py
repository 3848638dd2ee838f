"""
Session Routes
==============

FastAPI routes for editing sessions: lifecycle, dataset upload, canvas and QR
configuration, template replacement and element operations.
"""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, File, HTTPException, Query, Response, UploadFile

from batchqr.api.dependencies import SessionDep, SessionStoreDep, TaskManagerDep
from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.dataset.importer import SpreadsheetImporter
from batchqr.core.template.parser import dump_template
from batchqr.models.schemas import (
    AddElementRequest,
    CanvasSize,
    DatasetSummary,
    Element,
    ElementUpdateRequest,
    MoveElementRequest,
    QRConfig,
    SessionCreateRequest,
    SessionResponse,
    TemplateDocument,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
    responses={404: {"description": "Not found"}},
)


def _check_canvas(canvas: CanvasSize) -> None:
    limit = get_settings().max_canvas_size
    if canvas.width > limit or canvas.height > limit:
        raise HTTPException(
            status_code=422, detail=f"Canvas {canvas.width}x{canvas.height} exceeds {limit}px"
        )


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    store: SessionStoreDep, request: Optional[SessionCreateRequest] = None
) -> SessionResponse:
    """Open an editing session, optionally seeded with a template document."""
    document = request.document if request else None
    if document is not None:
        _check_canvas(document.canvas)
    session = store.create(document)
    return session.snapshot()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_state(session: SessionDep) -> SessionResponse:
    return session.snapshot()


@router.delete("/{session_id}")
async def close_session(
    session_id: str, store: SessionStoreDep, task_manager: TaskManagerDep
) -> Dict[str, Any]:
    """Close a session; cancels its export and drops its archives and asset cache."""
    store.get(session_id)
    task_manager.discard_session(session_id)
    await store.close(session_id)
    return {"success": True, "message": "Session closed"}


@router.post("/{session_id}/dataset", response_model=DatasetSummary)
async def upload_dataset(session: SessionDep, file: UploadFile = File(...)) -> DatasetSummary:
    """Import a spreadsheet; the first sheet's first row supplies the headers."""
    settings = get_settings()
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413, detail=f"Upload exceeds {settings.max_upload_bytes} bytes"
        )

    dataset = await SpreadsheetImporter().parse_async(data, file.filename or "")
    session.set_dataset(dataset)

    return DatasetSummary(
        source_name=dataset.source_name,
        headers=list(dataset.headers),
        total_rows=dataset.total_rows,
    )


@router.put("/{session_id}/canvas", response_model=SessionResponse)
async def set_canvas(session: SessionDep, canvas: CanvasSize) -> SessionResponse:
    _check_canvas(canvas)
    session.set_canvas(canvas)
    return session.snapshot()


@router.put("/{session_id}/qr-config", response_model=SessionResponse)
async def set_qr_config(session: SessionDep, qr_config: QRConfig) -> SessionResponse:
    session.set_qr_config(qr_config)
    return session.snapshot()


@router.put("/{session_id}/template", response_model=SessionResponse)
async def replace_template(session: SessionDep, document: TemplateDocument) -> SessionResponse:
    """Replace canvas, elements and QR configuration from a template document."""
    _check_canvas(document.canvas)
    try:
        session.load_document(document)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return session.snapshot()


@router.get("/{session_id}/template")
async def export_template(
    session: SessionDep,
    format: Literal["json", "yaml"] = Query("json"),
    title: Optional[str] = None,
) -> Response:
    """Serialize the session's template as a JSON or YAML document."""
    content = dump_template(session.to_document(title), format)
    media_type = "application/json" if format == "json" else "application/yaml"
    return Response(content=content, media_type=media_type)


@router.post("/{session_id}/elements", response_model=Element, status_code=201)
async def add_element(session: SessionDep, request: AddElementRequest) -> Element:
    """Append a default element of the requested kind on top of the stack."""
    try:
        return session.add_element(request.kind, request.id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.patch("/{session_id}/elements/{element_id}", response_model=Element)
async def update_element(
    session: SessionDep, element_id: str, request: ElementUpdateRequest
) -> Element:
    changes = request.model_dump(exclude_unset=True)
    try:
        return session.update_element(element_id, **changes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/{session_id}/elements/{element_id}")
async def delete_element(session: SessionDep, element_id: str) -> Dict[str, Any]:
    session.delete_element(element_id)
    return {"success": True, "element_id": element_id}


@router.post("/{session_id}/elements/{element_id}/move", response_model=List[Element])
async def move_element(
    session: SessionDep, element_id: str, request: MoveElementRequest
) -> List[Element]:
    """Move an element to a new paint position; returns the reordered element list."""
    return session.move_element(element_id, request.index)
