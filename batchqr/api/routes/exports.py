"""
Export Routes
=============

FastAPI routes for batch export jobs: submission, status, SSE progress,
archive download and cancellation.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import StreamingResponse

from batchqr.api.dependencies import SessionDep, TaskManagerDep
from batchqr.api.sse import progress_event_stream
from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.models.schemas import ExportJobResponse, ExportRequest, ExportStatus

logger = get_logger(__name__)

router = APIRouter(tags=["Export"], responses={404: {"description": "Not found"}})


@router.post("/sessions/{session_id}/exports", response_model=ExportJobResponse, status_code=202)
async def start_export(
    session: SessionDep, task_manager: TaskManagerDep, request: Optional[ExportRequest] = None
) -> ExportJobResponse:
    """
    Start exporting every dataset row of the session.

    Only one export may run per session; a second request while one is
    running is rejected with 409.
    """
    request = request or ExportRequest()
    settings = get_settings()
    if request.options.scale > settings.max_render_scale:
        raise HTTPException(
            status_code=422, detail=f"Scale must not exceed {settings.max_render_scale}"
        )

    job = task_manager.submit_export(session, request.filename_column, request.options)
    return job.to_response()


@router.get("/exports/{job_id}", response_model=ExportJobResponse)
async def get_export_status(job_id: str, task_manager: TaskManagerDep) -> ExportJobResponse:
    return task_manager.get_job(job_id).to_response()


@router.get("/exports/{job_id}/events")
async def stream_export_events(job_id: str, task_manager: TaskManagerDep) -> StreamingResponse:
    """Stream progress as Server-Sent Events until the job finishes."""
    task_manager.get_job(job_id)

    return StreamingResponse(
        progress_event_stream(task_manager.subscribe(job_id)),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get(
    "/exports/{job_id}/archive",
    response_class=Response,
    responses={200: {"content": {"application/zip": {}}, "description": "ZIP archive"}},
)
async def download_archive(job_id: str, task_manager: TaskManagerDep) -> Response:
    job = task_manager.get_job(job_id)
    if job.status != ExportStatus.COMPLETED or job.result is None:
        raise HTTPException(
            status_code=409, detail=f"Export {job_id} is {job.status.value}, no archive available"
        )

    return Response(
        content=job.result.archive_data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{job.result.archive_name}"'},
    )


@router.delete("/exports/{job_id}", response_model=ExportJobResponse)
async def cancel_export(job_id: str, task_manager: TaskManagerDep) -> ExportJobResponse:
    """Request cancellation; the job stops before rendering its next row."""
    return task_manager.cancel_job(job_id).to_response()
