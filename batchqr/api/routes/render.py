"""
Render Routes
=============

FastAPI route rendering one data row of a session as a PNG preview.
"""

from fastapi import APIRouter, HTTPException, Query, Response

from batchqr.api.dependencies import SessionDep
from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.models.schemas import RenderOptions

logger = get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["Rendering"])


@router.get(
    "/{session_id}/preview",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}, "description": "Rendered row"}},
)
async def preview_row(
    session: SessionDep,
    row: int = Query(0, ge=0, description="Zero-based data row"),
    scale: int = Query(1, ge=1, description="Output pixel ratio"),
) -> Response:
    """
    Render one row of the session's current state.

    Without a dataset, bound elements show their static content. A row index
    past the end of the dataset renders bound elements as empty.
    """
    settings = get_settings()
    if scale > settings.max_render_scale:
        raise HTTPException(
            status_code=422, detail=f"Scale must not exceed {settings.max_render_scale}"
        )

    result = await session.render_preview(row, RenderOptions(scale=scale))

    logger.debug(
        "Preview rendered",
        session_id=session.session_id,
        row=row,
        file_size=result.file_size,
        cache=session.asset_cache.stats(),
    )
    return Response(
        content=result.png_data,
        media_type="image/png",
        headers={"X-Row-Index": str(row), "Cache-Control": "no-store"},
    )
