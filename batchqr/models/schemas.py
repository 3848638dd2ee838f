"""
Pydantic Models and Schemas
===========================

Core data models for templates, datasets, QR configuration, API requests/responses
and internal results. Template, Dataset, CanvasSize and QRConfig are frozen snapshots:
the rendering core only ever reads them.
"""

from typing import Optional, List, Dict, Any, Tuple, Union, Literal
from datetime import datetime, date, timezone
from enum import Enum
import uuid

from PIL import ImageColor
from pydantic import BaseModel, ConfigDict, Field, field_validator, computed_field

from batchqr.config.settings import get_settings


# Enums
class ElementKind(str, Enum):
    """Template element kinds."""
    TEXT = "text"
    QRCODE = "qrcode"
    IMAGE = "image"


class TextAlign(str, Enum):
    """Horizontal text alignment inside an element box."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class ErrorCorrectionLevel(str, Enum):
    """QR error correction levels (7%, 15%, 25%, 30% recovery)."""
    L = "L"
    M = "M"
    Q = "Q"
    H = "H"


class ExportStatus(str, Enum):
    """Export job status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


CellValue = Union[str, bool, int, float, datetime, date, None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_color(value: str) -> str:
    try:
        ImageColor.getrgb(value)
    except ValueError as e:
        raise ValueError(f"Invalid color {value!r}") from e
    return value


class Snapshot(BaseModel):
    """Immutable model accepting both snake_case names and camelCase aliases."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# Template Models
class Element(Snapshot):
    """A positioned visual unit of a template."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Element identifier")
    name: str = Field("", description="Display name")
    kind: ElementKind = Field(..., alias="type", description="Element kind")

    # Geometry in canvas pixels
    x: int = Field(0, ge=0, description="Left edge")
    y: int = Field(0, ge=0, description="Top edge")
    width: int = Field(100, ge=0, description="Box width")
    height: int = Field(100, ge=0, description="Box height")

    # Content
    content: str = Field("", description="Static text content")
    column: Optional[str] = Field(None, description="Bound column name (text, qrcode)")
    image_url: str = Field("", alias="imageUrl", description="Image URL or data URI")

    # Text styling
    font_size: int = Field(16, gt=0, alias="fontSize", description="Font size in pixels")
    font_color: str = Field("#000000", alias="fontColor", description="Font color")
    font_weight: str = Field("normal", alias="fontWeight", description="CSS-style font weight")
    text_align: TextAlign = Field(TextAlign.LEFT, alias="textAlign", description="Alignment")

    @field_validator("font_color")
    @classmethod
    def validate_font_color(cls, v: str) -> str:
        return _validate_color(v)

    @field_validator("x", "y", "width", "height")
    @classmethod
    def validate_geometry_limit(cls, v: int) -> int:
        """Geometry is bounded by the maximum canvas edge."""
        limit = get_settings().max_canvas_size
        if v > limit:
            raise ValueError(f"must not exceed {limit}px")
        return v

    @field_validator("font_weight", mode="before")
    @classmethod
    def coerce_font_weight(cls, v: Any) -> str:
        """Accept numeric weights such as 700."""
        return str(v).strip().lower() if v is not None else "normal"

    @field_validator("column", mode="before")
    @classmethod
    def blank_column_is_unbound(cls, v: Any) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v):
            return None
        return str(v)

    @property
    def bound_column(self) -> Optional[str]:
        """Bound column name; image elements never bind."""
        if self.kind == ElementKind.IMAGE:
            return None
        return self.column

    @property
    def is_bold(self) -> bool:
        if self.font_weight in ("bold", "bolder"):
            return True
        return self.font_weight.isdigit() and int(self.font_weight) >= 600


class Template(Snapshot):
    """
    Ordered sequence of elements.

    Index order is paint order: elements[0] is painted first (bottom layer) and
    every later element paints over the earlier ones. There is no z-index.
    """
    elements: Tuple[Element, ...] = Field(default_factory=tuple)

    @field_validator("elements")
    @classmethod
    def validate_unique_ids(cls, v: Tuple[Element, ...]) -> Tuple[Element, ...]:
        seen = set()
        for element in v:
            if element.id in seen:
                raise ValueError(f"Duplicate element id: {element.id}")
            seen.add(element.id)
        return v

    @property
    def is_empty(self) -> bool:
        return not self.elements

    def index_of(self, element_id: str) -> Optional[int]:
        for index, element in enumerate(self.elements):
            if element.id == element_id:
                return index
        return None


class CanvasSize(Snapshot):
    """Canvas size shared by every rendered image."""
    width: int = Field(400, gt=0, description="Canvas width in pixels")
    height: int = Field(400, gt=0, description="Canvas height in pixels")


class QRConfig(Snapshot):
    """QR rendering parameters shared by every qrcode element in a render pass."""
    error_correction_level: ErrorCorrectionLevel = Field(
        ErrorCorrectionLevel.M, alias="errorCorrectionLevel", description="Error correction level"
    )
    margin: int = Field(4, ge=0, description="Quiet zone width in modules")
    version: Optional[int] = Field(None, ge=1, le=40, description="Fixed version, None for auto")
    dark_color: str = Field("#000000", alias="darkColor", description="Dark module color")
    light_color: str = Field("#ffffff", alias="lightColor", description="Light module color")

    @field_validator("dark_color", "light_color")
    @classmethod
    def validate_colors(cls, v: str) -> str:
        return _validate_color(v)

    @field_validator("version", mode="before")
    @classmethod
    def blank_version_is_auto(cls, v: Any) -> Any:
        if v in ("", 0):
            return None
        return v


class Dataset(Snapshot):
    """
    Imported spreadsheet table.

    Header names are not guaranteed unique; lookups use the first match. Rows
    shorter than the header sequence have empty trailing cells.
    """
    headers: Tuple[str, ...] = Field(default_factory=tuple)
    rows: Tuple[Tuple[CellValue, ...], ...] = Field(default_factory=tuple)
    source_name: Optional[str] = Field(None, description="Original file name")

    @computed_field  # type: ignore[misc]
    @property
    def total_rows(self) -> int:
        return len(self.rows)

    def column_index(self, name: str) -> Optional[int]:
        """First exact, case-sensitive header match."""
        try:
            return self.headers.index(name)
        except ValueError:
            return None

    def cell(self, row_index: int, column_index: int) -> CellValue:
        if row_index < 0 or row_index >= len(self.rows):
            return None
        row = self.rows[row_index]
        if column_index >= len(row):
            return None
        return row[column_index]


class RenderOptions(BaseModel):
    """Options for rendering a template to PNG."""
    scale: int = Field(1, ge=1, le=4, description="Output pixel ratio")
    optimize_png: bool = Field(False, description="Optimize PNG file size")


class TemplateDocument(Snapshot):
    """Transportable template: canvas, ordered elements and QR configuration."""
    title: Optional[str] = Field(None, description="Document title")
    canvas: CanvasSize = Field(default_factory=CanvasSize)
    elements: List[Element] = Field(default_factory=list)
    qr_config: QRConfig = Field(default_factory=QRConfig, alias="qrConfig")
    version: str = Field("1.0", description="Document format version")

    def to_template(self) -> Template:
        return Template(elements=tuple(self.elements))


# Parsing Results
class ParseResult(BaseModel):
    """Result of template document parsing."""
    success: bool = Field(..., description="Whether parsing succeeded")
    document: Optional[TemplateDocument] = Field(None, description="Parsed document")
    errors: List[str] = Field(default_factory=list, description="Parsing errors")
    warnings: List[str] = Field(default_factory=list, description="Parsing warnings")
    processing_time: Optional[float] = Field(None, description="Parsing time in seconds")


# Rendering / Export Results
class PNGResult(BaseModel):
    """Result of rendering one row to PNG."""
    png_data: bytes = Field(..., description="PNG binary data", exclude=True)
    width: int = Field(..., description="Image width")
    height: int = Field(..., description="Image height")
    file_size: int = Field(..., description="File size in bytes")
    row_index: Optional[int] = Field(None, description="Rendered data row")


class ExportSummary(BaseModel):
    """Archive metadata of a finished batch export."""
    archive_name: str = Field(..., description="Suggested download name")
    entries: List[str] = Field(default_factory=list, description="Archive entry names")
    total_rows: int = Field(..., ge=0, description="Rows rendered")
    file_size: int = Field(..., ge=0, description="Archive size in bytes")
    processing_time: float = Field(0.0, description="Export time in seconds")


class ExportResult(ExportSummary):
    """Result of a batch export, including the archive itself."""
    archive_data: bytes = Field(..., description="ZIP archive bytes", exclude=True)

    def summary(self) -> ExportSummary:
        return ExportSummary(**self.model_dump())


# API Request/Response Models
class DatasetSummary(BaseModel):
    """Dataset information returned to the editor."""
    source_name: Optional[str] = None
    headers: List[str] = Field(default_factory=list)
    total_rows: int = 0


class SessionCreateRequest(BaseModel):
    """Request model for opening an editing session."""
    document: Optional[TemplateDocument] = Field(None, description="Initial template")


class SessionResponse(BaseModel):
    """Editing session state."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str
    canvas: CanvasSize
    qr_config: QRConfig = Field(..., alias="qrConfig")
    elements: List[Element] = Field(default_factory=list)
    dataset: Optional[DatasetSummary] = None
    cached_assets: int = 0
    created_at: datetime


class AddElementRequest(BaseModel):
    """Request model for appending an element."""
    kind: ElementKind = Field(..., alias="type")
    id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ElementUpdateRequest(BaseModel):
    """Partial element update; only provided fields change."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    x: Optional[int] = Field(None, ge=0)
    y: Optional[int] = Field(None, ge=0)
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    content: Optional[str] = None
    column: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    font_size: Optional[int] = Field(None, gt=0, alias="fontSize")
    font_color: Optional[str] = Field(None, alias="fontColor")
    font_weight: Optional[Union[str, int]] = Field(None, alias="fontWeight")
    text_align: Optional[TextAlign] = Field(None, alias="textAlign")


class MoveElementRequest(BaseModel):
    """Request model for moving an element to a new paint position."""
    index: int = Field(..., description="Target index; clamped into range")


class ExportRequest(BaseModel):
    """Request model for starting a batch export."""
    model_config = ConfigDict(populate_by_name=True)

    filename_column: Optional[str] = Field(None, alias="filenameColumn")
    options: RenderOptions = Field(default_factory=RenderOptions)


class ExportJobResponse(BaseModel):
    """Response model for export job status queries."""
    job_id: str = Field(..., description="Job identifier")
    session_id: str = Field(..., description="Owning session")
    status: ExportStatus = Field(..., description="Current status")
    progress: int = Field(0, ge=0, le=100, description="Progress percentage")
    message: Optional[str] = Field(None, description="Status message")
    error: Optional[str] = Field(None, description="Error message if failed")
    result: Optional[ExportSummary] = Field(None, description="Export result if completed")
    created_at: datetime = Field(..., description="Job creation time")
    updated_at: datetime = Field(..., description="Last update time")


class ProgressEvent(BaseModel):
    """One progress update published on an export job's stream."""
    job_id: str
    status: ExportStatus
    progress: int = Field(0, ge=0, le=100)
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


# Health Check Models
class HealthStatus(BaseModel):
    """Health check status."""
    status: Literal["healthy", "unhealthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(default_factory=utcnow, description="Check timestamp")
    version: str = Field(..., description="Application version")
    active_sessions: int = Field(0, ge=0, description="Open editing sessions")
    active_exports: int = Field(0, ge=0, description="Running export jobs")


# Error Models
class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=utcnow, description="Error timestamp")
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
