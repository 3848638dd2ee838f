"""
Test Configuration
==================

Pytest configuration with shared fixtures for unit and API tests.
Settings are replaced by TestSettings before any application module reads them.
"""

import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

import batchqr.config.settings as settings_module
from batchqr.config.settings import Settings

_TEST_STORAGE = Path(tempfile.mkdtemp(prefix="batchqr_test_"))


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    __test__ = False

    environment: str = "testing"
    debug: bool = True
    log_level: str = "WARNING"
    log_to_file: bool = False
    storage_path: Path = _TEST_STORAGE
    font_path: Optional[Path] = None
    bold_font_path: Optional[Path] = None


settings_module.settings = TestSettings()

from batchqr.config.logging import setup_logging  # noqa: E402
from batchqr.api.main import create_app  # noqa: E402
from batchqr.core.rendering.asset_cache import AssetCache  # noqa: E402
from batchqr.core.rendering.renderer import LayeredRenderer  # noqa: E402
from batchqr.core.session import EditingSession  # noqa: E402
from batchqr.models.schemas import (  # noqa: E402
    CanvasSize,
    Dataset,
    Element,
    ElementKind,
    QRConfig,
    Template,
    TextAlign,
)

setup_logging()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Test settings fixture."""
    return settings_module.get_settings()


@pytest.fixture
def fastapi_client() -> Generator[TestClient, None, None]:
    """FastAPI test client on a fresh app with its own session store."""
    with TestClient(create_app()) as client:
        yield client


@pytest_asyncio.fixture
async def renderer() -> AsyncGenerator[LayeredRenderer, None]:
    """Renderer with a fresh asset cache."""
    instance = LayeredRenderer(asset_cache=AssetCache())
    yield instance
    await instance.close()


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[EditingSession, None]:
    instance = EditingSession()
    yield instance
    await instance.close()


@pytest.fixture
def canvas() -> CanvasSize:
    return CanvasSize(width=400, height=400)


@pytest.fixture
def qr_config() -> QRConfig:
    return QRConfig()


@pytest.fixture
def people_dataset() -> Dataset:
    """Two-row dataset with name and code columns."""
    return Dataset(
        headers=("name", "code"),
        rows=(("Alice", "A1"), ("Bob", "B2")),
        source_name="people.xlsx",
    )


@pytest.fixture
def code_qr_element() -> Element:
    """QR code element bound to the code column."""
    return Element(
        id="qr",
        name="QR Code 1",
        kind=ElementKind.QRCODE,
        x=50,
        y=50,
        width=150,
        height=150,
        column="code",
    )


@pytest.fixture
def code_template(code_qr_element: Element) -> Template:
    return Template(elements=(code_qr_element,))


@pytest.fixture
def centered_text_element() -> Element:
    return Element(
        id="title",
        name="Text 1",
        kind=ElementKind.TEXT,
        x=100,
        y=100,
        width=200,
        height=40,
        content="Hi",
        text_align=TextAlign.CENTER,
    )


@pytest.fixture
def sample_document_data() -> dict:
    """Template document as the editor serializes it (camelCase)."""
    return {
        "title": "Badge",
        "canvas": {"width": 300, "height": 200},
        "qrConfig": {"errorCorrectionLevel": "H", "margin": 2, "darkColor": "#112233"},
        "elements": [
            {
                "id": "label",
                "type": "text",
                "name": "Text 1",
                "x": 10,
                "y": 10,
                "width": 200,
                "height": 40,
                "content": "Guest",
                "column": "name",
                "fontSize": 20,
                "fontWeight": "bold",
                "textAlign": "center",
            },
            {
                "id": "code",
                "type": "qrcode",
                "name": "QR Code 1",
                "x": 10,
                "y": 60,
                "width": 120,
                "height": 120,
                "column": "code",
            },
        ],
    }
