"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Batch QR Layout Renderer", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Storage Configuration
    storage_path: Path = Field(default=Path("./storage"), description="Storage directory path")
    log_to_file: bool = Field(default=False, description="Also write rotating log files")

    # Canvas Configuration
    default_canvas_width: int = Field(default=400, gt=0, description="Default canvas width")
    default_canvas_height: int = Field(default=400, gt=0, description="Default canvas height")
    max_canvas_size: int = Field(default=4000, gt=0, description="Maximum canvas edge in pixels")
    max_render_scale: int = Field(default=4, ge=1, description="Maximum render scale factor")

    # QR Configuration defaults
    default_qr_error_correction: str = Field(default="M", description="Default QR ECC level")
    default_qr_margin: int = Field(default=4, ge=0, description="Default QR quiet zone modules")
    default_qr_dark_color: str = Field(default="#000000", description="Default dark module color")
    default_qr_light_color: str = Field(default="#ffffff", description="Default light module color")

    # Text Rendering Configuration
    font_path: Optional[Path] = Field(default=None, description="TrueType font for text elements")
    bold_font_path: Optional[Path] = Field(default=None, description="Bold TrueType font")
    text_inset: int = Field(default=4, ge=0, description="Left/right inset for aligned text")

    # Image Loading Configuration
    image_fetch_timeout: float = Field(default=15.0, gt=0, description="Image URL timeout (s)")
    image_max_bytes: int = Field(default=20 * 1024 * 1024, description="Maximum image size")

    # Import / Export Configuration
    allowed_dataset_extensions: List[str] = Field(
        default=[".xlsx", ".xlsm", ".csv"], description="Accepted spreadsheet extensions"
    )
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, description="Maximum upload size")
    archive_name: str = Field(default="qrcodes.zip", description="Download name of archives")
    export_job_ttl: int = Field(default=3600, description="Finished export job TTL in seconds")

    # Security Configuration
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Monitoring Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("default_qr_error_correction")
    @classmethod
    def validate_error_correction(cls, v: str) -> str:
        """Validate default QR error correction level."""
        if v.upper() not in {"L", "M", "Q", "H"}:
            raise ValueError("QR error correction level must be one of L, M, Q, H")
        return v.upper()

    @field_validator("allowed_hosts", "allowed_dataset_extensions", mode="before")
    @classmethod
    def parse_string_list(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse list settings from a JSON array or comma-separated string."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("storage_path")
    @classmethod
    def create_directories(cls, v: Path) -> Path:
        """Ensure directories exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="BATCHQR_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
