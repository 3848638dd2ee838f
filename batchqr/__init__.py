"""
Batch QR Layout Renderer
========================

Render a positioned layout template (text, QR-code and image elements) once
per row of a spreadsheet and package the resulting PNGs into a ZIP archive.

This package provides:
- Template model, content resolution and layered Pillow rendering
- Sequential batch export with progress reporting and cancellation
- Spreadsheet import (xlsx/csv) and QR encoding adapters
- FastAPI REST endpoints for editing sessions, previews and export jobs
- Command line interface for one-shot exports
"""

__version__ = "1.0.0"
__author__ = "batchqr Team"
