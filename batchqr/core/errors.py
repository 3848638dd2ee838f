"""
Errors
======

Exception hierarchy shared by the rendering core, the API and the CLI.
"""

from typing import Optional


class BatchQRError(Exception):
    """Base exception for all batchqr errors."""

    pass


# Import errors
class DatasetImportError(BatchQRError):
    """Exception raised when a spreadsheet cannot be imported."""

    pass


class UnsupportedFileTypeError(DatasetImportError):
    """Exception raised for spreadsheet formats the importer does not read."""

    pass


class DatasetParseError(DatasetImportError):
    """Exception raised when a spreadsheet file is corrupt or unreadable."""

    pass


# Template errors
class TemplateParseError(BatchQRError):
    """Exception raised when a template document cannot be parsed."""

    pass


class ElementNotFoundError(BatchQRError):
    """Exception raised when an element id is not part of the template."""

    def __init__(self, element_id: str):
        super().__init__(f"Element not found: {element_id}")
        self.element_id = element_id


# Asset errors
class QREncodeError(BatchQRError):
    """Exception raised when a payload cannot be encoded as a QR symbol."""

    pass


class ImageDecodeError(BatchQRError):
    """Exception raised when an image source is unreachable or invalid."""

    pass


# Export errors
class EmptyTemplateError(BatchQRError):
    """Exception raised when exporting a template without elements."""

    def __init__(self, message: str = "Template has no elements to export"):
        super().__init__(message)


class ExportError(BatchQRError):
    """Aggregate exception raised when a batch export aborts on a row."""

    def __init__(self, message: str, row_index: Optional[int] = None):
        super().__init__(message)
        self.row_index = row_index


class ExportCancelledError(BatchQRError):
    """Exception raised when a batch export is cancelled between rows."""

    def __init__(self, rows_completed: int = 0):
        super().__init__(f"Export cancelled after {rows_completed} rows")
        self.rows_completed = rows_completed


class MissingDatasetError(BatchQRError):
    """Exception raised when exporting before a dataset has been imported."""

    def __init__(self, message: str = "No dataset has been imported"):
        super().__init__(message)


class ExportInProgressError(BatchQRError):
    """Exception raised when a session already has a running export."""

    def __init__(self, session_id: str, job_id: str):
        super().__init__(f"Session {session_id} already has a running export: {job_id}")
        self.session_id = session_id
        self.job_id = job_id


# Lookup errors
class SessionNotFoundError(BatchQRError):
    """Exception raised for unknown editing session ids."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ExportJobNotFoundError(BatchQRError):
    """Exception raised for unknown export job ids."""

    def __init__(self, job_id: str):
        super().__init__(f"Export job not found: {job_id}")
        self.job_id = job_id
