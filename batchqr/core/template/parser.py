"""
Template Document Parser
========================

Parsing of persisted template documents (canvas, ordered elements and QR
configuration) from JSON or YAML, plus serialization back to either format.
Field names are accepted in snake_case or in the editor's camelCase form.
"""

from typing import Any, Dict, List, Optional, Tuple
from abc import ABC, abstractmethod
from pathlib import Path
import json
import time

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.errors import TemplateParseError
from batchqr.models.schemas import ElementKind, ParseResult, TemplateDocument

logger = get_logger(__name__)


def _format_validation_errors(error: ValidationError) -> List[str]:
    """Flatten pydantic errors into 'path: message' strings."""
    formatted: List[str] = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ()))
        formatted.append(f"{path}: {item.get('msg')}" if path else str(item.get("msg")))
    return formatted


class TemplateValidator:
    """Structural and semantic checks on raw template document data."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="validator")  # structlog.BoundLoggerBase
        self.settings = get_settings()

    def validate_document(
        self, data: Dict[str, Any]
    ) -> Tuple[Optional[TemplateDocument], List[str], List[str]]:
        """
        Validate and build a template document.

        Args:
            data: Decoded document mapping

        Returns:
            Tuple of (document or None, errors, warnings)
        """
        errors: List[str] = []
        warnings: List[str] = []

        elements = data.get("elements", [])
        if not isinstance(elements, list):
            return None, ["elements: must be a list"], warnings

        for i, element in enumerate(elements):
            if not isinstance(element, dict):
                errors.append(
                    f"elements[{i}]: Element must be a dictionary/object, got {type(element).__name__}"
                )
        if errors:
            return None, errors, warnings

        try:
            document = TemplateDocument.model_validate(data)
            document.to_template()
        except ValidationError as e:
            return None, _format_validation_errors(e), warnings

        canvas = document.canvas
        if max(canvas.width, canvas.height) > self.settings.max_canvas_size:
            errors.append(
                f"canvas: {canvas.width}x{canvas.height} exceeds the maximum of "
                f"{self.settings.max_canvas_size}px"
            )
            return None, errors, warnings

        warnings.extend(self._collect_warnings(document))
        return document, errors, warnings

    def _collect_warnings(self, document: TemplateDocument) -> List[str]:
        warnings: List[str] = []
        canvas = document.canvas

        for i, element in enumerate(document.elements):
            path = f"elements[{i}]"
            if element.x + element.width > canvas.width or element.y + element.height > canvas.height:
                warnings.append(f"{path}: Element '{element.name}' extends beyond the canvas")
            if element.kind == ElementKind.IMAGE and not element.image_url:
                warnings.append(f"{path}: Image element has no 'imageUrl'")
            if element.kind == ElementKind.IMAGE and element.column:
                warnings.append(f"{path}: Image elements ignore 'column'")
            if element.kind == ElementKind.QRCODE and not element.column and not element.content:
                warnings.append(f"{path}: QR code element has neither 'content' nor 'column'")

        return warnings


class BaseTemplateParser(ABC):
    """Abstract base class for template document parsers."""

    @abstractmethod
    async def parse(self, content: str) -> ParseResult:
        """Parse document text into a TemplateDocument."""
        pass

    @abstractmethod
    async def validate_syntax(self, content: str) -> bool:
        """Validate document syntax without building the document."""
        pass

    @abstractmethod
    def dump(self, document: TemplateDocument) -> str:
        """Serialize a document to text."""
        pass


def _build_result(
    raw_data: Any, validator: TemplateValidator, start_time: float
) -> ParseResult:
    if not isinstance(raw_data, dict):
        return ParseResult(
            success=False,
            document=None,
            errors=[f"Template document must be a dictionary/object, got {type(raw_data).__name__}"],
            processing_time=time.time() - start_time,
        )

    document, errors, warnings = validator.validate_document(raw_data)
    return ParseResult(
        success=document is not None,
        document=document,
        errors=errors,
        warnings=warnings,
        processing_time=time.time() - start_time,
    )


def _document_payload(document: TemplateDocument) -> Dict[str, Any]:
    return document.model_dump(mode="json", by_alias=True, exclude_none=True)


class JSONTemplateParser(BaseTemplateParser):
    """JSON template document parser."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(parser="json")  # structlog.BoundLoggerBase
        self.validator = TemplateValidator()

    async def parse(self, content: str) -> ParseResult:
        start_time = time.time()

        try:
            raw_data = json.loads(content)
        except json.JSONDecodeError as e:
            error_msg = f"Invalid JSON syntax at line {e.lineno}, column {e.colno}: {e.msg}"
            self.logger.error("JSON parsing failed", error=error_msg)
            return ParseResult(
                success=False,
                document=None,
                errors=[error_msg],
                processing_time=time.time() - start_time,
            )

        return _build_result(raw_data, self.validator, start_time)

    async def validate_syntax(self, content: str) -> bool:
        try:
            json.loads(content)
            return True
        except json.JSONDecodeError:
            return False

    def dump(self, document: TemplateDocument) -> str:
        return json.dumps(_document_payload(document), indent=2, ensure_ascii=False)


class YAMLTemplateParser(BaseTemplateParser):
    """YAML template document parser."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(parser="yaml")  # structlog.BoundLoggerBase
        self.validator = TemplateValidator()

    async def parse(self, content: str) -> ParseResult:
        start_time = time.time()

        try:
            raw_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            error_msg = f"Invalid YAML syntax: {e}"
            self.logger.error("YAML parsing failed", error=error_msg)
            return ParseResult(
                success=False,
                document=None,
                errors=[error_msg],
                processing_time=time.time() - start_time,
            )

        if raw_data is None:
            return ParseResult(
                success=False,
                document=None,
                errors=["Empty YAML document"],
                processing_time=time.time() - start_time,
            )

        return _build_result(raw_data, self.validator, start_time)

    async def validate_syntax(self, content: str) -> bool:
        try:
            yaml.safe_load(content)
            return True
        except yaml.YAMLError:
            return False

    def dump(self, document: TemplateDocument) -> str:
        return yaml.safe_dump(_document_payload(document), sort_keys=False, allow_unicode=True)


class TemplateParserFactory:
    """Factory for creating template parsers based on format."""

    _parsers = {
        "json": JSONTemplateParser,
        "yaml": YAMLTemplateParser,
    }

    @classmethod
    def create_parser(cls, parser_type: str) -> BaseTemplateParser:
        """
        Create a template parser instance.

        Args:
            parser_type: Type of parser ("json", "yaml")

        Returns:
            Parser instance

        Raises:
            ValueError: If parser type is not supported
        """
        if parser_type not in cls._parsers:
            raise ValueError(f"Unsupported parser type: {parser_type}")

        return cls._parsers[parser_type]()

    @classmethod
    def detect_parser_type(cls, content: str) -> str:
        content = content.strip()
        if content.startswith(("{", "[")):
            return "json"
        return "yaml"

    @classmethod
    def parser_type_for_path(cls, path: Path) -> Optional[str]:
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        if suffix in (".yaml", ".yml"):
            return "yaml"
        return None


async def parse_template(content: str, parser_type: Optional[str] = None) -> ParseResult:
    """
    Parse template document text using the appropriate parser.

    Args:
        content: Raw document text
        parser_type: Optional parser type override

    Returns:
        ParseResult containing the parsed document or errors
    """
    if not content or not content.strip():
        return ParseResult(
            success=False, document=None, errors=["Empty template document"], processing_time=0.0
        )

    if not parser_type:
        parser_type = TemplateParserFactory.detect_parser_type(content)

    try:
        parser = TemplateParserFactory.create_parser(parser_type)
    except ValueError as e:
        return ParseResult(success=False, document=None, errors=[str(e)], processing_time=0.0)
    return await parser.parse(content)


async def validate_template_syntax(content: str, parser_type: Optional[str] = None) -> bool:
    if not content or not content.strip():
        return False

    if not parser_type:
        parser_type = TemplateParserFactory.detect_parser_type(content)

    try:
        parser = TemplateParserFactory.create_parser(parser_type)
    except ValueError:
        return False
    return await parser.validate_syntax(content)


async def load_template(path: Path) -> TemplateDocument:
    """
    Read and parse a template document file.

    Raises:
        TemplateParseError: If the file is unreadable or the document is invalid
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateParseError(f"Cannot read template {path}: {e}") from e

    result = await parse_template(content, TemplateParserFactory.parser_type_for_path(path))
    if not result.success or result.document is None:
        raise TemplateParseError(f"Invalid template {path}: {'; '.join(result.errors)}")

    for warning in result.warnings:
        logger.warning("Template warning", path=str(path), warning=warning)
    return result.document


def dump_template(document: TemplateDocument, parser_type: str = "json") -> str:
    """Serialize a template document as JSON or YAML."""
    return TemplateParserFactory.create_parser(parser_type).dump(document)
