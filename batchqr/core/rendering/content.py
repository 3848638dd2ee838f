"""
Content Resolver
================

Resolve the effective content of an element for one data row.
"""

from datetime import date, datetime, time
from typing import Optional

from batchqr.models.schemas import CellValue, Dataset, Element


def display_string(value: CellValue) -> str:
    """Render a cell value the way a spreadsheet displays it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def resolve(element: Element, dataset: Optional[Dataset], row_index: int) -> str:
    """
    Resolve an element's effective content.

    A bound column present in the dataset headers wins over the static content;
    otherwise, or without a dataset, the static content is returned.

    Args:
        element: Element to resolve
        dataset: Imported dataset, if any
        row_index: Zero-based data row

    Returns:
        Effective content string ("" for empty or missing cells)
    """
    column = element.bound_column
    if not column or dataset is None:
        return element.content or ""

    column_index = dataset.column_index(column)
    if column_index is None:
        return element.content or ""

    return display_string(dataset.cell(row_index, column_index))
