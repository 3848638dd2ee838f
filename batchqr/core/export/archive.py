"""
Archive Writer
==============

Collects named byte entries and finalizes them into one ZIP blob.
"""

from typing import Dict, List
import io
import zipfile


class ArchiveWriter:
    """In-memory ZIP builder; adding an existing name replaces the earlier entry."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression
        self._entries: Dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, name: str, data: bytes) -> None:
        self._entries[name] = data

    @property
    def names(self) -> List[str]:
        return list(self._entries)

    def finalize(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", self.compression) as archive:
            for name, data in self._entries.items():
                archive.writestr(name, data)
        return buffer.getvalue()
