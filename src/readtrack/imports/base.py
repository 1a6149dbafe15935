"""Shared import result type."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class ImportResult:
    """Result of an import operation."""

    source_file: Optional[Path] = None
    source_type: Optional[str] = None
    total_records: int = 0
    imported: int = 0
    skipped: int = 0
    error_messages: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        """Get summary string."""
        return f"Imported: {self.imported}, Skipped: {self.skipped}"
