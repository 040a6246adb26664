"""
Data models for the contact cleaning pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


# Keys prefixed with "_" are pipeline-internal and never exported
INTERNAL_PREFIX = "_"
PROVENANCE_KEY = "_source_file"
DUPLICATE_KEY = "_duplicate"
INVALID_PHONE_KEY = "_invalid_phone"


def is_internal_key(key: str) -> bool:
    """Check whether a row key is internal to the pipeline."""
    return str(key).startswith(INTERNAL_PREFIX)


class SemanticField(Enum):
    """Fixed set of contact-data categories a column can be classified into."""
    NAME = "Name"
    PHONE = "Phone"
    EMAIL = "Email"
    ADDRESS = "Address"
    DATE = "Date"
    CITY = "City"
    STATE = "State"
    PINCODE = "Pincode"
    OTHER = "Other"

    @property
    def label(self) -> str:
        """Display label used as the canonical column name."""
        return self.value


@dataclass(frozen=True)
class TextToken:
    """A single OCR-recognized word with its bounding box."""
    text: str
    x: float       # Left boundary
    y: float       # Top boundary
    width: float
    height: float
    confidence: float = 100.0  # 0-100

    @property
    def right(self) -> float:
        """Right boundary of the token."""
        return self.x + self.width

    @property
    def bottom(self) -> float:
        """Bottom boundary of the token."""
        return self.y + self.height

    @property
    def center_x(self) -> float:
        """Calculate horizontal center of token."""
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        """Calculate vertical center of token."""
        return self.y + self.height / 2


@dataclass(frozen=True)
class SourceOccurrence:
    """Where a unified column came from: one header in one file."""
    file_index: int
    original_name: str
    file_name: str = ""


@dataclass(frozen=True)
class UnifiedColumn:
    """One canonical column shared by all merged files."""
    semantic_field: SemanticField
    canonical_name: str
    key: str
    occurrences: Tuple[SourceOccurrence, ...] = ()

    @property
    def file_count(self) -> int:
        """Number of distinct source files containing this column."""
        return len({occ.file_index for occ in self.occurrences})

    def occurrence_for(self, file_index: int) -> Optional[SourceOccurrence]:
        """
        Find the header this file contributed to the column.

        When one file has several headers classified into the same field,
        the last one wins.

        Args:
            file_index: Index of the source file

        Returns:
            Matching occurrence or None
        """
        found = None
        for occ in self.occurrences:
            if occ.file_index == file_index:
                found = occ
        return found


@dataclass(frozen=True)
class SourceSheet:
    """Parsed first sheet of one input file. Rows are read-only."""
    file_name: str
    headers: Tuple[str, ...]
    rows: Tuple[Mapping[str, Any], ...]

    @classmethod
    def from_records(
        cls,
        file_name: str,
        records: Sequence[Mapping[str, Any]],
        headers: Optional[Sequence[str]] = None
    ) -> "SourceSheet":
        """
        Build a frozen sheet from parsed row dictionaries.

        Args:
            file_name: Source file identifier
            records: Row mappings (header -> cell value)
            headers: Header order; defaults to the first row's keys

        Returns:
            SourceSheet instance
        """
        if headers is None:
            headers = list(records[0].keys()) if records else []
        frozen_rows = tuple(MappingProxyType(dict(r)) for r in records)
        return cls(
            file_name=file_name,
            headers=tuple(str(h) for h in headers),
            rows=frozen_rows,
        )


@dataclass
class OcrResult:
    """Output of one recognition call."""
    source: str
    text: str
    tokens: List[TextToken] = field(default_factory=list)
    confidence: float = 0.0
    page_num: int = 0


@dataclass
class CleaningStats:
    """Counters collected during a cleaning pass."""
    total_rows: int = 0
    empty_removed: int = 0
    duplicates_removed: int = 0
    duplicates_flagged: int = 0
    phones_cleaned: int = 0
    invalid_phones: int = 0
    emails_cleaned: int = 0
    dates_standardized: int = 0
    phone_filtered: int = 0
    final_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and JSON output."""
        return {
            "totalRows": self.total_rows,
            "emptyRemoved": self.empty_removed,
            "duplicatesRemoved": self.duplicates_removed,
            "duplicatesFlagged": self.duplicates_flagged,
            "phonesCleaned": self.phones_cleaned,
            "invalidPhones": self.invalid_phones,
            "emailsCleaned": self.emails_cleaned,
            "datesStandardized": self.dates_standardized,
            "phoneFiltered": self.phone_filtered,
            "finalRows": self.final_rows,
        }
