"""Header row detection and column resolution for hierarchical and flat BOMs."""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

from .errors import BomFormatError
from .schema import (
    COMMENT_PREFIX,
    FIELD_ORDER,
    FIELD_SYNONYMS,
    HEADER_KEY_FIELDS,
    MIN_SUBSTRING_SYNONYM_LENGTH,
    SUM_MARKERS,
)

logger = logging.getLogger(__name__)


@dataclass
class ColumnMap:
    """Resolved zero-based column indices for one BOM file.

    ``level`` is None for flat files. ``quantity`` may be None when the header
    was found but no quantity column exists; callers decide whether that is
    fatal.
    """
    header_index: int
    part_number: int
    level: Optional[int] = None
    quantity: Optional[int] = None
    type: Optional[int] = None
    description: Optional[int] = None
    assembly_group: Optional[int] = None

    @property
    def is_hierarchical(self) -> bool:
        return self.level is not None

    def cell(self, cells: Sequence[str], field: str) -> str:
        """Return the stripped value of ``field`` in ``cells`` ('' when absent)."""
        index = getattr(self, field)
        if index is None or index >= len(cells):
            return ""
        value = cells[index]
        return value.strip() if value else ""


def is_noise_row(cells: Sequence[str]) -> bool:
    """True for blank rows, ``#`` comments and sum/total rows."""
    non_empty = [c.strip() for c in cells if c and c.strip()]
    if not non_empty:
        return True
    if non_empty[0].startswith(COMMENT_PREFIX):
        return True
    return any(marker in cell for cell in non_empty for marker in SUM_MARKERS)


class ColumnResolver:
    """Locates the header row and maps its cells to BOM fields.

    Header detection requires an exact (case-insensitive) level synonym and an
    exact part-number synonym. Other fields resolve by exact synonym match
    first and then by substring match against cells no other field claimed.
    """

    def __init__(self, synonyms: Optional[Dict[str, List[str]]] = None):
        self.synonyms = synonyms or FIELD_SYNONYMS

    @staticmethod
    def normalize_header(cell: Optional[str]) -> str:
        """Lowercase, strip and collapse internal whitespace."""
        if not cell:
            return ""
        return re.sub(r"\s+", " ", str(cell).strip().lower())

    def _exact_index(self, headers: List[str], field: str, claimed: Set[int]) -> Optional[int]:
        wanted = {self.normalize_header(s) for s in self.synonyms.get(field, [])}
        for idx, header in enumerate(headers):
            if idx not in claimed and header in wanted:
                return idx
        return None

    def _substring_index(self, headers: List[str], field: str, claimed: Set[int]) -> Optional[int]:
        candidates = [
            self.normalize_header(s) for s in self.synonyms.get(field, [])
            if len(s) >= MIN_SUBSTRING_SYNONYM_LENGTH
        ]
        for idx, header in enumerate(headers):
            if idx in claimed or not header:
                continue
            if any(candidate in header for candidate in candidates):
                return idx
        return None

    def _resolve_fields(self, headers: List[str], fixed: Dict[str, int]) -> Dict[str, Optional[int]]:
        resolved: Dict[str, Optional[int]] = dict(fixed)
        claimed = set(fixed.values())

        remaining = [f for f in FIELD_ORDER if f not in fixed and f in self.synonyms]

        for field in remaining:
            idx = self._exact_index(headers, field, claimed)
            resolved[field] = idx
            if idx is not None:
                claimed.add(idx)

        for field in remaining:
            if resolved[field] is not None:
                continue
            idx = self._substring_index(headers, field, claimed)
            resolved[field] = idx
            if idx is not None:
                claimed.add(idx)

        return resolved

    def match_header_row(self, cells: Sequence[str]) -> Optional[Dict[str, int]]:
        """Return the key field indices if ``cells`` is a hierarchical header row."""
        headers = [self.normalize_header(c) for c in cells]
        fixed: Dict[str, int] = {}
        for field in HEADER_KEY_FIELDS:
            idx = self._exact_index(headers, field, set(fixed.values()))
            if idx is None:
                return None
            fixed[field] = idx
        return fixed

    def resolve(
        self,
        rows: Sequence[Sequence[str]],
        file_name: str = "",
        allow_flat: bool = True
    ) -> ColumnMap:
        """Find the header row and resolve every column.

        Args:
            rows: Tokenized rows in file order
            file_name: Used in error messages
            allow_flat: Accept a part-number + quantity header without a level
                column when no hierarchical header exists

        Returns:
            ColumnMap for the first qualifying header row

        Raises:
            BomFormatError: If no header row can be found
        """
        for index, cells in enumerate(rows):
            if is_noise_row(cells):
                continue
            fixed = self.match_header_row(cells)
            if fixed is None:
                continue

            headers = [self.normalize_header(c) for c in cells]
            resolved = self._resolve_fields(headers, fixed)
            logger.debug(f"Hierarchical header found in {file_name or '<text>'} at row {index}: {resolved}")
            return ColumnMap(header_index=index, **resolved)

        if allow_flat:
            flat = self._resolve_flat(rows, file_name)
            if flat is not None:
                return flat

        raise BomFormatError(f"Could not find header row in {file_name}", file_name=file_name)

    def _resolve_flat(self, rows: Sequence[Sequence[str]], file_name: str) -> Optional[ColumnMap]:
        for index, cells in enumerate(rows):
            if is_noise_row(cells):
                continue
            headers = [self.normalize_header(c) for c in cells]
            pn_idx = self._exact_index(headers, "part_number", set())
            if pn_idx is None:
                continue
            resolved = self._resolve_fields(headers, {"part_number": pn_idx})
            if resolved.get("quantity") is None:
                continue
            # A level column here would have been picked up by the hierarchical pass
            resolved["level"] = None
            logger.debug(f"Flat header found in {file_name or '<text>'} at row {index}: {resolved}")
            return ColumnMap(header_index=index, **resolved)
        return None

    def get_mapping_report(self, column_map: ColumnMap, header_cells: Sequence[str]) -> Dict[str, object]:
        """Describe which header cell each field resolved to.

        Returns:
            Dictionary with 'mapped' (field -> original header text) and
            'unmapped' (header cells not used by any field)
        """
        mapped: Dict[str, str] = {}
        used: Set[int] = set()
        for field in FIELD_ORDER:
            idx = getattr(column_map, field, None)
            if idx is not None and idx < len(header_cells):
                mapped[field] = header_cells[idx].strip()
                used.add(idx)
        unmapped = [
            c.strip() for i, c in enumerate(header_cells)
            if i not in used and c and c.strip()
        ]
        return {"mapped": mapped, "unmapped": unmapped}
