import csv
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import openpyxl

from .columns import ColumnMap, ColumnResolver, is_noise_row
from .errors import BomFormatError
from .hierarchy import HierarchyRow, LeafPart, build_forest, extract_leaf_parts
from .quantities import parse_level, parse_quantity, round_pick_quantity
from .schema import DEFAULT_DELIMITERS, LEAF_EXPORT_HEADERS
from .tokenizer import tokenize_text

logger = logging.getLogger(__name__)

STRATEGY_HIERARCHICAL = "hierarchical"
STRATEGY_FLAT = "flat"


@dataclass
class ParsedBOM:
    """Result of parsing one BOM file (one tool variant).

    ``errors`` hold file-level failures (the file contributed nothing);
    ``warnings`` hold row-level degradation in an otherwise usable file.
    """
    tool_model: str
    leaf_parts: List[LeafPart] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    source_file: str = ""
    strategy: Optional[str] = None
    # Field -> header text it resolved to, and header cells no field used
    column_mapping: Dict[str, str] = field(default_factory=dict)
    unmapped_columns: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def messages(self) -> List[str]:
        return self.errors + self.warnings

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "tool_model": self.tool_model,
            "source_file": self.source_file,
            "strategy": self.strategy,
            "column_mapping": dict(self.column_mapping),
            "unmapped_columns": list(self.unmapped_columns),
            "leaf_parts": [
                {
                    "part_number": p.part_number,
                    "description": p.description,
                    "qty": p.qty,
                    "assembly_group": p.assembly_group,
                    "type": p.type,
                }
                for p in self.leaf_parts
            ],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


def tool_model_from_filename(filename: str) -> str:
    """Tool model for a BOM file: its base name without extension.

    Example: "exports/230QR-10002.csv" -> "230QR-10002"
    """
    base = os.path.basename(filename.replace("\\", "/"))
    stem, _ext = os.path.splitext(base)
    return stem.strip()


class BomParser:
    """Parser for hierarchical (level-numbered) and flat BOM files.

    The parse strategy is chosen once per file from its header row: a level
    column selects the hierarchical strategy, otherwise a part number +
    quantity header selects the flat one.
    """

    def __init__(self, delimiters: str = DEFAULT_DELIMITERS, allow_flat: bool = True):
        """Initialize the BOM parser.

        Args:
            delimiters: Cell delimiters for text input (default: comma and semicolon)
            allow_flat: Accept flat (level-less) files (default: True)
        """
        self.adapters = []
        self.delimiters = delimiters
        self.allow_flat = allow_flat
        self.resolver = ColumnResolver()

    def register_adapter(self, adapter):
        """Register a file adapter for reading.

        Args:
            adapter: Adapter instance with can_handle() and read_rows() methods
        """
        self.adapters.append(adapter)

    def _find_adapter(self, file_path: str):
        for a in self.adapters:
            if a.can_handle(file_path):
                return a
        raise ValueError(f"No adapter found for {file_path}")

    def parse(self, file_path: str, tool_model: Optional[str] = None) -> ParsedBOM:
        """Parse a BOM file from disk.

        Args:
            file_path: Path to the BOM file
            tool_model: Override the tool model derived from the file name

        Returns:
            ParsedBOM; unreadable files are reported in its errors

        Raises:
            ValueError: If no adapter is registered for the file type
        """
        adapter = self._find_adapter(file_path)
        file_name = os.path.basename(file_path)
        model = tool_model or tool_model_from_filename(file_name)

        try:
            rows = adapter.read_rows(file_path)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read {file_path}: {e}")
            return ParsedBOM(
                tool_model=model,
                errors=[f"Could not read {file_name}: {e}"],
                source_file=file_name,
            )

        return self.parse_rows(rows, file_name, tool_model=model)

    def parse_many(self, file_paths: Iterable[str]) -> List[ParsedBOM]:
        """Parse several BOM files independently, one ParsedBOM per file."""
        return [self.parse(path) for path in file_paths]

    def parse_text(self, text: str, filename: str, tool_model: Optional[str] = None) -> ParsedBOM:
        """Parse BOM text (an uploaded CSV's contents)."""
        return self.parse_rows(tokenize_text(text, self.delimiters), filename, tool_model=tool_model)

    def parse_rows(
        self,
        rows: Sequence[Sequence[str]],
        filename: str,
        tool_model: Optional[str] = None
    ) -> ParsedBOM:
        """Parse already tokenized rows.

        Args:
            rows: Raw rows in file order
            filename: Source file name (tool model and messages)
            tool_model: Override the tool model derived from the file name

        Returns:
            ParsedBOM with leaf parts, warnings and errors
        """
        result = ParsedBOM(
            tool_model=tool_model or tool_model_from_filename(filename),
            source_file=filename,
        )

        try:
            column_map = self.resolver.resolve(rows, filename, allow_flat=self.allow_flat)
        except BomFormatError as e:
            logger.warning(str(e))
            result.errors.append(str(e))
            return result

        report = self.resolver.get_mapping_report(column_map, rows[column_map.header_index])
        result.column_mapping = report["mapped"]
        result.unmapped_columns = report["unmapped"]
        if result.unmapped_columns:
            logger.debug(f"Unmapped columns in {filename}: {result.unmapped_columns}")

        if column_map.quantity is None:
            result.errors.append(f"No quantity column found in {filename}")
            return result

        data_rows = rows[column_map.header_index + 1:]

        if column_map.is_hierarchical:
            result.strategy = STRATEGY_HIERARCHICAL
            result.leaf_parts = self._extract_hierarchical(data_rows, column_map, result)
        else:
            result.strategy = STRATEGY_FLAT
            result.leaf_parts = self._extract_flat(data_rows, column_map, result)

        if not result.leaf_parts and not result.errors:
            result.errors.append(f"No data rows found in {filename}")

        logger.info(
            f"Parsed {filename}: {len(result.leaf_parts)} leaf parts "
            f"({result.strategy}, {len(result.warnings)} warnings)"
        )
        return result

    def _row_quantity(self, cells: Sequence[str], column_map: ColumnMap,
                      row_number: int, result: ParsedBOM) -> float:
        raw_qty = column_map.cell(cells, "quantity")
        if not raw_qty:
            return 1.0
        qty = parse_quantity(raw_qty, default=None)
        if qty is None:
            if result is not None:
                result.warnings.append(
                    f"Row {row_number}: unparsable quantity '{raw_qty}' in {result.source_file}"
                )
            return 0.0
        return qty

    def to_hierarchy_rows(
        self,
        data_rows: Sequence[Sequence[str]],
        column_map: ColumnMap,
        first_row_number: int,
        result: Optional[ParsedBOM] = None,
        default_qty: Optional[float] = None
    ) -> List[HierarchyRow]:
        """Turn raw data rows into HierarchyRows.

        Rows whose level is not a non-negative integer, and rows without a
        part number, are noise and skipped.
        """
        hierarchy_rows: List[HierarchyRow] = []
        for offset, cells in enumerate(data_rows):
            if is_noise_row(cells):
                continue
            row_number = first_row_number + offset

            level = parse_level(column_map.cell(cells, "level"))
            if level is None:
                continue

            part_number = column_map.cell(cells, "part_number")
            if not part_number:
                continue

            if default_qty is not None:
                qty = parse_quantity(column_map.cell(cells, "quantity"), default=default_qty)
            else:
                qty = self._row_quantity(cells, column_map, row_number, result)

            hierarchy_rows.append(HierarchyRow(
                level=level,
                part_number=part_number,
                own_qty=qty,
                type=column_map.cell(cells, "type"),
                description=column_map.cell(cells, "description"),
                row_number=row_number,
            ))
        return hierarchy_rows

    def _extract_hierarchical(self, data_rows, column_map: ColumnMap, result: ParsedBOM) -> List[LeafPart]:
        hierarchy_rows = self.to_hierarchy_rows(
            data_rows, column_map, column_map.header_index + 2, result
        )
        if not hierarchy_rows:
            return []
        return extract_leaf_parts(build_forest(hierarchy_rows))

    def _extract_flat(self, data_rows, column_map: ColumnMap, result: ParsedBOM) -> List[LeafPart]:
        leaf_parts = []
        first_row_number = column_map.header_index + 2
        for offset, cells in enumerate(data_rows):
            if is_noise_row(cells):
                continue
            part_number = column_map.cell(cells, "part_number")
            if not part_number:
                continue
            qty = self._row_quantity(cells, column_map, first_row_number + offset, result)
            assembly_group = column_map.cell(cells, "assembly_group")
            leaf_parts.append(LeafPart(
                part_number=part_number,
                description=column_map.cell(cells, "description"),
                qty=round_pick_quantity(qty),
                assembly_group=assembly_group,
                type=column_map.cell(cells, "type"),
                assembly_path=assembly_group,
            ))
        return leaf_parts

    def export(self, leaf_parts: List[LeafPart], output_path: str, format: Optional[str] = None) -> str:
        """Export a leaf list to a file.

        The CSV form is a flat BOM: parsing it again yields the same part
        numbers and quantities.

        Args:
            leaf_parts: Leaf parts to write
            output_path: Path where the file should be saved
            format: Output format ('csv', 'excel', 'json', or None for auto-detect from extension)

        Returns:
            Path to the exported file

        Raises:
            ValueError: If format is not supported or data is empty
        """
        if not leaf_parts:
            raise ValueError("Cannot export empty data")

        output_path = Path(output_path)

        # Auto-detect format from extension if not provided
        if format is None:
            suffix = output_path.suffix.lower()
            if suffix == '.csv':
                format = 'csv'
            elif suffix in ['.xlsx', '.xlsm']:
                format = 'excel'
            elif suffix == '.json':
                format = 'json'
            else:
                # Default to CSV if extension is not recognized
                format = 'csv'
                output_path = output_path.with_suffix('.csv')

        format = format.lower()
        rows = [self._export_row(part) for part in leaf_parts]

        if format == 'csv':
            self._export_csv(rows, output_path)
        elif format == 'excel':
            self._export_excel(rows, output_path)
        elif format == 'json':
            self._export_json(rows, output_path)
        else:
            raise ValueError(f"Unsupported export format: {format}. Supported formats: csv, excel, json")

        return str(output_path)

    @staticmethod
    def _export_row(part: LeafPart) -> Dict[str, Any]:
        return {
            "Part Number": part.part_number,
            "Description": part.description,
            "Qty": part.qty,
            "Type": part.type,
            "Assembly Group": part.assembly_group,
        }

    def _export_csv(self, rows: List[Dict[str, Any]], output_path: Path) -> None:
        """Export data to CSV file."""
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=LEAF_EXPORT_HEADERS, quoting=csv.QUOTE_ALL)
            writer.writeheader()
            for row in rows:
                writer.writerow(row)

    def _export_excel(self, rows: List[Dict[str, Any]], output_path: Path) -> None:
        """Export data to Excel file."""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Pick List"

        for col_idx, header in enumerate(LEAF_EXPORT_HEADERS, start=1):
            ws.cell(row=1, column=col_idx, value=header)

        for row_idx, row_data in enumerate(rows, start=2):
            for col_idx, header in enumerate(LEAF_EXPORT_HEADERS, start=1):
                ws.cell(row=row_idx, column=col_idx, value=row_data.get(header, ''))

        wb.save(output_path)

    def _export_json(self, rows: List[Dict[str, Any]], output_path: Path) -> None:
        """Export data to JSON file."""
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(rows, f, indent=2, ensure_ascii=False)


def parse_bom_text(text: str, filename: str) -> ParsedBOM:
    """Parse BOM text with a default parser."""
    return BomParser().parse_text(text, filename)
