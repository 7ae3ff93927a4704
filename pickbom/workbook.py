"""
Multi-sheet Excel order workbooks.

Three layouts are recognised:

- a single parts sheet (no "Order Info" sheet): parsed like any BOM file
- an "Order Info" sheet plus one "Parts" sheet: one tool variant, named by
  the order info's tool model (or the file name)
- an "Order Info" sheet plus one sheet per tool variant: the sheet name is
  the tool model, and each sheet feeds the multi-variant merge

The "Order Info" sheet holds label/value pairs in its first two columns.
"""

import logging
import os
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .adapters.excel_adapter import ExcelAdapter
from .columns import is_noise_row
from .merge import ToolMapping
from .order import OrderInfo
from .parser import BomParser, ParsedBOM, tool_model_from_filename
from .quantities import parse_quantity

logger = logging.getLogger(__name__)

# Only the top of the Order Info sheet is scanned for label/value pairs
ORDER_INFO_MAX_ROWS = 20

_SO_IN_FILENAME = re.compile(r"SO[- ]?(\d+)", re.IGNORECASE)
_SO_PREFIX = re.compile(r"^SO[- ]?", re.IGNORECASE)


def is_order_info_sheet(name: str) -> bool:
    lowered = name.lower()
    return "order" in lowered and "info" in lowered


def is_parts_sheet(name: str) -> bool:
    lowered = name.lower()
    return lowered == "parts" or ("part" in lowered and "order" not in lowered)


@dataclass
class OrderInfoFields:
    """Values read from an Order Info sheet."""
    so_number: Optional[str] = None
    po_number: Optional[str] = None
    customer_name: Optional[str] = None
    order_date: Optional[str] = None
    due_date: Optional[str] = None
    estimated_ship_date: Optional[str] = None
    tool_model: Optional[str] = None
    tool_qty: Optional[int] = None


def _has_number_marker(label: str) -> bool:
    return "number" in label or "#" in label or "no" in label


def parse_order_info(rows: Sequence[Sequence[str]]) -> OrderInfoFields:
    """
    Read label/value pairs from an Order Info sheet.

    Labels are matched loosely ("SO #", "SO Number", "Customer", "Tool Qty",
    "Due Date", ...). Rows with an empty label or value are ignored, as is
    anything below the first ORDER_INFO_MAX_ROWS rows.
    """
    info = OrderInfoFields()
    for cells in rows[:ORDER_INFO_MAX_ROWS]:
        if len(cells) < 2:
            continue
        label = (cells[0] or "").strip().lower()
        value = (cells[1] or "").strip()
        if not label or not value:
            continue

        if label == "so" or ("so" in label and _has_number_marker(label)):
            info.so_number = _SO_PREFIX.sub("", value)
        elif label == "po" or ("po" in label and _has_number_marker(label)):
            info.po_number = value
        elif "customer" in label or "client" in label:
            info.customer_name = value
        elif "tool" in label and "qty" in label:
            qty = parse_quantity(value, default=None)
            info.tool_qty = int(qty) if qty and qty >= 1 else None
        elif "tool" in label and "model" in label:
            info.tool_model = value
        elif "order" in label and "date" in label:
            info.order_date = value
        elif "due" in label and "date" in label:
            info.due_date = value
        elif "ship" in label and "date" in label:
            info.estimated_ship_date = value
    return info


def so_number_from_filename(filename: str) -> str:
    """SO number from a file name ("SO-3930 order.xlsx" -> "3930"), else its stem."""
    base = os.path.basename(filename)
    match = _SO_IN_FILENAME.search(base)
    if match:
        return match.group(1)
    return tool_model_from_filename(base)


@dataclass
class ParsedWorkbook:
    """Result of parsing an order workbook.

    ``boms`` holds one ParsedBOM per tool variant sheet. ``order_info`` is
    None when the workbook has no Order Info sheet.
    """
    source_file: str
    boms: List[ParsedBOM] = field(default_factory=list)
    order_info: Optional[OrderInfo] = None
    tool_model: Optional[str] = None
    tool_qty: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def default_tool_mappings(self, so_number: Optional[str] = None) -> List[ToolMapping]:
        """
        One tool per variant sheet, numbered "<so>-1", "<so>-2", ...

        A single-variant workbook gets ``tool_qty`` tools when the Order Info
        sheet declares one.
        """
        so = so_number or (self.order_info.so_number if self.order_info else None)
        so = so or so_number_from_filename(self.source_file)

        usable = [bom for bom in self.boms if bom.ok]
        per_variant = self.tool_qty if (self.tool_qty and len(usable) == 1) else 1

        mappings: List[ToolMapping] = []
        counter = 1
        for bom in usable:
            for _ in range(per_variant):
                mappings.append(ToolMapping(tool_model=bom.tool_model, tool_number=f"{so}-{counter}"))
                counter += 1
        return mappings

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "source_file": self.source_file,
            "order_info": asdict(self.order_info) if self.order_info else None,
            "tool_model": self.tool_model,
            "tool_qty": self.tool_qty,
            "boms": [bom.to_dict() for bom in self.boms],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


def parse_workbook(
    file_path: str,
    parser: Optional[BomParser] = None,
    adapter: Optional[ExcelAdapter] = None
) -> ParsedWorkbook:
    """
    Parse an Excel order workbook into per-variant BOMs plus order info.

    Args:
        file_path: Path to the .xlsx/.xlsm workbook
        parser: BomParser used for each sheet (default: a new one)
        adapter: ExcelAdapter used to read the sheets (default: a new one)

    Returns:
        ParsedWorkbook. An unreadable workbook is reported in its errors;
        empty sheets are skipped with a warning.
    """
    parser = parser or BomParser()
    adapter = adapter or ExcelAdapter()
    file_name = os.path.basename(file_path)
    result = ParsedWorkbook(source_file=file_name)

    try:
        sheets = adapter.read_sheets(file_path)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read {file_path}: {e}")
        result.errors.append(f"Could not read {file_name}: {e}")
        return result

    if not sheets:
        result.errors.append(f"No sheets found in {file_name}")
        return result

    info_sheet = next((name for name in sheets if is_order_info_sheet(name)), None)

    if info_sheet is None:
        first_name = next(iter(sheets))
        result.boms.append(parser.parse_rows(sheets[first_name], file_name))
        logger.info(f"Parsed {file_name} as a single-sheet BOM ({first_name})")
        return result

    fields = parse_order_info(sheets[info_sheet])
    so_number = fields.so_number or so_number_from_filename(file_name)
    result.order_info = OrderInfo(
        so_number=so_number,
        po_number=fields.po_number,
        customer_name=fields.customer_name,
        purchase_date=fields.order_date,
        due_date=fields.due_date,
        estimated_ship_date=fields.estimated_ship_date,
    )
    result.tool_model = fields.tool_model
    result.tool_qty = fields.tool_qty

    variant_sheets = []
    for name, rows in sheets.items():
        if name == info_sheet:
            continue
        if all(is_noise_row(cells) for cells in rows):
            result.warnings.append(f'Sheet "{name}" is empty - skipping')
            continue
        variant_sheets.append(name)

    if not variant_sheets:
        result.errors.append(f"No parts sheets found in {file_name}")
        return result

    single_parts_sheet = len(variant_sheets) == 1 and is_parts_sheet(variant_sheets[0])

    for name in variant_sheets:
        if single_parts_sheet:
            tool_model = fields.tool_model or tool_model_from_filename(file_name)
        else:
            tool_model = name.strip()
        result.boms.append(parser.parse_rows(sheets[name], f"{file_name}:{name}", tool_model=tool_model))

    logger.info(
        f"Parsed workbook {file_name}: {len(result.boms)} variant sheets "
        f"(SO {so_number}, {len(result.warnings)} warnings)"
    )
    return result
