from .parser import BomParser, ParsedBOM, parse_bom_text
from .adapters import CsvAdapter, ExcelAdapter
from .columns import ColumnMap, ColumnResolver
from .errors import BomFormatError
from .hierarchy import HierarchyNode, LeafPart, build_forest, extract_leaf_parts
from .merge import MergedBOMResult, MergedLineItem, ToolMapping, merge_boms
from .order import ImportedOrder, OrderInfo, build_imported_order
from .schema import FIELD_SYNONYMS, LEAF_EXPORT_HEADERS
from .workbook import ParsedWorkbook, parse_workbook

__all__ = [
    "BomParser", "ParsedBOM", "parse_bom_text",
    "CsvAdapter", "ExcelAdapter",
    "ColumnMap", "ColumnResolver",
    "BomFormatError",
    "HierarchyNode", "LeafPart", "build_forest", "extract_leaf_parts",
    "MergedBOMResult", "MergedLineItem", "ToolMapping", "merge_boms",
    "ImportedOrder", "OrderInfo", "build_imported_order",
    "FIELD_SYNONYMS", "LEAF_EXPORT_HEADERS",
    "ParsedWorkbook", "parse_workbook",
]
