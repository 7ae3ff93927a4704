"""Assembly of a merged BOM into the application's order / tools / line items shape."""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence

from .merge import MergedBOMResult, ToolMapping

logger = logging.getLogger(__name__)

# Line items reference tools that do not exist yet; the persistence layer
# swaps these placeholders for real tool ids after inserting the tools.
TEMP_TOOL_ID_PREFIX = "temp-"


@dataclass
class OrderInfo:
    """Order header fields supplied by the operator."""
    so_number: str
    po_number: Optional[str] = None
    customer_name: Optional[str] = None
    purchase_date: Optional[str] = None
    due_date: Optional[str] = None
    estimated_ship_date: Optional[str] = None


@dataclass
class ImportedTool:
    tool_number: str
    tool_model: Optional[str] = None
    serial_number: Optional[str] = None


@dataclass
class ImportedLineItem:
    part_number: str
    qty_per_unit: int
    total_qty_needed: int
    description: Optional[str] = None
    location: Optional[str] = None
    # None means the item applies to every tool on the order
    tool_ids: Optional[List[str]] = None
    # Legacy free-text lineage marker
    assembly_group: Optional[str] = None
    # Catalog link, filled in once the part is resolved in the store
    part_id: Optional[str] = None
    tool_models: List[str] = field(default_factory=list)


@dataclass
class ImportedOrder:
    """The assembled order handed to the persistence collaborator."""
    so_number: str
    tools: List[ImportedTool]
    line_items: List[ImportedLineItem]
    po_number: Optional[str] = None
    customer_name: Optional[str] = None
    order_date: Optional[str] = None
    due_date: Optional[str] = None
    estimated_ship_date: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return asdict(self)


def temp_tool_id(tool_number: str) -> str:
    return f"{TEMP_TOOL_ID_PREFIX}{tool_number}"


def tool_numbers_by_model(tool_mappings: Sequence[ToolMapping]) -> Dict[str, List[str]]:
    """Group tool numbers by tool model, preserving mapping order."""
    grouped: Dict[str, List[str]] = OrderedDict()
    for tm in tool_mappings:
        numbers = grouped.setdefault(tm.tool_model, [])
        if tm.tool_number not in numbers:
            numbers.append(tm.tool_number)
    return grouped


def build_imported_order(
    merged: MergedBOMResult,
    order_info: OrderInfo,
    tool_mappings: Sequence[ToolMapping],
    catalog_parts: Optional[Sequence[Any]] = None
) -> ImportedOrder:
    """
    Build an ImportedOrder from a merge result.

    Args:
        merged: Result of merge_boms()
        order_info: Order header fields
        tool_mappings: Tool model -> tool number mappings; one tool per mapping
        catalog_parts: Optional catalog entries (objects with part_number,
                       description and default_location) whose description
                       and location take precedence over the BOM text

    Returns:
        ImportedOrder. Shared items apply to every tool; variant-specific
        items carry temp tool ids for each tool of their variants.
    """
    catalog_map = {}
    for part in catalog_parts or []:
        catalog_map[part.part_number] = part

    numbers_by_model = tool_numbers_by_model(tool_mappings)

    tools: List[ImportedTool] = []
    seen_numbers = set()
    for tm in tool_mappings:
        if tm.tool_number in seen_numbers:
            continue
        seen_numbers.add(tm.tool_number)
        tools.append(ImportedTool(tool_number=tm.tool_number, tool_model=tm.tool_model))

    warnings: List[str] = []
    line_items: List[ImportedLineItem] = []

    for item in merged.line_items:
        catalog_entry = catalog_map.get(item.part_number)
        description = (
            (getattr(catalog_entry, "description", None) if catalog_entry else None)
            or item.description
            or None
        )
        location = getattr(catalog_entry, "default_location", None) if catalog_entry else None

        tool_ids: Optional[List[str]] = None
        if not item.is_shared:
            tool_ids = [
                temp_tool_id(number)
                for model in item.tool_models
                for number in numbers_by_model.get(model, [])
            ]
            if not tool_ids:
                warnings.append(
                    f"{item.part_number}: no tool mapped to {', '.join(item.tool_models)}; "
                    f"line item will apply to every tool"
                )
                tool_ids = None

        applicable_tools = len(tool_ids) if tool_ids else len(tools)

        line_items.append(ImportedLineItem(
            part_number=item.part_number,
            description=description,
            location=location,
            qty_per_unit=item.qty_per_unit,
            total_qty_needed=item.qty_per_unit * applicable_tools,
            tool_ids=tool_ids,
            assembly_group=item.assembly_group or None,
            tool_models=list(item.tool_models),
        ))

    for message in warnings:
        logger.warning(message)

    return ImportedOrder(
        so_number=order_info.so_number,
        po_number=order_info.po_number,
        customer_name=order_info.customer_name,
        order_date=order_info.purchase_date,
        due_date=order_info.due_date,
        estimated_ship_date=order_info.estimated_ship_date,
        tools=tools,
        line_items=line_items,
        warnings=warnings,
    )
