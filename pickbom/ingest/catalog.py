"""
Catalog linking for imported orders.

Line items carry a free-text ``assembly_group`` for lineage. This module turns
that lineage into structured catalog data:

- parts: one catalog entry per part number (reused across imports)
- part_relationships: assembly -> child links with a per-unit quantity

Writes are best-effort. A failure to link one assembly never aborts the
import; it is recorded as a warning and the remaining assemblies proceed.
Relationship writes are upserts, so re-running an import is harmless.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..order import ImportedOrder

logger = logging.getLogger(__name__)

CLASSIFICATION_ASSEMBLY = "assembly"
ASSEMBLY_DESCRIPTION_PREFIX = "Assembly: "


@dataclass
class CatalogPart:
    """A persisted catalog part."""
    id: str
    part_number: str
    description: Optional[str] = None
    is_assembly: bool = False
    classification: Optional[str] = None
    default_location: Optional[str] = None


@dataclass
class PartRelationship:
    parent_part_id: str
    child_part_id: str
    quantity: float = 1


@dataclass
class LineItemLink:
    """How one order line item is tied to the catalog."""
    part_number: str
    assembly_group: Optional[str] = None
    part_id: Optional[str] = None


@dataclass
class StoreSnapshot:
    """Read-only view of the catalog (and one order's line items) at verification time."""
    parts: List[CatalogPart] = field(default_factory=list)
    relationships: List[PartRelationship] = field(default_factory=list)
    line_items: List[LineItemLink] = field(default_factory=list)


class CatalogClient:
    """
    Abstract catalog/order store interface.

    Implement this interface with your actual database client (see
    SupabaseClient). Part and relationship writes must be idempotent:
    calling them twice with the same arguments leaves one row.
    """

    def find_or_create_part(
        self,
        part_number: str,
        description: Optional[str] = None,
        location: Optional[str] = None,
        classification: Optional[str] = None
    ) -> CatalogPart:
        """
        Resolve a part by part number, creating it when missing.

        Args:
            part_number: Catalog key
            description: Used only when creating
            location: Default location, used only when creating
            classification: e.g. "assembly", used only when creating

        Returns:
            The existing or newly created CatalogPart
        """
        raise NotImplementedError

    def mark_assembly(self, part_id: str) -> None:
        """Flag a part as an assembly (has children)."""
        raise NotImplementedError

    def upsert_relationship(
        self,
        parent_part_id: str,
        child_part_id: str,
        quantity: float
    ) -> None:
        """Create or update the parent -> child relationship."""
        raise NotImplementedError

    def list_parts(self, part_numbers: Optional[List[str]] = None) -> List[CatalogPart]:
        """List catalog parts, optionally restricted to some part numbers."""
        raise NotImplementedError

    def fetch_snapshot(self, order_id: Optional[str] = None) -> StoreSnapshot:
        """
        Read all parts and relationships, plus the line items of one order.

        Args:
            order_id: Order whose line items are included (none when omitted)
        """
        raise NotImplementedError

    def get_order_so_number(self, order_id: str) -> Optional[str]:
        """Sales order number of an order, or None when the order is unknown."""
        raise NotImplementedError

    def import_order(self, order: ImportedOrder) -> str:
        """
        Persist an order with its tools and line items.

        Line item ``tool_ids`` hold temp ids ("temp-<tool_number>") that the
        implementation replaces with the ids of the tools it creates.

        Returns:
            The new order id
        """
        raise NotImplementedError

    def begin_transaction(self) -> None:
        """Begin a database transaction."""
        raise NotImplementedError

    def commit_transaction(self) -> None:
        """Commit the current transaction."""
        raise NotImplementedError

    def rollback_transaction(self) -> None:
        """Rollback the current transaction."""
        raise NotImplementedError


@dataclass
class CatalogLinkResult:
    """Outcome of linking an order's line items to the catalog."""
    order: ImportedOrder
    parts_linked: int = 0
    assemblies_linked: int = 0
    relationships_written: int = 0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "order": self.order.to_dict(),
            "parts_linked": self.parts_linked,
            "assemblies_linked": self.assemblies_linked,
            "relationships_written": self.relationships_written,
            "warnings": list(self.warnings),
        }


def _resolve_parts(
    client: CatalogClient,
    order: ImportedOrder,
    warnings: List[str]
) -> Dict[str, CatalogPart]:
    """Find or create one catalog part per distinct part number on the order."""
    resolved: Dict[str, CatalogPart] = {}
    for item in order.line_items:
        if item.part_number in resolved:
            continue
        try:
            resolved[item.part_number] = client.find_or_create_part(
                item.part_number,
                description=item.description,
                location=item.location,
            )
        except Exception as e:
            logger.error(f"Could not resolve catalog part {item.part_number}: {e}", exc_info=True)
            warnings.append(f'Could not resolve catalog part "{item.part_number}"')
    return resolved


def _plan_relationships(
    order: ImportedOrder,
    parts: Dict[str, CatalogPart],
    assembly_parts: Dict[str, CatalogPart]
) -> "OrderedDict[Tuple[str, str], Tuple[str, float]]":
    """
    Plan parent -> child relationships before anything is written.

    Keyed by (parent_id, child_id); the first quantity seen for a pair wins,
    so variant-specific duplicates of one part collapse to a single row.
    Values are (assembly name, quantity).
    """
    planned: "OrderedDict[Tuple[str, str], Tuple[str, float]]" = OrderedDict()
    for item in order.line_items:
        group = item.assembly_group
        if not group or group not in assembly_parts:
            continue
        child = parts.get(item.part_number)
        if child is None:
            continue
        parent = assembly_parts[group]
        if parent.id == child.id:
            continue
        key = (parent.id, child.id)
        if key not in planned:
            planned[key] = (group, item.qty_per_unit)
    return planned


def link_catalog_parts(
    order: ImportedOrder,
    client: CatalogClient,
    link_assemblies: bool = True,
    mark_assemblies: bool = True
) -> CatalogLinkResult:
    """
    Resolve catalog parts for every line item and link assemblies to their children.

    1. Find or create a catalog part per distinct part number
    2. Group line items by assembly_group; find or create each group's
       assembly part and mark it as an assembly
    3. Plan deduplicated (parent, child) relationships
    4. Upsert them one at a time

    Args:
        order: Order from build_imported_order()
        client: Catalog store
        link_assemblies: Create assembly parts and relationships (default: True)
        mark_assemblies: Flag assembly parts as assemblies (default: True)

    Returns:
        CatalogLinkResult whose ``order`` is a copy with part_ids filled in.
        Store failures are reported in ``warnings``, never raised.
    """
    warnings: List[str] = []
    parts = _resolve_parts(client, order, warnings)

    line_items = [
        replace(item, part_id=parts[item.part_number].id) if item.part_number in parts else replace(item)
        for item in order.line_items
    ]
    linked_order = replace(order, line_items=line_items, warnings=list(order.warnings))

    result = CatalogLinkResult(order=linked_order, parts_linked=len(parts), warnings=warnings)

    if not link_assemblies:
        return result

    groups: List[str] = []
    for item in order.line_items:
        if item.assembly_group and item.assembly_group not in groups:
            groups.append(item.assembly_group)

    assembly_parts: Dict[str, CatalogPart] = {}
    failed_groups = set()

    for group in groups:
        try:
            assembly = parts.get(group)
            if assembly is None:
                assembly = client.find_or_create_part(
                    group,
                    description=f"{ASSEMBLY_DESCRIPTION_PREFIX}{group}",
                    classification=CLASSIFICATION_ASSEMBLY,
                )
            if mark_assemblies and not assembly.is_assembly:
                client.mark_assembly(assembly.id)
            assembly_parts[group] = assembly
            logger.debug(f"Assembly resolved: '{group}' -> {assembly.id}")
        except Exception as e:
            logger.error(f"Could not resolve assembly {group}: {e}", exc_info=True)
            failed_groups.add(group)
            warnings.append(f'Could not link assembly "{group}"')

    planned = _plan_relationships(order, parts, assembly_parts)

    for (parent_id, child_id), (group, quantity) in planned.items():
        if group in failed_groups:
            continue
        try:
            client.upsert_relationship(parent_id, child_id, quantity)
            result.relationships_written += 1
        except Exception as e:
            logger.error(f"Could not write relationship {parent_id} -> {child_id}: {e}", exc_info=True)
            failed_groups.add(group)
            warnings.append(f'Could not link assembly "{group}"')

    result.assemblies_linked = len([g for g in assembly_parts if g not in failed_groups])

    logger.info(
        f"Linked {result.parts_linked} parts, {result.assemblies_linked} assemblies, "
        f"{result.relationships_written} relationships ({len(warnings)} warnings)"
    )
    return result
