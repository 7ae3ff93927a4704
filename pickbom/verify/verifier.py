"""
Post-import structural verification.

A BOM file is parsed on its own into an assembly forest (declared
quantities, no multiplication) and walked against a snapshot of the
catalog:

- part not in the catalog                     -> MISSING_IN_STORE (error)
- parent -> child relationship not stored     -> RELATIONSHIP_MISSING (error)
- relationship stored with another quantity   -> QUANTITY_MISMATCH (warning)
- order line item linked only by its text
  assembly_group                              -> LEGACY_TEXT_ONLY (info)

Optionally, stored children that the file no longer lists are reported as
MISSING_IN_SOURCE (warning).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from ..errors import BomFormatError
from ..hierarchy import HierarchyNode, build_forest, count_nodes
from ..ingest.catalog import CatalogClient, CatalogPart, PartRelationship, StoreSnapshot
from ..parser import BomParser
from ..schema import DEFAULT_DELIMITERS
from ..tokenizer import tokenize_text

logger = logging.getLogger(__name__)

UNKNOWN_SO_NUMBER = "Unknown"


class DiscrepancyType(Enum):
    MISSING_IN_STORE = "missing_in_store"
    MISSING_IN_SOURCE = "missing_in_source"
    QUANTITY_MISMATCH = "quantity_mismatch"
    RELATIONSHIP_MISSING = "relationship_missing"
    LEGACY_TEXT_ONLY = "legacy_text_only"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class DiscrepancyDetails:
    source_qty: Optional[float] = None
    stored_qty: Optional[float] = None
    legacy_group: Optional[str] = None


@dataclass
class Discrepancy:
    type: DiscrepancyType
    severity: Severity
    part_number: str
    message: str
    parent_part_number: Optional[str] = None
    details: DiscrepancyDetails = field(default_factory=DiscrepancyDetails)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "part_number": self.part_number,
            "parent_part_number": self.parent_part_number,
            "message": self.message,
            "details": {
                "source_qty": self.details.source_qty,
                "stored_qty": self.details.stored_qty,
                "legacy_group": self.details.legacy_group,
            },
        }


@dataclass
class VerificationSummary:
    total_parts: int = 0
    parts_in_store: int = 0
    parts_missing_in_store: int = 0
    relationships_verified: int = 0
    relationships_missing: int = 0
    legacy_text_only: int = 0


@dataclass
class VerificationReport:
    """Everything found while verifying one BOM file against the catalog."""
    so_number: str
    file_name: str
    verified_at: datetime
    source_assemblies: List[HierarchyNode]
    discrepancies: List[Discrepancy]
    summary: VerificationSummary

    @property
    def has_discrepancies(self) -> bool:
        return bool(self.discrepancies)

    def discrepancies_by_severity(self, severity: Severity) -> List[Discrepancy]:
        """Filter discrepancies by severity."""
        return [d for d in self.discrepancies if d.severity == severity]

    def discrepancies_by_type(self, discrepancy_type: DiscrepancyType) -> List[Discrepancy]:
        """Filter discrepancies by type."""
        return [d for d in self.discrepancies if d.type == discrepancy_type]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "so_number": self.so_number,
            "file_name": self.file_name,
            "verified_at": self.verified_at.isoformat(),
            "source_assemblies": [node.to_dict() for node in self.source_assemblies],
            "discrepancies": [d.to_dict() for d in self.discrepancies],
            "summary": {
                "total_parts": self.summary.total_parts,
                "parts_in_store": self.summary.parts_in_store,
                "parts_missing_in_store": self.summary.parts_missing_in_store,
                "relationships_verified": self.summary.relationships_verified,
                "relationships_missing": self.summary.relationships_missing,
                "legacy_text_only": self.summary.legacy_text_only,
            },
        }


def parse_assembly_hierarchy(
    text_or_rows: Union[str, Sequence[Sequence[str]]],
    file_name: str,
    delimiters: str = DEFAULT_DELIMITERS
) -> List[HierarchyNode]:
    """
    Parse a hierarchical BOM into a forest of declared quantities.

    The quantity column is optional here; a missing or unparsable quantity
    counts as 1.

    Args:
        text_or_rows: File contents, or rows already tokenized by an adapter
        file_name: Used in error messages
        delimiters: Cell delimiters when text is given

    Returns:
        Root nodes in file order

    Raises:
        BomFormatError: If no level + part number header row exists
    """
    if isinstance(text_or_rows, str):
        rows = tokenize_text(text_or_rows, delimiters)
    else:
        rows = text_or_rows

    parser = BomParser(delimiters=delimiters, allow_flat=False)
    column_map = parser.resolver.resolve(rows, file_name, allow_flat=False)

    hierarchy_rows = parser.to_hierarchy_rows(
        rows[column_map.header_index + 1:],
        column_map,
        column_map.header_index + 2,
        default_qty=1,
    )
    if not hierarchy_rows:
        raise BomFormatError(f"No data rows found in {file_name}", file_name=file_name)

    forest = build_forest(hierarchy_rows, propagate=False)
    logger.debug(f"Parsed {file_name}: {count_nodes(forest)} nodes in {len(forest)} assemblies")
    return forest


class _Catalog:
    """Lookup tables over a StoreSnapshot."""

    def __init__(self, snapshot: StoreSnapshot):
        self.parts_by_number: Dict[str, CatalogPart] = {}
        for part in snapshot.parts:
            self.parts_by_number.setdefault(part.part_number, part)
        self.parts_by_id: Dict[str, CatalogPart] = {part.id: part for part in snapshot.parts}
        self.children_by_parent: Dict[str, List[PartRelationship]] = {}
        for rel in snapshot.relationships:
            self.children_by_parent.setdefault(rel.parent_part_id, []).append(rel)

    def relationship(self, parent: CatalogPart, child_part_number: str) -> Optional[PartRelationship]:
        for rel in self.children_by_parent.get(parent.id, []):
            child = self.parts_by_id.get(rel.child_part_id)
            if child is not None and child.part_number == child_part_number:
                return rel
        return None

    def stored_children(self, parent: CatalogPart) -> List[CatalogPart]:
        return [
            self.parts_by_id[rel.child_part_id]
            for rel in self.children_by_parent.get(parent.id, [])
            if rel.child_part_id in self.parts_by_id
        ]


def _quantities_differ(source_qty: float, stored_qty: float) -> bool:
    return abs(float(source_qty) - float(stored_qty)) > 1e-9


def verify_assembly_structure(
    forest: Sequence[HierarchyNode],
    snapshot: StoreSnapshot,
    so_number: Optional[str],
    file_name: str,
    verified_at: Optional[datetime] = None,
    check_extra_children: bool = False
) -> VerificationReport:
    """
    Compare a parsed assembly forest with the stored catalog.

    Relationship checks run only for nodes whose parent part is in the
    catalog, so relationship discrepancies never outnumber non-root nodes.

    Args:
        forest: From parse_assembly_hierarchy()
        snapshot: Catalog parts/relationships plus the order's line items
        so_number: Sales order number for the report header
        file_name: Source file name for the report header
        verified_at: Timestamp for the report (default: now, UTC)
        check_extra_children: Also report stored children the file does not list

    Returns:
        VerificationReport
    """
    catalog = _Catalog(snapshot)
    summary = VerificationSummary()
    discrepancies: List[Discrepancy] = []

    def visit(node: HierarchyNode, parent: Optional[HierarchyNode]) -> None:
        summary.total_parts += 1
        part = catalog.parts_by_number.get(node.part_number)

        if part is None:
            summary.parts_missing_in_store += 1
            discrepancies.append(Discrepancy(
                type=DiscrepancyType.MISSING_IN_STORE,
                severity=Severity.ERROR,
                part_number=node.part_number,
                parent_part_number=parent.part_number if parent else None,
                message=f'Part "{node.part_number}" found in CSV but not in parts catalog',
                details=DiscrepancyDetails(source_qty=node.own_qty),
            ))
        else:
            summary.parts_in_store += 1
            parent_part = catalog.parts_by_number.get(parent.part_number) if parent else None
            if parent_part is not None:
                rel = catalog.relationship(parent_part, node.part_number)
                if rel is None:
                    summary.relationships_missing += 1
                    discrepancies.append(Discrepancy(
                        type=DiscrepancyType.RELATIONSHIP_MISSING,
                        severity=Severity.ERROR,
                        part_number=node.part_number,
                        parent_part_number=parent.part_number,
                        message=(
                            f'Relationship missing in database: '
                            f'"{parent.part_number}" -> "{node.part_number}"'
                        ),
                        details=DiscrepancyDetails(source_qty=node.own_qty),
                    ))
                else:
                    summary.relationships_verified += 1
                    if _quantities_differ(node.own_qty, rel.quantity):
                        discrepancies.append(Discrepancy(
                            type=DiscrepancyType.QUANTITY_MISMATCH,
                            severity=Severity.WARNING,
                            part_number=node.part_number,
                            parent_part_number=parent.part_number,
                            message=(
                                f'Quantity mismatch for "{node.part_number}" '
                                f'under "{parent.part_number}"'
                            ),
                            details=DiscrepancyDetails(
                                source_qty=node.own_qty,
                                stored_qty=rel.quantity,
                            ),
                        ))

            if check_extra_children and node.children:
                listed = {child.part_number for child in node.children}
                for stored_child in catalog.stored_children(part):
                    if stored_child.part_number in listed:
                        continue
                    discrepancies.append(Discrepancy(
                        type=DiscrepancyType.MISSING_IN_SOURCE,
                        severity=Severity.WARNING,
                        part_number=stored_child.part_number,
                        parent_part_number=node.part_number,
                        message=(
                            f'Part "{stored_child.part_number}" is linked under '
                            f'"{node.part_number}" in database but not listed in CSV'
                        ),
                    ))

        for child in node.children:
            visit(child, node)

    for root in forest:
        visit(root, None)

    for item in snapshot.line_items:
        if item.assembly_group and not item.part_id:
            summary.legacy_text_only += 1
            discrepancies.append(Discrepancy(
                type=DiscrepancyType.LEGACY_TEXT_ONLY,
                severity=Severity.INFO,
                part_number=item.part_number,
                message=f'Part "{item.part_number}" uses legacy text-based assembly_group field',
                details=DiscrepancyDetails(legacy_group=item.assembly_group),
            ))

    logger.info(
        f"Verified {file_name}: {summary.total_parts} parts, "
        f"{len(discrepancies)} discrepancies"
    )

    return VerificationReport(
        so_number=so_number or UNKNOWN_SO_NUMBER,
        file_name=file_name,
        verified_at=verified_at or datetime.now(timezone.utc),
        source_assemblies=list(forest),
        discrepancies=discrepancies,
        summary=summary,
    )


def verify_order(
    client: CatalogClient,
    order_id: str,
    text: str,
    file_name: str,
    check_extra_children: bool = False,
    delimiters: str = DEFAULT_DELIMITERS
) -> VerificationReport:
    """
    Verify a BOM file against the catalog and one imported order.

    Raises:
        BomFormatError: If the file has no hierarchical header row
    """
    forest = parse_assembly_hierarchy(text, file_name, delimiters)
    so_number = client.get_order_so_number(order_id)
    snapshot = client.fetch_snapshot(order_id)
    return verify_assembly_structure(
        forest,
        snapshot,
        so_number,
        file_name,
        check_extra_children=check_extra_children,
    )
