"""
Multi-level BOM hierarchy reconstruction.

Supplier BOMs encode their tree purely through a depth column: no parent
pointers, no closing markers. The builder therefore:

- keeps an explicit depth -> node index of the current ancestor chain,
  evicting deeper entries whenever a row is recorded at a shallower depth
- multiplies each row's own quantity by its nearest indexed ancestor's
  effective quantity
- decides leafness by looking one row ahead (a row is a leaf iff it is the
  last row or the next row is not deeper)

Only leaves become pickable line items; assemblies carry the multiplier and
the assembly group label down to them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .quantities import round_pick_quantity

logger = logging.getLogger(__name__)

# Depths at or above this are treated as top-level assemblies
TOP_ASSEMBLY_MAX_LEVEL = 1


@dataclass
class HierarchyRow:
    """One data row of a hierarchical BOM, after column extraction."""
    level: int
    part_number: str
    own_qty: float
    type: str = ""
    description: str = ""
    row_number: Optional[int] = None  # Position in the source file (for messages)


@dataclass
class HierarchyNode:
    """
    A node of the reconstructed BOM forest.

    Invariants:
    - is_leaf is True iff children is empty
    - effective_qty == own_qty * parent.effective_qty (own_qty at roots, and
      everywhere when the forest was built without propagation)
    - children are owned exclusively by this node
    """
    level: int
    part_number: str
    own_qty: float
    effective_qty: float
    type: str = ""
    description: str = ""
    assembly_group: str = ""
    assembly_path: str = ""
    is_leaf: bool = True
    children: List["HierarchyNode"] = field(default_factory=list)
    row_number: Optional[int] = None

    def walk(self) -> Iterator["HierarchyNode"]:
        """Yield this node and all descendants in pre-order (file order)."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "level": self.level,
            "part_number": self.part_number,
            "type": self.type,
            "own_qty": self.own_qty,
            "effective_qty": self.effective_qty,
            "description": self.description,
            "assembly_group": self.assembly_group,
            "is_leaf": self.is_leaf,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class LeafPart:
    """A pickable part extracted from one BOM."""
    part_number: str
    description: str
    qty: int  # Effective quantity, rounded up, at least 1
    assembly_group: str
    type: str = ""
    assembly_path: str = ""


def _nearest_ancestor(index: Dict[int, HierarchyNode], level: int) -> Optional[HierarchyNode]:
    for depth in range(level - 1, -1, -1):
        ancestor = index.get(depth)
        if ancestor is not None:
            return ancestor
    return None


def _assembly_group(index: Dict[int, HierarchyNode], row: HierarchyRow) -> str:
    if row.level <= TOP_ASSEMBLY_MAX_LEVEL:
        return row.part_number
    for depth in range(TOP_ASSEMBLY_MAX_LEVEL, -1, -1):
        ancestor = index.get(depth)
        if ancestor is not None:
            return ancestor.part_number
    # Deep row with no top-level ancestor: no group
    return ""


def _assembly_path(index: Dict[int, HierarchyNode], row: HierarchyRow) -> str:
    if row.level <= TOP_ASSEMBLY_MAX_LEVEL:
        return row.part_number
    path = [
        index[depth].part_number
        for depth in range(TOP_ASSEMBLY_MAX_LEVEL, row.level)
        if depth in index
    ]
    return " > ".join(path) if path else _assembly_group(index, row)


def build_forest(rows: Sequence[HierarchyRow], propagate: bool = True) -> List[HierarchyNode]:
    """
    Reconstruct the assembly forest from depth-tagged rows in file order.

    Args:
        rows: Materialized data rows (all of them, so leafness can look ahead)
        propagate: Multiply quantities through the ancestor chain. Verification
                   compares declared quantities and builds with False.

    Returns:
        List of root nodes in file order
    """
    roots: List[HierarchyNode] = []
    # depth -> current node at that depth
    index: Dict[int, HierarchyNode] = {}

    for position, row in enumerate(rows):
        next_row = rows[position + 1] if position + 1 < len(rows) else None
        is_leaf = next_row is None or next_row.level <= row.level

        parent = _nearest_ancestor(index, row.level)
        multiplier = parent.effective_qty if (parent is not None and propagate) else 1

        # Group and path are read before this row replaces its own depth
        node = HierarchyNode(
            level=row.level,
            part_number=row.part_number,
            own_qty=row.own_qty,
            effective_qty=row.own_qty * multiplier,
            type=row.type,
            description=row.description,
            assembly_group=_assembly_group(index, row),
            assembly_path=_assembly_path(index, row),
            is_leaf=is_leaf,
            row_number=row.row_number,
        )

        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
            parent.is_leaf = False

        index[row.level] = node
        for depth in [d for d in index if d > row.level]:
            del index[depth]

    logger.debug(f"Built forest: {len(roots)} roots from {len(rows)} rows")
    return roots


def iter_nodes(forest: Sequence[HierarchyNode]) -> Iterator[HierarchyNode]:
    """Pre-order iteration over every node of a forest."""
    for root in forest:
        yield from root.walk()


def count_nodes(forest: Sequence[HierarchyNode]) -> int:
    return sum(1 for _ in iter_nodes(forest))


def extract_leaf_parts(forest: Sequence[HierarchyNode]) -> List[LeafPart]:
    """
    Emit one LeafPart per leaf node, in file order.

    Quantities are rounded up and floored at 1: fractional or zero picks are
    meaningless on a pick list.
    """
    return [
        LeafPart(
            part_number=node.part_number,
            description=node.description,
            qty=round_pick_quantity(node.effective_qty),
            assembly_group=node.assembly_group,
            type=node.type,
            assembly_path=node.assembly_path,
        )
        for node in iter_nodes(forest)
        if node.is_leaf
    ]
