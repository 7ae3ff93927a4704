"""Shared fixtures: sample BOM texts and an in-memory catalog store."""

from typing import Dict, List, Optional

import pytest

from pickbom.ingest.catalog import (
    CatalogClient,
    CatalogPart,
    LineItemLink,
    PartRelationship,
    StoreSnapshot,
)


# =============================================================================
# SAMPLE BOMS
# =============================================================================

# Tool -> frame -> bolts, plus a loose cable directly under the tool
TOOL_BOM = """Tool BOM export,,,,
# generated by PLM,,,,
Level,Part Number,Description,Qty,Type
0,TOOL-A,Pick tool,1,Make
1,FRAME,Welded frame,2,Make
2,BOLT-M8,Bolt M8x20,4,Buy
2,NUT-M8,Nut M8,4,Buy
1,CABLE,Power cable,1,Buy
Σ,,,,
"""


@pytest.fixture
def tool_bom_text():
    return TOOL_BOM


# =============================================================================
# IN-MEMORY CATALOG
# =============================================================================

class FakeCatalogClient(CatalogClient):
    """Dictionary-backed CatalogClient recording every write."""

    def __init__(self, fail_parts=None, fail_relationship_parents=None):
        self.parts: Dict[str, CatalogPart] = {}
        self.relationships: Dict[tuple, PartRelationship] = {}
        self.line_items: Dict[str, List[LineItemLink]] = {}
        self.orders: Dict[str, str] = {}
        self.relationship_writes: List[tuple] = []
        self.marked: List[str] = []
        self.fail_parts = set(fail_parts or [])
        self.fail_relationship_parents = set(fail_relationship_parents or [])
        self._next_id = 1

    def _new_id(self, prefix: str) -> str:
        value = f"{prefix}-{self._next_id}"
        self._next_id += 1
        return value

    def add_part(self, part_number, description=None, is_assembly=False) -> CatalogPart:
        part = CatalogPart(
            id=self._new_id("part"),
            part_number=part_number,
            description=description,
            is_assembly=is_assembly,
        )
        self.parts[part_number] = part
        return part

    def add_relationship(self, parent_pn, child_pn, quantity=1):
        parent = self.parts[parent_pn]
        child = self.parts[child_pn]
        self.relationships[(parent.id, child.id)] = PartRelationship(parent.id, child.id, quantity)

    def find_or_create_part(self, part_number, description=None, location=None, classification=None):
        if part_number in self.fail_parts:
            raise RuntimeError(f"store unavailable for {part_number}")
        if part_number in self.parts:
            return self.parts[part_number]
        part = CatalogPart(
            id=self._new_id("part"),
            part_number=part_number,
            description=description,
            is_assembly=classification == "assembly",
            classification=classification,
            default_location=location,
        )
        self.parts[part_number] = part
        return part

    def mark_assembly(self, part_id):
        self.marked.append(part_id)
        for part in self.parts.values():
            if part.id == part_id:
                part.is_assembly = True

    def upsert_relationship(self, parent_part_id, child_part_id, quantity):
        parent_pn = next(p.part_number for p in self.parts.values() if p.id == parent_part_id)
        if parent_pn in self.fail_relationship_parents:
            raise RuntimeError(f"relationship write failed under {parent_pn}")
        self.relationship_writes.append((parent_part_id, child_part_id))
        self.relationships[(parent_part_id, child_part_id)] = PartRelationship(
            parent_part_id, child_part_id, quantity
        )

    def list_parts(self, part_numbers=None):
        if part_numbers is None:
            return list(self.parts.values())
        return [p for pn, p in self.parts.items() if pn in part_numbers]

    def fetch_snapshot(self, order_id: Optional[str] = None) -> StoreSnapshot:
        return StoreSnapshot(
            parts=list(self.parts.values()),
            relationships=list(self.relationships.values()),
            line_items=list(self.line_items.get(order_id, [])) if order_id else [],
        )

    def get_order_so_number(self, order_id):
        return self.orders.get(order_id)

    def import_order(self, order):
        order_id = self._new_id("order")
        self.orders[order_id] = order.so_number
        self.line_items[order_id] = [
            LineItemLink(item.part_number, item.assembly_group, item.part_id)
            for item in order.line_items
        ]
        return order_id

    def begin_transaction(self):
        pass

    def commit_transaction(self):
        pass

    def rollback_transaction(self):
        pass


@pytest.fixture
def catalog():
    return FakeCatalogClient()


@pytest.fixture
def make_catalog():
    """Factory for catalogs configured to fail on some writes."""
    return FakeCatalogClient
