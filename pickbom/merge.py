"""
Multi-BOM merge for orders spanning several tool variants.

Each parsed BOM describes one tool variant. Merging unions their leaf parts
and classifies every (part, quantity) pairing:

- SHARED: present in every variant at one uniform quantity
- VARIANT-SPECIFIC: present in only some variants, or at differing quantities

A part present in all variants at two different quantities produces two
variant-specific items, one per quantity. Quantities are never averaged and
no majority quantity is picked.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .parser import ParsedBOM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolMapping:
    """Caller-supplied identifiers: which physical tool builds which variant.

    One tool model may map to several tool numbers (several units of the
    same variant on one order).
    """
    tool_model: str
    tool_number: str  # e.g. "3930-1"


@dataclass
class MergedLineItem:
    """One line of the consolidated order preview."""
    part_number: str
    description: str
    assembly_group: str
    qty_per_unit: int
    tool_models: List[str]  # Unique, in source order
    is_shared: bool

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "part_number": self.part_number,
            "description": self.description,
            "assembly_group": self.assembly_group,
            "qty_per_unit": self.qty_per_unit,
            "tool_models": list(self.tool_models),
            "is_shared": self.is_shared,
        }


@dataclass
class MergeStats:
    total_parts: int = 0
    shared_count: int = 0
    tool_specific_count: int = 0


@dataclass
class MergedBOMResult:
    """
    Result of merging several parsed BOMs.

    ``errors`` block the import (the caller should withhold it until
    resolved); ``file_errors`` lists, per tool model, the files that were
    left out of the merge; ``warnings`` are informational.
    """
    line_items: List[MergedLineItem]
    all_tool_models: List[str]
    stats: MergeStats
    errors: List[str] = field(default_factory=list)
    file_errors: Dict[str, List[str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def can_import(self) -> bool:
        return not self.errors and not self.file_errors and bool(self.line_items)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "line_items": [item.to_dict() for item in self.line_items],
            "all_tool_models": list(self.all_tool_models),
            "stats": {
                "total_parts": self.stats.total_parts,
                "shared_count": self.stats.shared_count,
                "tool_specific_count": self.stats.tool_specific_count,
            },
            "errors": list(self.errors),
            "file_errors": {k: list(v) for k, v in self.file_errors.items()},
            "warnings": list(self.warnings),
        }


@dataclass
class _PartInfo:
    qty: int
    assembly_group: str
    description: str


def _collapse_duplicates(bom: ParsedBOM) -> Dict[str, _PartInfo]:
    """Sum quantities of a part appearing under several branches of one BOM.

    The first occurrence's assembly group and description are kept.
    """
    parts: Dict[str, _PartInfo] = {}
    for leaf in bom.leaf_parts:
        existing = parts.get(leaf.part_number)
        if existing is None:
            parts[leaf.part_number] = _PartInfo(
                qty=leaf.qty,
                assembly_group=leaf.assembly_group,
                description=leaf.description,
            )
        else:
            existing.qty += leaf.qty
    return parts


def _sort_key(item: MergedLineItem):
    # Shared first, then lineage, then part number
    return (not item.is_shared, item.assembly_group.lower(), item.part_number.lower())


def merge_boms(
    parsed_boms: Sequence[ParsedBOM],
    tool_mappings: Optional[Sequence[ToolMapping]] = None
) -> MergedBOMResult:
    """
    Merge leaf parts from several parsed BOMs into one set of line items.

    Args:
        parsed_boms: One ParsedBOM per tool variant, in upload order
        tool_mappings: Optional tool model -> tool number mappings; only used
                       to warn about variants that no tool is mapped to

    Returns:
        MergedBOMResult. BOMs with file-level errors are excluded from the
        merge (and from the "every variant" count) and reported in
        ``file_errors``.
    """
    errors: List[str] = []
    warnings: List[str] = []
    file_errors: Dict[str, List[str]] = {}

    usable: List[ParsedBOM] = []
    seen_models = set()
    for bom in parsed_boms:
        if bom.tool_model in seen_models:
            errors.append(f"Duplicate tool model {bom.tool_model}: each BOM must describe a different variant")
            continue
        seen_models.add(bom.tool_model)

        if bom.errors:
            file_errors[bom.tool_model] = list(bom.errors)
            logger.warning(f"Excluding {bom.tool_model} from merge: {'; '.join(bom.errors)}")
            continue
        usable.append(bom)

    all_tool_models = [bom.tool_model for bom in usable]
    source_count = len(usable)

    per_bom: Dict[str, Dict[str, _PartInfo]] = {
        bom.tool_model: _collapse_duplicates(bom) for bom in usable
    }

    # Unique part numbers in first-seen order
    all_part_numbers: List[str] = []
    seen_parts = set()
    for bom in usable:
        for part_number in per_bom[bom.tool_model]:
            if part_number not in seen_parts:
                seen_parts.add(part_number)
                all_part_numbers.append(part_number)

    line_items: List[MergedLineItem] = []

    for part_number in all_part_numbers:
        entries = [
            (bom.tool_model, per_bom[bom.tool_model][part_number])
            for bom in usable
            if part_number in per_bom[bom.tool_model]
        ]
        first_info = entries[0][1]

        # qty -> tool models, in source order
        qty_groups: Dict[int, List[str]] = {}
        for tool_model, info in entries:
            qty_groups.setdefault(info.qty, []).append(tool_model)

        single_group = len(qty_groups) == 1

        for qty, tool_models in qty_groups.items():
            is_shared = single_group and len(tool_models) == source_count
            line_items.append(MergedLineItem(
                part_number=part_number,
                description=first_info.description,
                assembly_group=first_info.assembly_group,
                qty_per_unit=qty,
                tool_models=tool_models,
                is_shared=is_shared,
            ))

    line_items.sort(key=_sort_key)

    if not line_items:
        errors.append("No leaf parts found in any BOM")

    if tool_mappings:
        mapped_models = {tm.tool_model for tm in tool_mappings}
        for model in all_tool_models:
            if model not in mapped_models:
                warnings.append(f"No tool number mapped to tool model {model}")

    shared_count = sum(1 for item in line_items if item.is_shared)
    stats = MergeStats(
        total_parts=len(line_items),
        shared_count=shared_count,
        tool_specific_count=len(line_items) - shared_count,
    )

    logger.info(
        f"Merged {source_count} BOMs: {stats.total_parts} line items "
        f"({stats.shared_count} shared, {stats.tool_specific_count} tool-specific)"
    )

    return MergedBOMResult(
        line_items=line_items,
        all_tool_models=all_tool_models,
        stats=stats,
        errors=errors,
        file_errors=file_errors,
        warnings=warnings,
    )
