"""BOM schema definitions: header synonyms and noise markers for pick-list BOMs."""

from typing import Dict, List

# Fields the column resolver knows how to locate, in resolution order
FIELD_ORDER = [
    "level",
    "part_number",
    "quantity",
    "type",
    "description",
    "assembly_group",
]

# Header synonyms per field (compared after lowercasing and whitespace collapsing)
FIELD_SYNONYMS: Dict[str, List[str]] = {
    "level": [
        "level", "lvl"
    ],
    "part_number": [
        "part number", "part_number", "partnumber", "part no", "part no.",
        "pn", "ref_pn"
    ],
    "quantity": [
        "qty", "quantity", "qty per", "qty/assy", "qty ea", "qty needed"
    ],
    "type": [
        "type", "make/buy", "make_buy"
    ],
    "description": [
        "description", "desc", "name", "part description"
    ],
    # Only written by the leaf-list export and read back by the flat strategy
    "assembly_group": [
        "assembly group", "assembly_group", "assy group"
    ],
}

# Fields that must match exactly for a row to qualify as the header row
HEADER_KEY_FIELDS = ("level", "part_number")

# Synonyms shorter than this never take part in substring matching
# ("pn" would otherwise claim an "MPN" column)
MIN_SUBSTRING_SYNONYM_LENGTH = 3

# Lines beginning with this are comments
COMMENT_PREFIX = "#"

# Checksum / total rows carry a summation sign somewhere in the row
SUM_MARKERS = ("Σ",)

# Delimiters recognised by the tokenizer when none are given
DEFAULT_DELIMITERS = ",;"

# Headers used when exporting a leaf list as a flat BOM
LEAF_EXPORT_HEADERS = [
    "Part Number",
    "Description",
    "Qty",
    "Type",
    "Assembly Group",
]

__all__ = [
    "FIELD_ORDER",
    "FIELD_SYNONYMS",
    "HEADER_KEY_FIELDS",
    "MIN_SUBSTRING_SYNONYM_LENGTH",
    "COMMENT_PREFIX",
    "SUM_MARKERS",
    "DEFAULT_DELIMITERS",
    "LEAF_EXPORT_HEADERS",
]
