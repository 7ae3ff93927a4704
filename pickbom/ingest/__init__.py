"""
Catalog ingestion for imported orders.

Links order line items to catalog parts and assembly relationships, and
persists orders through a CatalogClient implementation.
"""

from .catalog import (
    CatalogClient,
    CatalogLinkResult,
    CatalogPart,
    LineItemLink,
    PartRelationship,
    StoreSnapshot,
    link_catalog_parts,
)
from .supabase_client import SupabaseClient

__all__ = [
    "CatalogClient",
    "CatalogLinkResult",
    "CatalogPart",
    "LineItemLink",
    "PartRelationship",
    "StoreSnapshot",
    "link_catalog_parts",
    "SupabaseClient",
]
