"""Structural verification of imported orders against a source BOM."""

from .verifier import (
    Discrepancy,
    DiscrepancyDetails,
    DiscrepancyType,
    Severity,
    VerificationReport,
    VerificationSummary,
    parse_assembly_hierarchy,
    verify_assembly_structure,
    verify_order,
)
from .report import render_verification_report
from ..ingest.catalog import CatalogPart, LineItemLink, PartRelationship, StoreSnapshot

__all__ = [
    "Discrepancy",
    "DiscrepancyDetails",
    "DiscrepancyType",
    "Severity",
    "VerificationReport",
    "VerificationSummary",
    "parse_assembly_hierarchy",
    "verify_assembly_structure",
    "verify_order",
    "render_verification_report",
    "CatalogPart",
    "LineItemLink",
    "PartRelationship",
    "StoreSnapshot",
]
