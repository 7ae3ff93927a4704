"""Plain-text rendering of a VerificationReport, for download by operators."""

from typing import List

from ..hierarchy import HierarchyNode
from ..quantities import format_quantity
from .verifier import Discrepancy, Severity, VerificationReport

NO_DISCREPANCIES_LINE = "✓ No discrepancies found. CSV matches database structure."

_SEVERITY_SECTIONS = (
    (Severity.ERROR, "ERRORS"),
    (Severity.WARNING, "WARNINGS"),
    (Severity.INFO, "INFO"),
)


def _detail_lines(discrepancy: Discrepancy) -> List[str]:
    details = discrepancy.details
    lines = []
    if details.source_qty is not None:
        lines.append(f"   CSV Quantity: {format_quantity(details.source_qty)}")
    if details.stored_qty is not None:
        lines.append(f"   DB Quantity: {format_quantity(details.stored_qty)}")
    if details.legacy_group:
        lines.append(f"   Legacy Format: {details.legacy_group}")
    return lines


def _structure_lines(node: HierarchyNode, indent: int = 0) -> List[str]:
    lines = [
        f"{'  ' * indent}{node.part_number} (qty: {format_quantity(node.own_qty)}) - {node.description}"
    ]
    for child in node.children:
        lines.extend(_structure_lines(child, indent + 1))
    return lines


def render_verification_report(report: VerificationReport) -> str:
    """
    Render a report as plain text.

    Section order: header, Summary, Discrepancies (ERRORS / WARNINGS / INFO)
    or the no-discrepancy line, then the CSV assembly structure.
    """
    summary = report.summary
    lines = [
        "Assembly Verification Report",
        "============================",
        f"SO Number: {report.so_number}",
        f"File: {report.file_name}",
        f"Verified: {report.verified_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        "",
        "Summary",
        "-------",
        f"Total Parts: {summary.total_parts}",
        f"Parts in Database: {summary.parts_in_store}",
        f"Parts Not in Database: {summary.parts_missing_in_store}",
        f"Relationships Verified: {summary.relationships_verified}",
        f"Relationships Missing: {summary.relationships_missing}",
        f"Legacy Text-Only: {summary.legacy_text_only}",
        "",
    ]

    if not report.discrepancies:
        lines.append(NO_DISCREPANCIES_LINE)
    else:
        lines.append(f"Discrepancies ({len(report.discrepancies)})")
        lines.append("-------------")
        for severity, title in _SEVERITY_SECTIONS:
            group = report.discrepancies_by_severity(severity)
            if not group:
                continue
            lines.append("")
            lines.append(f"{title} ({len(group)}):")
            for number, discrepancy in enumerate(group, start=1):
                lines.append(f"{number}. {discrepancy.message}")
                lines.extend(_detail_lines(discrepancy))

    lines.append("")
    lines.append("CSV Assembly Structure")
    lines.append("---------------------")
    for root in report.source_assemblies:
        lines.extend(_structure_lines(root))

    return "\n".join(lines)
