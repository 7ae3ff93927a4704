#!/usr/bin/env python3
"""Example: Verify an imported order's assembly structure against its BOM.

Reads the BOM file, fetches the parts catalog and the order's line items from
the configured database, and writes the plain-text verification report.
"""

import logging
import sys
from pathlib import Path

from pickbom.adapters import CsvAdapter
from pickbom.config import load_settings
from pickbom.ingest import SupabaseClient
from pickbom.verify import render_verification_report, verify_order


def verify_assembly(order_id: str, bom_file: str, report_file: str = None):
    """Verify one BOM file against an imported order and write the report.

    Args:
        order_id: Id of the imported order
        bom_file: Path to the hierarchical BOM CSV
        report_file: Where to write the report (default: <bom>-verification.txt)

    Returns:
        The VerificationReport
    """
    settings = load_settings()
    text = CsvAdapter(delimiters=settings.delimiters).read_text(bom_file)

    client = SupabaseClient.from_settings(settings)
    try:
        report = verify_order(client, order_id, text, Path(bom_file).name, delimiters=settings.delimiters)
    finally:
        client.close()

    report_file = report_file or str(Path(bom_file).with_name(f"{Path(bom_file).stem}-verification.txt"))
    with open(report_file, "w", encoding="utf-8") as f:
        f.write(render_verification_report(report))

    summary = report.summary
    print(f"✓ Verified {summary.total_parts} parts: {len(report.discrepancies)} discrepancies")
    print(f"✓ Report saved to: {report_file}")
    return report


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python verify_assembly.py <order_id> <bom_file> [report_file]")
        print("\nExample:")
        print("  python verify_assembly.py 7f3c0d1e-... 230QR-10002.csv report.txt")
        sys.exit(1)

    logging.basicConfig(level=load_settings().log_level)

    verify_assembly(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)
