#!/usr/bin/env python3
"""Example: Import an order built from several tool-variant BOMs.

Each BOM file describes one tool variant (the tool model is the file name
without extension). The files are parsed, merged into shared and
variant-specific line items, and assembled into an order. The order is
written as JSON next to the first BOM; when a database is configured it is
also linked to the parts catalog and persisted.

Usage:
    python import_multi_bom.py SO-3930 230QR-10002.csv 230QR-10003.csv \
        --tool 230QR-10002=3930-1 --tool 230QR-10003=3930-2
"""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from pickbom import BomParser, OrderInfo, ToolMapping, build_imported_order, merge_boms
from pickbom.adapters import CsvAdapter, ExcelAdapter
from pickbom.config import load_settings
from pickbom.ingest import SupabaseClient, link_catalog_parts
from pickbom.workbook import parse_workbook


def parse_tool_args(args):
    """Split argv into BOM paths and --tool MODEL=NUMBER mappings."""
    bom_files = []
    mappings = []
    i = 0
    while i < len(args):
        if args[i] == "--tool":
            if i + 1 >= len(args) or "=" not in args[i + 1]:
                raise ValueError("--tool expects MODEL=NUMBER")
            model, number = args[i + 1].split("=", 1)
            mappings.append(ToolMapping(tool_model=model.strip(), tool_number=number.strip()))
            i += 2
        else:
            bom_files.append(args[i])
            i += 1
    return bom_files, mappings


def import_multi_bom(so_number: str, bom_files, tool_mappings):
    """Parse, merge and assemble an order; persist it when a database is configured.

    Returns:
        The ImportedOrder, or None when the merge has blocking errors
    """
    settings = load_settings()

    parser = BomParser(delimiters=settings.delimiters)
    parser.register_adapter(CsvAdapter(delimiters=settings.delimiters))
    excel = ExcelAdapter()
    parser.register_adapter(excel)

    order_info = OrderInfo(so_number=so_number)
    if len(bom_files) == 1 and excel.can_handle(bom_files[0]):
        # An order workbook may carry several variant sheets and its own order info
        workbook = parse_workbook(bom_files[0], parser, excel)
        for message in workbook.errors + workbook.warnings:
            print(f"  ⚠ {message}")
        parsed = workbook.boms
        if workbook.order_info is not None:
            order_info = replace(workbook.order_info, so_number=so_number)
            tool_mappings = tool_mappings or workbook.default_tool_mappings(so_number)
    else:
        parsed = parser.parse_many(bom_files)

    for bom in parsed:
        status = "✓" if bom.ok else "✗"
        print(f"{status} {bom.source_file}: {len(bom.leaf_parts)} leaf parts ({bom.tool_model})")
        for message in bom.messages:
            print(f"    {message}")

    # Without explicit mappings every variant gets one tool named after the order
    if not tool_mappings:
        tool_mappings = [
            ToolMapping(tool_model=bom.tool_model, tool_number=f"{so_number}-{n}")
            for n, bom in enumerate(parsed, start=1)
        ]

    merged = merge_boms(parsed, tool_mappings)

    print(f"\nMerge Summary:")
    print(f"  Line items: {merged.stats.total_parts}")
    print(f"  Shared: {merged.stats.shared_count}")
    print(f"  Tool-specific: {merged.stats.tool_specific_count}")
    for warning in merged.warnings:
        print(f"  ⚠ {warning}")

    if not merged.can_import:
        for error in merged.errors:
            print(f"✗ {error}")
        for model, errors in merged.file_errors.items():
            print(f"✗ {model}: {'; '.join(errors)}")
        return None

    order = build_imported_order(merged, order_info, tool_mappings)

    if settings.has_database:
        client = SupabaseClient.from_settings(settings)
        try:
            link_result = link_catalog_parts(order, client)
            order = link_result.order
            for warning in link_result.warnings:
                print(f"  ⚠ {warning}")
            order_id = client.import_order(order)
            print(f"\n✓ Order {so_number} imported as {order_id}")
        finally:
            client.close()

    output_file = Path(bom_files[0]).with_name(f"{so_number}-order.json")
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(order.to_dict(), f, indent=2, ensure_ascii=False)
    print(f"✓ Order saved to: {output_file}")

    return order


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python import_multi_bom.py <so_number> <bom_file>... [--tool MODEL=NUMBER]...")
        print("\nExample:")
        print("  python import_multi_bom.py SO-3930 230QR-10002.csv 230QR-10003.csv --tool 230QR-10002=3930-1")
        sys.exit(1)

    logging.basicConfig(level=load_settings().log_level)

    so_number = sys.argv[1]
    bom_files, tool_mappings = parse_tool_args(sys.argv[2:])
    if not bom_files:
        print("✗ No BOM files given")
        sys.exit(1)

    order = import_multi_bom(so_number, bom_files, tool_mappings)
    sys.exit(0 if order is not None else 1)
