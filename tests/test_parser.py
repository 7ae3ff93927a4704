"""Tests for BOM parsing, file adapters and leaf-list export."""

import json

import openpyxl
import pytest

from pickbom import BomParser, parse_bom_text
from pickbom.adapters import CsvAdapter, ExcelAdapter
from pickbom.parser import STRATEGY_FLAT, STRATEGY_HIERARCHICAL, tool_model_from_filename


@pytest.fixture
def parser():
    p = BomParser()
    p.register_adapter(CsvAdapter())
    p.register_adapter(ExcelAdapter())
    return p


def pairs(leaf_parts):
    return sorted((leaf.part_number, leaf.qty) for leaf in leaf_parts)


# =============================================================================
# TEXT PARSING
# =============================================================================

class TestParseText:
    """Tests for parsing BOM text."""

    def test_hierarchical_bom(self, tool_bom_text):
        """Leaves carry propagated quantities and their assembly group."""
        result = parse_bom_text(tool_bom_text, "230QR-10002.csv")

        assert result.ok
        assert result.tool_model == "230QR-10002"
        assert result.strategy == STRATEGY_HIERARCHICAL
        by_pn = {leaf.part_number: leaf for leaf in result.leaf_parts}
        assert set(by_pn) == {"BOLT-M8", "NUT-M8", "CABLE"}
        assert by_pn["BOLT-M8"].qty == 8
        assert by_pn["BOLT-M8"].assembly_group == "FRAME"
        assert by_pn["BOLT-M8"].description == "Bolt M8x20"
        assert by_pn["BOLT-M8"].type == "Buy"
        assert by_pn["CABLE"].assembly_group == "CABLE"

    def test_no_header_yields_error_naming_file(self):
        """A file without a level + part number header yields no parts and names the file."""
        result = parse_bom_text("Item,Thing,Count\n1,Bolt,4\n", "mystery.csv")

        assert result.leaf_parts == []
        assert not result.ok
        assert any("mystery.csv" in message for message in result.errors)

    def test_missing_quantity_column_is_error(self):
        """A hierarchical header without a quantity column is unusable."""
        result = parse_bom_text("Level,Part Number,Description\n0,A,x\n", "noqty.csv")

        assert result.leaf_parts == []
        assert result.errors == ["No quantity column found in noqty.csv"]

    def test_column_mapping_recorded(self):
        """The header text behind each field and the unused columns are kept."""
        text = "Level,Part Number,Qty,Vendor\n0,A,1,Acme\n1,B,2,Acme\n"
        result = parse_bom_text(text, "map.csv")

        assert result.column_mapping == {"level": "Level", "part_number": "Part Number", "quantity": "Qty"}
        assert result.unmapped_columns == ["Vendor"]
        assert result.to_dict()["unmapped_columns"] == ["Vendor"]

    def test_header_without_data_rows(self):
        """A header with nothing under it is reported, not raised."""
        result = parse_bom_text("Level,Part Number,Qty\n", "empty.csv")
        assert result.errors == ["No data rows found in empty.csv"]

    def test_noise_rows_skipped(self):
        """Rows with a non-numeric level or no part number are ignored."""
        text = (
            "Level,Part Number,Qty\n"
            "0,TOOL,1\n"
            "x,NOT-A-ROW,5\n"
            "1,,3\n"
            "1,REAL,2\n"
        )
        result = parse_bom_text(text, "t.csv")
        assert pairs(result.leaf_parts) == [("REAL", 2)]
        assert result.warnings == []

    def test_unparsable_quantity_warns(self):
        """An unreadable quantity degrades the row and records a warning."""
        text = "Level,Part Number,Qty\n0,TOOL,1\n1,GLUE,a bit\n"
        result = parse_bom_text(text, "t.csv")

        assert result.ok
        assert pairs(result.leaf_parts) == [("GLUE", 1)]
        assert len(result.warnings) == 1
        assert "unparsable quantity" in result.warnings[0]

    def test_blank_quantity_counts_as_one(self):
        text = "Level,Part Number,Qty\n0,TOOL,2\n1,LABEL,\n"
        result = parse_bom_text(text, "t.csv")
        assert pairs(result.leaf_parts) == [("LABEL", 2)]

    def test_european_quantities(self):
        """Semicolon-delimited exports with decimal commas parse."""
        text = 'Level;Part Number;Qty\n0;TOOL;2\n1;HOSE;"1,5"\n'
        result = parse_bom_text(text, "t.csv")
        assert pairs(result.leaf_parts) == [("HOSE", 3)]

    def test_flat_bom(self):
        """A level-less file with part number and quantity uses the flat strategy."""
        text = "Part Number,Description,Qty,Assembly Group\nA,Alpha,2,G1\nB,Beta,0.5,G2\n"
        result = parse_bom_text(text, "flat.csv")

        assert result.strategy == STRATEGY_FLAT
        assert pairs(result.leaf_parts) == [("A", 2), ("B", 1)]
        assert {leaf.assembly_group for leaf in result.leaf_parts} == {"G1", "G2"}

    def test_flat_disabled(self):
        """With flat files disabled a level-less file is a header error."""
        result = BomParser(allow_flat=False).parse_text("Part Number,Qty\nA,1\n", "flat.csv")
        assert result.leaf_parts == []
        assert result.errors

    def test_tool_model_override(self, tool_bom_text):
        result = BomParser().parse_text(tool_bom_text, "upload.csv", tool_model="230QR-1")
        assert result.tool_model == "230QR-1"

    def test_tool_model_from_filename(self):
        assert tool_model_from_filename("exports/230QR-10002.csv") == "230QR-10002"
        assert tool_model_from_filename("C:\\boms\\X-1.xlsx") == "X-1"


# =============================================================================
# FILE ADAPTERS
# =============================================================================

class TestFileAdapters:
    """Tests for reading BOM files from disk."""

    def test_csv_with_utf8_bom(self, parser, tmp_path, tool_bom_text):
        """A UTF-8 file with a byte order mark parses like plain text."""
        path = tmp_path / "TOOL-A.csv"
        path.write_bytes(tool_bom_text.encode("utf-8-sig"))

        result = parser.parse(str(path))

        assert result.ok
        assert result.tool_model == "TOOL-A"
        assert result.source_file == "TOOL-A.csv"
        assert pairs(result.leaf_parts) == [("BOLT-M8", 8), ("CABLE", 1), ("NUT-M8", 8)]

    def test_csv_in_legacy_encoding(self, parser, tmp_path):
        """Non-UTF-8 exports are decoded rather than rejected."""
        text = "Level;Part Number;Description;Qty\n0;TOOL;Werkzeug groß;1\n1;RING;Dichtring Ø20 für Öl;2\n"
        path = tmp_path / "legacy.csv"
        path.write_bytes(text.encode("cp1252"))

        result = parser.parse(str(path))

        assert result.ok
        assert pairs(result.leaf_parts) == [("RING", 2)]

    def test_tsv(self, parser, tmp_path):
        path = tmp_path / "tabbed.tsv"
        path.write_text("Level\tPart Number\tQty\n0\tTOOL\t1\n1\tPIN, SPRING\t3\n", encoding="utf-8")

        result = parser.parse(str(path))
        assert pairs(result.leaf_parts) == [("PIN, SPRING", 3)]

    def test_excel_workbook(self, parser, tmp_path):
        """Spreadsheet BOMs with numeric cells parse like CSV."""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Exported BOM"])
        ws.append(["Level", "Part Number", "Description", "Qty"])
        ws.append([0, "TOOL", "Tool", 1])
        ws.append([1, "FRAME", "Frame", 2])
        ws.append([2, "BOLT", "Bolt", 3])
        path = tmp_path / "TOOL-X.xlsx"
        wb.save(path)

        result = parser.parse(str(path))

        assert result.ok
        assert result.tool_model == "TOOL-X"
        assert pairs(result.leaf_parts) == [("BOLT", 6)]

    def test_missing_file_is_reported(self, parser, tmp_path):
        """A file that cannot be read becomes an error, not an exception."""
        result = parser.parse(str(tmp_path / "gone.csv"))
        assert not result.ok
        assert "gone.csv" in result.errors[0]

    def test_unknown_extension_raises(self, parser):
        with pytest.raises(ValueError, match="No adapter found"):
            parser.parse("drawing.pdf")

    def test_parse_many_is_per_file(self, parser, tmp_path, tool_bom_text):
        """One bad file does not affect the others."""
        good = tmp_path / "GOOD.csv"
        good.write_text(tool_bom_text, encoding="utf-8")
        bad = tmp_path / "BAD.csv"
        bad.write_text("nothing useful here\n", encoding="utf-8")

        results = parser.parse_many([str(good), str(bad)])

        assert [r.tool_model for r in results] == ["GOOD", "BAD"]
        assert results[0].ok
        assert not results[1].ok

    def test_corrupt_workbook_is_reported(self, parser, tmp_path, tool_bom_text):
        """A file with an Excel extension that is not a workbook becomes an error."""
        corrupt = tmp_path / "230Q.xlsx"
        corrupt.write_bytes(b"this is not a zip file at all")
        good = tmp_path / "GOOD.csv"
        good.write_text(tool_bom_text, encoding="utf-8")

        results = parser.parse_many([str(corrupt), str(good)])

        assert not results[0].ok
        assert results[0].tool_model == "230Q"
        assert "230Q.xlsx" in results[0].errors[0]
        assert results[1].ok


# =============================================================================
# EXPORT
# =============================================================================

class TestExport:
    """Tests for exporting leaf lists."""

    def test_csv_round_trip(self, parser, tmp_path, tool_bom_text):
        """Re-parsing the exported flat CSV reproduces the same part/qty pairs."""
        original = parse_bom_text(tool_bom_text, "TOOL-A.csv")
        out = parser.export(original.leaf_parts, str(tmp_path / "picks.csv"))

        reparsed = parser.parse(out)

        assert reparsed.strategy == STRATEGY_FLAT
        assert pairs(reparsed.leaf_parts) == pairs(original.leaf_parts)
        assert {leaf.part_number: leaf.assembly_group for leaf in reparsed.leaf_parts} == \
            {leaf.part_number: leaf.assembly_group for leaf in original.leaf_parts}

    def test_excel_round_trip(self, parser, tmp_path, tool_bom_text):
        original = parse_bom_text(tool_bom_text, "TOOL-A.csv")
        out = parser.export(original.leaf_parts, str(tmp_path / "picks.xlsx"))

        reparsed = parser.parse(out)
        assert pairs(reparsed.leaf_parts) == pairs(original.leaf_parts)

    def test_json_export(self, parser, tmp_path, tool_bom_text):
        original = parse_bom_text(tool_bom_text, "TOOL-A.csv")
        out = parser.export(original.leaf_parts, str(tmp_path / "picks.json"))

        with open(out, encoding="utf-8") as f:
            rows = json.load(f)
        assert rows[0]["Part Number"] == "BOLT-M8"
        assert rows[0]["Qty"] == 8

    def test_unknown_extension_defaults_to_csv(self, parser, tmp_path, tool_bom_text):
        original = parse_bom_text(tool_bom_text, "TOOL-A.csv")
        out = parser.export(original.leaf_parts, str(tmp_path / "picks.dat"))
        assert out.endswith(".csv")

    def test_export_empty_raises(self, parser, tmp_path):
        with pytest.raises(ValueError):
            parser.export([], str(tmp_path / "picks.csv"))

    def test_export_unsupported_format_raises(self, parser, tmp_path, tool_bom_text):
        original = parse_bom_text(tool_bom_text, "TOOL-A.csv")
        with pytest.raises(ValueError, match="Unsupported export format"):
            parser.export(original.leaf_parts, str(tmp_path / "picks.csv"), format="xml")
