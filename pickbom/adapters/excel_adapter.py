import zipfile
from collections import OrderedDict
from datetime import datetime, time
from pathlib import Path

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException


def _cell_text(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _sheet_rows(ws):
    return [
        [_cell_text(value) for value in row]
        for row in ws.iter_rows(values_only=True)
    ]


class ExcelAdapter:
    def can_handle(self, file_path):
        return Path(file_path).suffix.lower() in [".xlsx", ".xlsm"]

    def _open(self, file_path):
        try:
            return openpyxl.load_workbook(file_path, data_only=True, read_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError) as e:
            # Corrupt or mislabelled workbooks are reported like unreadable text files
            raise ValueError(f"Not a valid Excel workbook: {e}") from e

    def read_rows(self, file_path):
        """Read the active sheet."""
        wb = self._open(file_path)
        try:
            return _sheet_rows(wb.active)
        finally:
            wb.close()

    def read_sheets(self, file_path):
        """Read every sheet, keyed by sheet name in workbook order."""
        wb = self._open(file_path)
        try:
            return OrderedDict((ws.title, _sheet_rows(ws)) for ws in wb.worksheets)
        finally:
            wb.close()
