"""Tabular reader tests: CSV through DuckDB, Excel through openpyxl."""

import pytest
from openpyxl import Workbook

from pds_api.core.exceptions import ValidationError
from pds_api.services.tabular_reader import read_csv_rows, read_excel_rows, read_rows


class TestCsv:

    def test_reads_text_cells(self, tmp_path):
        path = tmp_path / "calls.csv"
        path.write_text(
            "Agent Name,Total Inbound Calls,Total Outbound Calls\n"
            "  Alice  ,10,5\n"
            "Bob,007,\n"
        )

        rows = read_csv_rows(str(path))

        assert rows == [
            {"Agent Name": "Alice", "Total Inbound Calls": "10", "Total Outbound Calls": "5"},
            {"Agent Name": "Bob", "Total Inbound Calls": "007", "Total Outbound Calls": None},
        ]

    def test_garbage_is_a_validation_error(self, tmp_path):
        path = tmp_path / "missing.csv"

        with pytest.raises(ValidationError):
            read_csv_rows(str(path))


class TestExcel:

    def test_reads_first_sheet(self, tmp_path):
        wb = Workbook()
        ws = wb.active
        ws.append(["Nat ID", "Basic Pay", "Phone Number", "Active"])
        ws.append(["63-1A", 1200.0, 771234567, False])
        ws.append([None, None, None, None])
        ws.append(["63-2B", 99.5, None, True])
        path = tmp_path / "payslips.xlsx"
        wb.save(path)

        rows = read_excel_rows(str(path))

        assert rows == [
            {"Nat ID": "63-1A", "Basic Pay": "1200", "Phone Number": "771234567", "Active": "FALSE"},
            {"Nat ID": "63-2B", "Basic Pay": "99.5", "Phone Number": None, "Active": "TRUE"},
        ]

    def test_not_a_workbook(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"definitely not a zip")

        with pytest.raises(ValidationError):
            read_excel_rows(str(path))


def test_dispatch_rejects_unknown_extension(tmp_path):
    path = tmp_path / "users.json"
    path.write_text("[]")

    with pytest.raises(ValidationError) as exc:
        read_rows(str(path))

    assert "Unsupported file type" in exc.value.message
