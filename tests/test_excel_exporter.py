# tests/test_excel_exporter.py

from pathlib import Path

import openpyxl

from feed.models import Tender
from output_engine.excel_exporter import COLUMN_DEFS, export_to_excel

from conftest import tender


def _tenders():
    return [
        Tender.from_dict(tender(
            "T-1", "05/01/2025",
            tdr="TDR-9", company_name="PWD", city="Pune", state="Maharashtra",
            tender_value="₹ 2 Crore", emd="₹ 40,000", is_wishlisted=True,
        )),
        Tender.from_dict(tender("T-2", "not a date", value="Ref Document")),
    ]


def test_workbook_layout(tmp_path):
    tenders = _tenders()
    path = export_to_excel(tenders[:1], tenders, output_dir=str(tmp_path))

    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames == ["Live Tenders", "All Tenders (Raw)"]

    live = wb["Live Tenders"]
    assert [c.value for c in live[2]] == [h for h, _, _ in COLUMN_DEFS]
    assert "1 result(s)" in live["A1"].value
    assert live.max_row == 3
    assert wb["All Tenders (Raw)"].max_row == 4


def test_row_values(tmp_path):
    path = export_to_excel(_tenders(), _tenders(), output_dir=str(tmp_path))
    ws = openpyxl.load_workbook(path)["Live Tenders"]
    headers = [c.value for c in ws[2]]

    first = dict(zip(headers, [c.value for c in ws[3]]))
    assert first["#"] == 1
    assert first["Tender ID"] == "T-1"
    assert first["Value"] == "₹ 2 Crore"
    assert first["Published"] == "2025-01-05"
    assert first["Wishlisted"] == "✓"

    second = dict(zip(headers, [c.value for c in ws[4]]))
    assert second["Value"] == "Ref Document"
    assert second["Published"] == "not a date"
    assert second["EMD"] == "—"
    assert second["City"] == "—"


def test_file_name_uses_todays_date(tmp_path):
    path = export_to_excel([], [], output_dir=str(tmp_path))

    assert Path(path).parent == tmp_path.resolve()
    assert path.endswith(".xlsx")
