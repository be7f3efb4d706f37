from datetime import date
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook

from app.core.excel_export_service import (
    TEMPLATE_HEADERS,
    TEMPLATE_SHEET_TITLE,
    ExcelExportService,
)
from app.core.excel_import_service import ExcelImportService

WEIGHT = {"id": 1, "name": "Weight", "code": "WEIGHT", "data_type": "NUMBER", "is_required": True}
FINISH = {"id": 2, "name": "Finish", "code": "FINISH", "data_type": "TEXT", "is_required": False}

QUOTATION = {
    "quotation_number": "QT20240115001",
    "customer_name": "Jane Doe",
    "company_name": "Acme Ltd",
    "phone_number": "+1 555 0100",
    "quotation_date": date(2024, 1, 15),
    "valid_until": date(2024, 2, 15),
    "status": "DRAFT",
    "notes": "Delivery within 2 weeks",
    "items": [
        {"line_number": 1, "product_name": "Bottle", "product_code": "BTL-1",
         "product_description": "Steel bottle", "quantity": 10, "unit_price": Decimal("12.50")},
        {"line_number": 2, "product_name": "Mug", "product_code": None,
         "product_description": None, "quantity": 2, "unit_price": Decimal("7.25"), "notes": "gift"},
    ],
}


def reload(content):
    return load_workbook(BytesIO(content))


def test_template_headers_mark_required_attributes():
    headers = ExcelExportService.template_headers([WEIGHT, FINISH])
    assert headers[:len(TEMPLATE_HEADERS)] == TEMPLATE_HEADERS
    assert headers[-2:] == ["Weight (NUMBER)*", "Finish (TEXT)"]


def test_template_is_readable_by_importer():
    workbook = ExcelExportService.build_template_workbook(
        [WEIGHT, FINISH], {"brands": [{"name": "Acme", "code": "ACME"}]}
    )
    buffer = BytesIO()
    workbook.save(buffer)

    rows = ExcelImportService.parse_workbook(buffer.getvalue(), [WEIGHT, FINISH])

    assert len(rows) == 1
    assert rows[0]["code"] == "PRD-001"
    assert rows[0]["category"] == "Electronics"
    assert rows[0]["attributes"] == {1: "0", 2: "Sample"}


def test_generate_template_lists_master_data(fake_db):
    fake_db.on("FROM product_attributes WHERE deleted_at IS NULL", [WEIGHT])
    fake_db.on("SELECT name, code FROM brands", [{"name": "Acme", "code": "ACME"}])

    workbook = reload(ExcelExportService.generate_template())

    assert workbook.sheetnames[0] == TEMPLATE_SHEET_TITLE
    assert "Manufacturing Method" in workbook.sheetnames
    assert "Attributes" in workbook.sheetnames
    brand_sheet = workbook["Brand"]
    assert brand_sheet["A1"].value == "[Brand] Name"
    assert brand_sheet["A2"].value == "Acme"
    assert brand_sheet["B2"].value == "ACME"


def test_quotation_workbook_uses_live_formulas():
    sheet = reload(ExcelExportService.export_quotation(QUOTATION))["Quotation"]

    assert sheet["A1"].value == "QUOTATION"
    assert sheet["B3"].value == "QT20240115001"
    assert sheet["F3"].value == "Jane Doe"
    assert [sheet.cell(row=8, column=c).value for c in range(1, 8)] == [
        "No", "Product", "Description", "Qty", "Unit Price", "Total", "Notes"
    ]
    assert sheet["B9"].value == "Bottle (BTL-1)"
    assert sheet["B10"].value == "Mug"
    assert sheet["F9"].value == "=D9*E9"
    assert sheet["F10"].value == "=D10*E10"
    assert sheet["G10"].value == "gift"
    # five blank lines ready for manual entries
    assert sheet["F11"].value == '=IF(AND(D11<>"",E11<>""),D11*E11,"")'
    assert sheet["F15"].value.startswith("=IF(")
    assert sheet["F16"].value is None

    assert sheet["E17"].value == "Subtotal"
    assert sheet["F17"].value == "=SUM(F9:F15)"
    assert sheet["E18"].value == "VAT (10%)"
    assert sheet["F18"].value == "=F17*0.1"
    assert sheet["E19"].value == "Total"
    assert sheet["F19"].value == "=F17+F18"
    assert sheet["B21"].value == "Delivery within 2 weeks"


def test_quotation_workbook_vat_rate_is_configurable():
    sheet = ExcelExportService.build_quotation_workbook({**QUOTATION, "items": []}, 0.2)["Quotation"]

    assert sheet["F15"].value == "=SUM(F9:F13)"
    assert sheet["E16"].value == "VAT (20%)"
    assert sheet["F16"].value == "=F15*0.2"


def test_summary_workbook_totals_column():
    quotations = [
        {"quotation_number": "QT20240115001", "customer_name": "Jane", "status": "DRAFT",
         "total_amount": Decimal("139.50")},
        {"quotation_number": "QT20240115002", "customer_name": "John", "status": "SENT",
         "total_amount": Decimal("20.00")},
    ]
    sheet = reload(ExcelExportService.export_quotations_summary(quotations))["Quotations"]

    assert sheet["A1"].value == "No"
    assert sheet["B3"].value == "QT20240115002"
    assert sheet["I2"].value == 139.5
    assert sheet["H4"].value == "Total"
    assert sheet["I4"].value == "=SUM(I2:I3)"


def test_summary_workbook_without_quotations():
    sheet = ExcelExportService.build_summary_workbook([])["Quotations"]
    assert sheet["H2"].value == "Total"
    assert sheet["I2"].value == 0
