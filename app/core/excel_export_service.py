"""
Excel export service.
Import template, single-quotation workbook with live formulas and a
multi-quotation summary.
"""

from io import BytesIO
from typing import Dict, Any, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.config import settings
from app.core.database import get_db_manager, rows_to_dicts
from app.core.logging_config import get_logger
from app.core.product_attribute_service import ProductAttributeService
from app.core.query_builder import QueryBuilder
from app.models.database_models import MASTER_DATA_DEFINITIONS

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TEMPLATE_SHEET_TITLE = "Product Import Template"
TEMPLATE_HEADERS = [
    "Name*", "Code*", "SKU", "Category*", "Brand", "Manufacturer", "Material",
    "Manufacturing Method", "Color", "Size", "Product Type", "Packaging Type",
    "Base Price", "Image URL", "Description", "Is Active"
]
TEMPLATE_SAMPLE_ROW = [
    "Sample Product", "PRD-001", "SKU-001", "Electronics", "Brand A", "Manufacturer A",
    "Plastic", "Injection Molding", "Black", "Medium", "Finished Good", "Box",
    100, "https://example.com/image.jpg", "Sample product description", "true"
]

QUOTATION_ITEM_HEADERS = ["No", "Product", "Description", "Qty", "Unit Price", "Total", "Notes"]
QUOTATION_BLANK_ROWS = 5
SUMMARY_HEADERS = [
    "No", "Quotation Number", "Date", "Valid Until", "Customer", "Company",
    "Phone", "Status", "Total Amount"
]

MONEY_FORMAT = "#,##0.00"
HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(start_color="FFE0E0E0", end_color="FFE0E0E0", fill_type="solid")
THIN = Side(style="thin")
THIN_BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)


def _style_header_row(sheet, row: int, width: int) -> None:
    for col in range(1, width + 1):
        cell = sheet.cell(row=row, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center")


def _autosize_columns(sheet, headers: List[str]) -> None:
    for index, header in enumerate(headers, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = max(len(str(header)) + 2, 15)


def _to_bytes(workbook: Workbook) -> bytes:
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


class ExcelExportService:
    """Builds Excel workbooks for download."""

    # ------------------------------------------------------------------
    # Import template
    # ------------------------------------------------------------------

    @staticmethod
    def template_headers(attributes: List[Dict[str, Any]]) -> List[str]:
        """Fixed headers plus one '<Name> (<TYPE>)' column per attribute; required ones get '*'."""
        return TEMPLATE_HEADERS + [
            f"{a['name']} ({a['data_type']})" + ("*" if a.get("is_required") else "")
            for a in attributes
        ]

    @staticmethod
    def build_template_workbook(
        attributes: List[Dict[str, Any]],
        master_data: Dict[str, List[Dict[str, Any]]]
    ) -> Workbook:
        """
        Args:
            attributes: Active product attributes
            master_data: slug -> active rows (name, code), one reference sheet each
        """
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = TEMPLATE_SHEET_TITLE

        headers = ExcelExportService.template_headers(attributes)
        sheet.append(headers)
        _style_header_row(sheet, 1, len(headers))
        sheet.append(TEMPLATE_SAMPLE_ROW + [
            0 if a["data_type"] == "NUMBER" else "Sample" for a in attributes
        ])
        _autosize_columns(sheet, headers)
        sheet.freeze_panes = "A2"

        for slug, rows in master_data.items():
            definition = MASTER_DATA_DEFINITIONS[slug]
            ref_sheet = workbook.create_sheet(title=definition.display_name[:31])
            ref_headers = [f"[{definition.display_name}] Name", f"[{definition.display_name}] Code"]
            ref_sheet.append(ref_headers)
            _style_header_row(ref_sheet, 1, 2)
            for row in rows:
                ref_sheet.append([row["name"], row["code"]])
            _autosize_columns(ref_sheet, ref_headers)

        if attributes:
            attr_sheet = workbook.create_sheet(title="Attributes")
            attr_headers = ["Name", "Code", "Data Type", "Required"]
            attr_sheet.append(attr_headers)
            _style_header_row(attr_sheet, 1, len(attr_headers))
            for a in attributes:
                attr_sheet.append([a["name"], a["code"], a["data_type"], "Yes" if a.get("is_required") else "No"])
            _autosize_columns(attr_sheet, attr_headers)

        return workbook

    @staticmethod
    def generate_template() -> bytes:
        """Import template reflecting the current attributes and master data."""
        db_manager = get_db_manager()
        with db_manager.get_connection() as conn:
            cursor = conn.cursor()
            try:
                attributes = ProductAttributeService.get_active_attributes(cursor)
                master_data = {}
                for slug, definition in MASTER_DATA_DEFINITIONS.items():
                    cursor.execute(
                        f"""
                        SELECT name, code FROM {definition.table_name}
                        WHERE {QueryBuilder.active_filter()}
                        ORDER BY name
                        """
                    )
                    master_data[slug] = rows_to_dicts(cursor)
            finally:
                cursor.close()

        workbook = ExcelExportService.build_template_workbook(attributes, master_data)
        logger.info(f"Generated import template with {len(attributes)} attribute columns")
        return _to_bytes(workbook)

    # ------------------------------------------------------------------
    # Quotations
    # ------------------------------------------------------------------

    @staticmethod
    def build_quotation_workbook(quotation: Dict[str, Any], vat_rate: float) -> Workbook:
        """
        One quotation with live formulas: line totals are Qty x Unit Price,
        followed by blank rows ready for manual lines, subtotal, VAT and total.
        """
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Quotation"

        sheet["A1"] = "QUOTATION"
        sheet["A1"].font = Font(bold=True, size=16)
        sheet.merge_cells("A1:G1")
        sheet["A1"].alignment = Alignment(horizontal="center")

        header_block = [
            ("Quotation No:", quotation.get("quotation_number"), "Customer:", quotation.get("customer_name")),
            ("Date:", quotation.get("quotation_date"), "Company:", quotation.get("company_name")),
            ("Valid Until:", quotation.get("valid_until"), "Phone:", quotation.get("phone_number")),
            ("Status:", quotation.get("status"), None, None),
        ]
        for offset, (label_a, value_a, label_b, value_b) in enumerate(header_block):
            row = 3 + offset
            sheet.cell(row=row, column=1, value=label_a).font = HEADER_FONT
            sheet.cell(row=row, column=2, value=value_a)
            if label_b:
                sheet.cell(row=row, column=5, value=label_b).font = HEADER_FONT
                sheet.cell(row=row, column=6, value=value_b)

        header_row = 8
        for col, header in enumerate(QUOTATION_ITEM_HEADERS, start=1):
            sheet.cell(row=header_row, column=col, value=header)
        _style_header_row(sheet, header_row, len(QUOTATION_ITEM_HEADERS))

        first_row = header_row + 1
        row = first_row
        for index, item in enumerate(quotation.get("items") or [], start=1):
            product = item.get("product_name") or ""
            if item.get("product_code"):
                product = f"{product} ({item['product_code']})"
            sheet.cell(row=row, column=1, value=item.get("line_number") or index)
            sheet.cell(row=row, column=2, value=product)
            sheet.cell(row=row, column=3, value=item.get("product_description"))
            sheet.cell(row=row, column=4, value=item["quantity"])
            sheet.cell(row=row, column=5, value=float(item["unit_price"]))
            sheet.cell(row=row, column=6, value=f"=D{row}*E{row}")
            sheet.cell(row=row, column=7, value=item.get("notes"))
            row += 1

        for _ in range(QUOTATION_BLANK_ROWS):
            sheet.cell(row=row, column=6, value=f'=IF(AND(D{row}<>"",E{row}<>""),D{row}*E{row},"")')
            row += 1
        last_row = row - 1

        for r in range(first_row, last_row + 1):
            for col in range(1, len(QUOTATION_ITEM_HEADERS) + 1):
                sheet.cell(row=r, column=col).border = THIN_BORDER
            sheet.cell(row=r, column=5).number_format = MONEY_FORMAT
            sheet.cell(row=r, column=6).number_format = MONEY_FORMAT

        subtotal_row = last_row + 2
        vat_row = subtotal_row + 1
        total_row = subtotal_row + 2
        totals = [
            (subtotal_row, "Subtotal", f"=SUM(F{first_row}:F{last_row})"),
            (vat_row, f"VAT ({vat_rate * 100:g}%)", f"=F{subtotal_row}*{vat_rate}"),
            (total_row, "Total", f"=F{subtotal_row}+F{vat_row}"),
        ]
        for r, label, formula in totals:
            sheet.cell(row=r, column=5, value=label).font = HEADER_FONT
            cell = sheet.cell(row=r, column=6, value=formula)
            cell.number_format = MONEY_FORMAT
        sheet.cell(row=total_row, column=6).font = HEADER_FONT

        if quotation.get("notes"):
            sheet.cell(row=total_row + 2, column=1, value="Notes:").font = HEADER_FONT
            sheet.cell(row=total_row + 2, column=2, value=quotation["notes"])

        for col, width in zip("ABCDEFG", (6, 35, 35, 8, 14, 16, 25)):
            sheet.column_dimensions[col].width = width

        return workbook

    @staticmethod
    def export_quotation(quotation: Dict[str, Any]) -> bytes:
        workbook = ExcelExportService.build_quotation_workbook(quotation, settings.QUOTATION_VAT_RATE)
        logger.info(f"Exported quotation {quotation.get('quotation_number')} to Excel")
        return _to_bytes(workbook)

    @staticmethod
    def build_summary_workbook(quotations: List[Dict[str, Any]]) -> Workbook:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Quotations"

        sheet.append(SUMMARY_HEADERS)
        _style_header_row(sheet, 1, len(SUMMARY_HEADERS))

        for index, q in enumerate(quotations, start=1):
            sheet.append([
                index,
                q.get("quotation_number"),
                q.get("quotation_date"),
                q.get("valid_until"),
                q.get("customer_name"),
                q.get("company_name"),
                q.get("phone_number"),
                q.get("status"),
                float(q.get("total_amount") or 0),
            ])
            sheet.cell(row=index + 1, column=9).number_format = MONEY_FORMAT

        total_row = len(quotations) + 2
        sheet.cell(row=total_row, column=8, value="Total").font = HEADER_FONT
        total_cell = sheet.cell(
            row=total_row, column=9,
            value=f"=SUM(I2:I{total_row - 1})" if quotations else 0
        )
        total_cell.font = HEADER_FONT
        total_cell.number_format = MONEY_FORMAT

        _autosize_columns(sheet, SUMMARY_HEADERS)
        return workbook

    @staticmethod
    def export_quotations_summary(quotations: List[Dict[str, Any]]) -> bytes:
        workbook = ExcelExportService.build_summary_workbook(quotations)
        logger.info(f"Exported {len(quotations)} quotations to Excel summary")
        return _to_bytes(workbook)
