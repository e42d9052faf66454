"""Workbook renderer for replay results (one sheet per view, no Excel tables)."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from captable_engine.blocks import BlockContext
from captable_engine.logging_config import get_logger

logger = get_logger(__name__)

SHARES_FORMAT = '#,##0'
PERCENT_FORMAT = '0.00'
MONEY_FORMAT = '$#,##0.00'
DATE_FORMAT = 'yyyy-mm-dd'

SHARE_COLUMNS = {
    "outstanding", "as_converted", "fully_diluted", "votes", "voting_power",
    "shares_issuable", "shares_exercised", "shares_cancelled", "shares_remaining",
    "quantity", "shares_authorized", "shares_issued", "shares_outstanding",
    "shares_transferred", "options_issued", "options_exercised",
    "stock_plan_amount", "total_shares_authorized",
}

MONEY_COLUMNS = {
    "amount", "valuation_cap", "exercise_price", "purchase_price",
    "price_per_share", "amount_paid", "total_raised", "latest_share_price",
    "valuation_amount",
}

DASHBOARD_ROWS: List[Tuple[str, str]] = [
    ("total_raised", "Total Raised"),
    ("latest_share_price", "Latest Share Price"),
    ("valuation_type", "Valuation Type"),
    ("valuation_amount", "Valuation"),
    ("valuation_created_at", "Valuation Date"),
    ("num_of_stakeholders", "Stakeholders"),
    ("stock_plan_amount", "Stock Plan Reserved"),
    ("total_shares_authorized", "Total Shares Authorized"),
]


def column_label(column: str) -> str:
    """Header text for a DataFrame column.

    Example:
        column_label("fully_diluted_pct") -> "Fully Diluted %"
        column_label("Series A Preferred pct") -> "Series A Preferred %"
    """
    if column.endswith(" pct"):
        return column[:-4] + " %"
    words = column.replace("_pct", " %").split("_")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def column_format(column: str) -> Optional[str]:
    if column.endswith("pct") or column in ("discount", "interest_rate"):
        return PERCENT_FORMAT
    if column in SHARE_COLUMNS:
        return SHARES_FORMAT
    if column in MONEY_COLUMNS:
        return MONEY_FORMAT
    if column == "date" or column.endswith("_date") or column.endswith("_at"):
        return DATE_FORMAT
    return None


def cell_value(value: Any) -> Any:
    """Make a DataFrame value safe to write to a cell."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value.to_pydatetime() if isinstance(value, pd.Timestamp) else value
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    return value


class CapTableWorkbookRenderer:
    """Render block outputs into a workbook.

    Sheets, each written only when its block output is in the context:
        Stakeholder View  stakeholder_holdings (+ stakeholder_classes, options pool)
        Voting Rights     voting_rights
        Convertibles      convertible_records
        Warrants          warrant_records
        Stock Ledger      stock_ledger (+ stock_class_totals)
        Dashboard         dashboard_summary (+ ownership_by_relationship)

    Example:
        BlockExecutor(default_blocks()).execute(context)
        CapTableWorkbookRenderer(context, company_name="Acme").render("acme.xlsx")
    """

    def __init__(self, context: BlockContext, company_name: str = "Cap Table"):
        self.context = context
        self.company_name = company_name

        self.bold_font = Font(bold=True)
        self.title_font = Font(size=14, bold=True)

        # Header styling
        self.header_font = Font(bold=True, color="FFFFFF")  # White text on dark blue
        self.header_fill = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")

        # Section header styling
        self.section_header_font = Font(italic=True, bold=True)
        self.section_header_fill = PatternFill(start_color="E7E6E6", end_color="E7E6E6", fill_type="solid")

        self.thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        self.totals_border = Border(top=Side(style='medium'), bottom=Side(style='medium'))

        self.center_align = Alignment(horizontal='center', vertical='center', wrap_text=True)

    def render(self, output_path: str) -> str:
        wb = self.build_workbook()
        wb.save(output_path)
        logger.info("workbook_rendered", path=str(output_path), sheets=wb.sheetnames)
        return output_path

    def build_workbook(self) -> Workbook:
        wb = Workbook()
        wb.remove(wb.active)

        if self.context.has("stakeholder_holdings"):
            self._render_stakeholder_view(wb)
        if self.context.has("voting_rights"):
            self._render_simple_sheet(wb, "Voting Rights", "voting_rights")
        if self.context.has("convertible_records"):
            self._render_simple_sheet(wb, "Convertibles", "convertible_records")
        if self.context.has("warrant_records"):
            self._render_simple_sheet(wb, "Warrants", "warrant_records")
        if self.context.has("stock_ledger"):
            self._render_stock_ledger(wb)
        if self.context.has("dashboard_summary"):
            self._render_dashboard(wb)

        if not wb.sheetnames:
            raise ValueError(f"Nothing to render. Available keys: {self.context.keys()}")
        return wb

    # ------------------------------------------------------------------ #
    # Sheets
    # ------------------------------------------------------------------ #

    def _new_sheet(self, wb: Workbook, title: str) -> Worksheet:
        sheet = wb.create_sheet(title=title[:31])
        sheet.sheet_view.showGridLines = False

        title_cell = sheet["A1"]
        title_cell.value = f"{self.company_name} - {title}"
        title_cell.font = self.title_font
        return sheet

    def _render_simple_sheet(self, wb: Workbook, title: str, key: str) -> None:
        sheet = self._new_sheet(wb, title)
        self._write_table(sheet, self.context.get(key), start_row=3)
        sheet.freeze_panes = "A4"

    def _render_stakeholder_view(self, wb: Workbook) -> None:
        sheet = self._new_sheet(wb, "Stakeholder View")
        holdings: pd.DataFrame = self.context.get("stakeholder_holdings")

        row = self._write_table(sheet, holdings, start_row=3)
        row = self._write_totals_row(sheet, holdings, row)
        sheet.freeze_panes = "C4"

        if self.context.has("stakeholder_classes"):
            row = self._write_section_header(sheet, "Holdings by Class", row + 1)
            row = self._write_table(sheet, self.context.get("stakeholder_classes"), start_row=row)

        if self.context.has("aggregated_view"):
            pool = self.context.get("aggregated_view").options_pool
            row = self._write_section_header(sheet, "Options Pool", row + 1)
            for label, value in (
                ("Authorized", pool.total_authorized),
                ("Issued", pool.total_issued),
                ("Unallocated", pool.unallocated),
            ):
                self._write_pair(sheet, row, label, float(value), SHARES_FORMAT)
                row += 1

    def _render_stock_ledger(self, wb: Workbook) -> None:
        sheet = self._new_sheet(wb, "Stock Ledger")
        row = self._write_table(sheet, self.context.get("stock_ledger"), start_row=3)
        sheet.freeze_panes = "A4"

        if self.context.has("stock_class_totals"):
            row = self._write_section_header(sheet, "Class Totals", row + 1)
            self._write_table(sheet, self.context.get("stock_class_totals"), start_row=row)

    def _render_dashboard(self, wb: Workbook) -> None:
        sheet = self._new_sheet(wb, "Dashboard")
        summary: pd.DataFrame = self.context.get("dashboard_summary")
        values: Dict[str, Any] = summary.to_dict("records")[0] if not summary.empty else {}

        row = 3
        for key, label in DASHBOARD_ROWS:
            self._write_pair(sheet, row, label, cell_value(values.get(key)), column_format(key))
            row += 1

        if self.context.has("ownership_by_relationship"):
            row = self._write_section_header(sheet, "Ownership by Relationship", row + 1)
            self._write_table(sheet, self.context.get("ownership_by_relationship"), start_row=row)

    # ------------------------------------------------------------------ #
    # Cell helpers
    # ------------------------------------------------------------------ #

    def _write_table(self, sheet: Worksheet, df: pd.DataFrame, start_row: int) -> int:
        """Write a header row and one row per record.

        Returns:
            The first row after the table
        """
        columns = list(df.columns)
        for col_idx, column in enumerate(columns, start=1):
            cell = sheet.cell(row=start_row, column=col_idx, value=column_label(column))
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.center_align
            cell.border = self.thin_border
            letter = get_column_letter(col_idx)
            width = max(12, min(40, len(column_label(column)) + 4))
            if (sheet.column_dimensions[letter].width or 0) < width:
                sheet.column_dimensions[letter].width = width

        row = start_row + 1
        for record in df.to_dict("records"):
            for col_idx, column in enumerate(columns, start=1):
                cell = sheet.cell(row=row, column=col_idx, value=cell_value(record[column]))
                cell.border = self.thin_border
                number_format = column_format(column)
                if number_format:
                    cell.number_format = number_format
            row += 1
        return row

    def _write_totals_row(self, sheet: Worksheet, df: pd.DataFrame, row: int) -> int:
        label = sheet.cell(row=row, column=1, value="Total")
        label.font = self.bold_font
        label.border = self.totals_border
        for col_idx, column in enumerate(df.columns, start=1):
            number_format = column_format(column)
            if col_idx == 1 or number_format not in (SHARES_FORMAT, PERCENT_FORMAT):
                continue
            cell = sheet.cell(row=row, column=col_idx, value=float(df[column].sum()) if not df.empty else 0.0)
            cell.font = self.bold_font
            cell.border = self.totals_border
            cell.number_format = number_format
        return row + 1

    def _write_section_header(self, sheet: Worksheet, title: str, row: int) -> int:
        cell = sheet.cell(row=row, column=1, value=title)
        cell.font = self.section_header_font
        cell.fill = self.section_header_fill
        return row + 1

    def _write_pair(self, sheet: Worksheet, row: int, label: str, value: Any, number_format: Optional[str]) -> None:
        label_cell = sheet.cell(row=row, column=1, value=label)
        label_cell.font = self.bold_font
        label_cell.border = self.thin_border
        value_cell = sheet.cell(row=row, column=2, value=value)
        value_cell.border = self.thin_border
        if number_format:
            value_cell.number_format = number_format
        sheet.column_dimensions["A"].width = max(sheet.column_dimensions["A"].width or 0, 28)
        sheet.column_dimensions["B"].width = max(sheet.column_dimensions["B"].width or 0, 18)
