"""Formatted Excel report generation with NamedStyles."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import (
    Alignment,
    Border,
    Font,
    NamedStyle,
    PatternFill,
    Side,
)
from openpyxl.utils import get_column_letter

from email_insights.formatting import (
    excel_number_format,
    is_percentage_column,
    is_total_row,
)

logger = logging.getLogger(__name__)

INK = "22313F"
ZEBRA_GRAY = "FAFAFA"
TOTAL_GRAY = "F0F0F0"
LINK_BLUE = "0563C1"
THIN_BORDER = Border(
    left=Side(style="thin", color="D0D0D0"),
    right=Side(style="thin", color="D0D0D0"),
    top=Side(style="thin", color="D0D0D0"),
    bottom=Side(style="thin", color="D0D0D0"),
)


def _register_styles(wb: Workbook) -> None:
    """Register NamedStyles once for batch application."""
    header_style = NamedStyle(name="rpt_header")
    header_style.font = Font(name="Calibri", bold=True, color="FFFFFF", size=10)
    header_style.fill = PatternFill(start_color=INK, end_color=INK, fill_type="solid")
    header_style.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    header_style.border = THIN_BORDER
    wb.add_named_style(header_style)

    for name, fill in (("rpt_data_even", None), ("rpt_data_odd", ZEBRA_GRAY)):
        style = NamedStyle(name=name)
        style.font = Font(name="Calibri", size=10)
        if fill:
            style.fill = PatternFill(start_color=fill, end_color=fill, fill_type="solid")
        style.alignment = Alignment(horizontal="center", vertical="center")
        style.border = THIN_BORDER
        wb.add_named_style(style)

    total_style = NamedStyle(name="rpt_total")
    total_style.font = Font(name="Calibri", bold=True, size=10)
    total_style.fill = PatternFill(start_color=TOTAL_GRAY, end_color=TOTAL_GRAY, fill_type="solid")
    total_style.alignment = Alignment(horizontal="center", vertical="center")
    total_style.border = THIN_BORDER
    wb.add_named_style(total_style)


def _write_cover_sheet(wb: Workbook, result) -> None:
    """Write the Report Info cover sheet."""
    ws = wb.active
    ws.title = "Report Info"
    ws.sheet_properties.showGridLines = False

    ws.merge_cells("A1:D1")
    ws["A1"].value = "Email Marketing Insights"
    ws["A1"].font = Font(name="Calibri", size=24, bold=True, color=INK)

    settings = result.settings
    counts = result.store.record_counts()
    details = [
        ("Report Date:", datetime.now().strftime("%B %d, %Y")),
        ("Reference Date:", result.store.get_last_email_date().strftime("%B %d, %Y")),
        ("Date Range:", settings.date_range),
        ("Comparison:", settings.compare_mode),
        ("Campaigns File:", settings.campaigns_file.name if settings.campaigns_file else "N/A"),
        ("Flows File:", settings.flows_file.name if settings.flows_file else "N/A"),
        (
            "Subscribers File:",
            settings.subscribers_file.name if settings.subscribers_file else "N/A",
        ),
        ("Campaigns:", f"{counts['campaigns']:,}"),
        ("Flow Rows:", f"{counts['flows']:,}"),
        ("Subscribers:", f"{counts['subscribers']:,}"),
        ("Analyses Run:", str(sum(1 for a in result.analyses if a.error is None))),
    ]
    if result.load is not None and result.load.errors:
        details.append(("Load Errors:", "; ".join(result.load.errors)))

    for i, (label, value) in enumerate(details, start=3):
        ws[f"A{i}"].value = label
        ws[f"A{i}"].font = Font(name="Calibri", bold=True, size=11)
        ws[f"B{i}"].value = value
        ws[f"B{i}"].font = Font(name="Calibri", size=11)

    ws.column_dimensions["A"].width = 20
    ws.column_dimensions["B"].width = 50


def _write_toc_sheet(wb: Workbook, result) -> None:
    """Write Table of Contents with hyperlinks to each analysis sheet."""
    ws = wb.create_sheet("Contents", 1)
    ws.sheet_properties.showGridLines = False

    ws.merge_cells("A1:C1")
    ws["A1"].value = "Table of Contents"
    ws["A1"].font = Font(name="Calibri", size=18, bold=True, color=INK)

    for cell, text in zip((ws["A3"], ws["B3"], ws["C3"]), ("#", "Analysis", "Sheet")):
        cell.value = text
        cell.font = Font(name="Calibri", bold=True, size=11)

    row = 4
    for i, analysis in enumerate(_written(result), start=1):
        sheet = _sheet_name(analysis)
        ws[f"A{row}"].value = i
        ws[f"B{row}"].value = analysis.title
        ws[f"C{row}"].value = sheet
        ws[f"C{row}"].hyperlink = f"#'{sheet}'!A1"
        ws[f"C{row}"].font = Font(name="Calibri", size=11, color=LINK_BLUE, underline="single")
        row += 1

    ws.column_dimensions["A"].width = 5
    ws.column_dimensions["B"].width = 50
    ws.column_dimensions["C"].width = 25


def _sheet_name(analysis) -> str:
    return (analysis.sheet_name or analysis.name)[:31]


def _written(result) -> list:
    return [a for a in result.analyses if a.error is None and not a.df.empty]


def _is_missing(val) -> bool:
    return val is None or (isinstance(val, float) and val != val) or val is pd.NaT


def _is_numeric(val) -> bool:
    return pd.api.types.is_number(val) and not isinstance(val, bool)


def _write_analysis_sheet(wb: Workbook, analysis) -> None:
    """Write a single analysis as a formatted worksheet."""
    df = analysis.df
    ws = wb.create_sheet(_sheet_name(analysis))
    ws.freeze_panes = "A2"

    for col_idx, col_name in enumerate(df.columns, start=1):
        cell = ws.cell(row=1, column=col_idx, value=str(col_name))
        cell.style = "rpt_header"

    for row_idx, row in enumerate(df.itertuples(index=False), start=2):
        is_total = is_total_row(row[0])
        is_odd = (row_idx % 2) == 1

        for col_idx, (col_name, val) in enumerate(zip(df.columns, row), start=1):
            col_name = str(col_name)
            if isinstance(val, pd.Timestamp):
                val = val.to_pydatetime()
            elif _is_missing(val):
                val = None
            elif is_percentage_column(col_name.lower()) and _is_numeric(val):
                val = float(val) / 100.0

            cell = ws.cell(row=row_idx, column=col_idx, value=val)
            if is_total:
                cell.style = "rpt_total"
            elif is_odd:
                cell.style = "rpt_data_odd"
            else:
                cell.style = "rpt_data_even"
            cell.number_format = excel_number_format(col_name)

    last_col = get_column_letter(len(df.columns))
    ws.auto_filter.ref = f"A1:{last_col}{len(df) + 1}"

    for col_idx, col_name in enumerate(df.columns, start=1):
        max_len = len(str(col_name))
        for val in df[col_name].head(20):
            max_len = max(max_len, len(str(val)))
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 4, 30)

    link_row = len(df) + 3
    ws.cell(row=link_row, column=1, value="Back to Contents")
    ws.cell(row=link_row, column=1).hyperlink = "#Contents!A1"
    ws.cell(row=link_row, column=1).font = Font(
        name="Calibri", size=10, color=LINK_BLUE, underline="single"
    )


def write_excel_report(result, output_path: Path) -> None:
    """Write the complete Excel report."""
    wb = Workbook()
    _register_styles(wb)
    _write_cover_sheet(wb, result)
    _write_toc_sheet(wb, result)
    for analysis in _written(result):
        _write_analysis_sheet(wb, analysis)
    wb.save(output_path)
    logger.info("Excel report saved: %s", output_path)
