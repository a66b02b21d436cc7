"""
reporter.py — Excel Audit Workbook Generator.

Produces a multi-sheet workbook for audit committees and procurement
oversight teams. Rows are colour-banded by overall VFM score, headers are
frozen and columns auto-fitted.

Sheets:
    1. Summary          — KPI tiles and the five weakest procurements
    2. Audits           — One row per audited procurement, score-banded
    3. Recommendations  — Every recommendation with its procurement title
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

from vfm_audit.models import VFMAuditResult

logger = logging.getLogger(__name__)

COLOURS = {
    "navy":        "1F4E79",
    "dark_red":    "C00000",
    "dark_green":  "375623",
    "gold":        "BF8F00",
    "light_grey":  "F2F2F2",
    "white":       "FFFFFF",
    "strong_row":  "E2EFDA",
    "fair_row":    "FFFFE0",
    "weak_row":    "FFCCCC",
}

# Overall score lower bounds for row banding
SCORE_BANDS = ((75, COLOURS["strong_row"]), (60, COLOURS["fair_row"]))

THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

AUDIT_COLUMNS = {
    "title":              "Procurement",
    "category":           "Category",
    "supplier":           "Supplier",
    "value":              "Contract Value",
    "currency":           "Currency",
    "overall_score":      "Overall",
    "economy":            "Economy",
    "efficiency":         "Efficiency",
    "effectiveness":      "Effectiveness",
    "equity":             "Equity",
    "identified_savings": "Identified Savings",
    "potential_savings":  "Potential Savings",
    "risk_level":         "Risk",
    "source":             "Source",
}
MONEY_COLUMNS = {"Contract Value", "Identified Savings", "Potential Savings"}


def _fill(hex_colour: str) -> PatternFill:
    return PatternFill(fill_type="solid", fgColor=hex_colour)


def _header_font() -> Font:
    return Font(name="Calibri", bold=True, color=COLOURS["white"], size=11)


def _band_colour(score: float) -> str:
    for lower, colour in SCORE_BANDS:
        if score >= lower:
            return colour
    return COLOURS["weak_row"]


def _auto_fit_columns(ws, min_width: int = 10, max_width: int = 60) -> None:
    """Set each column width to its longest cell value, within bounds."""
    for col in ws.columns:
        col_letter = get_column_letter(col[0].column)
        max_len = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
        ws.column_dimensions[col_letter].width = min(max(max_len + 4, min_width), max_width)


def _write_header(ws, row: int, headers: list[str], colour: str) -> None:
    for col_i, h in enumerate(headers, start=1):
        cell = ws.cell(row=row, column=col_i, value=h)
        cell.fill = _fill(colour)
        cell.font = _header_font()
        cell.alignment = Alignment(horizontal="center", wrap_text=True)
        cell.border = THIN_BORDER


def _write_kpi_tile(ws, row: int, col: int, label: str, value: str, colour: str) -> None:
    """Write a two-cell KPI tile: label above, value below."""
    label_cell = ws.cell(row=row, column=col, value=label)
    label_cell.fill = _fill(colour)
    label_cell.font = _header_font()
    label_cell.alignment = Alignment(horizontal="center", vertical="center")
    label_cell.border = THIN_BORDER

    value_cell = ws.cell(row=row + 1, column=col, value=value)
    value_cell.font = Font(name="Calibri", bold=True, size=16, color=colour)
    value_cell.alignment = Alignment(horizontal="center", vertical="center")
    value_cell.fill = _fill(COLOURS["light_grey"])
    value_cell.border = THIN_BORDER


def _build_summary_sheet(ws, summary: pd.DataFrame, run_date: str, org: str) -> None:
    ws.sheet_properties.tabColor = COLOURS["navy"]
    ws.row_dimensions[1].height = 30

    ws.merge_cells("A1:F1")
    title = ws["A1"]
    title.value = "VALUE FOR MONEY AUDIT — SUMMARY"
    title.font = Font(name="Calibri", bold=True, size=16, color=COLOURS["white"])
    title.fill = _fill(COLOURS["navy"])
    title.alignment = Alignment(horizontal="center", vertical="center")

    ws.merge_cells("A2:F2")
    sub = ws["A2"]
    sub.value = f"Report Date: {run_date}  |  Organisation: {org}"
    sub.font = Font(name="Calibri", italic=True, size=10, color=COLOURS["navy"])
    sub.alignment = Alignment(horizontal="center")

    currencies = sorted(summary["currency"].unique()) if len(summary) else []
    unit = currencies[0] if len(currencies) == 1 else "mixed"
    avg_score = summary["overall_score"].mean() if len(summary) else 0.0

    tiles = [
        ("AUDITS",            f"{len(summary):,}",                                COLOURS["navy"]),
        ("TOTAL VALUE",       f"{unit} {summary['value'].sum():,.0f}",            COLOURS["navy"]),
        ("IDENTIFIED SAVINGS", f"{unit} {summary['identified_savings'].sum():,.0f}", COLOURS["dark_green"]),
        ("POTENTIAL SAVINGS", f"{unit} {summary['potential_savings'].sum():,.0f}", COLOURS["gold"]),
        ("AVERAGE SCORE",     f"{avg_score:.1f}",                                 COLOURS["dark_red"]),
    ]
    for i, (label, value, colour) in enumerate(tiles, start=1):
        _write_kpi_tile(ws, row=4, col=i, label=label, value=value, colour=colour)
    ws.row_dimensions[5].height = 30

    ws.cell(row=7, column=1, value="WEAKEST PROCUREMENTS").font = Font(
        name="Calibri", bold=True, size=12, color=COLOURS["navy"]
    )
    _write_header(ws, 8, ["Procurement", "Category", "Overall", "Risk"], COLOURS["dark_red"])
    # summary is sorted weakest first
    for row_i, row in enumerate(summary.head(5).itertuples(index=False), start=9):
        values = [row.title, row.category, row.overall_score, row.risk_level]
        for col_i, val in enumerate(values, start=1):
            cell = ws.cell(row=row_i, column=col_i, value=val)
            cell.fill = _fill(_band_colour(row.overall_score))
            cell.border = THIN_BORDER

    _auto_fit_columns(ws)


def _build_audits_sheet(ws, summary: pd.DataFrame) -> None:
    ws.sheet_properties.tabColor = COLOURS["dark_green"]

    df_display = summary[list(AUDIT_COLUMNS)].rename(columns=AUDIT_COLUMNS)
    headers = list(df_display.columns)
    _write_header(ws, 1, headers, COLOURS["navy"])
    ws.freeze_panes = "A2"

    overall_idx = headers.index("Overall")
    for row_i, row in enumerate(
        dataframe_to_rows(df_display, index=False, header=False), start=2
    ):
        fill = _fill(_band_colour(row[overall_idx]))
        for col_i, val in enumerate(row, start=1):
            cell = ws.cell(row=row_i, column=col_i, value=val)
            cell.fill = fill
            cell.border = THIN_BORDER
            if headers[col_i - 1] in MONEY_COLUMNS:
                cell.number_format = "#,##0"

    ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}1"
    _auto_fit_columns(ws)


def _build_recommendations_sheet(
    ws,
    titles: list[str],
    results: list[VFMAuditResult],
) -> None:
    ws.sheet_properties.tabColor = COLOURS["gold"]
    headers = [
        "Procurement", "Priority", "Category", "Recommendation",
        "Expected Savings", "Implementation", "Timeline",
    ]
    _write_header(ws, 1, headers, COLOURS["gold"])
    ws.freeze_panes = "A2"

    row_i = 2
    for title, result in zip(titles, results):
        for rec in result.recommendations:
            values = [
                title,
                rec.priority.value,
                rec.category,
                rec.recommendation,
                rec.expected_savings,
                rec.implementation,
                rec.timeline,
            ]
            for col_i, val in enumerate(values, start=1):
                cell = ws.cell(row=row_i, column=col_i, value=val)
                cell.border = THIN_BORDER
                if col_i == 5:
                    cell.number_format = "#,##0.00"
            row_i += 1

    _auto_fit_columns(ws)


def generate_report(
    summary: pd.DataFrame,
    titles: list[str],
    results: list[VFMAuditResult],
    config: dict[str, Any],
) -> Path:
    """Generate the audit workbook and write it to the output directory.

    Args:
        summary: Portfolio DataFrame from auditor.summarise_audits().
        titles: Procurement titles, in the same order as `results`.
        results: Audit results.
        config: Parsed config.yaml contents.

    Returns:
        Path to the generated .xlsx file.

    Raises:
        OSError: If output directory cannot be created.
    """
    paths = config.get("paths") or {}
    run_date = datetime.today().strftime("%Y-%m-%d")
    output_dir = Path(paths.get("output_dir", "outputs"))
    output_dir.mkdir(parents=True, exist_ok=True)

    filename = paths.get("report_filename", "vfm_audit_{date}.xlsx").format(date=run_date)
    output_path = output_dir / filename
    org = (config.get("project") or {}).get("organisation", "")

    wb = Workbook()
    wb.remove(wb.active)

    _build_summary_sheet(wb.create_sheet("Summary"), summary, run_date, org)
    _build_audits_sheet(wb.create_sheet("Audits"), summary)
    logger.info("Built Audits sheet (%d rows)", len(summary))
    _build_recommendations_sheet(wb.create_sheet("Recommendations"), titles, results)

    wb.save(output_path)
    logger.info("Excel audit workbook saved to %s", output_path)
    return output_path
