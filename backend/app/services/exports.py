from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib.pagesizes import landscape, legal
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.enums import MonthlyDataType
from app.models.farm import Farm
from app.models.gl import GlAccount, GlActualDetail
from app.services.calculation import get_assumption, list_monthly_rows
from app.services.categories import CategoryNode, get_farm_categories
from app.utils.decimal_math import format_amount
from app.utils.fiscal_year import DEFAULT_START_MONTH, fiscal_to_calendar, generate_fiscal_months


NUMBER_FORMAT = "#,##0.00"


def _month_data(db: Session, farm_id: int, fiscal_year: int, data_type: MonthlyDataType) -> dict[str, dict]:
    return {row.month: row.data_json or {} for row in list_monthly_rows(db, farm_id, fiscal_year, data_type)}


def statement_rows(
    categories: list[CategoryNode],
    months: list[str],
    data: dict[str, dict],
) -> list[tuple[CategoryNode, list[float], float]]:
    rows = []
    for category in categories:
        values = [float(data.get(month, {}).get(category.code) or 0) for month in months]
        rows.append((category, values, sum(values)))
    return rows


def _statement_sheet(sheet, categories: list[CategoryNode], months: list[str], data: dict[str, dict]) -> None:
    sheet.append(["Category", *months, "Total"])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for category, values, total in statement_rows(categories, months, data):
        sheet.append([f"{'  ' * category.level}{category.display_name}", *values, total])
        row = sheet[sheet.max_row]
        for cell in row[1:]:
            cell.number_format = NUMBER_FORMAT
        if category.level == 0:
            for cell in row:
                cell.font = Font(bold=True)
    sheet.column_dimensions["A"].width = 35


def build_excel_workbook(db: Session, farm: Farm, fiscal_year: int) -> Workbook:
    assumption = get_assumption(db, farm.id, fiscal_year)
    months = generate_fiscal_months(assumption.start_month if assumption is not None else DEFAULT_START_MONTH)
    categories = get_farm_categories(db, farm.id)

    workbook = Workbook()
    per_unit_sheet = workbook.active
    per_unit_sheet.title = "Per-Unit Analysis"
    _statement_sheet(
        per_unit_sheet,
        categories,
        months,
        _month_data(db, farm.id, fiscal_year, MonthlyDataType.per_unit),
    )
    _statement_sheet(
        workbook.create_sheet("Accounting Statement"),
        categories,
        months,
        _month_data(db, farm.id, fiscal_year, MonthlyDataType.accounting),
    )

    accounts = list(
        db.scalars(
            select(GlAccount)
            .where(GlAccount.farm_id == farm.id, GlAccount.is_active.is_(True))
            .order_by(GlAccount.account_number)
        ).all()
    )
    if accounts:
        amounts = {
            (posting.gl_account_id, posting.month): float(posting.amount or 0)
            for posting in db.scalars(
                select(GlActualDetail).where(
                    GlActualDetail.farm_id == farm.id,
                    GlActualDetail.fiscal_year == fiscal_year,
                )
            ).all()
        }
        gl_sheet = workbook.create_sheet("GL Detail")
        gl_sheet.append(["Account #", "Account Name", "Category", *months, "Total"])
        for cell in gl_sheet[1]:
            cell.font = Font(bold=True)
        for account in accounts:
            values = [amounts.get((account.id, month), 0.0) for month in months]
            category_name = account.category.display_name if account.category is not None else "Unmapped"
            gl_sheet.append([account.account_number, account.account_name, category_name, *values, sum(values)])
        gl_sheet.column_dimensions["B"].width = 30
        gl_sheet.column_dimensions["C"].width = 22

    if assumption is not None:
        sheet = workbook.create_sheet("Assumptions")
        sheet.append(["Farm", farm.name])
        sheet.append(["Fiscal Year", fiscal_year])
        sheet.append(["Total Acres", assumption.total_acres])
        sheet.append([])
        sheet.append(["Crops"])
        sheet.append(["Name", "Acres", "Target Yield", "Price/Unit"])
        for crop in assumption.crops_json or []:
            sheet.append([crop.get("name"), crop.get("acres"), crop.get("target_yield"), crop.get("price_per_unit")])
        sheet.append([])
        sheet.append(["Bins"])
        sheet.append(["Name", "Capacity", "Opening Balance", "Grain Type"])
        for bin_info in assumption.bins_json or []:
            sheet.append(
                [
                    bin_info.get("name"),
                    bin_info.get("capacity"),
                    bin_info.get("opening_balance"),
                    bin_info.get("grain_type"),
                ]
            )
    return workbook


def excel_bytes(db: Session, farm: Farm, fiscal_year: int) -> io.BytesIO:
    stream = io.BytesIO()
    build_excel_workbook(db, farm, fiscal_year).save(stream)
    stream.seek(0)
    return stream


def accounting_csv(db: Session, farm: Farm, fiscal_year: int) -> str:
    assumption = get_assumption(db, farm.id, fiscal_year)
    months = generate_fiscal_months(assumption.start_month if assumption is not None else DEFAULT_START_MONTH)
    data = _month_data(db, farm.id, fiscal_year, MonthlyDataType.accounting)
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["code", "category", *months, "total"])
    for category, values, total in statement_rows(get_farm_categories(db, farm.id), months, data):
        writer.writerow([category.code, category.display_name, *[f"{value:.2f}" for value in values], f"{total:.2f}"])
    return output.getvalue()


def fiscal_year_span(fiscal_year: int, start_month: str) -> str:
    """``"Nov 2025 - Oct 2026"`` for FY2026 starting in November."""
    months = generate_fiscal_months(start_month)
    first = fiscal_to_calendar(fiscal_year, months[0], start_month)
    last = fiscal_to_calendar(fiscal_year, months[-1], start_month)
    return f"{months[0]} {first.year} - {months[-1]} {last.year}"


def _draw_statement_header(pdf: canvas.Canvas, page_height: float, title: str, subtitle: str) -> float:
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(30, page_height - 40, title)
    pdf.setFont("Helvetica", 11)
    pdf.drawString(30, page_height - 58, subtitle)
    return page_height - 85


def _draw_column_headers(pdf: canvas.Canvas, y: float, months: list[str], page_width: float) -> float:
    pdf.setFont("Helvetica-Bold", 7)
    pdf.drawString(30, y, "Category")
    for idx, month in enumerate(months):
        pdf.drawRightString(200 + (idx + 1) * 58, y, month)
    pdf.drawRightString(page_width - 30, y, "Total")
    pdf.line(30, y - 3, page_width - 30, y - 3)
    return y - 12


def generate_operating_statement_pdf(db: Session, farm: Farm, fiscal_year: int) -> Path:
    """Landscape legal operating statement written under the exports directory."""
    settings = get_settings()
    output_dir = Path(settings.exports_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    file_path = output_dir / f"operating-statement-{farm.id}-{fiscal_year}-{timestamp}.pdf"

    assumption = get_assumption(db, farm.id, fiscal_year)
    start = assumption.start_month if assumption is not None else DEFAULT_START_MONTH
    months = generate_fiscal_months(start)
    data = _month_data(db, farm.id, fiscal_year, MonthlyDataType.accounting)

    page_width, page_height = landscape(legal)
    pdf = canvas.Canvas(str(file_path), pagesize=(page_width, page_height))
    y = _draw_statement_header(
        pdf,
        page_height,
        f"{farm.name} - Operating Statement",
        f"Fiscal Year {fiscal_year} ({fiscal_year_span(fiscal_year, start)})",
    )
    y = _draw_column_headers(pdf, y, months, page_width)

    for category, values, total in statement_rows(get_farm_categories(db, farm.id), months, data):
        if y < 40:
            pdf.showPage()
            y = _draw_column_headers(pdf, page_height - 40, months, page_width)
        pdf.setFont("Helvetica-Bold" if category.level == 0 else "Helvetica", 7)
        pdf.drawString(30 + category.level * 8, y, category.display_name)
        for idx, value in enumerate(values):
            pdf.drawRightString(200 + (idx + 1) * 58, y, format_amount(value))
        pdf.drawRightString(page_width - 30, y, format_amount(total))
        y -= 11

    pdf.save()
    return file_path
