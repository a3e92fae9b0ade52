from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.category import FarmCategory
from app.models.gl import GlAccount
from app.services.calculation import rollup_gl_actuals
from app.services.categories import get_farm_categories, leaf_categories
from app.services.gl import upsert_gl_account, upsert_posting
from app.utils.fiscal_year import is_valid_month


logger = logging.getLogger("farmplan.imports")

ACCOUNT_HEADER_HINTS = ("account", "name", "category", "description", "item")

MONTH_HEADER_HINTS = [
    ("january", "Jan"),
    ("february", "Feb"),
    ("march", "Mar"),
    ("april", "Apr"),
    ("may", "May"),
    ("june", "Jun"),
    ("july", "Jul"),
    ("august", "Aug"),
    ("september", "Sep"),
    ("october", "Oct"),
    ("november", "Nov"),
    ("december", "Dec"),
    ("jan", "Jan"),
    ("feb", "Feb"),
    ("mar", "Mar"),
    ("apr", "Apr"),
    ("jun", "Jun"),
    ("jul", "Jul"),
    ("aug", "Aug"),
    ("sep", "Sep"),
    ("oct", "Oct"),
    ("nov", "Nov"),
    ("dec", "Dec"),
]


@dataclass
class CsvImportResult:
    imported: int = 0
    months: list[str] = field(default_factory=list)
    skipped_details: list[dict] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.skipped_details)


def detect_account_column(headers: list[str]) -> str | None:
    for header in headers:
        lowered = header.lower()
        if any(hint in lowered for hint in ACCOUNT_HEADER_HINTS):
            return header
    return headers[0] if headers else None


def detect_month_columns(headers: list[str], exclude: str | None = None) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for header in headers:
        if header == exclude:
            continue
        lowered = header.lower().strip()
        for hint, month in MONTH_HEADER_HINTS:
            if hint in lowered:
                mapping[header] = month
                break
    return mapping


def clean_amount(raw: object) -> float | None:
    cleaned = str(raw if raw is not None else "").replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]
    try:
        return float(cleaned)
    except ValueError:
        return None


def _saved_mappings(db: Session, farm_id: int) -> dict[str, str]:
    rows = db.execute(
        select(GlAccount.account_number, GlAccount.account_name, FarmCategory.code)
        .join(FarmCategory, FarmCategory.id == GlAccount.category_id)
        .where(GlAccount.farm_id == farm_id)
    ).all()
    saved: dict[str, str] = {}
    for account_number, account_name, code in rows:
        saved[account_name] = code
        saved[account_number] = code
    return saved


def preview_csv(db: Session, farm_id: int, content: bytes) -> dict:
    """Detect columns, pre-fill category mappings and total the mapped amounts."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV must be UTF-8 encoded.") from exc

    reader = csv.DictReader(io.StringIO(text))
    headers = [header.strip() for header in (reader.fieldnames or []) if header and header.strip()]
    if not headers:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV has no header row.")
    rows = [{(key or "").strip(): value for key, value in row.items()} for row in reader]

    account_column = detect_account_column(headers)
    month_columns = detect_month_columns(headers, exclude=account_column)

    accounts: list[str] = []
    for row in rows:
        name = (row.get(account_column) or "").strip()
        if name and name not in accounts:
            accounts.append(name)

    saved = _saved_mappings(db, farm_id)
    mapping = {name: saved[name] for name in accounts if name in saved}

    names = {category.code: category.display_name for category in get_farm_categories(db, farm_id)}
    category_totals: dict[str, dict] = {}
    for name in accounts:
        code = mapping.get(name)
        if code is None:
            continue
        summary = category_totals.setdefault(code, {"name": names.get(code, code), "accounts": 0, "month_totals": {}})
        summary["accounts"] += 1
        for row in rows:
            if (row.get(account_column) or "").strip() != name:
                continue
            for column, month in month_columns.items():
                amount = clean_amount(row.get(column))
                if amount is None:
                    continue
                summary["month_totals"][month] = summary["month_totals"].get(month, 0.0) + amount

    return {
        "headers": headers,
        "row_count": len(rows),
        "account_column": account_column,
        "month_columns": month_columns,
        "accounts": accounts,
        "mapping": mapping,
        "category_totals": category_totals,
    }


def import_csv_accounts(db: Session, farm_id: int, fiscal_year: int, accounts: list[dict]) -> CsvImportResult:
    """Each CSV account becomes a GL account mapped to a leaf; touched months are rolled up."""
    leaf_codes = {category.code for category in leaf_categories(get_farm_categories(db, farm_id))}
    result = CsvImportResult()
    touched: list[str] = []

    for entry in accounts:
        name = str(entry.get("name") or "").strip()
        category_code = entry.get("category_code")
        months = entry.get("months") or {}
        if not name:
            result.skipped_details.append({"name": name, "reason": "missing account name"})
            continue
        if category_code not in leaf_codes:
            result.skipped_details.append(
                {"name": name, "category_code": category_code, "reason": "unknown or non-leaf category"}
            )
            continue
        bad_months = [month for month in months if not is_valid_month(month)]
        if bad_months:
            result.skipped_details.append({"name": name, "reason": f"invalid month(s): {', '.join(bad_months)}"})
            continue

        account = upsert_gl_account(
            db,
            farm_id,
            account_number=name,
            account_name=name,
            category_code=category_code,
        )
        for month, amount in months.items():
            upsert_posting(db, farm_id, account, fiscal_year, month, float(amount or 0))
            if month not in touched:
                touched.append(month)
        result.imported += 1
    db.flush()

    rollup = rollup_gl_actuals(db, farm_id, fiscal_year, touched)
    result.months = rollup.months_imported
    if result.skipped_details:
        logger.warning("CSV import farm=%s skipped %s account(s)", farm_id, result.skipped)
    logger.info(
        "CSV import farm=%s FY%s accounts=%s months=%s",
        farm_id,
        fiscal_year,
        result.imported,
        len(result.months),
    )
    return result
