from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.assumption import Assumption
from app.models.enums import MonthlyDataType
from app.models.gl import GlAccount, GlActualDetail
from app.models.monthly import MonthlyData
from app.services.categories import (
    CategoryNode,
    get_farm_categories,
    leaf_categories,
    recalc_parent_sums,
    validate_leaf_category,
)
from app.utils.fiscal_year import generate_fiscal_months


@dataclass
class CellUpdate:
    per_unit: dict[str, float]
    accounting: dict[str, float]


@dataclass
class RollupResult:
    months_imported: list[str] = field(default_factory=list)
    unmapped: list[dict] = field(default_factory=list)


def get_assumption(db: Session, farm_id: int, fiscal_year: int) -> Assumption | None:
    return db.scalar(
        select(Assumption).where(Assumption.farm_id == farm_id, Assumption.fiscal_year == fiscal_year)
    )


def get_assumption_or_404(db: Session, farm_id: int, fiscal_year: int) -> Assumption:
    assumption = get_assumption(db, farm_id, fiscal_year)
    if assumption is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assumptions not found.")
    return assumption


def get_monthly_row(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    data_type: MonthlyDataType,
) -> MonthlyData | None:
    return db.scalar(
        select(MonthlyData).where(
            MonthlyData.farm_id == farm_id,
            MonthlyData.fiscal_year == fiscal_year,
            MonthlyData.month == month,
            MonthlyData.type == data_type,
        )
    )


def _get_or_create_row(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    data_type: MonthlyDataType,
) -> MonthlyData:
    row = get_monthly_row(db, farm_id, fiscal_year, month, data_type)
    if row is None:
        row = MonthlyData(
            farm_id=farm_id,
            fiscal_year=fiscal_year,
            month=month,
            type=data_type,
            data_json={},
            comments_json={},
            is_actual=False,
        )
        db.add(row)
    return row


def list_monthly_rows(db: Session, farm_id: int, fiscal_year: int, data_type: MonthlyDataType) -> list[MonthlyData]:
    return list(
        db.scalars(
            select(MonthlyData).where(
                MonthlyData.farm_id == farm_id,
                MonthlyData.fiscal_year == fiscal_year,
                MonthlyData.type == data_type,
            )
        ).all()
    )


def to_accounting(per_unit: dict[str, float], total_acres: float) -> dict[str, float]:
    return {code: float(value or 0) * total_acres for code, value in per_unit.items()}


def to_per_unit(accounting: dict[str, float], total_acres: float) -> dict[str, float]:
    return {
        code: (float(value or 0) / total_acres if total_acres > 0 else 0.0)
        for code, value in accounting.items()
    }


def ensure_monthly_rows(db: Session, farm_id: int, fiscal_year: int, start_month: str) -> int:
    """Create empty per-unit and accounting rows for every missing fiscal month."""
    created = 0
    for data_type in (MonthlyDataType.per_unit, MonthlyDataType.accounting):
        existing = {row.month for row in list_monthly_rows(db, farm_id, fiscal_year, data_type)}
        for month in generate_fiscal_months(start_month):
            if month in existing:
                continue
            db.add(
                MonthlyData(
                    farm_id=farm_id,
                    fiscal_year=fiscal_year,
                    month=month,
                    type=data_type,
                    data_json={},
                    comments_json={},
                    is_actual=False,
                )
            )
            created += 1
    db.flush()
    return created


def rescale_for_acres(db: Session, farm_id: int, fiscal_year: int, total_acres: float) -> None:
    """Budget months follow per-unit figures; actual months keep their dollars."""
    per_unit_rows = {row.month: row for row in list_monthly_rows(db, farm_id, fiscal_year, MonthlyDataType.per_unit)}
    accounting_rows = {
        row.month: row for row in list_monthly_rows(db, farm_id, fiscal_year, MonthlyDataType.accounting)
    }
    for month, per_unit_row in per_unit_rows.items():
        accounting_row = accounting_rows.get(month)
        if accounting_row is None:
            continue
        if per_unit_row.is_actual or accounting_row.is_actual:
            per_unit_row.data_json = to_per_unit(accounting_row.data_json or {}, total_acres)
        else:
            accounting_row.data_json = to_accounting(per_unit_row.data_json or {}, total_acres)
    db.flush()


def assert_per_unit_editable(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    categories: list[CategoryNode],
    category_code: str,
) -> None:
    if category_code not in {category.code for category in leaf_categories(categories)}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot edit parent category directly.",
        )
    row = get_monthly_row(db, farm_id, fiscal_year, month, MonthlyDataType.per_unit)
    if row is not None and row.is_actual:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot edit actual data. Month is locked.",
        )
    assumption = get_assumption(db, farm_id, fiscal_year)
    if assumption is not None and assumption.is_frozen:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot edit budget data. Budget is frozen.",
        )


def update_per_unit_cell(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    category_code: str,
    value: float,
    comment: str | None = None,
) -> CellUpdate:
    categories = get_farm_categories(db, farm_id)
    validate_leaf_category(categories, category_code)
    assumption = get_assumption_or_404(db, farm_id, fiscal_year)

    per_unit_row = get_monthly_row(db, farm_id, fiscal_year, month, MonthlyDataType.per_unit)
    if per_unit_row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Monthly data not found.")

    per_unit = dict(per_unit_row.data_json or {})
    per_unit[category_code] = float(value)
    per_unit = recalc_parent_sums(per_unit, categories)
    per_unit_row.data_json = per_unit
    if comment is not None:
        comments = dict(per_unit_row.comments_json or {})
        comments[category_code] = comment
        per_unit_row.comments_json = comments

    accounting = to_accounting(per_unit, assumption.total_acres)
    accounting_row = _get_or_create_row(db, farm_id, fiscal_year, month, MonthlyDataType.accounting)
    accounting_row.data_json = accounting
    db.flush()
    return CellUpdate(per_unit=per_unit, accounting=accounting)


def _write_actuals(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    accounting: dict[str, float],
    total_acres: float,
) -> CellUpdate:
    accounting_row = _get_or_create_row(db, farm_id, fiscal_year, month, MonthlyDataType.accounting)
    accounting_row.data_json = accounting
    accounting_row.is_actual = True

    per_unit = to_per_unit(accounting, total_acres)
    per_unit_row = _get_or_create_row(db, farm_id, fiscal_year, month, MonthlyDataType.per_unit)
    per_unit_row.data_json = per_unit
    per_unit_row.is_actual = True
    db.flush()
    return CellUpdate(per_unit=per_unit, accounting=accounting)


def update_accounting_cell(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    category_code: str,
    value: float,
) -> CellUpdate:
    categories = get_farm_categories(db, farm_id)
    validate_leaf_category(categories, category_code)
    assumption = get_assumption_or_404(db, farm_id, fiscal_year)

    existing = get_monthly_row(db, farm_id, fiscal_year, month, MonthlyDataType.accounting)
    accounting = dict(existing.data_json or {}) if existing is not None else {}
    accounting[category_code] = float(value)
    accounting = recalc_parent_sums(accounting, categories)
    return _write_actuals(db, farm_id, fiscal_year, month, accounting, assumption.total_acres)


def apply_accounting_actuals(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    month: str,
    leaf_values: dict[str, float],
    replace_codes: set[str] | None = None,
) -> CellUpdate:
    """Merge leaf dollars into the month, mark it actual and cascade to per-unit."""
    categories = get_farm_categories(db, farm_id)
    existing = get_monthly_row(db, farm_id, fiscal_year, month, MonthlyDataType.accounting)
    accounting = dict(existing.data_json or {}) if existing is not None else {}
    for code in replace_codes or ():
        accounting[code] = 0.0
    for code, value in leaf_values.items():
        accounting[code] = float(value or 0)
    accounting = recalc_parent_sums(accounting, categories)

    assumption = get_assumption(db, farm_id, fiscal_year)
    total_acres = assumption.total_acres if assumption is not None and assumption.total_acres else 1.0
    return _write_actuals(db, farm_id, fiscal_year, month, accounting, total_acres)


def rollup_gl_actuals(db: Session, farm_id: int, fiscal_year: int, months: list[str]) -> RollupResult:
    """Sum GL postings per mapped leaf category and apply them as the month's actuals."""
    categories = get_farm_categories(db, farm_id)
    leaf_by_id = {category.id: category.code for category in leaf_categories(categories)}
    mapped_leaf_codes = {
        leaf_by_id[category_id]
        for category_id in db.scalars(
            select(GlAccount.category_id).where(GlAccount.farm_id == farm_id, GlAccount.category_id.is_not(None))
        ).all()
        if category_id in leaf_by_id
    }

    result = RollupResult()
    for month in dict.fromkeys(months):
        postings = db.execute(
            select(GlActualDetail, GlAccount)
            .join(GlAccount, GlAccount.id == GlActualDetail.gl_account_id)
            .where(
                GlActualDetail.farm_id == farm_id,
                GlActualDetail.fiscal_year == fiscal_year,
                GlActualDetail.month == month,
            )
        ).all()
        totals: dict[str, float] = defaultdict(float)
        for posting, account in postings:
            code = leaf_by_id.get(account.category_id) if account.category_id is not None else None
            if code is None:
                result.unmapped.append(
                    {
                        "account_number": account.account_number,
                        "account_name": account.account_name,
                        "month": month,
                        "amount": posting.amount,
                    }
                )
                continue
            totals[code] += float(posting.amount or 0)
        if not totals:
            continue
        apply_accounting_actuals(db, farm_id, fiscal_year, month, dict(totals), replace_codes=mapped_leaf_codes)
        result.months_imported.append(month)
    return result


def prior_year_aggregate(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    data_type: MonthlyDataType = MonthlyDataType.per_unit,
) -> dict[str, float]:
    aggregate: dict[str, float] = defaultdict(float)
    for row in list_monthly_rows(db, farm_id, fiscal_year - 1, data_type):
        for code, value in (row.data_json or {}).items():
            aggregate[code] += float(value or 0)
    return dict(aggregate)
