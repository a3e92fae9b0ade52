from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.enums import MonthlyDataType
from app.models.monthly import MonthlyDataFrozen
from app.services.calculation import get_assumption, list_monthly_rows
from app.services.categories import children_of, get_farm_categories, leaf_categories, parent_categories
from app.utils.fiscal_year import DEFAULT_START_MONTH, current_fiscal_month, fiscal_month_index, generate_fiscal_months


@dataclass
class ForecastLine:
    code: str
    display_name: str
    month_values: dict[str, float] = field(default_factory=dict)
    forecast_total: float = 0.0
    current_aggregate: float = 0.0
    frozen_budget_total: float = 0.0
    variance: float = 0.0
    pct_diff: float = 0.0

    def settle(self) -> None:
        self.variance = self.forecast_total - self.frozen_budget_total
        self.pct_diff = (
            self.variance / abs(self.frozen_budget_total) * 100 if self.frozen_budget_total != 0 else 0.0
        )


def frozen_month_map(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    data_type: MonthlyDataType = MonthlyDataType.per_unit,
) -> dict[str, dict[str, float]]:
    rows = db.scalars(
        select(MonthlyDataFrozen).where(
            MonthlyDataFrozen.farm_id == farm_id,
            MonthlyDataFrozen.fiscal_year == fiscal_year,
            MonthlyDataFrozen.type == data_type,
        )
    ).all()
    return {row.month: dict(row.data_json or {}) for row in rows}


def calculate_forecast(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    start_month: str | None = None,
    today: date | None = None,
) -> dict[str, ForecastLine]:
    """Blend stored per-unit values for elapsed months with the frozen budget for the rest.

    Past months and the current month read the working figures; future
    months read the frozen budget. Parents are summed from their children.
    """
    if not start_month:
        assumption = get_assumption(db, farm_id, fiscal_year)
        start_month = assumption.start_month if assumption is not None else DEFAULT_START_MONTH

    months = generate_fiscal_months(start_month)
    current_fy, current_month = current_fiscal_month(start_month, today)
    current_idx = fiscal_month_index(current_month, start_month)

    stored = {
        row.month: row.data_json or {}
        for row in list_monthly_rows(db, farm_id, fiscal_year, MonthlyDataType.per_unit)
    }
    frozen = frozen_month_map(db, farm_id, fiscal_year)
    categories = get_farm_categories(db, farm_id)

    result: dict[str, ForecastLine] = {}
    for category in leaf_categories(categories):
        line = ForecastLine(code=category.code, display_name=category.display_name)
        for idx, month in enumerate(months):
            frozen_value = float(frozen.get(month, {}).get(category.code) or 0)
            line.frozen_budget_total += frozen_value
            stored_value = float(stored.get(month, {}).get(category.code) or 0)

            if fiscal_year < current_fy or (fiscal_year == current_fy and idx < current_idx):
                value = stored_value
                line.current_aggregate += value
            elif fiscal_year == current_fy and idx == current_idx:
                value = stored_value
            else:
                value = frozen_value

            line.month_values[month] = value
            line.forecast_total += value
        line.settle()
        result[category.code] = line

    for parent in sorted(parent_categories(categories), key=lambda category: category.level, reverse=True):
        children = [result[child.code] for child in children_of(categories, parent) if child.code in result]
        line = ForecastLine(code=parent.code, display_name=parent.display_name)
        for month in months:
            line.month_values[month] = sum(child.month_values.get(month, 0.0) for child in children)
        line.forecast_total = sum(child.forecast_total for child in children)
        line.current_aggregate = sum(child.current_aggregate for child in children)
        line.frozen_budget_total = sum(child.frozen_budget_total for child in children)
        line.settle()
        result[parent.code] = line

    return result
