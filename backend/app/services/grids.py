from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from app.models.enums import CategoryType, MonthlyDataType
from app.schemas.financial import AccountingGridResponse, GridRow, MonthSummary, PerUnitGridResponse
from app.services.calculation import get_assumption, list_monthly_rows, prior_year_aggregate
from app.services.categories import CategoryNode, get_farm_categories, top_level_code
from app.services.forecast import ForecastLine, calculate_forecast
from app.utils.fiscal_year import DEFAULT_START_MONTH, generate_fiscal_months


NETBACK_CODE = "_netback_per_acre"


def _parent_codes(categories: list[CategoryNode]) -> dict[int, str]:
    return {category.id: category.code for category in categories}


def _month_maps(db: Session, farm_id: int, fiscal_year: int, data_type: MonthlyDataType):
    rows = list_monthly_rows(db, farm_id, fiscal_year, data_type)
    data = {row.month: row.data_json or {} for row in rows}
    actual = {row.month: bool(row.is_actual) for row in rows}
    comments = {row.month: row.comments_json or {} for row in rows}
    return data, actual, comments


def _netback_row(rows: list[GridRow], categories: list[CategoryNode], months: list[str]) -> GridRow | None:
    by_code = {row.code: row for row in rows}
    revenue = by_code.get(top_level_code(categories, CategoryType.revenue) or "")
    inputs = by_code.get(top_level_code(categories, CategoryType.input) or "")
    lpm = by_code.get(top_level_code(categories, CategoryType.lpm) or "")
    if revenue is None or inputs is None or lpm is None:
        return None

    def net(attr: str) -> float:
        return getattr(revenue, attr) - getattr(inputs, attr) - getattr(lpm, attr)

    month_values = {
        month: revenue.months.get(month, 0.0) - inputs.months.get(month, 0.0) - lpm.months.get(month, 0.0)
        for month in months
    }
    forecast_total = net("forecast_total")
    frozen_total = net("frozen_budget_total")
    variance = forecast_total - frozen_total
    return GridRow(
        code=NETBACK_CODE,
        display_name="Netback per Acre",
        level=-1,
        parent_code=None,
        category_type="COMPUTED",
        sort_order=999,
        prior_year=net("prior_year"),
        months=month_values,
        actuals=dict(revenue.actuals),
        total=sum(month_values.values()),
        current_aggregate=sum(month_values.values()),
        forecast_total=forecast_total,
        frozen_budget_total=frozen_total,
        variance=variance,
        pct_diff=variance / abs(frozen_total) * 100 if frozen_total != 0 else 0.0,
        is_computed=True,
    )


def build_per_unit_grid(db: Session, farm_id: int, fiscal_year: int, today: date | None = None) -> PerUnitGridResponse:
    assumption = get_assumption(db, farm_id, fiscal_year)
    start_month = assumption.start_month if assumption is not None else DEFAULT_START_MONTH
    months = generate_fiscal_months(start_month)
    categories = get_farm_categories(db, farm_id)
    parents = _parent_codes(categories)

    data, actual, comments = _month_maps(db, farm_id, fiscal_year, MonthlyDataType.per_unit)
    prior = prior_year_aggregate(db, farm_id, fiscal_year, MonthlyDataType.per_unit)
    forecast = calculate_forecast(db, farm_id, fiscal_year, start_month, today=today)

    rows: list[GridRow] = []
    for category in categories:
        month_values = {month: float(data.get(month, {}).get(category.code) or 0) for month in months}
        total = sum(month_values.values())
        line: ForecastLine | None = forecast.get(category.code)
        rows.append(
            GridRow(
                code=category.code,
                display_name=category.display_name,
                level=category.level,
                parent_code=parents.get(category.parent_id) if category.parent_id else None,
                category_type=category.category_type,
                sort_order=category.sort_order,
                prior_year=prior.get(category.code, 0.0),
                months=month_values,
                actuals={month: actual.get(month, False) for month in months},
                comments={month: str(comments.get(month, {}).get(category.code) or "") for month in months},
                total=total,
                current_aggregate=line.current_aggregate if line else total,
                forecast_total=line.forecast_total if line else total,
                frozen_budget_total=line.frozen_budget_total if line else 0.0,
                variance=line.variance if line else 0.0,
                pct_diff=line.pct_diff if line else 0.0,
            )
        )

    netback = _netback_row(rows, categories, months)
    if netback is not None:
        rows.append(netback)

    return PerUnitGridResponse(
        fiscal_year=fiscal_year,
        start_month=start_month,
        months=months,
        rows=rows,
        is_frozen=bool(assumption.is_frozen) if assumption is not None else False,
    )


def month_summary(values: dict[str, float], categories: list[CategoryNode]) -> MonthSummary:
    def bucket(category_type: CategoryType) -> float:
        code = top_level_code(categories, category_type)
        return float(values.get(code) or 0) if code else 0.0

    revenue = bucket(CategoryType.revenue)
    inputs = bucket(CategoryType.input)
    lpm = bucket(CategoryType.lpm)
    lbf = bucket(CategoryType.lbf)
    insurance = bucket(CategoryType.insurance)
    gross_margin = revenue - inputs - lpm
    return MonthSummary(
        revenue=revenue,
        inputs=inputs,
        lpm=lpm,
        lbf=lbf,
        insurance=insurance,
        gross_margin=gross_margin,
        operating_income=gross_margin - lbf - insurance,
    )


def build_accounting_grid(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    today: date | None = None,
) -> AccountingGridResponse:
    assumption = get_assumption(db, farm_id, fiscal_year)
    start_month = assumption.start_month if assumption is not None else DEFAULT_START_MONTH
    total_acres = assumption.total_acres if assumption is not None else 0.0
    months = generate_fiscal_months(start_month)
    categories = get_farm_categories(db, farm_id)
    parents = _parent_codes(categories)

    data, actual, _ = _month_maps(db, farm_id, fiscal_year, MonthlyDataType.accounting)
    prior = prior_year_aggregate(db, farm_id, fiscal_year, MonthlyDataType.accounting)
    forecast = calculate_forecast(db, farm_id, fiscal_year, start_month, today=today)

    rows: list[GridRow] = []
    for category in categories:
        month_values = {month: float(data.get(month, {}).get(category.code) or 0) for month in months}
        total = sum(month_values.values())
        line = forecast.get(category.code)
        rows.append(
            GridRow(
                code=category.code,
                display_name=category.display_name,
                level=category.level,
                parent_code=parents.get(category.parent_id) if category.parent_id else None,
                category_type=category.category_type,
                sort_order=category.sort_order,
                prior_year=prior.get(category.code, 0.0),
                months=month_values,
                actuals={month: actual.get(month, False) for month in months},
                total=total,
                current_aggregate=line.current_aggregate * total_acres if line else 0.0,
                forecast_total=line.forecast_total * total_acres if line else total,
                frozen_budget_total=line.frozen_budget_total * total_acres if line else 0.0,
                variance=line.variance * total_acres if line else 0.0,
                pct_diff=line.pct_diff if line else 0.0,
            )
        )

    summary = {month: month_summary(data.get(month, {}), categories) for month in months}
    return AccountingGridResponse(
        fiscal_year=fiscal_year,
        start_month=start_month,
        total_acres=total_acres,
        months=months,
        rows=rows,
        summary=summary,
        is_frozen=bool(assumption.is_frozen) if assumption is not None else False,
    )
