from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from app.models.enums import CategoryType, MonthlyDataType
from app.services.calculation import get_assumption, list_monthly_rows
from app.services.categories import get_farm_categories, top_level_code
from app.services.forecast import calculate_forecast, frozen_month_map
from app.utils.decimal_math import safe_ratio, tenth


LABOUR_CATEGORY_CODE = "lpm_personnel"


@dataclass
class Kpi:
    label: str
    value: float | None
    unit: str
    gauge: bool
    target: float | None = None


@dataclass
class Dashboard:
    kpis: list[Kpi] = field(default_factory=list)
    chart: dict[str, list] = field(default_factory=dict)
    crop_yields: list[dict] = field(default_factory=list)


def planned_revenue(crop: dict) -> float:
    return float(crop.get("acres") or 0) * float(crop.get("target_yield") or 0) * float(crop.get("price_per_unit") or 0)


def build_dashboard(db: Session, farm_id: int, fiscal_year: int, today: date | None = None) -> Dashboard:
    assumption = get_assumption(db, farm_id, fiscal_year)
    total_acres = assumption.total_acres if assumption is not None and assumption.total_acres else 1.0
    crops = list(assumption.crops_json or []) if assumption is not None else []
    categories = get_farm_categories(db, farm_id)

    aggregate: dict[str, float] = defaultdict(float)
    for row in list_monthly_rows(db, farm_id, fiscal_year, MonthlyDataType.accounting):
        for code, value in (row.data_json or {}).items():
            aggregate[code] += float(value or 0)

    def bucket(category_type: CategoryType) -> float:
        code = top_level_code(categories, category_type)
        return aggregate.get(code, 0.0) if code else 0.0

    revenue = bucket(CategoryType.revenue)
    inputs = bucket(CategoryType.input)
    lpm = bucket(CategoryType.lpm)
    lbf = bucket(CategoryType.lbf)
    insurance = bucket(CategoryType.insurance)

    inputs_code = top_level_code(categories, CategoryType.input)
    frozen_inputs = 0.0
    if inputs_code:
        for values in frozen_month_map(db, farm_id, fiscal_year, MonthlyDataType.accounting).values():
            frozen_inputs += float(values.get(inputs_code) or 0)

    target_revenue = sum(planned_revenue(crop) for crop in crops)
    yield_pct = safe_ratio(revenue, target_revenue) * 100
    inputs_adherence = (
        min(100.0, 100 - abs(inputs - frozen_inputs) / frozen_inputs * 100) if frozen_inputs > 0 else 0.0
    )
    gross_margin = revenue - inputs - lpm

    dashboard = Dashboard(
        kpis=[
            Kpi("Yield vs Target", yield_pct, "%", True, 100),
            Kpi("Inputs Adherence", inputs_adherence, "%", True, 100),
            Kpi("Labour Cost/Acre", aggregate.get(LABOUR_CATEGORY_CODE, 0.0) / total_acres, "$/ac", False),
            # No machinery telemetry source yet.
            Kpi("Machinery Uptime", None, "%", True, 100),
            Kpi("Gross Margin/Acre", gross_margin / total_acres, "$/ac", False),
            Kpi("Cash Flow/Acre", (gross_margin - lbf - insurance) / total_acres, "$/ac", False),
        ]
    )

    forecast = calculate_forecast(db, farm_id, fiscal_year, today=today)
    top_level = [category for category in categories if category.level == 0]
    dashboard.chart = {
        "labels": [category.display_name for category in top_level],
        "budget": [forecast[c.code].frozen_budget_total if c.code in forecast else 0.0 for c in top_level],
        "forecast": [forecast[c.code].forecast_total if c.code in forecast else 0.0 for c in top_level],
    }

    for crop in crops:
        acres = float(crop.get("acres") or 0)
        price = float(crop.get("price_per_unit") or 0)
        target_yield = float(crop.get("target_yield") or 0)
        allocated = revenue * safe_ratio(planned_revenue(crop), target_revenue)
        actual_yield = allocated / (acres * price) if acres > 0 and price > 0 else 0.0
        dashboard.crop_yields.append(
            {
                "name": crop.get("name"),
                "acres": acres,
                "target_yield": target_yield,
                "actual_yield": float(tenth(actual_yield)),
                "yield_pct": float(tenth(safe_ratio(actual_yield, target_yield) * 100)),
            }
        )
    return dashboard
