from pydantic import BaseModel, Field

from app.schemas.common import MonthValues


class PerUnitCellRequest(BaseModel):
    category_code: str = Field(min_length=1)
    value: float
    comment: str | None = None


class AccountingCellRequest(BaseModel):
    category_code: str = Field(min_length=1)
    value: float


class CellUpdateResponse(BaseModel):
    per_unit: MonthValues
    accounting: MonthValues


class ManualActualRequest(BaseModel):
    fiscal_year: int
    month: str
    data: MonthValues


class ManualActualResponse(BaseModel):
    message: str
    data: MonthValues


class PriorYearResponse(BaseModel):
    fiscal_year: int
    aggregate: MonthValues


class GridRow(BaseModel):
    code: str
    display_name: str
    level: int
    parent_code: str | None = None
    category_type: str
    sort_order: int
    prior_year: float = 0.0
    months: MonthValues
    actuals: dict[str, bool] = Field(default_factory=dict)
    comments: dict[str, str] = Field(default_factory=dict)
    total: float = 0.0
    current_aggregate: float = 0.0
    forecast_total: float = 0.0
    frozen_budget_total: float = 0.0
    variance: float = 0.0
    pct_diff: float = 0.0
    is_computed: bool = False


class PerUnitGridResponse(BaseModel):
    fiscal_year: int
    start_month: str
    months: list[str]
    rows: list[GridRow]
    is_frozen: bool


class MonthSummary(BaseModel):
    revenue: float
    inputs: float
    lpm: float
    lbf: float
    insurance: float
    gross_margin: float
    operating_income: float


class AccountingGridResponse(BaseModel):
    fiscal_year: int
    start_month: str
    total_acres: float
    months: list[str]
    rows: list[GridRow]
    summary: dict[str, MonthSummary]
    is_frozen: bool


class FrozenSnapshotResponse(BaseModel):
    fiscal_year: int
    months: dict[str, dict[str, MonthValues]]


class ForecastLineOut(BaseModel):
    code: str
    display_name: str
    month_values: MonthValues
    forecast_total: float
    current_aggregate: float
    frozen_budget_total: float
    variance: float
    pct_diff: float


class ForecastResponse(BaseModel):
    fiscal_year: int
    start_month: str
    lines: dict[str, ForecastLineOut]
