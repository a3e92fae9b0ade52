from pydantic import BaseModel


class KpiOut(BaseModel):
    label: str
    value: float | None
    unit: str
    gauge: bool
    target: float | None = None


class BudgetChart(BaseModel):
    labels: list[str]
    budget: list[float]
    forecast: list[float]


class CropYield(BaseModel):
    name: str | None
    acres: float
    target_yield: float
    actual_yield: float
    yield_pct: float


class DashboardResponse(BaseModel):
    fiscal_year: int
    kpis: list[KpiOut]
    chart: BudgetChart
    crop_yields: list[CropYield]
