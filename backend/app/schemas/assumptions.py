from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.common import ORMModel


class CropInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    acres: float = Field(default=0, ge=0)
    target_yield: float = Field(default=0, ge=0)
    price_per_unit: float = Field(default=0, ge=0)


class BinInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: float = Field(default=0, ge=0)
    opening_balance: float = Field(default=0, ge=0)
    grain_type: str | None = None


class AssumptionUpsertRequest(BaseModel):
    start_month: str | None = Field(default=None, min_length=3, max_length=3)
    total_acres: float | None = Field(default=None, ge=0)
    crops: list[CropInput] = Field(default_factory=list)
    bins: list[BinInput] = Field(default_factory=list)


class AssumptionOut(ORMModel):
    id: int
    farm_id: int
    fiscal_year: int
    start_month: str
    total_acres: float
    crops_json: list[dict]
    bins_json: list[dict]
    is_frozen: bool
    frozen_at: datetime | None = None
    updated_at: datetime | None = None


class AssumptionYear(ORMModel):
    fiscal_year: int
    start_month: str
    total_acres: float
    is_frozen: bool


class FreezeResponse(BaseModel):
    fiscal_year: int
    is_frozen: bool
    frozen_at: datetime | None = None
    frozen_rows: int = 0
    message: str
