from datetime import date

from pydantic import BaseModel, Field

from app.models.enums import LocationType
from app.schemas.common import ORMModel


class LocationOut(ORMModel):
    id: int
    name: str
    location_type: str
    region: str | None = None
    sort_order: int
    bin_count: int = 0


class LocationUpsertRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    location_type: LocationType | None = None
    region: str | None = None
    sort_order: int | None = None


class BinOut(ORMModel):
    id: int
    location_id: int
    location_name: str | None = None
    bin_number: str
    bin_type: str | None = None
    size_bu: float | None = None
    notes: str | None = None


class BinUpsertRequest(BaseModel):
    location_id: int
    bin_number: str = Field(min_length=1, max_length=100)
    bin_type: str | None = None
    size_bu: float | None = Field(default=None, ge=0)
    notes: str | None = None


class SnapshotOut(BaseModel):
    id: int
    bin_id: int
    bin_number: str
    location_id: int
    location_name: str
    snapshot_date: date
    commodity: str | None = None
    bushels: float
    kg: float
    crop_year: int | None = None
    notes: str | None = None


class SnapshotInput(BaseModel):
    bin_id: int
    snapshot_date: date
    commodity: str | None = None
    bushels: float | None = None
    kg: float | None = None
    crop_year: int | None = None
    notes: str | None = None


class SnapshotBatchRequest(BaseModel):
    snapshots: list[SnapshotInput]


class SnapshotBatchResponse(BaseModel):
    saved: int


class InventorySummaryResponse(BaseModel):
    snapshot_date: date | None = None
    matrix: dict[str, dict[str, float]]
    locations: list[str]
    commodities: list[str]
    location_totals: dict[str, float]
    commodity_totals: dict[str, float]
    grand_total: float


class ComparisonRow(BaseModel):
    commodity: str
    location: str
    kg_date1: float
    kg_date2: float
    change_kg: float


class InventoryComparisonResponse(BaseModel):
    date1: date
    date2: date
    rows: list[ComparisonRow]
    locations: list[str]
    commodities: list[str]


class ConversionOut(ORMModel):
    commodity: str
    lbs_per_bu: float


class ConversionInput(BaseModel):
    commodity: str = Field(min_length=1, max_length=100)
    lbs_per_bu: float = Field(gt=0)


class ConversionBulkRequest(BaseModel):
    conversions: list[ConversionInput]


class SheetImportOut(BaseModel):
    name: str
    date: date
    snapshots: int


class ExcelImportResponse(BaseModel):
    message: str
    locations: int
    bins: int
    snapshots: int
    sheets: list[SheetImportOut]
