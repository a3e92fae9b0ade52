from pydantic import BaseModel, Field

from app.schemas.common import MonthValues


class CsvAccountInput(BaseModel):
    name: str
    category_code: str | None = None
    months: MonthValues = Field(default_factory=dict)


class CsvImportRequest(BaseModel):
    fiscal_year: int
    accounts: list[CsvAccountInput]


class CsvImportResponse(BaseModel):
    message: str
    imported: int
    months: list[str]
    skipped: int
    skipped_details: list[dict]


class CsvCategoryTotal(BaseModel):
    name: str
    accounts: int
    month_totals: MonthValues


class CsvPreviewResponse(BaseModel):
    headers: list[str]
    row_count: int
    account_column: str | None
    month_columns: dict[str, str]
    accounts: list[str]
    mapping: dict[str, str]
    category_totals: dict[str, CsvCategoryTotal]
