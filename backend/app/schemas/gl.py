from pydantic import BaseModel, Field

from app.schemas.categories import GlAccountOut


class GlAccountInput(BaseModel):
    account_number: str | None = None
    account_name: str | None = None
    category_code: str | None = None


class GlAccountBulkRequest(BaseModel):
    accounts: list[GlAccountInput]


class GlAccountBulkResponse(BaseModel):
    created: int
    gl_accounts: list[GlAccountOut]


class GlAccountUpdateRequest(BaseModel):
    account_name: str | None = Field(default=None, min_length=1, max_length=255)
    category_code: str | None = None
    is_active: bool | None = None


class GlAssignment(BaseModel):
    account_number: str
    category_code: str | None = None


class GlBulkAssignRequest(BaseModel):
    assignments: list[GlAssignment]


class GlActualOut(BaseModel):
    id: int
    month: str
    amount: float
    account_number: str
    account_name: str
    category_code: str | None = None
    category_name: str


class GlActualsResponse(BaseModel):
    fiscal_year: int
    month: str | None = None
    actuals: list[GlActualOut]


class GlPostingInput(BaseModel):
    account_number: str = Field(min_length=1)
    month: str
    amount: float


class GlNewAccount(BaseModel):
    account_number: str = Field(min_length=1)
    account_name: str = Field(min_length=1)
    category_code: str | None = None


class GlImportRequest(BaseModel):
    fiscal_year: int
    rows: list[GlPostingInput]
    new_accounts: list[GlNewAccount] | None = None


class GlImportResponse(BaseModel):
    message: str
    months_imported: list[str]
    postings: int
    skipped: int
    unmapped: list[dict]
