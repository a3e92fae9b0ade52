from pydantic import BaseModel, Field

from app.schemas.common import ORMModel


class CategoryOut(ORMModel):
    id: int
    code: str
    display_name: str
    parent_id: int | None = None
    path: str
    level: int
    sort_order: int
    category_type: str
    is_active: bool = True


class CategoryCreateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_]+$")
    display_name: str = Field(min_length=1, max_length=255)
    category_type: str = Field(min_length=1, max_length=50)
    parent_code: str | None = None


class CategoryUpdateRequest(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    sort_order: int | None = None
    is_active: bool | None = None


class ChartInitRequest(BaseModel):
    crops: list[dict] | None = None


class GlAccountOut(ORMModel):
    id: int
    account_number: str
    account_name: str
    category_id: int | None = None
    category_code: str | None = None
    category_name: str | None = None
    is_active: bool = True

    @classmethod
    def from_account(cls, account) -> "GlAccountOut":
        category = account.category
        return cls(
            id=account.id,
            account_number=account.account_number,
            account_name=account.account_name,
            category_id=account.category_id,
            category_code=category.code if category is not None else None,
            category_name=category.display_name if category is not None else None,
            is_active=account.is_active,
        )


class ChartOfAccountsResponse(BaseModel):
    categories: list[CategoryOut]
    gl_accounts: list[GlAccountOut]
