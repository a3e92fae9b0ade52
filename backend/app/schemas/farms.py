from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import RoleName
from app.schemas.common import ORMModel


class FarmCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class FarmUpdateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class FarmSummary(ORMModel):
    id: int
    name: str
    created_at: datetime | None = None
    role: RoleName | None = None
