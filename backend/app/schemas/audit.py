from datetime import datetime

from app.schemas.common import ORMModel


class AuditLogOut(ORMModel):
    id: int
    farm_id: int | None = None
    fiscal_year: int | None = None
    actor_user_id: int
    action: str
    entity_type: str
    entity_id: str
    before_state: dict | None = None
    after_state: dict | None = None
    created_at: datetime
