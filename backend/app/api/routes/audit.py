from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access
from app.models.user import User
from app.schemas.audit import AuditLogOut
from app.services.audit import list_audit_entries


router = APIRouter(prefix="/farms/{farm_id}", tags=["audit"])


@router.get("/audit", response_model=list[AuditLogOut])
def farm_audit_log(
    farm_id: int,
    fiscal_year: int | None = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AuditLogOut]:
    require_farm_access(db, current_user, farm_id)
    return [AuditLogOut.model_validate(row) for row in list_audit_entries(db, farm_id, fiscal_year, limit)]
