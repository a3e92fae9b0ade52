from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_farm_or_404, require_farm_access
from app.core.security import require_roles
from app.models.enums import RoleName
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.farms import FarmCreateRequest, FarmSummary, FarmUpdateRequest
from app.services.audit import log_audit
from app.services.farms import create_farm, delete_farm, list_user_farms, rename_farm


router = APIRouter(prefix="/farms", tags=["farms"])


def _summary(farm, role: RoleName) -> FarmSummary:
    return FarmSummary(id=farm.id, name=farm.name, created_at=farm.created_at, role=role)


@router.get("", response_model=list[FarmSummary])
def list_farms(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[FarmSummary]:
    return [_summary(farm, role) for farm, role in list_user_farms(db, current_user)]


@router.post("", response_model=FarmSummary, status_code=status.HTTP_201_CREATED)
def create_farm_endpoint(
    payload: FarmCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FarmSummary:
    farm = create_farm(db, current_user, payload.name)
    log_audit(
        db,
        actor=current_user,
        action="farm_created",
        entity_type="farm",
        entity_id=str(farm.id),
        farm_id=farm.id,
        after_state={"name": farm.name},
    )
    db.commit()
    db.refresh(farm)
    return _summary(farm, RoleName.admin)


@router.patch("/{farm_id}", response_model=FarmSummary)
def update_farm(
    farm_id: int,
    payload: FarmUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FarmSummary:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, [RoleName.admin])
    farm = get_farm_or_404(db, farm_id)
    before = {"name": farm.name}
    rename_farm(db, farm, payload.name)
    log_audit(
        db,
        actor=current_user,
        action="farm_updated",
        entity_type="farm",
        entity_id=str(farm.id),
        farm_id=farm.id,
        before_state=before,
        after_state={"name": farm.name},
    )
    db.commit()
    db.refresh(farm)
    return _summary(farm, role)


@router.delete("/{farm_id}", response_model=MessageResponse)
def delete_farm_endpoint(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, [RoleName.admin])
    farm = get_farm_or_404(db, farm_id)
    name = farm.name
    delete_farm(db, farm)
    # The farm row is gone, so the entry is not scoped to it.
    log_audit(
        db,
        actor=current_user,
        action="farm_deleted",
        entity_type="farm",
        entity_id=str(farm_id),
        before_state={"name": name},
    )
    db.commit()
    return MessageResponse(message=f"Farm {name} deleted.")
