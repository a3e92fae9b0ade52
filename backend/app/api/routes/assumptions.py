from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access, require_fiscal_year
from app.core.security import WRITE_ROLES, require_roles
from app.models.enums import RoleName
from app.models.user import User
from app.schemas.assumptions import AssumptionOut, AssumptionUpsertRequest, AssumptionYear, FreezeResponse
from app.schemas.financial import FrozenSnapshotResponse
from app.services.assumptions import list_assumption_years, save_assumption
from app.services.audit import log_audit
from app.services.budget import freeze_budget, frozen_snapshot, unfreeze_budget
from app.services.calculation import get_assumption, get_assumption_or_404


router = APIRouter(prefix="/farms/{farm_id}", tags=["assumptions"])


def _state(assumption) -> dict:
    return {
        "start_month": assumption.start_month,
        "total_acres": assumption.total_acres,
        "crops": list(assumption.crops_json or []),
        "bins": list(assumption.bins_json or []),
    }


@router.get("/assumptions", response_model=list[AssumptionYear])
def list_years(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_farm_access(db, current_user, farm_id)
    return list_assumption_years(db, farm_id)


@router.get("/assumptions/{year}", response_model=AssumptionOut)
def get_assumption_endpoint(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    return get_assumption_or_404(db, farm_id, fiscal_year)


@router.put("/assumptions/{year}", response_model=AssumptionOut)
def upsert_assumption(
    farm_id: int,
    year: str,
    payload: AssumptionUpsertRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fiscal_year = require_fiscal_year(year)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)

    existing = get_assumption(db, farm_id, fiscal_year)
    before = _state(existing) if existing is not None else None
    assumption = save_assumption(
        db,
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        crops=[crop.model_dump() for crop in payload.crops],
        bins=[bin_info.model_dump() for bin_info in payload.bins],
        start_month=payload.start_month,
        total_acres=payload.total_acres,
    )
    log_audit(
        db,
        actor=current_user,
        action="assumption_saved",
        entity_type="assumption",
        entity_id=str(assumption.id),
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        before_state=before,
        after_state=_state(assumption),
    )
    db.commit()
    db.refresh(assumption)
    return assumption


@router.post("/assumptions/{year}/freeze", response_model=FreezeResponse)
def freeze(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FreezeResponse:
    fiscal_year = require_fiscal_year(year)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    result = freeze_budget(db, farm_id, fiscal_year)
    log_audit(
        db,
        actor=current_user,
        action="budget_frozen",
        entity_type="assumption",
        entity_id=f"{farm_id}:{fiscal_year}",
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        after_state={"frozen_rows": result.frozen_rows},
    )
    db.commit()
    return FreezeResponse(
        fiscal_year=fiscal_year,
        is_frozen=True,
        frozen_at=result.frozen_at,
        frozen_rows=result.frozen_rows,
        message=f"Budget for FY{fiscal_year} frozen.",
    )


@router.post("/assumptions/{year}/unfreeze", response_model=FreezeResponse)
def unfreeze(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FreezeResponse:
    fiscal_year = require_fiscal_year(year)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, [RoleName.admin])
    assumption = unfreeze_budget(db, farm_id, fiscal_year)
    log_audit(
        db,
        actor=current_user,
        action="budget_unfrozen",
        entity_type="assumption",
        entity_id=f"{farm_id}:{fiscal_year}",
        farm_id=farm_id,
        fiscal_year=fiscal_year,
    )
    db.commit()
    return FreezeResponse(
        fiscal_year=fiscal_year,
        is_frozen=False,
        frozen_at=assumption.frozen_at,
        message=f"Budget for FY{fiscal_year} unfrozen.",
    )


@router.get("/frozen/{year}", response_model=FrozenSnapshotResponse)
def get_frozen(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FrozenSnapshotResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    return FrozenSnapshotResponse(fiscal_year=fiscal_year, months=frozen_snapshot(db, farm_id, fiscal_year))
