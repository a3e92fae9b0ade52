from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access, require_fiscal_year, require_month
from app.core.security import WRITE_ROLES, require_roles
from app.models.user import User
from app.schemas.categories import GlAccountOut
from app.schemas.common import MessageResponse
from app.schemas.gl import (
    GlAccountBulkRequest,
    GlAccountBulkResponse,
    GlAccountUpdateRequest,
    GlActualsResponse,
    GlBulkAssignRequest,
    GlImportRequest,
    GlImportResponse,
)
from app.services.audit import log_audit
from app.services.gl import (
    bulk_assign,
    get_gl_account_or_404,
    import_gl_actuals,
    list_gl_accounts,
    list_gl_actuals,
    resolve_category_id,
    upsert_gl_account,
)


router = APIRouter(prefix="/farms/{farm_id}", tags=["gl"])


@router.get("/gl-accounts", response_model=list[GlAccountOut])
def get_gl_accounts(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[GlAccountOut]:
    require_farm_access(db, current_user, farm_id)
    return [GlAccountOut.from_account(account) for account in list_gl_accounts(db, farm_id)]


@router.post("/gl-accounts", response_model=GlAccountBulkResponse)
def upsert_gl_accounts(
    farm_id: int,
    payload: GlAccountBulkRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GlAccountBulkResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    saved = []
    for row in payload.accounts:
        number = (row.account_number or "").strip()
        name = (row.account_name or "").strip()
        if not number or not name:
            continue
        saved.append(
            upsert_gl_account(db, farm_id, account_number=number, account_name=name, category_code=row.category_code)
        )
    db.commit()
    return GlAccountBulkResponse(
        created=len(saved),
        gl_accounts=[GlAccountOut.from_account(account) for account in saved],
    )


@router.put("/gl-accounts/{gl_id}", response_model=GlAccountOut)
def update_gl_account(
    farm_id: int,
    gl_id: int,
    payload: GlAccountUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GlAccountOut:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    account = get_gl_account_or_404(db, farm_id, gl_id)
    if payload.account_name is not None:
        account.account_name = payload.account_name.strip()
    if "category_code" in payload.model_fields_set:
        category_id = resolve_category_id(db, farm_id, payload.category_code)
        if payload.category_code and category_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown category code: {payload.category_code}",
            )
        account.category_id = category_id
    if payload.is_active is not None:
        account.is_active = payload.is_active
    db.commit()
    db.refresh(account)
    return GlAccountOut.from_account(account)


@router.post("/gl-accounts/bulk-assign", response_model=MessageResponse)
def bulk_assign_endpoint(
    farm_id: int,
    payload: GlBulkAssignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    updated = bulk_assign(
        db,
        farm_id,
        [(assignment.account_number, assignment.category_code) for assignment in payload.assignments],
    )
    db.commit()
    return MessageResponse(message=f"Updated {updated} GL account assignment(s).")


@router.get("/gl-actuals/{year}", response_model=GlActualsResponse)
def get_gl_actuals(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GlActualsResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    return GlActualsResponse(fiscal_year=fiscal_year, actuals=list_gl_actuals(db, farm_id, fiscal_year))


@router.get("/gl-actuals/{year}/{month}", response_model=GlActualsResponse)
def get_gl_actuals_for_month(
    farm_id: int,
    year: str,
    month: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GlActualsResponse:
    fiscal_year = require_fiscal_year(year)
    require_month(month)
    require_farm_access(db, current_user, farm_id)
    return GlActualsResponse(
        fiscal_year=fiscal_year,
        month=month,
        actuals=list_gl_actuals(db, farm_id, fiscal_year, month),
    )


@router.post("/gl-actuals/import", response_model=GlImportResponse)
def import_gl_actuals_endpoint(
    farm_id: int,
    payload: GlImportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> GlImportResponse:
    fiscal_year = require_fiscal_year(payload.fiscal_year)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    if not payload.rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No GL rows to import.")
    result = import_gl_actuals(
        db,
        farm_id,
        fiscal_year,
        [row.model_dump() for row in payload.rows],
        [account.model_dump() for account in payload.new_accounts or []],
    )
    log_audit(
        db,
        actor=current_user,
        action="gl_actuals_imported",
        entity_type="gl_actual_detail",
        entity_id=f"{farm_id}:{fiscal_year}",
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        after_state={
            "postings": result.postings,
            "months": result.rollup.months_imported,
            "skipped": len(result.skipped),
        },
    )
    db.commit()
    return GlImportResponse(
        message=f"Imported {result.postings} GL posting(s).",
        months_imported=result.rollup.months_imported,
        postings=result.postings,
        skipped=len(result.skipped),
        unmapped=result.rollup.unmapped,
    )
