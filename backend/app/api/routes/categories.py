from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access
from app.core.security import WRITE_ROLES, require_roles
from app.models.enums import RoleName
from app.models.user import User
from app.schemas.categories import (
    CategoryCreateRequest,
    CategoryOut,
    CategoryUpdateRequest,
    ChartInitRequest,
    ChartOfAccountsResponse,
    GlAccountOut,
)
from app.schemas.common import MessageResponse
from app.services.assumptions import list_assumption_years
from app.services.audit import log_audit
from app.services.categories import (
    create_category,
    deactivate_category,
    get_category_or_404,
    get_farm_categories,
    init_farm_categories,
    update_category,
)
from app.services.gl import list_gl_accounts, resolve_category_id


router = APIRouter(prefix="/farms/{farm_id}", tags=["categories"])


def _category_state(category) -> dict:
    return {
        "code": category.code,
        "display_name": category.display_name,
        "sort_order": category.sort_order,
        "is_active": category.is_active,
    }


@router.get("/chart-of-accounts", response_model=ChartOfAccountsResponse)
def chart_of_accounts(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ChartOfAccountsResponse:
    require_farm_access(db, current_user, farm_id)
    categories = get_farm_categories(db, farm_id)
    db.commit()
    return ChartOfAccountsResponse(
        categories=[CategoryOut.model_validate(category) for category in categories],
        gl_accounts=[GlAccountOut.from_account(account) for account in list_gl_accounts(db, farm_id)],
    )


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[CategoryOut]:
    require_farm_access(db, current_user, farm_id)
    categories = get_farm_categories(db, farm_id)
    db.commit()
    return [CategoryOut.model_validate(category) for category in categories]


@router.post("/chart-of-accounts/init", response_model=MessageResponse)
def init_chart(
    farm_id: int,
    payload: ChartInitRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    crops = payload.crops if payload is not None else None
    if crops is None:
        years = list_assumption_years(db, farm_id)
        crops = list(years[0].crops_json or []) if years else []
    code_to_id = init_farm_categories(db, farm_id, crops)
    log_audit(
        db,
        actor=current_user,
        action="chart_initialized",
        entity_type="chart_of_accounts",
        entity_id=str(farm_id),
        farm_id=farm_id,
        after_state={"categories": len(code_to_id)},
    )
    db.commit()
    return MessageResponse(message=f"Chart of accounts initialized with {len(code_to_id)} categories.")


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category_endpoint(
    farm_id: int,
    payload: CategoryCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    parent_id = None
    if payload.parent_code:
        parent_id = resolve_category_id(db, farm_id, payload.parent_code)
        if parent_id is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent category not found.")
    category = create_category(
        db,
        farm_id=farm_id,
        code=payload.code,
        display_name=payload.display_name,
        category_type=payload.category_type,
        parent_id=parent_id,
    )
    log_audit(
        db,
        actor=current_user,
        action="category_created",
        entity_type="farm_category",
        entity_id=str(category.id),
        farm_id=farm_id,
        after_state=_category_state(category),
    )
    db.commit()
    db.refresh(category)
    return category


@router.put("/categories/{category_id}", response_model=CategoryOut)
def update_category_endpoint(
    farm_id: int,
    category_id: int,
    payload: CategoryUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    category = get_category_or_404(db, farm_id, category_id)
    before = _category_state(category)
    if payload.is_active is False:
        require_roles(current_user, role, [RoleName.admin])
    update_category(
        db,
        category,
        display_name=payload.display_name,
        sort_order=payload.sort_order,
        is_active=payload.is_active,
    )
    log_audit(
        db,
        actor=current_user,
        action="category_updated",
        entity_type="farm_category",
        entity_id=str(category.id),
        farm_id=farm_id,
        before_state=before,
        after_state=_category_state(category),
    )
    db.commit()
    db.refresh(category)
    return category


@router.delete("/categories/{category_id}", response_model=MessageResponse)
def deactivate_category_endpoint(
    farm_id: int,
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, [RoleName.admin])
    category = get_category_or_404(db, farm_id, category_id)
    before = _category_state(category)
    deactivate_category(db, category)
    log_audit(
        db,
        actor=current_user,
        action="category_deactivated",
        entity_type="farm_category",
        entity_id=str(category.id),
        farm_id=farm_id,
        before_state=before,
        after_state=_category_state(category),
    )
    db.commit()
    return MessageResponse(message=f"Category {category.code} deactivated.")
