from dataclasses import asdict

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access, require_fiscal_year, require_month
from app.core.security import WRITE_ROLES, require_roles
from app.models.enums import MonthlyDataType
from app.models.user import User
from app.schemas.financial import (
    AccountingCellRequest,
    AccountingGridResponse,
    CellUpdateResponse,
    ForecastLineOut,
    ForecastResponse,
    ManualActualRequest,
    ManualActualResponse,
    PerUnitCellRequest,
    PerUnitGridResponse,
    PriorYearResponse,
)
from app.services.audit import log_audit
from app.services.calculation import (
    apply_accounting_actuals,
    assert_per_unit_editable,
    get_assumption,
    prior_year_aggregate,
    update_accounting_cell,
    update_per_unit_cell,
)
from app.services.categories import get_farm_categories, validate_leaf_category
from app.services.forecast import calculate_forecast
from app.services.grids import build_accounting_grid, build_per_unit_grid
from app.services.realtime import broadcast_cell_change, cell_change_event
from app.utils.fiscal_year import DEFAULT_START_MONTH


router = APIRouter(prefix="/farms/{farm_id}", tags=["financial"])


@router.get("/per-unit/{year}", response_model=PerUnitGridResponse)
def per_unit_grid(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PerUnitGridResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    grid = build_per_unit_grid(db, farm_id, fiscal_year)
    db.commit()
    return grid


@router.patch("/per-unit/{year}/{month}", response_model=CellUpdateResponse)
def patch_per_unit_cell(
    farm_id: int,
    year: str,
    month: str,
    payload: PerUnitCellRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CellUpdateResponse:
    fiscal_year = require_fiscal_year(year)
    require_month(month)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    categories = get_farm_categories(db, farm_id)
    assert_per_unit_editable(db, farm_id, fiscal_year, month, categories, payload.category_code)
    update = update_per_unit_cell(
        db,
        farm_id,
        fiscal_year,
        month,
        payload.category_code,
        payload.value,
        payload.comment,
    )
    db.commit()
    background_tasks.add_task(
        broadcast_cell_change,
        farm_id,
        cell_change_event(
            fiscal_year=fiscal_year,
            month=month,
            category_code=payload.category_code,
            per_unit=update.per_unit,
            accounting=update.accounting,
        ),
    )
    return CellUpdateResponse(per_unit=update.per_unit, accounting=update.accounting)


@router.get("/accounting/{year}", response_model=AccountingGridResponse)
def accounting_grid(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AccountingGridResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    grid = build_accounting_grid(db, farm_id, fiscal_year)
    db.commit()
    return grid


@router.patch("/accounting/{year}/{month}", response_model=CellUpdateResponse)
def patch_accounting_cell(
    farm_id: int,
    year: str,
    month: str,
    payload: AccountingCellRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CellUpdateResponse:
    fiscal_year = require_fiscal_year(year)
    require_month(month)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    update = update_accounting_cell(db, farm_id, fiscal_year, month, payload.category_code, payload.value)
    db.commit()
    background_tasks.add_task(
        broadcast_cell_change,
        farm_id,
        cell_change_event(
            fiscal_year=fiscal_year,
            month=month,
            category_code=payload.category_code,
            per_unit=update.per_unit,
            accounting=update.accounting,
        ),
    )
    return CellUpdateResponse(per_unit=update.per_unit, accounting=update.accounting)


@router.post("/financial/manual-actual", response_model=ManualActualResponse)
def manual_actual(
    farm_id: int,
    payload: ManualActualRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ManualActualResponse:
    fiscal_year = require_fiscal_year(payload.fiscal_year)
    require_month(payload.month)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    categories = get_farm_categories(db, farm_id)
    for code in payload.data:
        validate_leaf_category(categories, code)
    update = apply_accounting_actuals(db, farm_id, fiscal_year, payload.month, payload.data)
    log_audit(
        db,
        actor=current_user,
        action="manual_actual_entered",
        entity_type="monthly_data",
        entity_id=f"{farm_id}:{fiscal_year}:{payload.month}",
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        after_state=dict(payload.data),
    )
    db.commit()
    return ManualActualResponse(
        message=f"Actuals recorded for {payload.month} FY{fiscal_year}.",
        data=update.accounting,
    )


@router.get("/prior-year/{year}", response_model=PriorYearResponse)
def prior_year(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PriorYearResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    return PriorYearResponse(
        fiscal_year=fiscal_year - 1,
        aggregate=prior_year_aggregate(db, farm_id, fiscal_year, MonthlyDataType.per_unit),
    )


@router.get("/forecast/{year}", response_model=ForecastResponse)
def forecast(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ForecastResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    assumption = get_assumption(db, farm_id, fiscal_year)
    start_month = assumption.start_month if assumption is not None else DEFAULT_START_MONTH
    lines = calculate_forecast(db, farm_id, fiscal_year, start_month)
    db.commit()
    return ForecastResponse(
        fiscal_year=fiscal_year,
        start_month=start_month,
        lines={code: ForecastLineOut(**asdict(line)) for code, line in lines.items()},
    )
