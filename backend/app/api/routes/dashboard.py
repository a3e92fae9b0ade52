from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access, require_fiscal_year
from app.models.user import User
from app.schemas.dashboard import BudgetChart, CropYield, DashboardResponse, KpiOut
from app.services.dashboard import build_dashboard


router = APIRouter(prefix="/farms/{farm_id}", tags=["dashboard"])


@router.get("/dashboard/{year}", response_model=DashboardResponse)
def dashboard(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DashboardResponse:
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    result = build_dashboard(db, farm_id, fiscal_year)
    db.commit()
    return DashboardResponse(
        fiscal_year=fiscal_year,
        kpis=[KpiOut(**asdict(kpi)) for kpi in result.kpis],
        chart=BudgetChart(**result.chart),
        crop_yields=[CropYield(**crop) for crop in result.crop_yields],
    )
