from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_farm_or_404, require_farm_access, require_fiscal_year
from app.models.user import User
from app.services.exports import accounting_csv, excel_bytes, generate_operating_statement_pdf


router = APIRouter(prefix="/farms/{farm_id}/export", tags=["exports"])


def _stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


@router.post("/excel/{year}")
def export_excel(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    farm = get_farm_or_404(db, farm_id)
    stream = excel_bytes(db, farm, fiscal_year)
    db.commit()
    filename = f"farm-plan-{farm_id}-FY{fiscal_year}-{_stamp()}.xlsx"
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/pdf/{year}")
def export_pdf(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    farm = get_farm_or_404(db, farm_id)
    file_path = generate_operating_statement_pdf(db, farm, fiscal_year)
    db.commit()
    return FileResponse(file_path, media_type="application/pdf", filename=file_path.name)


@router.get("/csv/{year}")
def export_csv(
    farm_id: int,
    year: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fiscal_year = require_fiscal_year(year)
    require_farm_access(db, current_user, farm_id)
    farm = get_farm_or_404(db, farm_id)
    content = accounting_csv(db, farm, fiscal_year)
    db.commit()
    filename = f"accounting-{farm_id}-FY{fiscal_year}-{_stamp()}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
