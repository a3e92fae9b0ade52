from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access, require_fiscal_year
from app.core.config import get_settings
from app.core.security import WRITE_ROLES, require_roles
from app.models.user import User
from app.schemas.csv_import import CsvImportRequest, CsvImportResponse, CsvPreviewResponse
from app.services.audit import log_audit
from app.services.csv_import import import_csv_accounts, preview_csv


router = APIRouter(prefix="/farms/{farm_id}/accounting", tags=["csv-import"])


async def read_upload(file: UploadFile) -> bytes:
    limit = get_settings().max_upload_bytes
    content = await file.read(limit + 1)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    if len(content) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {limit} byte upload limit.",
        )
    return content


@router.post("/import-csv", response_model=CsvImportResponse)
def import_csv(
    farm_id: int,
    payload: CsvImportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CsvImportResponse:
    fiscal_year = require_fiscal_year(payload.fiscal_year)
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    if not payload.accounts:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No accounts to import.")
    result = import_csv_accounts(db, farm_id, fiscal_year, [account.model_dump() for account in payload.accounts])
    log_audit(
        db,
        actor=current_user,
        action="csv_imported",
        entity_type="gl_actual_detail",
        entity_id=f"{farm_id}:{fiscal_year}",
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        after_state={"imported": result.imported, "months": result.months, "skipped": result.skipped},
    )
    db.commit()
    return CsvImportResponse(
        message=f"Imported {result.imported} account(s).",
        imported=result.imported,
        months=result.months,
        skipped=result.skipped,
        skipped_details=result.skipped_details,
    )


@router.post("/import-csv/preview", response_model=CsvPreviewResponse)
async def preview_csv_upload(
    farm_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CsvPreviewResponse:
    require_farm_access(db, current_user, farm_id)
    content = await read_upload(file)
    preview = preview_csv(db, farm_id, content)
    db.commit()
    return CsvPreviewResponse(**preview)
