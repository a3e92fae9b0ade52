from datetime import date

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_farm_access
from app.api.routes.csv_import import read_upload
from app.core.security import WRITE_ROLES, require_roles
from app.models.enums import RoleName
from app.models.user import User
from app.schemas.inventory import (
    BinOut,
    BinUpsertRequest,
    ConversionBulkRequest,
    ConversionOut,
    ExcelImportResponse,
    InventoryComparisonResponse,
    InventorySummaryResponse,
    LocationOut,
    LocationUpsertRequest,
    SheetImportOut,
    SnapshotBatchRequest,
    SnapshotBatchResponse,
    SnapshotOut,
)
from app.services.audit import log_audit
from app.services.inventory import (
    get_bin_or_404,
    import_inventory_workbook,
    inventory_comparison,
    inventory_summary,
    list_bins,
    list_conversions,
    list_locations,
    list_snapshot_dates,
    list_snapshots,
    upsert_bin,
    upsert_conversions,
    upsert_location,
    upsert_snapshot,
)


router = APIRouter(prefix="/farms/{farm_id}/inventory", tags=["inventory"])


def _bin_out(bin_row) -> BinOut:
    return BinOut(
        id=bin_row.id,
        location_id=bin_row.location_id,
        location_name=bin_row.location.name,
        bin_number=bin_row.bin_number,
        bin_type=bin_row.bin_type,
        size_bu=bin_row.size_bu,
        notes=bin_row.notes,
    )


def _snapshot_out(snapshot) -> SnapshotOut:
    return SnapshotOut(
        id=snapshot.id,
        bin_id=snapshot.bin_id,
        bin_number=snapshot.bin.bin_number,
        location_id=snapshot.bin.location_id,
        location_name=snapshot.bin.location.name,
        snapshot_date=snapshot.snapshot_date,
        commodity=snapshot.commodity,
        bushels=snapshot.bushels,
        kg=snapshot.kg,
        crop_year=snapshot.crop_year,
        notes=snapshot.notes,
    )


@router.get("/locations", response_model=list[LocationOut])
def get_locations(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[LocationOut]:
    require_farm_access(db, current_user, farm_id)
    return [
        LocationOut(
            id=location.id,
            name=location.name,
            location_type=location.location_type,
            region=location.region,
            sort_order=location.sort_order,
            bin_count=bin_count,
        )
        for location, bin_count in list_locations(db, farm_id)
    ]


@router.post("/locations", response_model=LocationOut)
def save_location(
    farm_id: int,
    payload: LocationUpsertRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LocationOut:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    location = upsert_location(
        db,
        farm_id,
        name=payload.name.strip(),
        location_type=payload.location_type.value if payload.location_type is not None else None,
        region=payload.region,
        sort_order=payload.sort_order,
    )
    db.commit()
    db.refresh(location)
    return LocationOut(
        id=location.id,
        name=location.name,
        location_type=location.location_type,
        region=location.region,
        sort_order=location.sort_order,
        bin_count=len(location.bins),
    )


@router.get("/bins", response_model=list[BinOut])
def get_bins(
    farm_id: int,
    location_id: int | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[BinOut]:
    require_farm_access(db, current_user, farm_id)
    return [_bin_out(bin_row) for bin_row in list_bins(db, farm_id, location_id)]


@router.post("/bins", response_model=BinOut)
def save_bin(
    farm_id: int,
    payload: BinUpsertRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BinOut:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    bin_row = upsert_bin(
        db,
        farm_id,
        location_id=payload.location_id,
        bin_number=payload.bin_number,
        bin_type=payload.bin_type,
        size_bu=payload.size_bu,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(bin_row)
    return _bin_out(bin_row)


@router.get("/snapshot-dates", response_model=list[date])
def get_snapshot_dates(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[date]:
    require_farm_access(db, current_user, farm_id)
    return list_snapshot_dates(db, farm_id)


@router.get("/snapshots", response_model=list[SnapshotOut])
def get_snapshots(
    farm_id: int,
    snapshot_date: date | None = None,
    location_id: int | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[SnapshotOut]:
    require_farm_access(db, current_user, farm_id)
    return [_snapshot_out(snapshot) for snapshot in list_snapshots(db, farm_id, snapshot_date, location_id)]


@router.post("/snapshots/batch", response_model=SnapshotBatchResponse)
def save_snapshots(
    farm_id: int,
    payload: SnapshotBatchRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SnapshotBatchResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    for entry in payload.snapshots:
        get_bin_or_404(db, farm_id, entry.bin_id)
        upsert_snapshot(
            db,
            farm_id,
            bin_id=entry.bin_id,
            snapshot_date=entry.snapshot_date,
            commodity=entry.commodity,
            bushels=entry.bushels,
            kg=entry.kg,
            crop_year=entry.crop_year,
            notes=entry.notes,
        )
    db.commit()
    return SnapshotBatchResponse(saved=len(payload.snapshots))


@router.get("/summary", response_model=InventorySummaryResponse)
def get_summary(
    farm_id: int,
    snapshot_date: date | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> InventorySummaryResponse:
    require_farm_access(db, current_user, farm_id)
    return InventorySummaryResponse(snapshot_date=snapshot_date, **inventory_summary(db, farm_id, snapshot_date))


@router.get("/comparison", response_model=InventoryComparisonResponse)
def get_comparison(
    farm_id: int,
    date1: date,
    date2: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> InventoryComparisonResponse:
    require_farm_access(db, current_user, farm_id)
    return InventoryComparisonResponse(**inventory_comparison(db, farm_id, date1, date2))


@router.get("/conversions", response_model=list[ConversionOut])
def get_conversions(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_farm_access(db, current_user, farm_id)
    return list_conversions(db, farm_id)


@router.put("/conversions", response_model=list[ConversionOut])
def save_conversions(
    farm_id: int,
    payload: ConversionBulkRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, [RoleName.admin])
    rows = upsert_conversions(
        db,
        farm_id,
        [(entry.commodity.strip(), entry.lbs_per_bu) for entry in payload.conversions],
    )
    db.commit()
    return rows


@router.post("/import-excel", response_model=ExcelImportResponse)
async def import_excel(
    farm_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ExcelImportResponse:
    role = require_farm_access(db, current_user, farm_id)
    require_roles(current_user, role, WRITE_ROLES)
    if file.filename and not file.filename.lower().endswith((".xlsx", ".xlsm")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Upload an .xlsx workbook.")
    content = await read_upload(file)
    stats = import_inventory_workbook(db, farm_id, content)
    log_audit(
        db,
        actor=current_user,
        action="inventory_imported",
        entity_type="inventory_snapshot",
        entity_id=str(farm_id),
        farm_id=farm_id,
        after_state={
            "filename": file.filename,
            "locations": stats.locations,
            "bins": stats.bins,
            "snapshots": stats.snapshots,
        },
    )
    db.commit()
    return ExcelImportResponse(
        message=f"Imported {stats.snapshots} snapshot(s) from {len(stats.sheets)} sheet(s).",
        locations=stats.locations,
        bins=stats.bins,
        snapshots=stats.snapshots,
        sheets=[SheetImportOut(name=sheet.name, date=sheet.date, snapshots=sheet.snapshots) for sheet in stats.sheets],
    )
