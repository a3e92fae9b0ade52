from __future__ import annotations

import io
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from fastapi import HTTPException, status
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.enums import LocationType
from app.models.inventory import CommodityConversion, InventoryBin, InventoryLocation, InventorySnapshot
from app.utils.fiscal_year import CALENDAR_MONTHS


logger = logging.getLogger("farmplan.inventory")

DATE_SHEET_RE = re.compile(r"^(\w{3})\s+(\d{1,2}),\s*(\d{2,4})$")
TRANSIT_LOCATIONS = {"lgx", "ogema"}
SATELLITE_LOCATIONS = {"waldron"}
UNKNOWN_COMMODITY = "Unknown"


@dataclass
class SheetStats:
    name: str
    date: date
    snapshots: int = 0


@dataclass
class ExcelImportStats:
    locations: int = 0
    bins: int = 0
    snapshots: int = 0
    sheets: list[SheetStats] = field(default_factory=list)


def parse_sheet_date(name: str) -> date | None:
    """``"Oct 31, 25"`` -> ``date(2025, 10, 31)``; anything else -> ``None``."""
    match = DATE_SHEET_RE.match(name.strip())
    if match is None or match.group(1) not in CALENDAR_MONTHS:
        return None
    year = int(match.group(3))
    if year < 100:
        year += 2000
    try:
        return date(year, CALENDAR_MONTHS.index(match.group(1)) + 1, int(match.group(2)))
    except ValueError:
        return None


def normalize_bin_type(raw: object) -> str | None:
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None
    lowered = value.lower()
    if lowered in {"hopper", "jhopper"}:
        return "Hopper"
    if lowered == "bag":
        return "Bag"
    # Brand names (GSI, MERIDIAN, ...) keep their casing.
    return value


def guess_location_type(name: str) -> str:
    lowered = name.strip().lower()
    if lowered in TRANSIT_LOCATIONS:
        return LocationType.transit.value
    if lowered in SATELLITE_LOCATIONS:
        return LocationType.satellite.value
    return LocationType.production.value


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def bushels_to_kg(bushels: float, lbs_per_bu: float) -> float:
    return bushels * lbs_per_bu * get_settings().lbs_to_kg


def list_locations(db: Session, farm_id: int) -> list[tuple[InventoryLocation, int]]:
    locations = db.scalars(
        select(InventoryLocation)
        .where(InventoryLocation.farm_id == farm_id)
        .order_by(InventoryLocation.sort_order, InventoryLocation.name)
    ).all()
    return [(location, len(location.bins)) for location in locations]


def upsert_location(
    db: Session,
    farm_id: int,
    *,
    name: str,
    location_type: str | None = None,
    region: str | None = None,
    sort_order: int | None = None,
) -> InventoryLocation:
    location = db.scalar(
        select(InventoryLocation).where(InventoryLocation.farm_id == farm_id, InventoryLocation.name == name)
    )
    if location is None:
        location = InventoryLocation(
            farm_id=farm_id,
            name=name,
            location_type=location_type or LocationType.production.value,
            region=region,
            sort_order=sort_order or 0,
        )
        db.add(location)
    else:
        if location_type is not None:
            location.location_type = location_type
        if region is not None:
            location.region = region
        if sort_order is not None:
            location.sort_order = sort_order
    db.flush()
    return location


def get_location_or_404(db: Session, farm_id: int, location_id: int) -> InventoryLocation:
    location = db.scalar(
        select(InventoryLocation).where(InventoryLocation.id == location_id, InventoryLocation.farm_id == farm_id)
    )
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found.")
    return location


def list_bins(db: Session, farm_id: int, location_id: int | None = None) -> list[InventoryBin]:
    query = (
        select(InventoryBin)
        .join(InventoryLocation, InventoryLocation.id == InventoryBin.location_id)
        .where(InventoryBin.farm_id == farm_id)
    )
    if location_id is not None:
        query = query.where(InventoryBin.location_id == location_id)
    return list(db.scalars(query.order_by(InventoryLocation.sort_order, InventoryBin.bin_number)).all())


def upsert_bin(
    db: Session,
    farm_id: int,
    *,
    location_id: int,
    bin_number: str,
    bin_type: str | None = None,
    size_bu: float | None = None,
    notes: str | None = None,
) -> InventoryBin:
    get_location_or_404(db, farm_id, location_id)
    bin_number = str(bin_number).strip()
    bin_row = db.scalar(
        select(InventoryBin).where(
            InventoryBin.farm_id == farm_id,
            InventoryBin.location_id == location_id,
            InventoryBin.bin_number == bin_number,
        )
    )
    if bin_row is None:
        bin_row = InventoryBin(farm_id=farm_id, location_id=location_id, bin_number=bin_number)
        db.add(bin_row)
    bin_row.bin_type = bin_type
    bin_row.size_bu = size_bu
    if notes is not None:
        bin_row.notes = notes
    db.flush()
    return bin_row


def get_bin_or_404(db: Session, farm_id: int, bin_id: int) -> InventoryBin:
    bin_row = db.scalar(select(InventoryBin).where(InventoryBin.id == bin_id, InventoryBin.farm_id == farm_id))
    if bin_row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bin not found.")
    return bin_row


def list_snapshot_dates(db: Session, farm_id: int) -> list[date]:
    return list(
        db.scalars(
            select(InventorySnapshot.snapshot_date)
            .where(InventorySnapshot.farm_id == farm_id)
            .distinct()
            .order_by(InventorySnapshot.snapshot_date.desc())
        ).all()
    )


def list_snapshots(
    db: Session,
    farm_id: int,
    snapshot_date: date | None = None,
    location_id: int | None = None,
) -> list[InventorySnapshot]:
    query = (
        select(InventorySnapshot)
        .join(InventoryBin, InventoryBin.id == InventorySnapshot.bin_id)
        .join(InventoryLocation, InventoryLocation.id == InventoryBin.location_id)
        .where(InventorySnapshot.farm_id == farm_id)
    )
    if snapshot_date is not None:
        query = query.where(InventorySnapshot.snapshot_date == snapshot_date)
    if location_id is not None:
        query = query.where(InventoryBin.location_id == location_id)
    return list(db.scalars(query.order_by(InventoryLocation.sort_order, InventoryBin.bin_number)).all())


def upsert_snapshot(
    db: Session,
    farm_id: int,
    *,
    bin_id: int,
    snapshot_date: date,
    commodity: str | None,
    bushels: float | None,
    kg: float | None,
    crop_year: int | None = None,
    notes: str | None = None,
) -> InventorySnapshot:
    snapshot = db.scalar(
        select(InventorySnapshot).where(
            InventorySnapshot.farm_id == farm_id,
            InventorySnapshot.bin_id == bin_id,
            InventorySnapshot.snapshot_date == snapshot_date,
        )
    )
    if snapshot is None:
        snapshot = InventorySnapshot(farm_id=farm_id, bin_id=bin_id, snapshot_date=snapshot_date)
        db.add(snapshot)
    snapshot.commodity = commodity
    snapshot.bushels = float(bushels or 0)
    snapshot.kg = float(kg or 0)
    snapshot.crop_year = crop_year
    snapshot.notes = notes
    db.flush()
    return snapshot


def _kg_by_commodity_location(snapshots: list[InventorySnapshot]) -> dict[tuple[str, str], float]:
    totals: dict[tuple[str, str], float] = defaultdict(float)
    for snapshot in snapshots:
        commodity = snapshot.commodity or UNKNOWN_COMMODITY
        totals[(commodity, snapshot.bin.location.name)] += float(snapshot.kg or 0)
    return totals


def inventory_summary(db: Session, farm_id: int, snapshot_date: date | None = None) -> dict:
    """Commodity x location kg matrix with row, column and grand totals."""
    totals = _kg_by_commodity_location(list_snapshots(db, farm_id, snapshot_date))
    locations = sorted({location for _, location in totals})
    commodities = sorted({commodity for commodity, _ in totals})

    matrix: dict[str, dict[str, float]] = {}
    for (commodity, location), kg in totals.items():
        matrix.setdefault(commodity, {})[location] = kg
    location_totals = {location: sum(matrix[c].get(location, 0.0) for c in commodities) for location in locations}
    commodity_totals = {commodity: sum(matrix[commodity].values()) for commodity in commodities}
    return {
        "matrix": matrix,
        "locations": locations,
        "commodities": commodities,
        "location_totals": location_totals,
        "commodity_totals": commodity_totals,
        "grand_total": sum(commodity_totals.values()),
    }


def inventory_comparison(db: Session, farm_id: int, first: date, second: date) -> dict:
    before = _kg_by_commodity_location(list_snapshots(db, farm_id, first))
    after = _kg_by_commodity_location(list_snapshots(db, farm_id, second))
    rows = []
    for commodity, location in sorted(set(before) | set(after)):
        kg_first = before.get((commodity, location), 0.0)
        kg_second = after.get((commodity, location), 0.0)
        rows.append(
            {
                "commodity": commodity,
                "location": location,
                "kg_date1": kg_first,
                "kg_date2": kg_second,
                "change_kg": kg_second - kg_first,
            }
        )
    return {
        "date1": first,
        "date2": second,
        "rows": rows,
        "locations": sorted({row["location"] for row in rows}),
        "commodities": sorted({row["commodity"] for row in rows}),
    }


def list_conversions(db: Session, farm_id: int) -> list[CommodityConversion]:
    return list(
        db.scalars(
            select(CommodityConversion)
            .where(CommodityConversion.farm_id == farm_id)
            .order_by(CommodityConversion.commodity)
        ).all()
    )


def upsert_conversions(db: Session, farm_id: int, conversions: list[tuple[str, float]]) -> list[CommodityConversion]:
    existing = {row.commodity: row for row in list_conversions(db, farm_id)}
    results = []
    for commodity, lbs_per_bu in conversions:
        row = existing.get(commodity)
        if row is None:
            row = CommodityConversion(farm_id=farm_id, commodity=commodity, lbs_per_bu=lbs_per_bu)
            db.add(row)
            existing[commodity] = row
        else:
            row.lbs_per_bu = lbs_per_bu
        results.append(row)
    db.flush()
    return results


def import_inventory_workbook(db: Session, farm_id: int, content: bytes) -> ExcelImportStats:
    """Load every date-named sheet of a bin-count workbook as inventory snapshots.

    Columns: location, bin number, bin type, size bu, commodity short,
    commodity long, bushels, kg, crop year, notes. Row 1 is a header.
    """
    try:
        workbook = load_workbook(io.BytesIO(content), data_only=True)
    except (InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unreadable Excel workbook.") from exc

    date_sheets = []
    for sheet in workbook.worksheets:
        sheet_date = parse_sheet_date(sheet.title)
        if sheet_date is not None:
            date_sheets.append((sheet, sheet_date))
    if not date_sheets:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='No date sheets found (expected format: "Oct 31, 25").',
        )

    lbs_per_bu = {row.commodity.lower(): row.lbs_per_bu for row in list_conversions(db, farm_id)}
    stats = ExcelImportStats()
    locations: dict[str, InventoryLocation] = {}
    bins: dict[tuple[int, str], InventoryBin] = {}

    for sheet, sheet_date in date_sheets:
        sheet_stats = SheetStats(name=sheet.title, date=sheet_date)
        for values in sheet.iter_rows(min_row=2, max_col=10, values_only=True):
            cells = list(values) + [None] * (10 - len(values))
            location_name = _text(cells[0])
            bin_number = _text(cells[1])
            if location_name is None or bin_number is None:
                continue

            location = locations.get(location_name)
            if location is None:
                location = db.scalar(
                    select(InventoryLocation).where(
                        InventoryLocation.farm_id == farm_id,
                        InventoryLocation.name == location_name,
                    )
                )
                if location is None:
                    location = upsert_location(
                        db,
                        farm_id,
                        name=location_name,
                        location_type=guess_location_type(location_name),
                    )
                    stats.locations += 1
                locations[location_name] = location

            bin_key = (location.id, bin_number)
            bin_row = bins.get(bin_key)
            if bin_row is None:
                is_new = db.scalar(
                    select(InventoryBin.id).where(
                        InventoryBin.location_id == location.id,
                        InventoryBin.bin_number == bin_number,
                    )
                ) is None
                bin_row = upsert_bin(
                    db,
                    farm_id,
                    location_id=location.id,
                    bin_number=bin_number,
                    bin_type=normalize_bin_type(cells[2]),
                    size_bu=_number(cells[3]),
                )
                bins[bin_key] = bin_row
                if is_new:
                    stats.bins += 1

            commodity_short = _text(cells[4])
            commodity_long = _text(cells[5])
            bushels = _number(cells[6]) or 0.0
            kg = _number(cells[7]) or 0.0
            if bushels > 0 and kg == 0 and commodity_short:
                factor = lbs_per_bu.get(commodity_short.lower())
                if factor:
                    kg = bushels_to_kg(bushels, factor)
            crop_year = _number(cells[8])

            upsert_snapshot(
                db,
                farm_id,
                bin_id=bin_row.id,
                snapshot_date=sheet_date,
                commodity=commodity_long or commodity_short,
                bushels=bushels,
                kg=kg,
                crop_year=round(crop_year) if crop_year else None,
                notes=_text(cells[9]),
            )
            sheet_stats.snapshots += 1

        stats.sheets.append(sheet_stats)
        stats.snapshots += sheet_stats.snapshots

    logger.info(
        "Inventory import farm=%s sheets=%s snapshots=%s",
        farm_id,
        len(stats.sheets),
        stats.snapshots,
    )
    return stats
