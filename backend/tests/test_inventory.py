import io
from datetime import date

import pytest
from fastapi import HTTPException
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.db.base import Base
from app.models.farm import Farm
from app.services.inventory import (
    bushels_to_kg,
    guess_location_type,
    import_inventory_workbook,
    inventory_comparison,
    inventory_summary,
    list_bins,
    list_locations,
    list_snapshot_dates,
    normalize_bin_type,
    parse_sheet_date,
    upsert_bin,
    upsert_conversions,
    upsert_location,
    upsert_snapshot,
)


HEADER = ["Location", "Bin #", "Type", "Size", "Crop", "Commodity", "Bushels", "KG", "Crop Year", "Notes"]


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _farm(db: Session) -> Farm:
    farm = Farm(name="Bin Farm")
    db.add(farm)
    db.flush()
    return farm


def _workbook_bytes(sheets: dict[str, list[list]]) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    stream = io.BytesIO()
    workbook.save(stream)
    return stream.getvalue()


def test_sheet_names_and_bin_types() -> None:
    assert parse_sheet_date("Oct 31, 25") == date(2025, 10, 31)
    assert parse_sheet_date("Nov 1, 2025") == date(2025, 11, 1)
    assert parse_sheet_date("Feb 30, 25") is None
    assert parse_sheet_date("Summary") is None
    assert normalize_bin_type("JHopper") == "Hopper"
    assert normalize_bin_type(" bag ") == "Bag"
    assert normalize_bin_type("MERIDIAN") == "MERIDIAN"
    assert normalize_bin_type("") is None
    assert guess_location_type("LGX") == "transit"
    assert guess_location_type("Waldron") == "satellite"
    assert guess_location_type("Home Yard") == "production"
    assert bushels_to_kg(100, 60) == pytest.approx(2721.55422)


def test_excel_import_creates_locations_bins_and_snapshots() -> None:
    db = _session()
    farm = _farm(db)
    upsert_conversions(db, farm.id, [("CWRS", 60.0)])
    content = _workbook_bytes(
        {
            "Oct 31, 25": [
                HEADER,
                ["Home Yard", 1, "hopper", 5000, "CWRS", "Spring Wheat", 1000, None, 2025, "dry"],
                ["LGX", "A1", "bag", None, "CAN", "Canola", 200, 9000, 2025, None],
                [None, 2, "hopper", 5000, "CWRS", "Spring Wheat", 10, None, 2025, None],
            ],
            "Notes": [["ignored"]],
            "Nov 30, 2025": [
                HEADER,
                ["Home Yard", 1, "hopper", 5000, "CWRS", "Spring Wheat", 400, None, 2025, None],
            ],
        }
    )
    stats = import_inventory_workbook(db, farm.id, content)

    assert stats.locations == 2
    assert stats.bins == 2
    assert stats.snapshots == 3
    assert [(sheet.name, sheet.snapshots) for sheet in stats.sheets] == [("Oct 31, 25", 2), ("Nov 30, 2025", 1)]

    locations = {location.name: count for location, count in list_locations(db, farm.id)}
    assert locations == {"Home Yard": 1, "LGX": 1}
    bins = {b.bin_number: b for b in list_bins(db, farm.id)}
    assert bins["1"].bin_type == "Hopper"
    assert bins["A1"].bin_type == "Bag"
    assert list_snapshot_dates(db, farm.id) == [date(2025, 11, 30), date(2025, 10, 31)]

    summary = inventory_summary(db, farm.id, date(2025, 10, 31))
    assert summary["matrix"]["Spring Wheat"]["Home Yard"] == pytest.approx(bushels_to_kg(1000, 60))
    assert summary["matrix"]["Canola"]["LGX"] == pytest.approx(9000.0)
    assert summary["grand_total"] == pytest.approx(bushels_to_kg(1000, 60) + 9000.0)


def test_excel_import_without_date_sheets_is_rejected() -> None:
    db = _session()
    farm = _farm(db)
    with pytest.raises(HTTPException) as exc:
        import_inventory_workbook(db, farm.id, _workbook_bytes({"Summary": [HEADER]}))
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        import_inventory_workbook(db, farm.id, b"not a workbook")
    assert exc.value.status_code == 400


def test_summary_uses_unknown_commodity_and_comparison_reports_change() -> None:
    db = _session()
    farm = _farm(db)
    location = upsert_location(db, farm.id, name="North")
    bin_row = upsert_bin(db, farm.id, location_id=location.id, bin_number="7")
    upsert_snapshot(
        db, farm.id, bin_id=bin_row.id, snapshot_date=date(2026, 1, 1), commodity=None, bushels=0, kg=500
    )
    upsert_snapshot(
        db, farm.id, bin_id=bin_row.id, snapshot_date=date(2026, 2, 1), commodity=None, bushels=0, kg=200
    )

    summary = inventory_summary(db, farm.id, date(2026, 1, 1))
    assert summary["commodities"] == ["Unknown"]
    assert summary["location_totals"] == {"North": 500.0}

    comparison = inventory_comparison(db, farm.id, date(2026, 1, 1), date(2026, 2, 1))
    assert comparison["rows"] == [
        {"commodity": "Unknown", "location": "North", "kg_date1": 500.0, "kg_date2": 200.0, "change_kg": -300.0}
    ]


def test_bin_upsert_requires_a_known_location() -> None:
    db = _session()
    farm = _farm(db)
    with pytest.raises(HTTPException) as exc:
        upsert_bin(db, farm.id, location_id=999, bin_number="1")
    assert exc.value.status_code == 404


def test_reimport_counts_only_new_locations_and_bins() -> None:
    db = _session()
    farm = _farm(db)
    first = _workbook_bytes(
        {"Oct 31, 25": [HEADER, ["Home Yard", 1, "hopper", 5000, "CWRS", "Spring Wheat", 100, 2700, 2025, None]]}
    )
    second = _workbook_bytes(
        {
            "Nov 30, 25": [
                HEADER,
                ["Home Yard", 1, "hopper", 5000, "CWRS", "Spring Wheat", 80, 2160, 2025, None],
                ["Home Yard", 2, "bag", None, "CWRS", "Spring Wheat", 10, 270, 2025, None],
                ["Waldron", "W1", "GSI", 8000, "CAN", "Canola", 50, 1100, 2025, None],
            ]
        }
    )
    import_inventory_workbook(db, farm.id, first)
    stats = import_inventory_workbook(db, farm.id, second)

    assert stats.locations == 1
    assert stats.bins == 2
    assert stats.snapshots == 3
    assert {location.name: location.location_type for location, _ in list_locations(db, farm.id)} == {
        "Home Yard": "production",
        "Waldron": "satellite",
    }
