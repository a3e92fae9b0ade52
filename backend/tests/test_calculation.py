import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.db.base import Base
from app.models.enums import MonthlyDataType
from app.models.farm import Farm
from app.services.assumptions import save_assumption
from app.services.budget import freeze_budget
from app.services.calculation import (
    apply_accounting_actuals,
    assert_per_unit_editable,
    get_monthly_row,
    list_monthly_rows,
    prior_year_aggregate,
    to_per_unit,
    update_accounting_cell,
    update_per_unit_cell,
)
from app.services.categories import get_farm_categories


CROPS = [
    {"name": "Canola", "acres": 600, "target_yield": 40, "price_per_unit": 14},
    {"name": "Durum", "acres": 400, "target_yield": 50, "price_per_unit": 9},
]


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _farm_with_year(db: Session, fiscal_year: int = 2026) -> Farm:
    farm = Farm(name="Calc Farm")
    db.add(farm)
    db.flush()
    save_assumption(db, farm_id=farm.id, fiscal_year=fiscal_year, crops=CROPS, bins=[])
    return farm


def test_save_assumption_creates_monthly_rows_and_sums_acres() -> None:
    db = _session()
    farm = _farm_with_year(db)
    per_unit = list_monthly_rows(db, farm.id, 2026, MonthlyDataType.per_unit)
    accounting = list_monthly_rows(db, farm.id, 2026, MonthlyDataType.accounting)
    assert len(per_unit) == 12
    assert len(accounting) == 12

    assumption = save_assumption(db, farm_id=farm.id, fiscal_year=2026, crops=CROPS, bins=[])
    assert assumption.total_acres == 1000
    assert len(list_monthly_rows(db, farm.id, 2026, MonthlyDataType.per_unit)) == 12


def test_save_assumption_rejects_bad_start_month() -> None:
    db = _session()
    farm = Farm(name="Bad Month")
    db.add(farm)
    db.flush()
    with pytest.raises(HTTPException) as exc:
        save_assumption(db, farm_id=farm.id, fiscal_year=2026, crops=[], bins=[], start_month="Foo")
    assert exc.value.status_code == 400


def test_per_unit_edit_recalculates_parents_and_accounting() -> None:
    db = _session()
    farm = _farm_with_year(db)
    update_per_unit_cell(db, farm.id, 2026, "Nov", "input_seed", 10.0)
    update = update_per_unit_cell(db, farm.id, 2026, "Nov", "input_fert", 25.5, comment="spring blend")

    assert update.per_unit["inputs"] == pytest.approx(35.5)
    assert update.accounting["input_fert"] == pytest.approx(25500.0)
    assert update.accounting["inputs"] == pytest.approx(35500.0)

    row = get_monthly_row(db, farm.id, 2026, "Nov", MonthlyDataType.per_unit)
    assert row.comments_json == {"input_fert": "spring blend"}
    assert row.is_actual is False


def test_per_unit_edit_requires_assumption_and_leaf() -> None:
    db = _session()
    farm = _farm_with_year(db)
    with pytest.raises(HTTPException) as exc:
        update_per_unit_cell(db, farm.id, 2027, "Nov", "input_seed", 1.0)
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        update_per_unit_cell(db, farm.id, 2026, "Nov", "inputs", 1.0)
    assert exc.value.status_code == 400


def test_accounting_edit_marks_month_actual_and_locks_per_unit() -> None:
    db = _session()
    farm = _farm_with_year(db)
    update = update_accounting_cell(db, farm.id, 2026, "Dec", "lpm_fog", 5000.0)
    assert update.per_unit["lpm_fog"] == pytest.approx(5.0)
    assert update.accounting["lpm"] == pytest.approx(5000.0)
    assert get_monthly_row(db, farm.id, 2026, "Dec", MonthlyDataType.per_unit).is_actual
    assert get_monthly_row(db, farm.id, 2026, "Dec", MonthlyDataType.accounting).is_actual

    categories = get_farm_categories(db, farm.id)
    with pytest.raises(HTTPException) as exc:
        assert_per_unit_editable(db, farm.id, 2026, "Dec", categories, "lpm_fog")
    assert exc.value.status_code == 403
    assert exc.value.detail == "Cannot edit actual data. Month is locked."

    with pytest.raises(HTTPException) as exc:
        assert_per_unit_editable(db, farm.id, 2026, "Jan", categories, "lpm")
    assert exc.value.status_code == 400


def test_frozen_budget_blocks_per_unit_edits_and_assumption_saves() -> None:
    db = _session()
    farm = _farm_with_year(db)
    freeze_budget(db, farm.id, 2026)
    categories = get_farm_categories(db, farm.id)

    with pytest.raises(HTTPException) as exc:
        assert_per_unit_editable(db, farm.id, 2026, "Mar", categories, "input_seed")
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as exc:
        save_assumption(db, farm_id=farm.id, fiscal_year=2026, crops=CROPS, bins=[])
    assert exc.value.status_code == 403

    # Actuals still land on a frozen year.
    update = update_accounting_cell(db, farm.id, 2026, "Mar", "input_seed", 2000.0)
    assert update.per_unit["input_seed"] == pytest.approx(2.0)


def test_acre_change_rescales_budget_and_actual_months_differently() -> None:
    db = _session()
    farm = _farm_with_year(db)
    update_per_unit_cell(db, farm.id, 2026, "Nov", "input_seed", 10.0)
    update_accounting_cell(db, farm.id, 2026, "Dec", "input_seed", 8000.0)

    save_assumption(db, farm_id=farm.id, fiscal_year=2026, crops=CROPS, bins=[], total_acres=2000)

    nov = get_monthly_row(db, farm.id, 2026, "Nov", MonthlyDataType.accounting)
    assert nov.data_json["input_seed"] == pytest.approx(20000.0)
    dec_acct = get_monthly_row(db, farm.id, 2026, "Dec", MonthlyDataType.accounting)
    dec_unit = get_monthly_row(db, farm.id, 2026, "Dec", MonthlyDataType.per_unit)
    assert dec_acct.data_json["input_seed"] == pytest.approx(8000.0)
    assert dec_unit.data_json["input_seed"] == pytest.approx(4.0)


def test_manual_actuals_default_to_one_acre_without_assumption() -> None:
    db = _session()
    farm = Farm(name="No Assumption")
    db.add(farm)
    db.flush()
    update = apply_accounting_actuals(db, farm.id, 2026, "Jan", {"ins_crop": 300.0, "ins_other": 50.0})
    assert update.accounting["insurance"] == pytest.approx(350.0)
    assert update.per_unit["ins_crop"] == pytest.approx(300.0)


def test_replace_codes_zero_existing_leaves_before_merge() -> None:
    db = _session()
    farm = _farm_with_year(db)
    apply_accounting_actuals(db, farm.id, 2026, "Feb", {"input_seed": 100.0, "input_chem": 40.0})
    update = apply_accounting_actuals(
        db,
        farm.id,
        2026,
        "Feb",
        {"input_seed": 60.0},
        replace_codes={"input_seed", "input_chem"},
    )
    assert update.accounting["input_chem"] == 0.0
    assert update.accounting["inputs"] == pytest.approx(60.0)


def test_to_per_unit_handles_zero_acres_and_prior_year_aggregate() -> None:
    assert to_per_unit({"a": 100.0}, 0) == {"a": 0.0}

    db = _session()
    farm = _farm_with_year(db, 2025)
    save_assumption(db, farm_id=farm.id, fiscal_year=2026, crops=CROPS, bins=[])
    update_per_unit_cell(db, farm.id, 2025, "Nov", "input_seed", 3.0)
    update_per_unit_cell(db, farm.id, 2025, "Dec", "input_seed", 4.0)
    aggregate = prior_year_aggregate(db, farm.id, 2026)
    assert aggregate["input_seed"] == pytest.approx(7.0)
    assert aggregate["inputs"] == pytest.approx(7.0)
