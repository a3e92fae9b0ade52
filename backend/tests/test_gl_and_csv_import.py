import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.base import Base
from app.models.enums import MonthlyDataType
from app.models.farm import Farm
from app.models.gl import GlAccount
from app.services.assumptions import save_assumption
from app.services.calculation import get_monthly_row
from app.services.csv_import import (
    clean_amount,
    detect_account_column,
    detect_month_columns,
    import_csv_accounts,
    preview_csv,
)
from app.services.gl import bulk_assign, import_gl_actuals, list_gl_actuals


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _farm(db: Session) -> Farm:
    farm = Farm(name="Ledger Farm")
    db.add(farm)
    db.flush()
    save_assumption(
        db,
        farm_id=farm.id,
        fiscal_year=2026,
        crops=[{"name": "Canola", "acres": 1000, "target_yield": 40, "price_per_unit": 14}],
        bins=[],
    )
    return farm


def _accounting(db: Session, farm: Farm, month: str) -> dict:
    return get_monthly_row(db, farm.id, 2026, month, MonthlyDataType.accounting).data_json


def test_gl_import_rolls_mapped_postings_into_actuals() -> None:
    db = _session()
    farm = _farm(db)
    result = import_gl_actuals(
        db,
        farm.id,
        2026,
        [
            {"account_number": "4010", "month": "Nov", "amount": 100000},
            {"account_number": "9660", "month": "Nov", "amount": 20000},
            {"account_number": "9660.1", "month": "Nov", "amount": 5000},
            {"account_number": "8000", "month": "Nov", "amount": 75},
            {"account_number": "9999", "month": "Nov", "amount": 1},
            {"account_number": "9660", "month": "Smarch", "amount": 1},
        ],
        [{"account_number": "8000", "account_name": "Suspense", "category_code": None}],
    )
    assert result.postings == 4
    assert len(result.skipped) == 2
    assert result.rollup.months_imported == ["Nov"]
    assert result.rollup.unmapped == [
        {"account_number": "8000", "account_name": "Suspense", "month": "Nov", "amount": 75.0}
    ]

    nov = _accounting(db, farm, "Nov")
    assert nov["rev_canola"] == pytest.approx(100000.0)
    assert nov["input_seed"] == pytest.approx(25000.0)
    assert nov["inputs"] == pytest.approx(25000.0)
    per_unit = get_monthly_row(db, farm.id, 2026, "Nov", MonthlyDataType.per_unit)
    assert per_unit.is_actual
    assert per_unit.data_json["rev_canola"] == pytest.approx(100.0)


def test_gl_reimport_replaces_the_month_totals() -> None:
    db = _session()
    farm = _farm(db)
    import_gl_actuals(
        db,
        farm.id,
        2026,
        [
            {"account_number": "9660", "month": "Dec", "amount": 20000},
            {"account_number": "9660.1", "month": "Dec", "amount": 5000},
        ],
    )
    import_gl_actuals(db, farm.id, 2026, [{"account_number": "9660", "month": "Dec", "amount": 1000}])
    assert _accounting(db, farm, "Dec")["input_seed"] == pytest.approx(6000.0)


def test_month_with_only_unmapped_postings_is_not_applied() -> None:
    db = _session()
    farm = _farm(db)
    # No lentil crop, so 4040 has no category.
    result = import_gl_actuals(db, farm.id, 2026, [{"account_number": "4040", "month": "Jan", "amount": 900}])
    assert result.rollup.months_imported == []
    assert len(result.rollup.unmapped) == 1
    assert get_monthly_row(db, farm.id, 2026, "Jan", MonthlyDataType.accounting).is_actual is False

    actuals = list_gl_actuals(db, farm.id, 2026, "Jan")
    assert actuals[0]["category_name"] == "Unmapped"
    assert actuals[0]["category_code"] is None


def test_bulk_assign_skips_unknown_codes_and_unmaps_on_null() -> None:
    db = _session()
    farm = _farm(db)
    updated = bulk_assign(db, farm.id, [("4040", "rev_other_income"), ("9660", None), ("9664", "bogus")])
    assert updated == 2
    accounts = {a.account_number: a for a in db.scalars(select(GlAccount).where(GlAccount.farm_id == farm.id))}
    assert accounts["4040"].category.code == "rev_other_income"
    assert accounts["9660"].category_id is None
    assert accounts["9664"].category.code == "input_chem"


def test_header_detection_and_amount_cleaning() -> None:
    assert detect_account_column(["Date", "Account Name", "Nov"]) == "Account Name"
    assert detect_account_column(["Col A", "Col B"]) == "Col A"
    assert detect_month_columns(["Account", "Nov 2025", "December", "Total"], exclude="Account") == {
        "Nov 2025": "Nov",
        "December": "Dec",
    }
    assert clean_amount("$1,234.50") == pytest.approx(1234.5)
    assert clean_amount("(200)") == pytest.approx(-200.0)
    assert clean_amount("") is None
    assert clean_amount("n/a") is None


def test_preview_prefills_mapping_from_existing_gl_accounts() -> None:
    db = _session()
    farm = _farm(db)
    content = b'Account,Nov,Dec\nSeed,"$1,000.00",500\nUnknown Thing,10,20\nSeed,5,\n'
    preview = preview_csv(db, farm.id, content)
    assert preview["account_column"] == "Account"
    assert preview["month_columns"] == {"Nov": "Nov", "Dec": "Dec"}
    assert preview["accounts"] == ["Seed", "Unknown Thing"]
    assert preview["mapping"] == {"Seed": "input_seed"}
    totals = preview["category_totals"]["input_seed"]
    assert totals["accounts"] == 1
    assert totals["month_totals"] == {"Nov": pytest.approx(1005.0), "Dec": pytest.approx(500.0)}


def test_preview_rejects_headerless_upload() -> None:
    db = _session()
    farm = _farm(db)
    with pytest.raises(HTTPException) as exc:
        preview_csv(db, farm.id, b"")
    assert exc.value.status_code == 400


def test_csv_import_creates_accounts_and_reports_skips() -> None:
    db = _session()
    farm = _farm(db)
    result = import_csv_accounts(
        db,
        farm.id,
        2026,
        [
            {"name": "Seed Purchases", "category_code": "input_seed", "months": {"Nov": 1500, "Dec": 500}},
            {"name": "Parent Row", "category_code": "inputs", "months": {"Nov": 1}},
            {"name": "Typo", "category_code": "input_fert", "months": {"Novem": 1}},
        ],
    )
    assert result.imported == 1
    assert result.months == ["Nov", "Dec"]
    assert result.skipped == 2
    assert _accounting(db, farm, "Nov")["input_seed"] == pytest.approx(1500.0)
    account = db.scalar(
        select(GlAccount).where(GlAccount.farm_id == farm.id, GlAccount.account_number == "Seed Purchases")
    )
    assert account.category.code == "input_seed"
