from datetime import date
from pathlib import Path

import pytest
from openpyxl import load_workbook
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.base import Base
from app.models.enums import MonthlyDataType
from app.models.farm import Farm
from app.services.assumptions import save_assumption
from app.services.budget import freeze_budget
from app.services.calculation import apply_accounting_actuals, list_monthly_rows, update_per_unit_cell
from app.services.dashboard import build_dashboard
from app.services.exports import accounting_csv, excel_bytes, fiscal_year_span, generate_operating_statement_pdf
from app.services.seed import DEMO_FARM_NAME, DEMO_FISCAL_YEAR, seed_demo_data
from app.utils.fiscal_year import generate_fiscal_months


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _farm_with_actuals(db: Session) -> Farm:
    farm = Farm(name="Dashboard Farm")
    db.add(farm)
    db.flush()
    save_assumption(
        db,
        farm_id=farm.id,
        fiscal_year=2026,
        crops=[{"name": "Canola", "acres": 1000, "target_yield": 40, "price_per_unit": 14}],
        bins=[{"name": "Home", "capacity": 10000, "opening_balance": 0, "grain_type": "Canola"}],
    )
    for month in generate_fiscal_months("Nov"):
        update_per_unit_cell(db, farm.id, 2026, month, "input_seed", 5.0)
    freeze_budget(db, farm.id, 2026)
    apply_accounting_actuals(
        db,
        farm.id,
        2026,
        "Nov",
        {
            "rev_canola": 280000,
            "input_seed": 11000,
            "lpm_personnel": 2000,
            "lbf_rent_interest": 1000,
            "ins_crop": 500,
        },
    )
    return farm


def test_dashboard_kpis_from_accounting_totals() -> None:
    db = _session()
    farm = _farm_with_actuals(db)
    dashboard = build_dashboard(db, farm.id, 2026, today=date(2025, 12, 10))
    kpis = {kpi.label: kpi for kpi in dashboard.kpis}

    assert kpis["Yield vs Target"].value == pytest.approx(50.0)
    # Inputs: 11000 actual in Nov plus eleven budget months of 5000 against a frozen 60000.
    assert kpis["Inputs Adherence"].value == pytest.approx(90.0)
    assert kpis["Labour Cost/Acre"].value == pytest.approx(2.0)
    assert kpis["Machinery Uptime"].value is None
    assert kpis["Gross Margin/Acre"].value == pytest.approx(212.0)
    assert kpis["Cash Flow/Acre"].value == pytest.approx(210.5)

    assert dashboard.chart["labels"][0] == "Revenue"
    assert len(dashboard.chart["budget"]) == len(dashboard.chart["labels"]) == 5
    assert dashboard.crop_yields == [
        {"name": "Canola", "acres": 1000.0, "target_yield": 40.0, "actual_yield": 20.0, "yield_pct": 50.0}
    ]


def test_dashboard_without_assumption_is_empty() -> None:
    db = _session()
    farm = Farm(name="Blank")
    db.add(farm)
    db.flush()
    dashboard = build_dashboard(db, farm.id, 2026)
    assert dashboard.crop_yields == []
    assert {kpi.label: kpi.value for kpi in dashboard.kpis}["Yield vs Target"] == 0.0


def test_excel_export_sheets() -> None:
    db = _session()
    farm = _farm_with_actuals(db)
    workbook = load_workbook(excel_bytes(db, farm, 2026))
    assert workbook.sheetnames == ["Per-Unit Analysis", "Accounting Statement", "GL Detail", "Assumptions"]

    statement = workbook["Accounting Statement"]
    assert statement.cell(row=1, column=2).value == "Nov"
    assert statement.cell(row=1, column=14).value == "Total"
    assert workbook["Assumptions"]["B1"].value == "Dashboard Farm"


def test_csv_export_rows_per_category() -> None:
    db = _session()
    farm = _farm_with_actuals(db)
    lines = accounting_csv(db, farm, 2026).splitlines()
    assert lines[0] == "code,category," + ",".join(generate_fiscal_months("Nov")) + ",total"
    seed_row = next(line for line in lines if line.startswith("input_seed,"))
    assert seed_row.split(",")[2] == "11000.00"
    assert seed_row.endswith(",66000.00")


def test_pdf_export_writes_file() -> None:
    db = _session()
    farm = _farm_with_actuals(db)
    path = generate_operating_statement_pdf(db, farm, 2026)
    assert isinstance(path, Path)
    assert path.exists()
    assert path.read_bytes().startswith(b"%PDF")


def test_demo_seed_is_idempotent() -> None:
    db = _session()
    seed_demo_data(db)
    seed_demo_data(db)

    farms = db.scalars(select(Farm)).all()
    assert [farm.name for farm in farms] == [DEMO_FARM_NAME]
    actual_months = [
        row.month
        for row in list_monthly_rows(db, farms[0].id, DEMO_FISCAL_YEAR, MonthlyDataType.accounting)
        if row.is_actual
    ]
    assert len(actual_months) == 3
    assert build_dashboard(db, farms[0].id, DEMO_FISCAL_YEAR).crop_yields[0]["name"] == "Canola"


def test_statement_span_follows_start_month() -> None:
    assert fiscal_year_span(2026, "Nov") == "Nov 2025 - Oct 2026"
    assert fiscal_year_span(2026, "Jan") == "Jan 2025 - Dec 2025"
    assert fiscal_year_span(2026, "Jul") == "Jul 2025 - Jun 2026"
