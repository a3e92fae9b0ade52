from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import DEMO_ADMIN_EMAIL
from app.models.enums import MonthlyDataType, RoleName
from app.models.farm import Farm, UserFarmRole
from app.models.user import User
from app.services.assumptions import save_assumption
from app.services.calculation import (
    apply_accounting_actuals,
    get_assumption,
    get_monthly_row,
    to_accounting,
)
from app.services.categories import get_farm_categories, leaf_categories, recalc_parent_sums
from app.utils.fiscal_year import generate_fiscal_months


logger = logging.getLogger("farmplan.seed")

DEMO_FARM_NAME = "Prairie Fields Farm"
DEMO_FISCAL_YEAR = 2026
DEMO_ACTUAL_MONTHS = 3

DEMO_CROPS = [
    {"name": "Canola", "acres": 2500, "target_yield": 45, "price_per_unit": 14.5},
    {"name": "Durum", "acres": 2000, "target_yield": 50, "price_per_unit": 9.25},
    {"name": "Chickpeas", "acres": 1000, "target_yield": 30, "price_per_unit": 18.0},
]
DEMO_BINS = [
    {"name": "Home Yard", "capacity": 120000, "opening_balance": 35000, "grain_type": "Canola"},
    {"name": "North Site", "capacity": 80000, "opening_balance": 20000, "grain_type": "Durum"},
    {"name": "LGX", "capacity": 50000, "opening_balance": 0, "grain_type": "Chickpeas"},
]

# Annual budget in $/acre per leaf, spread evenly across the fiscal year.
DEMO_ANNUAL_PER_ACRE = {
    "rev_canola": 290.0,
    "rev_durum": 210.0,
    "rev_chickpeas": 100.0,
    "rev_other_income": 6.0,
    "input_seed": 48.0,
    "input_fert": 96.0,
    "input_chem": 60.0,
    "lpm_personnel": 36.0,
    "lpm_fog": 24.0,
    "lpm_repairs": 18.0,
    "lpm_shop": 12.0,
    "lbf_rent_interest": 72.0,
    "ins_crop": 15.0,
    "ins_other": 4.0,
}


def _get_or_create_user(db: Session, *, email: str, full_name: str, role: RoleName) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user
    user = User(email=email, full_name=full_name, role=role, is_active=True)
    db.add(user)
    db.flush()
    return user


def _ensure_farm_role(db: Session, *, user: User, farm: Farm, role: RoleName) -> None:
    exists = db.scalar(
        select(UserFarmRole.id).where(UserFarmRole.user_id == user.id, UserFarmRole.farm_id == farm.id)
    )
    if exists is None:
        db.add(UserFarmRole(user_id=user.id, farm_id=farm.id, role=role))
        db.flush()


def _seed_budget(db: Session, farm: Farm, fiscal_year: int) -> None:
    assumption = get_assumption(db, farm.id, fiscal_year)
    categories = get_farm_categories(db, farm.id)
    leaf_codes = {category.code for category in leaf_categories(categories)}
    monthly = {code: value / 12 for code, value in DEMO_ANNUAL_PER_ACRE.items() if code in leaf_codes}
    per_unit = recalc_parent_sums(monthly, categories)
    for month in generate_fiscal_months(assumption.start_month):
        per_unit_row = get_monthly_row(db, farm.id, fiscal_year, month, MonthlyDataType.per_unit)
        accounting_row = get_monthly_row(db, farm.id, fiscal_year, month, MonthlyDataType.accounting)
        per_unit_row.data_json = dict(per_unit)
        accounting_row.data_json = to_accounting(per_unit, assumption.total_acres)
    db.flush()

    # Early months carry actuals about five percent over budget.
    for month in generate_fiscal_months(assumption.start_month)[:DEMO_ACTUAL_MONTHS]:
        actuals = {code: value * assumption.total_acres * 1.05 for code, value in monthly.items()}
        apply_accounting_actuals(db, farm.id, fiscal_year, month, actuals)


def seed_demo_data(db: Session) -> None:
    admin = _get_or_create_user(db, email=DEMO_ADMIN_EMAIL, full_name="Farm Administrator", role=RoleName.admin)
    manager = _get_or_create_user(
        db,
        email="manager@farmplan.local",
        full_name="Farm Manager",
        role=RoleName.manager,
    )
    viewer = _get_or_create_user(
        db,
        email="viewer@farmplan.local",
        full_name="Read Only Viewer",
        role=RoleName.viewer,
    )

    farm = db.scalar(select(Farm).where(Farm.name == DEMO_FARM_NAME))
    if farm is None:
        farm = Farm(name=DEMO_FARM_NAME)
        db.add(farm)
        db.flush()
    _ensure_farm_role(db, user=admin, farm=farm, role=RoleName.admin)
    _ensure_farm_role(db, user=manager, farm=farm, role=RoleName.manager)
    _ensure_farm_role(db, user=viewer, farm=farm, role=RoleName.viewer)

    if get_assumption(db, farm.id, DEMO_FISCAL_YEAR) is None:
        save_assumption(
            db,
            farm_id=farm.id,
            fiscal_year=DEMO_FISCAL_YEAR,
            crops=DEMO_CROPS,
            bins=DEMO_BINS,
            start_month="Nov",
        )
        _seed_budget(db, farm, DEMO_FISCAL_YEAR)
        logger.info("Seeded demo farm %s for FY%s", farm.name, DEMO_FISCAL_YEAR)

    db.commit()
