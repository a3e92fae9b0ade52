from __future__ import annotations

import re
import time
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import event, func, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.assumption import Assumption
from app.models.category import FarmCategory
from app.models.enums import CategoryType
from app.models.gl import GlAccount


@dataclass(frozen=True)
class CategoryNode:
    id: int
    code: str
    display_name: str
    parent_id: int | None
    path: str
    level: int
    sort_order: int
    category_type: str


# (code, display_name, parent code, sort_order, category_type)
DEFAULT_CATEGORIES: list[tuple[str, str, str | None, int, str]] = [
    ("revenue", "Revenue", None, 1, CategoryType.revenue.value),
    ("rev_other_income", "Other Income", "revenue", 2, CategoryType.revenue.value),
    ("inputs", "Inputs", None, 100, CategoryType.input.value),
    ("input_seed", "Seed", "inputs", 101, CategoryType.input.value),
    ("input_fert", "Fertilizer", "inputs", 102, CategoryType.input.value),
    ("input_chem", "Chemical", "inputs", 103, CategoryType.input.value),
    ("lpm", "LPM - Labour Power Machinery", None, 200, CategoryType.lpm.value),
    ("lpm_personnel", "Personnel", "lpm", 201, CategoryType.lpm.value),
    ("lpm_fog", "Fuel Oil Grease", "lpm", 202, CategoryType.lpm.value),
    ("lpm_repairs", "Repairs", "lpm", 203, CategoryType.lpm.value),
    ("lpm_shop", "Shop", "lpm", 204, CategoryType.lpm.value),
    ("lbf", "LBF - Land Building Finance", None, 300, CategoryType.lbf.value),
    ("lbf_rent_interest", "Rent & Interest", "lbf", 301, CategoryType.lbf.value),
    ("insurance", "Insurance", None, 400, CategoryType.insurance.value),
    ("ins_crop", "Crop Insurance", "insurance", 401, CategoryType.insurance.value),
    ("ins_other", "Other Insurance", "insurance", 402, CategoryType.insurance.value),
]

# (account_number, account_name, category code)
DEFAULT_GL_ACCOUNTS: list[tuple[str, str, str]] = [
    ("4010", "Canola Sales", "rev_canola"),
    ("4020", "Durum Sales", "rev_durum"),
    ("4030", "Chickpeas Sales", "rev_chickpeas"),
    ("4040", "Lentils Sales", "rev_small_red_lentils"),
    ("4099", "Other Farm Income", "rev_other_income"),
    ("4100", "Surface Lease Income", "rev_other_income"),
    ("4110", "Custom Work Income", "rev_other_income"),
    ("4120", "Rebates", "rev_other_income"),
    ("9660", "Seed", "input_seed"),
    ("9660.1", "Seed Treatment", "input_seed"),
    ("9662", "Fertilizers and Lime", "input_fert"),
    ("9662.1", "Fertilizer Application", "input_fert"),
    ("9662.2", "Micronutrients", "input_fert"),
    ("9664", "Herbicides", "input_chem"),
    ("9664.1", "Fungicides", "input_chem"),
    ("9664.2", "Insecticides", "input_chem"),
    ("9664.3", "Adjuvants & Surfactants", "input_chem"),
    ("9670", "Wages & Salaries", "lpm_personnel"),
    ("9670.1", "Benefits & WCB", "lpm_personnel"),
    ("9670.2", "Contract Labour", "lpm_personnel"),
    ("9672", "Fuel", "lpm_fog"),
    ("9672.1", "Oil & Lubricants", "lpm_fog"),
    ("9672.2", "Grease", "lpm_fog"),
    ("9674", "Equipment Repairs", "lpm_repairs"),
    ("9674.1", "Parts & Small Tools", "lpm_repairs"),
    ("9674.2", "Tire Repairs", "lpm_repairs"),
    ("9676", "Shop Supplies", "lpm_shop"),
    ("9676.1", "Meals & Entertainment", "lpm_shop"),
    ("9676.2", "Freight & Trucking", "lpm_shop"),
    ("9676.3", "Custom Work Expense", "lpm_shop"),
    ("9676.4", "Utilities", "lpm_shop"),
    ("9676.5", "Professional Fees", "lpm_shop"),
    ("9676.6", "Office Expense", "lpm_shop"),
    ("9676.7", "Marketing", "lpm_shop"),
    ("9676.8", "Agronomy", "lpm_shop"),
    ("9676.9", "Machinery Lease Payments", "lpm_shop"),
    ("9676.10", "Depreciation - Machinery", "lpm_shop"),
    ("9676.11", "Depreciation - Buildings", "lpm_shop"),
    ("9680", "Land Rent", "lbf_rent_interest"),
    ("9680.1", "Property Taxes", "lbf_rent_interest"),
    ("9682", "Interest - Long Term Debt", "lbf_rent_interest"),
    ("9682.1", "Interest - Machinery Loans", "lbf_rent_interest"),
    ("9682.2", "Interest - Operating Line", "lbf_rent_interest"),
    ("9684", "Building Repairs", "lbf_rent_interest"),
    ("9690", "Crop Insurance Premiums", "ins_crop"),
    ("9690.1", "Hail Insurance", "ins_crop"),
    ("9692", "Farm Insurance", "ins_other"),
    ("9692.1", "Liability Insurance", "ins_other"),
    ("9700", "Management Fee / Dividend", "lbf_rent_interest"),
    ("9710", "Income Tax Paid", "lbf_rent_interest"),
]

# Entries built from uncommitted writes wait on the session until commit.
_cache: dict[int, tuple[float, list[CategoryNode]]] = {}
_DIRTY_FARMS = "farmplan.category_dirty_farms"
_PENDING = "farmplan.category_pending"


def invalidate_category_cache(db: Session, farm_id: int) -> None:
    """Drop the farm's cached tree and hold back new entries until the session commits."""
    _cache.pop(farm_id, None)
    db.info.setdefault(_DIRTY_FARMS, set()).add(farm_id)
    db.info.get(_PENDING, {}).pop(farm_id, None)


def clear_category_cache() -> None:
    _cache.clear()


@event.listens_for(Session, "after_commit")
def _publish_pending_categories(session: Session) -> None:
    for farm_id in session.info.pop(_DIRTY_FARMS, set()):
        _cache.pop(farm_id, None)
    _cache.update(session.info.pop(_PENDING, {}))


@event.listens_for(Session, "after_transaction_end")
def _discard_pending_categories(session: Session, transaction) -> None:
    if transaction.parent is not None:
        return
    # Still set here only when the transaction rolled back.
    for farm_id in session.info.pop(_DIRTY_FARMS, set()):
        _cache.pop(farm_id, None)
    session.info.pop(_PENDING, None)


def crop_revenue_code(crop_name: str) -> str:
    return "rev_" + re.sub(r"\s+", "_", crop_name.strip().lower())


def _template_with_crops(crops: list[dict]) -> list[tuple[str, str, str | None, int, str]]:
    crop_rows = [
        (crop_revenue_code(str(crop["name"])), f"{str(crop['name']).strip()} Revenue", "revenue", 0, CategoryType.revenue.value)
        for crop in crops
        if str(crop.get("name") or "").strip()
    ]
    template = list(DEFAULT_CATEGORIES)
    insert_at = next(idx for idx, row in enumerate(template) if row[0] == "rev_other_income")
    template[insert_at:insert_at] = crop_rows

    # Revenue children keep their template order directly after the parent.
    renumbered = []
    revenue_order = 2
    for code, name, parent, sort_order, category_type in template:
        if parent == "revenue":
            sort_order = revenue_order
            revenue_order += 1
        renumbered.append((code, name, parent, sort_order, category_type))
    return renumbered


def init_farm_categories(db: Session, farm_id: int, crops: list[dict] | None = None) -> dict[str, int]:
    """Upsert the default chart of accounts, crop revenue leaves and default GL accounts."""
    template = _template_with_crops(crops or [])
    existing = {
        category.code: category
        for category in db.scalars(select(FarmCategory).where(FarmCategory.farm_id == farm_id)).all()
    }
    code_to_id: dict[str, int] = {}

    # Parents first so children can resolve their parent id.
    for pass_top_level in (True, False):
        for code, display_name, parent_code, sort_order, category_type in template:
            if (parent_code is None) != pass_top_level:
                continue
            parent_id = code_to_id.get(parent_code) if parent_code else None
            if parent_code and parent_id is None:
                continue
            category = existing.get(code)
            if category is None:
                category = FarmCategory(farm_id=farm_id, code=code)
                db.add(category)
                existing[code] = category
            category.display_name = display_name
            category.parent_id = parent_id
            category.path = f"{parent_code}.{code}" if parent_code else code
            category.level = 1 if parent_code else 0
            category.sort_order = sort_order
            category.category_type = category_type
            category.is_active = True
            db.flush()
            code_to_id[code] = category.id

    accounts = {
        account.account_number: account
        for account in db.scalars(select(GlAccount).where(GlAccount.farm_id == farm_id)).all()
    }
    for account_number, account_name, category_code in DEFAULT_GL_ACCOUNTS:
        category_id = code_to_id.get(category_code)
        account = accounts.get(account_number)
        if account is None:
            db.add(
                GlAccount(
                    farm_id=farm_id,
                    account_number=account_number,
                    account_name=account_name,
                    category_id=category_id,
                )
            )
        else:
            account.account_name = account_name
            account.category_id = category_id
    db.flush()

    invalidate_category_cache(db, farm_id)
    return code_to_id


def _to_node(category: FarmCategory) -> CategoryNode:
    return CategoryNode(
        id=category.id,
        code=category.code,
        display_name=category.display_name,
        parent_id=category.parent_id,
        path=category.path,
        level=category.level,
        sort_order=category.sort_order,
        category_type=category.category_type,
    )


def _load_active(db: Session, farm_id: int) -> list[FarmCategory]:
    return list(
        db.scalars(
            select(FarmCategory)
            .where(FarmCategory.farm_id == farm_id, FarmCategory.is_active.is_(True))
            .order_by(FarmCategory.sort_order, FarmCategory.id)
        ).all()
    )


def get_farm_categories(db: Session, farm_id: int) -> list[CategoryNode]:
    """Active categories ordered by sort order; an empty farm is initialised first."""
    dirty = farm_id in db.info.get(_DIRTY_FARMS, ())
    cached = db.info.get(_PENDING, {}).get(farm_id) if dirty else _cache.get(farm_id)
    if cached is not None and cached[0] > time.monotonic():
        return cached[1]

    rows = _load_active(db, farm_id)
    if not rows:
        assumption = db.scalar(
            select(Assumption)
            .where(Assumption.farm_id == farm_id)
            .order_by(Assumption.fiscal_year.desc())
            .limit(1)
        )
        init_farm_categories(db, farm_id, assumption.crops_json if assumption else [])
        rows = _load_active(db, farm_id)

    nodes = [_to_node(row) for row in rows]
    entry = (time.monotonic() + get_settings().category_cache_ttl_seconds, nodes)
    if farm_id in db.info.get(_DIRTY_FARMS, ()):
        db.info.setdefault(_PENDING, {})[farm_id] = entry
    else:
        _cache[farm_id] = entry
    return nodes


def parent_ids(categories: list[CategoryNode]) -> set[int]:
    return {category.parent_id for category in categories if category.parent_id is not None}


def leaf_categories(categories: list[CategoryNode]) -> list[CategoryNode]:
    parents = parent_ids(categories)
    return [category for category in categories if category.id not in parents]


def parent_categories(categories: list[CategoryNode]) -> list[CategoryNode]:
    parents = parent_ids(categories)
    return [category for category in categories if category.id in parents]


def children_of(categories: list[CategoryNode], parent: CategoryNode) -> list[CategoryNode]:
    return [category for category in categories if category.parent_id == parent.id]


def recalc_parent_sums(data: dict[str, float], categories: list[CategoryNode]) -> dict[str, float]:
    """Return a copy of ``data`` where every parent equals the sum of its children."""
    updated = dict(data)
    for parent in sorted(parent_categories(categories), key=lambda category: category.level, reverse=True):
        updated[parent.code] = sum(float(updated.get(child.code) or 0) for child in children_of(categories, parent))
    return updated


def validate_leaf_category(categories: list[CategoryNode], code: str) -> CategoryNode:
    for category in leaf_categories(categories):
        if category.code == code:
            return category
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid or non-leaf category code: {code}",
    )


def get_category_or_404(db: Session, farm_id: int, category_id: int) -> FarmCategory:
    category = db.scalar(
        select(FarmCategory).where(FarmCategory.id == category_id, FarmCategory.farm_id == farm_id)
    )
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found.")
    return category


def create_category(
    db: Session,
    *,
    farm_id: int,
    code: str,
    display_name: str,
    category_type: str,
    parent_id: int | None = None,
) -> FarmCategory:
    code = code.strip()
    duplicate = db.scalar(
        select(FarmCategory.id).where(FarmCategory.farm_id == farm_id, FarmCategory.code == code)
    )
    if duplicate is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Category code already exists: {code}")

    if parent_id is not None:
        parent = get_category_or_404(db, farm_id, parent_id)
        level = parent.level + 1
        path = f"{parent.path}.{code}"
        max_sibling = db.scalar(
            select(func.max(FarmCategory.sort_order)).where(
                FarmCategory.farm_id == farm_id,
                FarmCategory.parent_id == parent.id,
            )
        )
        sort_order = (max_sibling + 1) if max_sibling is not None else parent.sort_order + 1
    else:
        level = 0
        path = code
        max_order = db.scalar(select(func.max(FarmCategory.sort_order)).where(FarmCategory.farm_id == farm_id))
        sort_order = (max_order or 0) + 100

    category = FarmCategory(
        farm_id=farm_id,
        code=code,
        display_name=display_name.strip(),
        parent_id=parent_id,
        path=path,
        level=level,
        sort_order=sort_order,
        category_type=category_type,
        is_active=True,
    )
    db.add(category)
    db.flush()
    invalidate_category_cache(db, farm_id)
    return category


def update_category(
    db: Session,
    category: FarmCategory,
    *,
    display_name: str | None = None,
    sort_order: int | None = None,
    is_active: bool | None = None,
) -> FarmCategory:
    if display_name is not None:
        category.display_name = display_name.strip()
    if sort_order is not None:
        category.sort_order = sort_order
    if is_active is not None:
        category.is_active = is_active
    db.flush()
    invalidate_category_cache(db, category.farm_id)
    return category


def deactivate_category(db: Session, category: FarmCategory) -> FarmCategory:
    category.is_active = False
    db.flush()
    invalidate_category_cache(db, category.farm_id)
    return category


def categories_of_type(categories: list[CategoryNode], category_type: CategoryType) -> list[CategoryNode]:
    return [category for category in categories if category.category_type == category_type.value]


def top_level_code(categories: list[CategoryNode], category_type: CategoryType) -> str | None:
    for category in categories:
        if category.level == 0 and category.category_type == category_type.value:
            return category.code
    return None
