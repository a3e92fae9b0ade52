import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.base import Base
from app.models.category import FarmCategory
from app.models.farm import Farm
from app.models.gl import GlAccount
from app.services.categories import (
    DEFAULT_GL_ACCOUNTS,
    create_category,
    deactivate_category,
    get_farm_categories,
    init_farm_categories,
    leaf_categories,
    parent_categories,
    recalc_parent_sums,
    validate_leaf_category,
)


CROPS = [{"name": "Canola", "acres": 100}, {"name": "Durum", "acres": 50}]


def _session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _farm(db: Session) -> Farm:
    farm = Farm(name="Test Farm")
    db.add(farm)
    db.flush()
    return farm


def test_init_adds_crop_revenue_leaves_before_other_income() -> None:
    db = _session()
    farm = _farm(db)
    init_farm_categories(db, farm.id, CROPS)

    categories = get_farm_categories(db, farm.id)
    revenue_children = [c.code for c in categories if c.path.startswith("revenue.")]
    assert revenue_children == ["rev_canola", "rev_durum", "rev_other_income"]
    assert {c.code for c in parent_categories(categories)} == {"revenue", "inputs", "lpm", "lbf", "insurance"}
    assert "rev_canola" in {c.code for c in leaf_categories(categories)}


def test_init_is_idempotent_and_maps_default_gl_accounts() -> None:
    db = _session()
    farm = _farm(db)
    first = init_farm_categories(db, farm.id, CROPS)
    second = init_farm_categories(db, farm.id, CROPS)
    assert first == second

    count = len(db.scalars(select(FarmCategory).where(FarmCategory.farm_id == farm.id)).all())
    assert count == len(first)

    accounts = {a.account_number: a for a in db.scalars(select(GlAccount).where(GlAccount.farm_id == farm.id))}
    assert len(accounts) == len(DEFAULT_GL_ACCOUNTS)
    assert accounts["4010"].category_id == first["rev_canola"]
    # No lentil crop, so the lentil sales account stays unmapped.
    assert accounts["4040"].category_id is None


def test_empty_farm_is_initialised_on_first_read() -> None:
    db = _session()
    farm = _farm(db)
    categories = get_farm_categories(db, farm.id)
    assert categories[0].code == "revenue"
    assert [c.sort_order for c in categories] == sorted(c.sort_order for c in categories)


def test_recalc_parent_sums_rolls_up_deepest_level_first() -> None:
    db = _session()
    farm = _farm(db)
    codes = init_farm_categories(db, farm.id, CROPS)
    create_category(
        db,
        farm_id=farm.id,
        code="seed_canola",
        display_name="Canola Seed",
        category_type="INPUT",
        parent_id=codes["input_seed"],
    )
    create_category(
        db,
        farm_id=farm.id,
        code="seed_durum",
        display_name="Durum Seed",
        category_type="INPUT",
        parent_id=codes["input_seed"],
    )
    categories = get_farm_categories(db, farm.id)

    result = recalc_parent_sums({"seed_canola": 10, "seed_durum": 5, "input_fert": 20}, categories)
    assert result["input_seed"] == 15
    assert result["inputs"] == 35
    assert result["revenue"] == 0
    assert "input_seed" not in {c.code for c in leaf_categories(categories)}


def test_recalc_parent_sums_does_not_mutate_input() -> None:
    db = _session()
    farm = _farm(db)
    categories = get_farm_categories(db, farm.id)
    data = {"input_seed": 1.0}
    recalc_parent_sums(data, categories)
    assert data == {"input_seed": 1.0}


def test_validate_leaf_category_rejects_parent_and_unknown_codes() -> None:
    db = _session()
    farm = _farm(db)
    categories = get_farm_categories(db, farm.id)
    assert validate_leaf_category(categories, "input_seed").code == "input_seed"
    for code in ("inputs", "nope"):
        with pytest.raises(HTTPException) as exc:
            validate_leaf_category(categories, code)
        assert exc.value.status_code == 400


def test_create_category_sort_order_rules_and_duplicates() -> None:
    db = _session()
    farm = _farm(db)
    codes = init_farm_categories(db, farm.id, [])

    sibling = create_category(
        db,
        farm_id=farm.id,
        code="input_custom",
        display_name="Custom Input",
        category_type="INPUT",
        parent_id=codes["inputs"],
    )
    assert sibling.sort_order == 104
    assert sibling.level == 1
    assert sibling.path == "inputs.input_custom"

    first_child = create_category(
        db,
        farm_id=farm.id,
        code="ins_crop_hail",
        display_name="Hail",
        category_type="INSURANCE",
        parent_id=codes["ins_crop"],
    )
    assert first_child.sort_order == 402
    assert first_child.level == 2

    top = create_category(db, farm_id=farm.id, code="capital", display_name="Capital", category_type="CAPITAL")
    assert top.sort_order == 502
    assert top.level == 0

    with pytest.raises(HTTPException) as exc:
        create_category(db, farm_id=farm.id, code="capital", display_name="Again", category_type="CAPITAL")
    assert exc.value.status_code == 409


def test_deactivated_category_drops_out_of_the_chart() -> None:
    db = _session()
    farm = _farm(db)
    init_farm_categories(db, farm.id, [])
    get_farm_categories(db, farm.id)
    category = db.scalar(select(FarmCategory).where(FarmCategory.farm_id == farm.id, FarmCategory.code == "lpm_shop"))
    deactivate_category(db, category)
    assert "lpm_shop" not in {c.code for c in get_farm_categories(db, farm.id)}


def test_defaults_rolled_back_are_not_served_from_cache() -> None:
    db = _session()
    farm = _farm(db)
    db.commit()

    assert get_farm_categories(db, farm.id)
    db.rollback()
    assert db.scalars(select(FarmCategory)).all() == []

    categories = get_farm_categories(db, farm.id)
    stored = set(db.scalars(select(FarmCategory.id)).all())
    assert {category.id for category in categories} == stored
    db.commit()

    # Committed defaults are cached across sessions.
    other = sessionmaker(bind=db.get_bind(), autoflush=False, expire_on_commit=False)()
    assert get_farm_categories(other, farm.id) is categories


def test_uncommitted_category_stays_out_of_other_sessions() -> None:
    db = _session()
    farm = _farm(db)
    get_farm_categories(db, farm.id)
    db.commit()

    create_category(db, farm_id=farm.id, code="input_custom", display_name="Custom", category_type="INPUT")
    assert "input_custom" in {category.code for category in get_farm_categories(db, farm.id)}
    db.rollback()

    assert "input_custom" not in {category.code for category in get_farm_categories(db, farm.id)}
