from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.assumption import Assumption
from app.services.calculation import ensure_monthly_rows, get_assumption, rescale_for_acres
from app.services.categories import init_farm_categories
from app.utils.fiscal_year import is_valid_month


logger = logging.getLogger("farmplan.assumptions")


def list_assumption_years(db: Session, farm_id: int) -> list[Assumption]:
    return list(
        db.scalars(
            select(Assumption).where(Assumption.farm_id == farm_id).order_by(Assumption.fiscal_year.desc())
        ).all()
    )


def crop_acres_total(crops: list[dict]) -> float:
    return float(sum(float(crop.get("acres") or 0) for crop in crops))


def save_assumption(
    db: Session,
    *,
    farm_id: int,
    fiscal_year: int,
    crops: list[dict],
    bins: list[dict],
    start_month: str | None = None,
    total_acres: float | None = None,
) -> Assumption:
    start_month = start_month or get_settings().default_start_month
    if not is_valid_month(start_month):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid start month: {start_month}")

    assumption = get_assumption(db, farm_id, fiscal_year)
    if assumption is not None and assumption.is_frozen:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Budget is frozen. Unfreeze before editing assumptions.",
        )

    acres = float(total_acres) if total_acres is not None else crop_acres_total(crops)
    previous_acres = assumption.total_acres if assumption is not None else None
    if assumption is None:
        assumption = Assumption(farm_id=farm_id, fiscal_year=fiscal_year)
        db.add(assumption)
    assumption.start_month = start_month
    assumption.total_acres = acres
    assumption.crops_json = list(crops)
    assumption.bins_json = list(bins)
    db.flush()

    init_farm_categories(db, farm_id, crops)
    ensure_monthly_rows(db, farm_id, fiscal_year, start_month)
    if previous_acres is not None and previous_acres != acres:
        logger.info(
            "Rescaling farm %s FY%s from %.2f to %.2f acres",
            farm_id,
            fiscal_year,
            previous_acres,
            acres,
        )
        rescale_for_acres(db, farm_id, fiscal_year, acres)
    return assumption
