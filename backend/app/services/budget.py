from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.assumption import Assumption
from app.models.monthly import MonthlyData, MonthlyDataFrozen
from app.services.calculation import get_assumption_or_404


@dataclass
class FreezeResult:
    fiscal_year: int
    frozen_rows: int
    frozen_at: datetime


def freeze_budget(db: Session, farm_id: int, fiscal_year: int) -> FreezeResult:
    """Snapshot every monthly row of the year as the frozen budget."""
    assumption = get_assumption_or_404(db, farm_id, fiscal_year)
    if assumption.is_frozen:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Budget is already frozen.")

    db.execute(
        delete(MonthlyDataFrozen).where(
            MonthlyDataFrozen.farm_id == farm_id,
            MonthlyDataFrozen.fiscal_year == fiscal_year,
        )
    )
    frozen_at = datetime.now(timezone.utc)
    rows = list(
        db.scalars(
            select(MonthlyData).where(MonthlyData.farm_id == farm_id, MonthlyData.fiscal_year == fiscal_year)
        ).all()
    )
    for row in rows:
        db.add(
            MonthlyDataFrozen(
                farm_id=farm_id,
                fiscal_year=fiscal_year,
                month=row.month,
                type=row.type,
                data_json=dict(row.data_json or {}),
                frozen_at=frozen_at,
            )
        )

    assumption.is_frozen = True
    assumption.frozen_at = frozen_at
    db.flush()
    return FreezeResult(fiscal_year=fiscal_year, frozen_rows=len(rows), frozen_at=frozen_at)


def unfreeze_budget(db: Session, farm_id: int, fiscal_year: int) -> Assumption:
    # The frozen snapshot stays as the comparison baseline until the next freeze.
    assumption = get_assumption_or_404(db, farm_id, fiscal_year)
    assumption.is_frozen = False
    db.flush()
    return assumption


def frozen_snapshot(db: Session, farm_id: int, fiscal_year: int) -> dict[str, dict[str, dict[str, float]]]:
    rows = db.scalars(
        select(MonthlyDataFrozen)
        .where(MonthlyDataFrozen.farm_id == farm_id, MonthlyDataFrozen.fiscal_year == fiscal_year)
        .order_by(MonthlyDataFrozen.id)
    ).all()
    snapshot: dict[str, dict[str, dict[str, float]]] = {}
    for row in rows:
        snapshot.setdefault(row.month, {})[row.type.value] = dict(row.data_json or {})
    return snapshot
