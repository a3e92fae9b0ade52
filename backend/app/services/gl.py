from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.category import FarmCategory
from app.models.gl import GlAccount, GlActualDetail
from app.services.calculation import RollupResult, rollup_gl_actuals
from app.utils.fiscal_year import is_valid_month


logger = logging.getLogger("farmplan.imports")


@dataclass
class GlImportResult:
    rollup: RollupResult
    postings: int = 0
    skipped: list[dict] = field(default_factory=list)


def resolve_category_id(db: Session, farm_id: int, category_code: str | None) -> int | None:
    if not category_code:
        return None
    return db.scalar(
        select(FarmCategory.id).where(FarmCategory.farm_id == farm_id, FarmCategory.code == category_code)
    )


def list_gl_accounts(db: Session, farm_id: int) -> list[GlAccount]:
    return list(
        db.scalars(
            select(GlAccount)
            .where(GlAccount.farm_id == farm_id, GlAccount.is_active.is_(True))
            .order_by(GlAccount.account_number)
        ).all()
    )


def get_gl_account_or_404(db: Session, farm_id: int, gl_id: int) -> GlAccount:
    account = db.scalar(select(GlAccount).where(GlAccount.id == gl_id, GlAccount.farm_id == farm_id))
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="GL account not found.")
    return account


def upsert_gl_account(
    db: Session,
    farm_id: int,
    *,
    account_number: str,
    account_name: str,
    category_code: str | None = None,
) -> GlAccount:
    category_id = resolve_category_id(db, farm_id, category_code)
    account = db.scalar(
        select(GlAccount).where(GlAccount.farm_id == farm_id, GlAccount.account_number == account_number)
    )
    if account is None:
        account = GlAccount(farm_id=farm_id, account_number=account_number)
        db.add(account)
    account.account_name = account_name
    account.category_id = category_id
    account.is_active = True
    db.flush()
    return account


def bulk_assign(db: Session, farm_id: int, assignments: list[tuple[str, str | None]]) -> int:
    """Map accounts to categories; unknown codes are skipped, an empty code unmaps."""
    updated = 0
    for account_number, category_code in assignments:
        category_id = None
        if category_code:
            category_id = resolve_category_id(db, farm_id, category_code)
            if category_id is None:
                continue
        accounts = db.scalars(
            select(GlAccount).where(GlAccount.farm_id == farm_id, GlAccount.account_number == account_number)
        ).all()
        for account in accounts:
            account.category_id = category_id
        updated += 1
    db.flush()
    return updated


def list_gl_actuals(db: Session, farm_id: int, fiscal_year: int, month: str | None = None) -> list[dict]:
    query = (
        select(GlActualDetail, GlAccount, FarmCategory)
        .join(GlAccount, GlAccount.id == GlActualDetail.gl_account_id)
        .outerjoin(FarmCategory, FarmCategory.id == GlAccount.category_id)
        .where(GlActualDetail.farm_id == farm_id, GlActualDetail.fiscal_year == fiscal_year)
    )
    if month is not None:
        query = query.where(GlActualDetail.month == month)
    rows = db.execute(query.order_by(GlActualDetail.month, GlAccount.account_number)).all()
    return [
        {
            "id": posting.id,
            "month": posting.month,
            "amount": posting.amount,
            "account_number": account.account_number,
            "account_name": account.account_name,
            "category_code": category.code if category is not None else None,
            "category_name": category.display_name if category is not None else "Unmapped",
        }
        for posting, account, category in rows
    ]


def upsert_posting(db: Session, farm_id: int, account: GlAccount, fiscal_year: int, month: str, amount: float) -> None:
    posting = db.scalar(
        select(GlActualDetail).where(
            GlActualDetail.gl_account_id == account.id,
            GlActualDetail.fiscal_year == fiscal_year,
            GlActualDetail.month == month,
        )
    )
    if posting is None:
        db.add(
            GlActualDetail(
                farm_id=farm_id,
                gl_account_id=account.id,
                fiscal_year=fiscal_year,
                month=month,
                amount=float(amount),
            )
        )
        db.flush()
    else:
        posting.amount = float(amount)


def import_gl_actuals(
    db: Session,
    farm_id: int,
    fiscal_year: int,
    rows: list[dict],
    new_accounts: list[dict] | None = None,
) -> GlImportResult:
    """Upsert postings by account number and roll the touched months into actuals."""
    for account in new_accounts or []:
        upsert_gl_account(
            db,
            farm_id,
            account_number=account["account_number"],
            account_name=account["account_name"],
            category_code=account.get("category_code"),
        )

    accounts = {
        account.account_number: account
        for account in db.scalars(select(GlAccount).where(GlAccount.farm_id == farm_id)).all()
    }
    result = GlImportResult(rollup=RollupResult())
    touched: list[str] = []
    for row in rows:
        account = accounts.get(str(row.get("account_number")))
        month = row.get("month")
        if account is None or not is_valid_month(month):
            result.skipped.append({**row, "reason": "unknown account" if account is None else "invalid month"})
            continue
        upsert_posting(db, farm_id, account, fiscal_year, month, row.get("amount") or 0)
        result.postings += 1
        if month not in touched:
            touched.append(month)
    db.flush()

    result.rollup = rollup_gl_actuals(db, farm_id, fiscal_year, touched)
    logger.info(
        "GL import farm=%s FY%s postings=%s months=%s skipped=%s",
        farm_id,
        fiscal_year,
        result.postings,
        ",".join(result.rollup.months_imported),
        len(result.skipped),
    )
    return result
