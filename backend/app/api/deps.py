from collections.abc import Generator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.enums import RoleName
from app.models.farm import Farm, UserFarmRole
from app.models.user import User
from app.utils.fiscal_year import is_valid_month, parse_year


DEMO_ADMIN_EMAIL = "admin@farmplan.local"


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_user(db: Session, user_id: int | None) -> User:
    if user_id is None:
        # Safe default for local development.
        user = db.scalar(select(User).where(User.email == DEMO_ADMIN_EMAIL))
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required.",
            )
        return user

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user.",
        )
    return user


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: int | None = Header(default=None),
) -> User:
    return resolve_user(db, x_user_id)


def get_farm_or_404(db: Session, farm_id: int) -> Farm:
    farm = db.get(Farm, farm_id)
    if farm is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Farm not found.")
    return farm


def require_farm_access(db: Session, user: User, farm_id: int) -> RoleName:
    """Return the caller's role on the farm, or raise 404/403."""
    get_farm_or_404(db, farm_id)
    membership = db.scalar(
        select(UserFarmRole).where(
            UserFarmRole.user_id == user.id,
            UserFarmRole.farm_id == farm_id,
        )
    )
    if membership is not None:
        return membership.role
    if user.role == RoleName.admin:
        return RoleName.admin
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="User cannot access this farm.",
    )


def require_fiscal_year(value: object) -> int:
    year = parse_year(value)
    if year is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid fiscal year.")
    return year


def require_month(month: str) -> str:
    if not is_valid_month(month):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid month: {month}")
    return month
