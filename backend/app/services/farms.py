from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.enums import RoleName
from app.models.farm import Farm, UserFarmRole
from app.models.user import User
from app.services.categories import invalidate_category_cache


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Farm name is required.")
    return cleaned


def create_farm(db: Session, owner: User, name: str) -> Farm:
    farm = Farm(name=_clean_name(name))
    db.add(farm)
    db.flush()
    db.add(UserFarmRole(user_id=owner.id, farm_id=farm.id, role=RoleName.admin))
    db.flush()
    return farm


def list_user_farms(db: Session, user: User) -> list[tuple[Farm, RoleName]]:
    memberships = {
        row.farm_id: row.role
        for row in db.scalars(select(UserFarmRole).where(UserFarmRole.user_id == user.id)).all()
    }
    if user.role == RoleName.admin:
        farms = db.scalars(select(Farm).order_by(Farm.name)).all()
        return [(farm, memberships.get(farm.id, RoleName.admin)) for farm in farms]
    farms = db.scalars(select(Farm).where(Farm.id.in_(memberships)).order_by(Farm.name)).all() if memberships else []
    return [(farm, memberships[farm.id]) for farm in farms]


def rename_farm(db: Session, farm: Farm, name: str) -> Farm:
    farm.name = _clean_name(name)
    db.flush()
    return farm


def delete_farm(db: Session, farm: Farm) -> None:
    invalidate_category_cache(db, farm.id)
    db.delete(farm)
    db.flush()
