from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.audit import AuditLog
from app.models.user import User


logger = logging.getLogger("farmplan.audit")

MAX_AUDIT_ROWS = 500


def log_audit(
    db: Session,
    *,
    actor: User,
    action: str,
    entity_type: str,
    entity_id: str,
    farm_id: int | None = None,
    fiscal_year: int | None = None,
    before_state: dict | None = None,
    after_state: dict | None = None,
) -> AuditLog:
    """Stage an audit row; the caller's commit persists it with the change."""
    entry = AuditLog(
        farm_id=farm_id,
        fiscal_year=fiscal_year,
        actor_user_id=actor.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_state=before_state,
        after_state=after_state,
    )
    db.add(entry)
    logger.debug("audit %s %s:%s farm=%s by user=%s", action, entity_type, entity_id, farm_id, actor.id)
    return entry


def list_audit_entries(
    db: Session,
    farm_id: int,
    fiscal_year: int | None = None,
    limit: int = 200,
) -> list[AuditLog]:
    query = select(AuditLog).where(AuditLog.farm_id == farm_id)
    if fiscal_year is not None:
        query = query.where(AuditLog.fiscal_year == fiscal_year)
    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(max(1, min(limit, MAX_AUDIT_ROWS)))
    return list(db.scalars(query).all())
