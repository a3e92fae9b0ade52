from __future__ import annotations

import logging

import app.models  # noqa: F401
from app.core.config import get_settings
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.services.seed import DEMO_FARM_NAME, DEMO_FISCAL_YEAR, seed_demo_data


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("farmplan.seed")


def main() -> None:
    if get_settings().auto_create_schema:
        Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_demo_data(db)
    logger.info("Demo farm %r ready for FY%s.", DEMO_FARM_NAME, DEMO_FISCAL_YEAR)


if __name__ == "__main__":
    main()
