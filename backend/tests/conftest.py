import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "10000")
os.environ.setdefault("EXPORTS_DIR", tempfile.mkdtemp(prefix="farmplan-exports-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.api.deps import DEMO_ADMIN_EMAIL, get_db
from app.db.base import Base
from app.main import app
from app.models.enums import RoleName
from app.models.user import User
from app.services.categories import clear_category_cache


@pytest.fixture(autouse=True)
def _fresh_category_cache():
    # Farm ids repeat across in-memory databases.
    clear_category_cache()
    yield
    clear_category_cache()


@pytest.fixture
def api_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    with factory() as db:
        db.add_all(
            [
                User(email=DEMO_ADMIN_EMAIL, full_name="Admin", role=RoleName.admin, is_active=True),
                User(email="manager@test.com", full_name="Manager", role=RoleName.manager, is_active=True),
                User(email="viewer@test.com", full_name="Viewer", role=RoleName.viewer, is_active=True),
            ]
        )
        db.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def client(api_session):
    def _override_get_db():
        db = api_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    # One event loop for requests and sockets so background broadcasts reach test sockets.
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def users(api_session) -> dict[str, int]:
    with api_session() as db:
        return {user.email.split("@")[0]: user.id for user in db.scalars(select(User)).all()}
