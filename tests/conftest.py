from typing import Generator
import pytest
from sqlalchemy.pool import StaticPool

from sweetshop import config, crud
from sweetshop.auth import create_access_token
from sweetshop.db import Base, make_engine, make_sessionmaker
from sweetshop.main import app, get_db, get_settings

TEST_SETTINGS = config.Settings(
    database_url="sqlite://",
    jwt_secret="test-secret",
    jwt_expires_in=60 * 60,
)


@pytest.fixture(scope="function")
def settings() -> config.Settings:
    return TEST_SETTINGS


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = make_engine("sqlite://", poolclass=StaticPool)
    TestingSessionLocal = make_sessionmaker(engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session, settings):
    # Override dependencies to use the same session and a fixed signing key
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db_session):
    return crud.create_user(db_session, "boss", "bosspass", "ADMIN")


@pytest.fixture
def staff_user(db_session):
    return crud.create_user(db_session, "clerk", "clerkpass", "STAFF")


@pytest.fixture
def admin_headers(admin_user, settings):
    return {"Authorization": f"Bearer {create_access_token(admin_user, settings)}"}


@pytest.fixture
def staff_headers(staff_user, settings):
    return {"Authorization": f"Bearer {create_access_token(staff_user, settings)}"}


@pytest.fixture
def make_sweet(client, admin_headers):
    def _make(name, price, stock, **extra):
        r = client.post("/sweets", json={"name": name, "price": price, "stock": stock, **extra}, headers=admin_headers)
        assert r.status_code == 201, r.text
        return r.json()["data"]["sweet"]
    return _make
