import os
import sys

import pytest
from sqlalchemy.orm import sessionmaker

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from backend import models  # noqa: E402,F401
from backend.database import Base, make_engine  # noqa: E402

# Set SONGSHARE_TEST_POSTGRES=1 to run the store tests against a throwaway
# PostgreSQL container instead of SQLite.
_use_postgres = os.environ.get("SONGSHARE_TEST_POSTGRES", "").lower() in ("1", "true", "yes")


@pytest.fixture(scope="session")
def database_url(tmp_path_factory):
    if _use_postgres:
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer("postgres:15") as pg:
            yield pg.get_connection_url()
        return
    yield f"sqlite:///{tmp_path_factory.mktemp('db') / 'songshare.db'}"


@pytest.fixture
def engine(database_url):
    engine = make_engine(database_url)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from backend.main import app, get_db

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
