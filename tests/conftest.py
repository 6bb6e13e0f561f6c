# tests/conftest.py

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

# --- 1. Settings overrides ---
# Tokens are minted and verified with the same settings object, so the
# secret only has to be swapped here.
@pytest.fixture(scope="session", autouse=True)
def override_settings():
    from pharmapricing.core.config import settings
    settings.DATABASE_URL = "sqlite:///./test.db"
    settings.SECRET_KEY = "test-secret"
    settings.PROMOTION_APPLY_MAX_RETRIES = 5

from pharmapricing.main import app
from pharmapricing.database import Base, get_db

# --- 2. Test database ---
# A file database so that worker threads in the concurrency tests each get
# their own connection. `timeout` is how long a writer waits for the lock;
# the pool is sized for the widest race.
engine = create_engine(
    "sqlite:///./test.db",
    connect_args={"check_same_thread": False, "timeout": 30},
    pool_size=20,
    max_overflow=40,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# --- 3. Fixtures ---

@pytest.fixture(scope="function")
def db() -> Generator:
    """Clean database and session for each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db: Session):
    """Opens extra, independent sessions on the test database (one per thread)."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def client(db: Session) -> Generator:
    """TestClient whose requests share the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()
