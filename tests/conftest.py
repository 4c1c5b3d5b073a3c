from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / ".env.test"
load_dotenv(env_file)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.bundles.catalog import (  # noqa: E402
    InMemoryCatalog,
    get_catalog,
    reset_catalog,
    set_catalog,
)
from app.bundles.models import BundleStatus  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from tests.utils.factories import create_test_bundle, create_variant  # noqa: E402


@pytest.fixture
def test_engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    session = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)()

    session.commit = session.flush

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def catalog():
    """Catalog with the two components used across bundle tests.

    A: 3000 grosz, 10 in stock. B: 2500 grosz, 4 in stock.
    """
    memory = InMemoryCatalog(
        [
            create_variant("A", price=3000, stock_on_hand=10),
            create_variant("B", price=2500, stock_on_hand=4),
        ]
    )
    set_catalog(memory)
    yield memory
    reset_catalog()


@pytest.fixture
async def test_app(db_session, catalog):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog] = lambda: catalog

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def test_client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


@pytest.fixture
def draft_bundle(db_session):
    """Fixed-price DRAFT bundle: A x1 + B x1 at 5000."""
    return create_test_bundle(db_session, name="Starter Kit")


@pytest.fixture
def active_bundle(db_session):
    """Percent-off ACTIVE bundle: A x1 + B x1 at 20% off."""
    return create_test_bundle(
        db_session,
        name="Creator Pack",
        status=BundleStatus.ACTIVE,
        discount_type="percent",
        fixed_price=None,
        percent_off=20,
        bundle_cap=10,
    )
