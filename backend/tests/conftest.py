"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point the app at an in-memory database
# before anything from cozinha is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DEBUG", "true")

import pytest
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cozinha.core.security import create_access_token, get_password_hash
from cozinha.db.base import Base
from cozinha.db.session import get_db
from cozinha.main import app
# Import all models to ensure they're registered with Base.metadata
from cozinha.models import *
from cozinha.models.account import Account
from cozinha.models.customer import Customer
from cozinha.models.ingredient import Ingredient
from cozinha.models.product import Product, ProductIngredient

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from cozinha.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


def make_account(db_session: Session, email: str, plan_id: str = "free") -> Account:
    account = Account(
        email=email,
        password_hash=get_password_hash("testpass123"),
        business_name="Doces da Ana",
        phone="+55 11 99999-0000",
        slug=email.split("@")[0],
        plan_id=plan_id,
        is_active=True,
    )
    db_session.add(account)
    db_session.commit()
    db_session.refresh(account)
    return account


@pytest.fixture
def test_account(db_session: Session) -> Account:
    """Create a test business account on the free plan."""
    return make_account(db_session, "ana@example.com")


@pytest.fixture
def other_account(db_session: Session) -> Account:
    """A second account, used to check data isolation."""
    return make_account(db_session, "bia@example.com")


@pytest.fixture
def auth_token(test_account: Account) -> str:
    """Get an authentication token for the test account."""
    return create_access_token(data={"sub": str(test_account.id), "email": test_account.email})


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def other_headers(other_account: Account) -> dict:
    token = create_access_token(data={"sub": str(other_account.id), "email": other_account.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def flour(db_session: Session, test_account: Account) -> Ingredient:
    ingredient = Ingredient(
        account_id=test_account.id,
        name="Flour",
        unit="kg",
        cost_per_unit=Decimal("5.00"),
        stock_quantity=Decimal("2"),
    )
    db_session.add(ingredient)
    db_session.commit()
    db_session.refresh(ingredient)
    return ingredient


@pytest.fixture
def egg(db_session: Session, test_account: Account) -> Ingredient:
    ingredient = Ingredient(
        account_id=test_account.id,
        name="Egg",
        unit="un",
        cost_per_unit=Decimal("1.00"),
        stock_quantity=Decimal("12"),
    )
    db_session.add(ingredient)
    db_session.commit()
    db_session.refresh(ingredient)
    return ingredient


@pytest.fixture
def brownie(db_session: Session, test_account: Account, flour: Ingredient, egg: Ingredient) -> Product:
    """Brownie: 0.03 kg flour + 1 egg, sold at 8.00."""
    product = Product(
        account_id=test_account.id,
        name="Brownie",
        selling_price=Decimal("8.00"),
        active=True,
    )
    product.product_ingredients = [
        ProductIngredient(ingredient_id=flour.id, quantity=Decimal("0.03")),
        ProductIngredient(ingredient_id=egg.id, quantity=Decimal("1")),
    ]
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def test_customer(db_session: Session, test_account: Account) -> Customer:
    customer = Customer(
        account_id=test_account.id,
        name="Maria Silva",
        phone="+55 (11) 98888-7777",
    )
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer
