import os
import sys
import tempfile

# Settings are read on import, so the environment has to be in place first
UPLOAD_TMP = tempfile.mkdtemp(prefix="inventory-uploads-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = UPLOAD_TMP
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"

# ensure backend folder is on sys.path when running from tests/ folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models.users import User
from models.product import Product
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

PASSWORD = "secret123"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def client(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, username="jane", email="jane@example.com", role="user", is_active=True):
    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(PASSWORD),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_product(db, **overrides):
    data = {
        "code": "PRD001",
        "name": "Sample product",
        "category": "Electronics",
        "quantity": 20,
        "min_stock": 5,
        "cost_price": 5.0,
        "sale_price": 10.0,
        "supplier": "Acme",
    }
    tags = overrides.pop("tags", [])
    data.update(overrides)
    product = Product(**data)
    product.set_tags(tags)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def auth_headers(user):
    token = create_access_token({"sub": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return make_user(db, username="admin", email="admin@example.com", role="admin")


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def user_headers(user):
    return auth_headers(user)
