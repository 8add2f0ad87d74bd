import os
import shutil
import tempfile

# Settings are read at import time, so the environment is prepared first
UPLOAD_DIR = tempfile.mkdtemp(prefix="motomarket-uploads-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = UPLOAD_DIR
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "1000"
os.environ.pop("RATE_LIMIT_REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from motomarket.core.database import Base, engine, get_db  # noqa: E402
from motomarket.core.rate_limit import rate_limiter  # noqa: E402
from motomarket.main import app  # noqa: E402
from motomarket.storage.local_storage import storage  # noqa: E402

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Segura123!"

LISTING = {
    "title": "Honda CB 190R como nueva",
    "description": "Unico dueno, mantenimientos al dia en concesionario",
    "price": 9500000,
    "brand": "Honda",
    "model": "CB 190R",
    "year": 2021,
    "displacement": 190,
    "mileage": 12000,
    "color": "Rojo",
    "city": "Medellin",
    "department": "Antioquia",
    "soat_valid": True,
}


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        rate_limiter.backend.reset()
        shutil.rmtree(storage.upload_dir / "listings", ignore_errors=True)


@pytest.fixture
def client(db):
    # No "with" block: the lifespan (table creation, scheduler) is not started
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register an account through the API; returns (auth headers, response body)"""
    def _register(email="ana@motomail.com", password=PASSWORD, **overrides):
        payload = {
            "email": email,
            "password": password,
            "first_name": "Ana",
            "last_name": "Restrepo",
            "accepts_policy": True,
        }
        payload.update(overrides)
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.json()
        body = response.json()
        return {"Authorization": f"Bearer {body['auth']['token']}"}, body
    return _register


@pytest.fixture
def create_listing(client):
    """Publish a listing as the given account; returns the listing body"""
    def _create(headers, **overrides):
        payload = dict(LISTING)
        payload.update(overrides)
        response = client.post("/api/motos", json=payload, headers=headers)
        assert response.status_code == 201, response.json()
        return response.json()["moto"]
    return _create
