import os

# Avant tout import applicatif: base en mémoire, pas de Redis
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Any, Dict, Generator

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jerseyshop.app import app as fastapi_app
from jerseyshop.infra.database import Base, get_db
from jerseyshop.models import AdminUser, Product, User
from jerseyshop.utils.security import require_admin, require_user

# Une seule connexion partagée: la base en mémoire survit entre sessions et threads
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def db() -> Generator:
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def customer(db) -> Dict[str, Any]:
    db.add(User(id=1, email="fan@example.com", name="Fan"))
    db.commit()
    return {"id": 1, "email": "fan@example.com", "role": "user", "token": "fake-token"}


@pytest.fixture()
def other_customer(db) -> Dict[str, Any]:
    db.add(User(id=2, email="other@example.com", name="Other"))
    db.commit()
    return {"id": 2, "email": "other@example.com", "role": "user", "token": "fake-token-2"}


@pytest.fixture()
def admin(db) -> Dict[str, Any]:
    db.add(User(id=99, email="admin@example.com", name="Admin"))
    db.add(AdminUser(user_id=99, role="admin", permissions={}))
    db.commit()
    return {"id": 99, "email": "admin@example.com", "role": "admin", "token": "fake-admin-token"}


@pytest.fixture()
def make_product(db):
    """Fabrique de produits: make_product(price="100.00", inventory=5, ...)."""
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        data = {
            "name": f"Maillot {counter['n']}",
            "team": "Ajax",
            "year": "1995",
            "price": Decimal("100.00"),
            "condition": "Excellent",
            "size": "L",
            "description": "Maillot domicile d'époque",
            "sku": f"SKU-{counter['n']:04d}",
            "inventory": 5,
        }
        data.update(overrides)
        if "price" in overrides:
            data["price"] = Decimal(str(overrides["price"]))
        product = Product(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture()
def login(app):
    """Remplace l'authentification: login(user) fait de `user` l'appelant des requêtes suivantes."""
    def _login(user: Dict[str, Any]) -> None:
        def _require_admin():
            if user.get("role") != "admin":
                raise HTTPException(status_code=403, detail="Accès interdit")
            return user

        app.dependency_overrides[require_user] = lambda: user
        app.dependency_overrides[require_admin] = _require_admin

    yield _login
    app.dependency_overrides.pop(require_user, None)
    app.dependency_overrides.pop(require_admin, None)


@pytest.fixture()
def client(app, db, customer, login) -> Generator[TestClient, None, None]:
    """Client API connecté en tant que `customer`, branché sur la base de test."""
    app.dependency_overrides[get_db] = lambda: db
    login(customer)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)


# --- Signatures webhook (schémas réels des prestataires) ---

@pytest.fixture()
def stripe_secret(monkeypatch) -> str:
    secret = "whsec_test_secret"
    monkeypatch.setattr("jerseyshop.payments.stripe_client.STRIPE_WEBHOOK_SECRET", secret)
    return secret


@pytest.fixture()
def sign_stripe(stripe_secret):
    """Retourne (corps, en-têtes) signés comme Stripe: t=<ts>,v1=HMAC-SHA256(secret, "<ts>.<corps>")."""
    def _sign(event: Dict[str, Any]):
        body = json.dumps(event)
        timestamp = int(time.time())
        signature = hmac.new(
            stripe_secret.encode("utf-8"), f"{timestamp}.{body}".encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return body, {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}

    return _sign


@pytest.fixture()
def make_stripe_event():
    """Événement PaymentIntent minimal (id, type, data.object avec metadata.orderId)."""
    def _event(event_id: str, event_type: str, intent_id: str, order_id: int, status: str = "succeeded"):
        return {
            "id": event_id,
            "type": event_type,
            "data": {
                "object": {
                    "id": intent_id,
                    "object": "payment_intent",
                    "status": status,
                    "metadata": {"orderId": str(order_id)},
                }
            },
        }

    return _event
