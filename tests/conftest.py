"""
Federation backend - configuration et fixtures des tests.

L'application est construite sans connexion au démarrage et la dépendance
get_mongo_db est remplacée par une base mongomock, recréée à chaque test.
"""
import os
from datetime import timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing-only"
os.environ["MEMBERSHIP_MONTHS"] = "3"

from app_factory import create_app  # noqa: E402
from database import ensure_indexes, get_mongo_db  # noqa: E402
from dependencies import create_access_token, hash_password  # noqa: E402
from utils.dates import add_months, utcnow  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture
def db():
    database = mongomock.MongoClient()["federation_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def app(db):
    application = create_app(init_db=False)
    application.dependency_overrides[get_mongo_db] = lambda: db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_user(db):
    """Insère directement un utilisateur et retourne le document avec son header d'authentification."""

    def _make_user(username, role="member", status="active", expiry_date=None):
        now = utcnow()
        user = {
            "username": username,
            "email": f"{username}@federation.org",
            "password": hash_password(PASSWORD),
            "role": role,
            "status": status,
            "expiryDate": expiry_date or add_months(now, 3),
            "createdAt": now,
        }
        user["_id"] = db.users.insert_one(user).inserted_id
        user["id"] = str(user["_id"])
        user["headers"] = auth_headers(user)
        return user

    return _make_user


def auth_headers(user: dict, expires_delta: timedelta | None = None) -> dict:
    token = create_access_token(str(user["_id"]), user["role"], expires_delta)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(make_user):
    return make_user("admin", role="admin")


@pytest.fixture
def member(make_user):
    return make_user("alice")


@pytest.fixture
def other_member(make_user):
    return make_user("bob")
