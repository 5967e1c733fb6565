from datetime import datetime

from pymongo.database import Database

import schemas
from config import MEMBERSHIP_MONTHS
from dependencies import hash_password
from errors import Conflict
from utils.dates import add_months, utcnow


def apply_expiry(user_data: dict, now: datetime | None = None) -> dict:
    """Un compte dont la date d'expiration est dépassée passe automatiquement à 'inactive'."""
    now = now or utcnow()
    expiry = user_data.get("expiryDate")
    if expiry is not None and expiry < now:
        user_data["status"] = schemas.UserStatus.inactive.value
    return user_data


def save_user_fields(db: Database, user_data: dict, fields: dict) -> dict:
    """Écrit `fields` sur l'utilisateur en réappliquant la règle d'expiration."""
    user_data.update(fields)
    apply_expiry(user_data)
    changes = dict(fields, status=user_data["status"])
    db.users.update_one({"_id": user_data["_id"]}, {"$set": changes})
    return user_data


def user_helper(user_data: dict) -> schemas.User:
    return schemas.User(
        id=str(user_data["_id"]),
        username=user_data["username"],
        email=user_data["email"],
        role=user_data["role"],
        status=user_data["status"],
        expiryDate=user_data.get("expiryDate"),
        createdAt=user_data.get("createdAt"),
    )


def create_user(db: Database, user: schemas.UserCreate, role: str = schemas.UserRole.member.value) -> dict:
    """Crée un compte valable MEMBERSHIP_MONTHS mois. Email et nom d'utilisateur sont uniques."""
    if db.users.find_one({"$or": [{"email": user.email}, {"username": user.username}]}):
        raise Conflict("User already exists")

    now = utcnow()
    user_data = {
        "username": user.username,
        "email": user.email,
        "password": hash_password(user.password),
        "role": role,
        "status": schemas.UserStatus.active.value,
        "expiryDate": add_months(now, MEMBERSHIP_MONTHS),
        "createdAt": now,
    }
    apply_expiry(user_data, now)
    # L'index unique tranche si deux inscriptions identiques arrivent en même temps
    result = db.users.insert_one(user_data)
    user_data["_id"] = result.inserted_id
    return user_data
