import logging
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, status
from pymongo.database import Database

import schemas
from config import BOOTSTRAP_TOKEN_EXPIRE_MINUTES
from database import get_mongo_db
from dependencies import (
    create_access_token,
    get_current_user,
    require_admin,
    verify_password,
)
from errors import BadRequest, Forbidden, NotFound
from utils.accounts import apply_expiry, create_user, save_user_fields, user_helper
from utils.dates import add_months, utcnow
from utils.mongo import to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(user: schemas.UserCreate, db: Database = Depends(get_mongo_db)):
    """Inscription publique : le compte créé est toujours un membre."""
    create_user(db, user)
    logger.info("Nouveau membre inscrit: %s", user.username)
    return {"msg": "User registered successfully"}


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def register(user: schemas.AdminUserCreate, db: Database = Depends(get_mongo_db)):
    """Inscription d'un utilisateur par un administrateur (rôle au choix, membre par défaut)."""
    create_user(db, user, role=user.role)
    logger.info("Utilisateur %s créé par un administrateur (rôle %s)", user.username, user.role)
    return {"msg": "User registered successfully"}


@router.post("/admin-register", status_code=status.HTTP_201_CREATED)
def admin_register(user: schemas.UserCreate, db: Database = Depends(get_mongo_db)):
    """
    Création du premier administrateur. Ouvert au public uniquement tant
    qu'aucun administrateur n'existe ; ensuite passer par /register.
    """
    if db.users.find_one({"role": schemas.UserRole.admin.value}):
        raise Forbidden("An administrator already exists")

    user_data = create_user(db, user, role=schemas.UserRole.admin.value)
    logger.info("Administrateur initial créé: %s", user.username)
    token = create_access_token(
        str(user_data["_id"]),
        user_data["role"],
        expires_delta=timedelta(minutes=BOOTSTRAP_TOKEN_EXPIRE_MINUTES),
    )
    return {"token": token}


@router.post("/login", response_model=schemas.LoginResponse)
def login(credentials: schemas.LoginRequest, db: Database = Depends(get_mongo_db)):
    """
    Connecte l'utilisateur et retourne un token JWT.
    Le statut est recalculé à partir de la date d'expiration avant la vérification.
    """
    user_data = db.users.find_one({"email": credentials.email})

    if not user_data or not user_data.get("password") or not verify_password(credentials.password, user_data["password"]):
        logger.warning("Échec de connexion pour %s", credentials.email)
        raise BadRequest("Invalid Credentials")

    previous_status = user_data.get("status")
    apply_expiry(user_data)
    if user_data["status"] != previous_status:
        db.users.update_one({"_id": user_data["_id"]}, {"$set": {"status": user_data["status"]}})

    if user_data["status"] != schemas.UserStatus.active.value:
        raise Forbidden("Account is inactive. Please contact an administrator.")

    token = create_access_token(str(user_data["_id"]), user_data["role"])
    logger.info("Connexion de %s", user_data["username"])
    return {"token": token, "role": user_data["role"]}


@router.get("/me", response_model=schemas.User)
def read_users_me(
    current_user: schemas.CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_mongo_db),
):
    """Retourne les informations de l'utilisateur actuellement connecté."""
    user_data = db.users.find_one({"_id": to_object_id(current_user.id, "User not found")})
    if user_data is None:
        raise NotFound("User not found")
    return user_helper(user_data)


# --- Gestion des comptes (admin) ---

def _get_user_or_404(db: Database, user_id: str) -> dict:
    user_data = db.users.find_one({"_id": to_object_id(user_id, "User not found")})
    if user_data is None:
        raise NotFound("User not found")
    return user_data


@router.get("/users", response_model=List[schemas.User], dependencies=[Depends(require_admin)])
def list_users(db: Database = Depends(get_mongo_db)):
    return [user_helper(user) for user in db.users.find().sort("createdAt", -1)]


@router.delete("/users/{user_id}", dependencies=[Depends(require_admin)])
def delete_user(user_id: str, db: Database = Depends(get_mongo_db)):
    user_data = _get_user_or_404(db, user_id)
    db.users.delete_one({"_id": user_data["_id"]})
    logger.info("Utilisateur %s supprimé", user_data["username"])
    return {"msg": "User deleted"}


@router.put("/users/{user_id}/reactivate", dependencies=[Depends(require_admin)])
def reactivate_user(user_id: str, reactivation: schemas.Reactivation, db: Database = Depends(get_mongo_db)):
    """Réactive un compte pour `months` mois à partir d'aujourd'hui."""
    user_data = _get_user_or_404(db, user_id)
    save_user_fields(db, user_data, {
        "status": schemas.UserStatus.active.value,
        "expiryDate": add_months(utcnow(), reactivation.months),
    })
    return {"msg": f"User reactivated for {reactivation.months} months."}


@router.put("/users/{user_id}/toggle-status", dependencies=[Depends(require_admin)])
def toggle_user_status(user_id: str, db: Database = Depends(get_mongo_db)):
    """
    Bascule le statut actif/inactif. Un compte expiré reste inactif :
    il faut le réactiver avec une nouvelle durée.
    """
    user_data = _get_user_or_404(db, user_id)
    new_status = (
        schemas.UserStatus.inactive.value
        if user_data.get("status") == schemas.UserStatus.active.value
        else schemas.UserStatus.active.value
    )
    save_user_fields(db, user_data, {"status": new_status})
    return {
        "msg": f"User status changed to {user_data['status']}.",
        "user": user_helper(user_data),
    }


@router.patch("/users/{user_id}/role", response_model=schemas.User, dependencies=[Depends(require_admin)])
def update_user_role(user_id: str, role_update: schemas.UserRoleUpdate, db: Database = Depends(get_mongo_db)):
    """Le nouveau rôle ne s'applique qu'aux tokens émis après la modification."""
    user_data = _get_user_or_404(db, user_id)
    save_user_fields(db, user_data, {"role": role_update.role})
    return user_helper(user_data)
