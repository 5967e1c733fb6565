import logging
from datetime import timedelta
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import schemas
from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_DAYS
from database import get_mongo_db
from errors import Forbidden, NotFound, Unauthenticated
from utils.dates import utcnow
from utils.mongo import to_object_id

logger = logging.getLogger(__name__)

# --- CONFIGURATION SÉCURITÉ ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# --- FONCTIONS UTILITAIRES ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: str, role: str, expires_delta: timedelta | None = None) -> str:
    expire_time = utcnow() + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode = {"sub": user_id, "role": role, "exp": expire_time}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> schemas.CurrentUser:
    """Vérifie la signature et l'expiration du token, retourne l'identité qu'il porte."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        role = payload.get("role")
        if user_id is None or role is None:
            raise Unauthenticated("Token is not valid")
        return schemas.CurrentUser(id=user_id, role=role)
    except (JWTError, ValueError):
        raise Unauthenticated("Token is not valid")


def authorize(resource: dict, caller: schemas.CurrentUser, owner_field: Optional[str] = "owner") -> bool:
    """
    Prédicat d'autorisation unique : un admin passe toujours, sinon l'appelant
    doit être le propriétaire de la ressource. Une ressource sans propriétaire
    (owner_field=None) est réservée aux admins.
    """
    if caller.is_admin:
        return True
    if owner_field is None:
        return False
    owner = resource.get(owner_field)
    return owner is not None and str(owner) == caller.id


# --- DÉPENDANCES FASTAPI ---

def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> schemas.CurrentUser:
    """Décode le token JWT ; aucune lecture en base (le rôle est celui du token)."""
    if not token:
        raise Unauthenticated()
    return decode_access_token(token)


def get_optional_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[schemas.CurrentUser]:
    """Pour les routes publiques : un token absent ou invalide vaut un visiteur anonyme."""
    if not token:
        return None
    try:
        return decode_access_token(token)
    except Unauthenticated:
        return None


def get_active_user(
    current_user: schemas.CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_mongo_db),
) -> schemas.CurrentUser:
    """Vérifie en base que le compte existe toujours et qu'il est actif."""
    user_data = db.users.find_one({"_id": to_object_id(current_user.id, "User not found")}, {"status": 1})
    if user_data is None:
        raise NotFound("User not found")
    if user_data.get("status") != schemas.UserStatus.active.value:
        raise Forbidden("User is inactive")
    return current_user


def require_admin(current_user: schemas.CurrentUser = Depends(get_current_user)) -> schemas.CurrentUser:
    """Vérifie que l'utilisateur actuel est un administrateur."""
    if not current_user.is_admin:
        raise Forbidden("Access denied. Admins only.")
    return current_user


def owner_or_admin(collection: str, label: str, owner_field: Optional[str] = "owner") -> Callable:
    """
    Fabrique de dépendance pour les routes de mutation :
    1) la ressource existe, sinon 404 ; 2) l'appelant est autorisé, sinon 403.
    Retourne le document chargé.
    """
    not_found_msg = f"{label} not found"

    def dependency(
        item_id: str,
        current_user: schemas.CurrentUser = Depends(get_current_user),
        db: Database = Depends(get_mongo_db),
    ) -> dict:
        document = db[collection].find_one({"_id": to_object_id(item_id, not_found_msg)})
        if document is None:
            raise NotFound(not_found_msg)
        if not authorize(document, current_user, owner_field):
            logger.warning("Accès refusé à %s %s pour l'utilisateur %s", collection, item_id, current_user.id)
            raise Forbidden()
        return document

    return dependency


def existing_document(collection: str, label: str) -> Callable:
    """
    Fabrique de dépendance pour les actions de membre sur une ressource :
    l'appelant est authentifié, puis la ressource doit exister (404).
    Le corps de requête n'est validé qu'après.
    """
    not_found_msg = f"{label} not found"

    def dependency(
        item_id: str,
        current_user: schemas.CurrentUser = Depends(get_current_user),
        db: Database = Depends(get_mongo_db),
    ) -> dict:
        document = db[collection].find_one({"_id": to_object_id(item_id, not_found_msg)})
        if document is None:
            raise NotFound(not_found_msg)
        return document

    return dependency
