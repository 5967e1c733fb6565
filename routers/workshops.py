import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

import schemas
from database import get_mongo_db
from dependencies import existing_document, get_active_user, get_optional_user, owner_or_admin, require_admin
from errors import BadRequest, CapacityExceeded, Conflict, NotFound
from utils.dates import utcnow
from utils.mongo import populate, populate_one, serialize, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()

CREATOR_FIELDS = ["username"]
workshop_admin_only = owner_or_admin("workshops", "Workshop", owner_field=None)
workshop_for_registration = existing_document("workshops", "Workshop")


def workshop_helper(workshop: dict, current_user: Optional[schemas.CurrentUser]) -> dict:
    """
    Sérialise un atelier. La liste des inscrits n'est visible que des admins ;
    les autres appelants voient seatsLeft et, s'ils sont identifiés, isRegistered.
    """
    data = serialize(workshop)
    registered = data.get("registeredUsers", [])
    data["seatsLeft"] = max(workshop["capacity"] - len(registered), 0)
    if current_user is not None:
        data["isRegistered"] = current_user.id in registered
    if current_user is None or not current_user.is_admin:
        data.pop("registeredUsers", None)
    return data


@router.get("", summary="Lister les ateliers")
def list_workshops(
    db: Database = Depends(get_mongo_db),
    current_user: Optional[schemas.CurrentUser] = Depends(get_optional_user),
):
    workshops = list(db.workshops.find().sort("date", ASCENDING))
    populate(db, workshops, "createdBy", "users", CREATOR_FIELDS)
    return [workshop_helper(workshop, current_user) for workshop in workshops]


@router.get("/{item_id}", summary="Obtenir un atelier")
def get_workshop(
    item_id: str,
    db: Database = Depends(get_mongo_db),
    current_user: Optional[schemas.CurrentUser] = Depends(get_optional_user),
):
    workshop = db.workshops.find_one({"_id": to_object_id(item_id, "Workshop not found")})
    if workshop is None:
        raise NotFound("Workshop not found")
    return workshop_helper(populate_one(db, workshop, "createdBy", "users", CREATOR_FIELDS), current_user)


@router.post("", summary="Créer un atelier")
def create_workshop(
    workshop: schemas.WorkshopCreate,
    db: Database = Depends(get_mongo_db),
    current_admin: schemas.CurrentUser = Depends(require_admin),
):
    workshop_data = workshop.model_dump()
    workshop_data["registeredUsers"] = []
    workshop_data["createdBy"] = to_object_id(current_admin.id, "User not found")
    workshop_data["createdAt"] = utcnow()
    result = db.workshops.insert_one(workshop_data)
    workshop_data["_id"] = result.inserted_id
    logger.info("Atelier créé: '%s' (%d places)", workshop.title, workshop.capacity)
    return workshop_helper(workshop_data, current_admin)


@router.put("/{item_id}", summary="Mettre à jour un atelier")
def update_workshop(
    workshop_update: schemas.WorkshopCreate,
    workshop: dict = Depends(workshop_admin_only),
    current_admin: schemas.CurrentUser = Depends(require_admin),
    db: Database = Depends(get_mongo_db),
):
    capacity = workshop_update.capacity
    # La capacité ne peut pas descendre sous le nombre d'inscrits
    updated = db.workshops.find_one_and_update(
        {"_id": workshop["_id"], f"registeredUsers.{capacity}": {"$exists": False}},
        {"$set": workshop_update.model_dump()},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        if db.workshops.find_one({"_id": workshop["_id"]}, {"_id": 1}) is None:
            raise NotFound("Workshop not found")
        raise BadRequest("Capacity cannot be lower than the number of registered users")
    return workshop_helper(updated, current_admin)


@router.delete("/{item_id}", summary="Supprimer un atelier")
def delete_workshop(workshop: dict = Depends(workshop_admin_only), db: Database = Depends(get_mongo_db)):
    db.workshops.delete_one({"_id": workshop["_id"]})
    return {"msg": "Workshop removed"}


@router.post("/{item_id}/register", summary="S'inscrire à un atelier")
def register_for_workshop(
    workshop: dict = Depends(workshop_for_registration),
    current_user: schemas.CurrentUser = Depends(get_active_user),
    db: Database = Depends(get_mongo_db),
):
    """
    L'inscription est une seule mise à jour conditionnelle : l'utilisateur
    n'est pas déjà inscrit et la place d'index capacity-1 est encore libre.
    """
    workshop_id = workshop["_id"]
    user_id = ObjectId(current_user.id)
    registered = workshop.get("registeredUsers", [])
    capacity = workshop["capacity"]
    if user_id in registered:
        raise Conflict("User already registered")
    if len(registered) >= capacity:
        raise CapacityExceeded()

    updated = db.workshops.find_one_and_update(
        {
            "_id": workshop_id,
            "capacity": capacity,
            "registeredUsers": {"$ne": user_id},
            f"registeredUsers.{capacity - 1}": {"$exists": False},
        },
        {"$addToSet": {"registeredUsers": user_id}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = db.workshops.find_one({"_id": workshop_id}, {"registeredUsers": 1})
        if current is None:
            raise NotFound("Workshop not found")
        if user_id in current.get("registeredUsers", []):
            raise Conflict("User already registered")
        raise CapacityExceeded()

    logger.info("Inscription de %s à l'atelier %s", current_user.id, workshop_id)
    return workshop_helper(updated, current_user)
