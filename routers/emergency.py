from fastapi import APIRouter, Depends
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

import schemas
from database import get_mongo_db
from dependencies import owner_or_admin, require_admin
from errors import NotFound
from utils.mongo import serialize, to_object_id

router = APIRouter()

# Les contacts d'urgence sont globaux : pas de propriétaire, admin uniquement
contact_admin_only = owner_or_admin("emergency_contacts", "Emergency contact", owner_field=None)


@router.get("", summary="Lister les contacts d'urgence")
def list_contacts(db: Database = Depends(get_mongo_db)):
    contacts = db.emergency_contacts.find().sort([("category", ASCENDING), ("name", ASCENDING)])
    return serialize(list(contacts))


@router.get("/{item_id}", summary="Obtenir un contact d'urgence")
def get_contact(item_id: str, db: Database = Depends(get_mongo_db)):
    contact = db.emergency_contacts.find_one({"_id": to_object_id(item_id, "Emergency contact not found")})
    if contact is None:
        raise NotFound("Emergency contact not found")
    return serialize(contact)


@router.post("", summary="Créer un contact d'urgence", dependencies=[Depends(require_admin)])
def create_contact(contact: schemas.EmergencyContactCreate, db: Database = Depends(get_mongo_db)):
    contact_data = contact.model_dump()
    result = db.emergency_contacts.insert_one(contact_data)
    contact_data["_id"] = result.inserted_id
    return serialize(contact_data)


@router.put("/{item_id}", summary="Mettre à jour un contact d'urgence")
def update_contact(
    contact_update: schemas.EmergencyContactCreate,
    contact: dict = Depends(contact_admin_only),
    db: Database = Depends(get_mongo_db),
):
    updated = db.emergency_contacts.find_one_and_update(
        {"_id": contact["_id"]},
        {"$set": contact_update.model_dump()},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Emergency contact not found")
    return serialize(updated)


@router.delete("/{item_id}", summary="Supprimer un contact d'urgence")
def delete_contact(contact: dict = Depends(contact_admin_only), db: Database = Depends(get_mongo_db)):
    db.emergency_contacts.delete_one({"_id": contact["_id"]})
    return {"msg": "Emergency contact removed"}
