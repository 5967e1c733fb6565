import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

import schemas
from database import get_mongo_db
from dependencies import get_active_user, owner_or_admin
from errors import BadRequest, Conflict, NotFound, ServerError
from utils import storage
from utils.dates import utcnow
from utils.mongo import populate, populate_one, serialize, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()

OWNER_FIELDS = ["username"]
industry_owner_or_admin = owner_or_admin("industries", "Industry", owner_field="owner")


def _name_taken(db: Database, name: str, exclude_id=None) -> bool:
    query = {"name": name}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db.industries.find_one(query, {"_id": 1}) is not None


@router.get("", summary="Lister les industries")
def list_industries(db: Database = Depends(get_mongo_db)):
    industries = list(db.industries.find().sort("createdAt", -1))
    return serialize(populate(db, industries, "owner", "users", OWNER_FIELDS))


@router.get("/{item_id}", summary="Obtenir une industrie par son ID")
def get_industry(item_id: str, db: Database = Depends(get_mongo_db)):
    industry = db.industries.find_one({"_id": to_object_id(item_id, "Industry not found")})
    if industry is None:
        raise NotFound("Industry not found")
    return serialize(populate_one(db, industry, "owner", "users", OWNER_FIELDS))


@router.post("", summary="Créer une industrie")
def create_industry(
    industry: schemas.IndustryCreate,
    db: Database = Depends(get_mongo_db),
    current_user: schemas.CurrentUser = Depends(get_active_user),
):
    """L'appelant devient le propriétaire de l'industrie créée."""
    if _name_taken(db, industry.name):
        raise Conflict("Industry already exists")

    industry_data = industry.model_dump()
    industry_data["owner"] = to_object_id(current_user.id, "User not found")
    industry_data["createdAt"] = utcnow()
    result = db.industries.insert_one(industry_data)
    industry_data["_id"] = result.inserted_id
    logger.info("Industrie '%s' créée par %s", industry.name, current_user.id)
    return serialize(industry_data)


@router.put("/{item_id}", summary="Mettre à jour une industrie (propriétaire ou admin)")
def update_industry(
    industry_update: schemas.IndustryUpdate,
    industry: dict = Depends(industry_owner_or_admin),
    db: Database = Depends(get_mongo_db),
):
    # Le propriétaire n'est jamais modifiable par cette route
    update_data = industry_update.model_dump(exclude_unset=True)
    if not update_data:
        raise BadRequest("No data to update")
    if "name" in update_data and _name_taken(db, update_data["name"], exclude_id=industry["_id"]):
        raise Conflict("Industry already exists")

    updated = db.industries.find_one_and_update(
        {"_id": industry["_id"]},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Industry not found")
    return serialize(updated)


@router.delete("/{item_id}", summary="Supprimer une industrie (propriétaire ou admin)")
def delete_industry(industry: dict = Depends(industry_owner_or_admin), db: Database = Depends(get_mongo_db)):
    db.industries.delete_one({"_id": industry["_id"]})
    logger.info("Industrie '%s' supprimée", industry.get("name"))
    return {"msg": "Industry removed"}


@router.post("/{item_id}/images", summary="Ajouter des images à une industrie")
def upload_industry_images(
    files: List[UploadFile] = File(...),
    industry: dict = Depends(industry_owner_or_admin),
    db: Database = Depends(get_mongo_db),
):
    """Téléverse les images vers le stockage objet et ajoute leurs URLs au document."""
    for file in files:
        if file.content_type not in storage.ALLOWED_CONTENT_TYPES:
            raise BadRequest(f"Unsupported file type: {file.filename}")

    urls = []
    for file in files:
        try:
            urls.append(storage.upload_image(file, folder="industries"))
        except storage.StorageError:
            logger.exception("Échec de l'upload pour l'industrie %s", industry["_id"])
            raise ServerError()

    updated = db.industries.find_one_and_update(
        {"_id": industry["_id"]},
        {"$push": {"images": {"$each": urls}}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Industry not found")
    return serialize(updated)
