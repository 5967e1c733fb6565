import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

import schemas
from database import get_mongo_db
from dependencies import owner_or_admin, require_admin
from errors import BadRequest, NotFound, ServerError
from utils import storage
from utils.dates import utcnow
from utils.mongo import populate, populate_one, serialize, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()

CREATOR_FIELDS = ["username"]
update_admin_only = owner_or_admin("updates", "Update", owner_field=None)


def update_document_fields(payload) -> tuple:
    """
    Traduit le corps de requête en opérations MongoDB ($set, $unset).
    redirectUrl n'existe que pour le type 'blogs' : pour tout autre type
    il est retiré du document, y compris lors d'un changement de type.
    """
    fields = payload.model_dump()
    unset = {}
    if payload.type != schemas.UpdateType.blogs.value:
        fields.pop("redirectUrl", None)
        unset["redirectUrl"] = ""
    return fields, unset


@router.get("", summary="Lister les actualités")
def list_updates(type: Optional[schemas.UpdateType] = None, db: Database = Depends(get_mongo_db)):
    query = {"type": type.value} if type else {}
    updates = list(db.updates.find(query).sort("createdAt", -1))
    return serialize(populate(db, updates, "createdBy", "users", CREATOR_FIELDS))


@router.get("/{item_id}", summary="Obtenir une actualité par son ID")
def get_update(item_id: str, db: Database = Depends(get_mongo_db)):
    update = db.updates.find_one({"_id": to_object_id(item_id, "Update not found")})
    if update is None:
        raise NotFound("Update not found")
    return serialize(populate_one(db, update, "createdBy", "users", CREATOR_FIELDS))


@router.post("", summary="Créer une actualité")
def create_update(
    body: schemas.UpdatePayload,
    db: Database = Depends(get_mongo_db),
    current_admin: schemas.CurrentUser = Depends(require_admin),
):
    payload = body.root
    fields, _ = update_document_fields(payload)
    fields["createdBy"] = to_object_id(current_admin.id, "User not found")
    fields["createdAt"] = utcnow()
    result = db.updates.insert_one(fields)
    fields["_id"] = result.inserted_id
    logger.info("Actualité '%s' (%s) publiée", payload.title, payload.type)
    return serialize(fields)


@router.put("/{item_id}", summary="Mettre à jour une actualité")
def update_update(
    body: schemas.UpdatePayload,
    update: dict = Depends(update_admin_only),
    db: Database = Depends(get_mongo_db),
):
    fields, unset = update_document_fields(body.root)
    operations = {"$set": fields}
    if unset:
        operations["$unset"] = unset
    updated = db.updates.find_one_and_update(
        {"_id": update["_id"]},
        operations,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Update not found")
    return serialize(updated)


@router.delete("/{item_id}", summary="Supprimer une actualité")
def delete_update(update: dict = Depends(update_admin_only), db: Database = Depends(get_mongo_db)):
    db.updates.delete_one({"_id": update["_id"]})
    return {"msg": "Update removed"}


@router.post("/{item_id}/image", summary="Associer une image à une actualité")
def upload_update_image(
    image: UploadFile = File(...),
    update: dict = Depends(update_admin_only),
    db: Database = Depends(get_mongo_db),
):
    if image.content_type not in storage.ALLOWED_CONTENT_TYPES:
        raise BadRequest(f"Unsupported file type: {image.filename}")
    try:
        image_url = storage.upload_image(image, folder="updates")
    except storage.StorageError:
        logger.exception("Échec de l'upload pour l'actualité %s", update["_id"])
        raise ServerError()

    updated = db.updates.find_one_and_update(
        {"_id": update["_id"]},
        {"$set": {"imageUrl": image_url}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Update not found")
    return serialize(updated)
