from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from errors import NotFound


def to_object_id(value: str, not_found_msg: str) -> ObjectId:
    """
    Convertit un identifiant reçu dans l'URL en ObjectId.
    Un identifiant mal formé est traité comme une ressource inexistante.
    """
    if not ObjectId.is_valid(value):
        raise NotFound(not_found_msg)
    return ObjectId(value)


def serialize(value):
    """Rend un document MongoDB sérialisable en JSON (ObjectId -> str, _id -> id)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        data = {}
        for key, item in value.items():
            if key == "password":
                continue
            data["id" if key == "_id" else key] = serialize(item)
        return data
    return value


def populate(db: Database, docs: List[dict], field: str, collection: str,
             fields: Iterable[str]) -> List[dict]:
    """
    Remplace la référence `field` de chaque document par un sous-document
    {_id, <fields>} lu dans `collection` (équivalent d'un populate mongoose).
    Une référence orpheline devient None.
    """
    ids = {doc.get(field) for doc in docs if isinstance(doc.get(field), ObjectId)}
    if not ids:
        return docs
    projection = {name: 1 for name in fields}
    found = {ref["_id"]: ref for ref in db[collection].find({"_id": {"$in": list(ids)}}, projection)}
    for doc in docs:
        ref = doc.get(field)
        if isinstance(ref, ObjectId):
            doc[field] = found.get(ref)
    return docs


def populate_one(db: Database, doc: Optional[dict], field: str, collection: str,
                 fields: Iterable[str]) -> Optional[dict]:
    if doc is None:
        return None
    return populate(db, [doc], field, collection, fields)[0]
