import logging

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

import schemas
from database import get_mongo_db
from dependencies import existing_document, get_active_user, get_current_user, owner_or_admin, require_admin
from errors import BadRequest, Conflict, Expired, NotFound
from utils.dates import utcnow
from utils.mongo import populate, populate_one, serialize, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()

CREATOR_FIELDS = ["username"]
poll_admin_only = owner_or_admin("polls", "Poll", owner_field=None)
poll_for_vote = existing_document("polls", "Poll")


@router.get("/admin", summary="Tous les sondages (admin)", dependencies=[Depends(require_admin)])
def list_all_polls(db: Database = Depends(get_mongo_db)):
    polls = list(db.polls.find().sort("createdAt", -1))
    return serialize(populate(db, polls, "createdBy", "users", CREATOR_FIELDS))


@router.get("", summary="Sondages ouverts auxquels l'utilisateur n'a pas encore répondu")
def list_open_polls(
    db: Database = Depends(get_mongo_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    user_id = to_object_id(current_user.id, "User not found")
    polls = list(
        db.polls.find({"expiresAt": {"$gt": utcnow()}, "votedBy": {"$ne": user_id}}).sort("createdAt", -1)
    )
    return serialize(populate(db, polls, "createdBy", "users", CREATOR_FIELDS))


@router.get("/{item_id}", summary="Obtenir un sondage", dependencies=[Depends(get_current_user)])
def get_poll(item_id: str, db: Database = Depends(get_mongo_db)):
    poll = db.polls.find_one({"_id": to_object_id(item_id, "Poll not found")})
    if poll is None:
        raise NotFound("Poll not found")
    return serialize(populate_one(db, poll, "createdBy", "users", CREATOR_FIELDS))


@router.post("", summary="Créer un sondage")
def create_poll(
    poll: schemas.PollCreate,
    db: Database = Depends(get_mongo_db),
    current_admin: schemas.CurrentUser = Depends(require_admin),
):
    poll_data = {
        "question": poll.question.strip(),
        "options": [{"text": option, "votes": 0} for option in poll.options],
        "expiresAt": poll.expiresAt,
        "createdBy": to_object_id(current_admin.id, "User not found"),
        "votedBy": [],
        "createdAt": utcnow(),
    }
    result = db.polls.insert_one(poll_data)
    poll_data["_id"] = result.inserted_id
    logger.info("Sondage créé: '%s'", poll_data["question"])
    return serialize(poll_data)


@router.put("/{item_id}/vote", summary="Voter pour une option")
def vote_poll(
    vote: schemas.Vote,
    poll: dict = Depends(poll_for_vote),
    current_user: schemas.CurrentUser = Depends(get_active_user),
    db: Database = Depends(get_mongo_db),
):
    """
    Le vote et l'ajout de l'utilisateur à votedBy forment une seule mise à jour
    conditionnelle : deux requêtes simultanées du même utilisateur ne peuvent
    pas compter deux voix.
    """
    poll_id = poll["_id"]
    now = utcnow()
    user_id = ObjectId(current_user.id)
    if poll["expiresAt"] <= now:
        raise Expired("This poll has expired")
    if user_id in poll.get("votedBy", []):
        raise Conflict("You have already voted on this poll")

    option_index = vote.optionId
    if option_index < 0 or option_index >= len(poll["options"]):
        raise BadRequest("Invalid option")

    updated = db.polls.find_one_and_update(
        {"_id": poll_id, "votedBy": {"$ne": user_id}, "expiresAt": {"$gt": now}},
        {
            "$inc": {f"options.{option_index}.votes": 1},
            "$addToSet": {"votedBy": user_id},
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # La condition a échoué entre la lecture et l'écriture : on requalifie l'échec
        current = db.polls.find_one({"_id": poll_id}, {"votedBy": 1})
        if current is None:
            raise NotFound("Poll not found")
        if user_id in current.get("votedBy", []):
            raise Conflict("You have already voted on this poll")
        raise Expired("This poll has expired")

    logger.info("Vote de %s sur le sondage %s (option %d)", current_user.id, poll_id, option_index)
    return serialize(updated)


@router.delete("/{item_id}", summary="Supprimer un sondage")
def delete_poll(poll: dict = Depends(poll_admin_only), db: Database = Depends(get_mongo_db)):
    db.polls.delete_one({"_id": poll["_id"]})
    return {"msg": "Poll removed"}
