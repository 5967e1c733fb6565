import logging

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import schemas
from database import get_mongo_db
from dependencies import get_active_user, get_current_user, owner_or_admin, require_admin
from errors import Conflict, Expired, NotFound
from utils.dates import utcnow
from utils.mongo import populate, serialize, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter()

QUESTION_NOT_FOUND = "Feedback question not found"
RESPONSE_NOT_FOUND = "Feedback response not found"
ALREADY_RESPONDED = "You have already submitted feedback for this question"

question_admin_only = owner_or_admin("feedback_questions", "Feedback question", owner_field=None)
response_owner_or_admin = owner_or_admin("feedback_responses", "Feedback response", owner_field="createdBy")
response_admin_only = owner_or_admin("feedback_responses", "Feedback response", owner_field=None)


# ==========================================
# QUESTIONS (côté admin et public)
# ==========================================

@router.get("/questions/admin", summary="Toutes les questions (admin)", dependencies=[Depends(require_admin)])
def list_all_questions(db: Database = Depends(get_mongo_db)):
    questions = list(db.feedback_questions.find().sort("createdAt", -1))
    return serialize(populate(db, questions, "createdBy", "users", ["username"]))


@router.get("/questions", summary="Questions actives et non expirées")
def list_active_questions(db: Database = Depends(get_mongo_db)):
    query = {
        "isActive": True,
        "$or": [{"expiresAt": {"$gt": utcnow()}}, {"expiresAt": None}],
    }
    return serialize(list(db.feedback_questions.find(query).sort("createdAt", -1)))


@router.get("/questions/{item_id}", summary="Obtenir une question")
def get_question(item_id: str, db: Database = Depends(get_mongo_db)):
    question = db.feedback_questions.find_one({"_id": to_object_id(item_id, QUESTION_NOT_FOUND)})
    if question is None:
        raise NotFound(QUESTION_NOT_FOUND)
    return serialize(question)


@router.post("/questions", summary="Créer une question")
def create_question(
    question: schemas.FeedbackQuestionCreate,
    db: Database = Depends(get_mongo_db),
    current_admin: schemas.CurrentUser = Depends(require_admin),
):
    question_data = question.model_dump()
    question_data["isActive"] = True
    question_data["createdBy"] = to_object_id(current_admin.id, "User not found")
    question_data["createdAt"] = utcnow()
    result = db.feedback_questions.insert_one(question_data)
    question_data["_id"] = result.inserted_id
    return serialize(question_data)


@router.put("/questions/{item_id}", summary="Mettre à jour une question")
def update_question(
    question_update: schemas.FeedbackQuestionUpdate,
    question: dict = Depends(question_admin_only),
    db: Database = Depends(get_mongo_db),
):
    changes = {"title": question_update.title, "description": question_update.description}
    if question_update.category is not None:
        changes["category"] = question_update.category
    if question_update.isActive is not None:
        changes["isActive"] = question_update.isActive
    if question_update.expiresAt is not None:
        changes["expiresAt"] = question_update.expiresAt

    updated = db.feedback_questions.find_one_and_update(
        {"_id": question["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound(QUESTION_NOT_FOUND)
    return serialize(updated)


@router.delete("/questions/{item_id}", summary="Supprimer ou désactiver une question")
def delete_question(question: dict = Depends(question_admin_only), db: Database = Depends(get_mongo_db)):
    """
    Une question qui a déjà reçu des réponses n'est jamais supprimée :
    elle est désactivée pour que les réponses gardent leur référence.
    """
    if db.feedback_responses.count_documents({"feedbackId": question["_id"]}) > 0:
        db.feedback_questions.update_one({"_id": question["_id"]}, {"$set": {"isActive": False}})
        logger.info("Question %s désactivée (réponses existantes)", question["_id"])
        return {"msg": "Feedback question deactivated (has responses)"}

    db.feedback_questions.delete_one({"_id": question["_id"]})
    logger.info("Question %s supprimée", question["_id"])
    return {"msg": "Feedback question removed"}


# ==========================================
# RÉPONSES (côté utilisateur et admin)
# ==========================================

@router.get("/responses/admin", summary="Toutes les réponses (admin)", dependencies=[Depends(require_admin)])
def list_all_responses(db: Database = Depends(get_mongo_db)):
    responses = list(db.feedback_responses.find().sort("createdAt", -1))
    populate(db, responses, "feedbackId", "feedback_questions", ["title", "category"])
    populate(db, responses, "createdBy", "users", ["username", "email"])
    return serialize(responses)


@router.get(
    "/responses/question/{question_id}",
    summary="Réponses à une question (admin)",
    dependencies=[Depends(require_admin)],
)
def list_question_responses(question_id: str, db: Database = Depends(get_mongo_db)):
    query = {"feedbackId": to_object_id(question_id, QUESTION_NOT_FOUND)}
    responses = list(db.feedback_responses.find(query).sort("createdAt", -1))
    return serialize(populate(db, responses, "createdBy", "users", ["username", "email"]))


@router.get("/responses/me", summary="Mes réponses")
def list_my_responses(
    db: Database = Depends(get_mongo_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    query = {"createdBy": to_object_id(current_user.id, "User not found")}
    responses = list(db.feedback_responses.find(query).sort("createdAt", -1))
    return serialize(populate(db, responses, "feedbackId", "feedback_questions", ["title", "description", "category"]))


@router.post("/responses", summary="Répondre à une question")
def submit_response(
    response: schemas.FeedbackResponseCreate,
    db: Database = Depends(get_mongo_db),
    current_user: schemas.CurrentUser = Depends(get_active_user),
):
    """
    Une seule réponse par (question, utilisateur). L'index unique sur
    (feedbackId, createdBy) garantit la règle même en cas de requêtes simultanées.
    """
    question_id = to_object_id(response.feedbackId, QUESTION_NOT_FOUND)
    question = db.feedback_questions.find_one({"_id": question_id})
    if question is None:
        raise NotFound(QUESTION_NOT_FOUND)

    now = utcnow()
    if not question.get("isActive", False):
        raise Expired("This feedback question is no longer active")
    if question.get("expiresAt") is not None and question["expiresAt"] <= now:
        raise Expired("This feedback question has expired")

    user_id = ObjectId(current_user.id)
    if db.feedback_responses.find_one({"feedbackId": question_id, "createdBy": user_id}, {"_id": 1}):
        raise Conflict(ALREADY_RESPONDED)

    response_data = {
        "feedbackId": question_id,
        "response": response.response,
        "rating": response.rating,
        "status": schemas.ResponseStatus.pending.value,
        "createdBy": user_id,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        result = db.feedback_responses.insert_one(response_data)
    except DuplicateKeyError:
        raise Conflict(ALREADY_RESPONDED)
    response_data["_id"] = result.inserted_id
    logger.info("Réponse de %s à la question %s", current_user.id, question_id)
    return serialize(response_data)


def _set_response_fields(db: Database, response_id: ObjectId, changes: dict) -> dict:
    changes["updatedAt"] = utcnow()
    updated = db.feedback_responses.find_one_and_update(
        {"_id": response_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound(RESPONSE_NOT_FOUND)
    return serialize(updated)


@router.put("/responses/{item_id}/comment", summary="Commenter une réponse (admin)")
def comment_response(
    comment: schemas.AdminComment,
    response: dict = Depends(response_admin_only),
    db: Database = Depends(get_mongo_db),
):
    return _set_response_fields(db, response["_id"], {
        "adminComment": comment.adminComment,
        "status": schemas.ResponseStatus.addressed.value,
    })


@router.put("/responses/{item_id}/status", summary="Changer le statut d'une réponse (admin)")
def update_response_status(
    status_update: schemas.ResponseStatusUpdate,
    response: dict = Depends(response_admin_only),
    db: Database = Depends(get_mongo_db),
):
    return _set_response_fields(db, response["_id"], {"status": status_update.status})


@router.delete("/responses/{item_id}", summary="Supprimer une réponse (auteur ou admin)")
def delete_response(response: dict = Depends(response_owner_or_admin), db: Database = Depends(get_mongo_db)):
    db.feedback_responses.delete_one({"_id": response["_id"]})
    return {"msg": "Feedback response removed"}
