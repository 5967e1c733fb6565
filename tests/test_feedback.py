from datetime import timedelta

import pytest
from bson import ObjectId

from utils.dates import utcnow

QUESTION = {"title": "Website", "description": "How do you like the new site?", "category": "feature"}


@pytest.fixture
def question(client, admin):
    response = client.post("/api/feedback/questions", json=QUESTION, headers=admin["headers"])
    assert response.status_code == 200
    return response.json()


def respond(client, user, question_id, text="Great", rating=5):
    return client.post(
        "/api/feedback/responses",
        json={"feedbackId": question_id, "response": text, "rating": rating},
        headers=user["headers"],
    )


def test_create_question(question):
    assert question["isActive"] is True
    assert question["category"] == "feature"


def test_single_response_per_user(client, db, question, member):
    first = respond(client, member, question["id"])
    assert first.status_code == 200
    assert first.json()["status"] == "pending"

    second = respond(client, member, question["id"], text="Changed my mind")
    assert second.status_code == 409
    assert second.json() == {"msg": "You have already submitted feedback for this question"}
    assert db.feedback_responses.count_documents({}) == 1


def test_rating_out_of_range(client, question, member):
    assert respond(client, member, question["id"], rating=6).status_code == 400


def test_response_to_unknown_question(client, member):
    assert respond(client, member, str(ObjectId())).status_code == 404


def test_response_to_inactive_or_expired_question(client, db, admin, question, member):
    db.feedback_questions.update_one({"_id": ObjectId(question["id"])}, {"$set": {"isActive": False}})
    inactive = respond(client, member, question["id"])
    assert inactive.status_code == 410
    assert inactive.json() == {"msg": "This feedback question is no longer active"}

    expired_id = db.feedback_questions.insert_one({
        "title": "Old",
        "description": "Closed survey",
        "category": "general",
        "isActive": True,
        "expiresAt": utcnow() - timedelta(hours=1),
        "createdBy": admin["_id"],
        "createdAt": utcnow() - timedelta(days=3),
    }).inserted_id
    expired = respond(client, member, str(expired_id))
    assert expired.status_code == 410
    assert expired.json() == {"msg": "This feedback question has expired"}


def test_delete_question_with_responses_deactivates_it(client, db, question, admin, member):
    respond(client, member, question["id"])

    response = client.delete(f"/api/feedback/questions/{question['id']}", headers=admin["headers"])

    assert response.json() == {"msg": "Feedback question deactivated (has responses)"}
    stored = db.feedback_questions.find_one({"_id": ObjectId(question["id"])})
    assert stored["isActive"] is False
    assert client.get("/api/feedback/questions").json() == []


def test_delete_question_without_responses(client, db, question, admin):
    response = client.delete(f"/api/feedback/questions/{question['id']}", headers=admin["headers"])

    assert response.json() == {"msg": "Feedback question removed"}
    assert db.feedback_questions.count_documents({}) == 0


def test_update_question_keeps_unspecified_fields(client, question, admin):
    response = client.put(
        f"/api/feedback/questions/{question['id']}",
        json={"title": "Website v2", "description": "And now?"},
        headers=admin["headers"],
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Website v2"
    assert response.json()["category"] == "feature"
    assert response.json()["isActive"] is True


def test_admin_comment_marks_response_addressed(client, question, admin, member):
    created = respond(client, member, question["id"]).json()
    url = f"/api/feedback/responses/{created['id']}/comment"

    assert client.put(url, json={"adminComment": "Thanks"}, headers=member["headers"]).status_code == 403

    response = client.put(url, json={"adminComment": "Thanks"}, headers=admin["headers"])
    assert response.json()["status"] == "addressed"
    assert response.json()["adminComment"] == "Thanks"

    status = client.put(
        f"/api/feedback/responses/{created['id']}/status", json={"status": "viewed"}, headers=admin["headers"]
    )
    assert status.json()["status"] == "viewed"


def test_admin_views_populate_question_and_author(client, question, admin, member):
    respond(client, member, question["id"])

    everything = client.get("/api/feedback/responses/admin", headers=admin["headers"]).json()
    assert everything[0]["feedbackId"]["title"] == "Website"
    assert everything[0]["createdBy"]["email"] == member["email"]

    per_question = client.get(
        f"/api/feedback/responses/question/{question['id']}", headers=admin["headers"]
    ).json()
    assert len(per_question) == 1

    mine = client.get("/api/feedback/responses/me", headers=member["headers"]).json()
    assert mine[0]["feedbackId"]["description"] == QUESTION["description"]


def test_only_author_or_admin_deletes_response(client, question, member, other_member):
    created = respond(client, member, question["id"]).json()
    url = f"/api/feedback/responses/{created['id']}"

    assert client.delete(url, headers=other_member["headers"]).status_code == 403

    response = client.delete(url, headers=member["headers"])
    assert response.json() == {"msg": "Feedback response removed"}
    assert client.delete(url, headers=member["headers"]).status_code == 404
