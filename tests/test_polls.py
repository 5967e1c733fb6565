from datetime import timedelta

import pytest
from bson import ObjectId

from routers import polls
from utils.dates import utcnow


@pytest.fixture
def poll(client, admin):
    expires_at = (utcnow() + timedelta(days=2)).isoformat()
    response = client.post(
        "/api/polls",
        json={"question": "Next meetup venue?", "options": ["Hall A", "Hall B"], "expiresAt": expires_at},
        headers=admin["headers"],
    )
    assert response.status_code == 200
    return response.json()


def test_create_poll(poll, admin):
    assert poll["options"] == [{"text": "Hall A", "votes": 0}, {"text": "Hall B", "votes": 0}]
    assert poll["votedBy"] == []
    assert poll["createdBy"] == admin["id"]


def test_create_poll_requires_admin_and_two_options(client, admin, member):
    body = {"question": "?", "options": ["Only one"], "expiresAt": "2099-01-01T00:00:00"}

    assert client.post("/api/polls", json=body, headers=member["headers"]).status_code == 403
    assert client.post("/api/polls", json=body, headers=admin["headers"]).status_code == 400


def test_vote_scenario(client, db, poll, member):
    url = f"/api/polls/{poll['id']}/vote"

    first = client.put(url, json={"optionId": 0}, headers=member["headers"])
    assert first.status_code == 200
    assert [option["votes"] for option in first.json()["options"]] == [1, 0]
    assert first.json()["votedBy"] == [member["id"]]

    again = client.put(url, json={"optionId": 1}, headers=member["headers"])
    assert again.status_code == 409
    assert again.json() == {"msg": "You have already voted on this poll"}

    stored = db.polls.find_one({"_id": ObjectId(poll["id"])})
    assert [option["votes"] for option in stored["options"]] == [1, 0]


def test_vote_with_invalid_option(client, db, poll, member):
    response = client.put(f"/api/polls/{poll['id']}/vote", json={"optionId": 5}, headers=member["headers"])

    assert response.status_code == 400
    assert response.json() == {"msg": "Invalid option"}
    stored = db.polls.find_one({"_id": ObjectId(poll["id"])})
    assert [option["votes"] for option in stored["options"]] == [0, 0]
    assert stored["votedBy"] == []


def test_vote_accepts_option_index_alias(client, poll, member):
    response = client.put(f"/api/polls/{poll['id']}/vote", json={"optionIndex": 1}, headers=member["headers"])

    assert response.status_code == 200
    assert [option["votes"] for option in response.json()["options"]] == [0, 1]


def test_vote_on_expired_poll(client, db, admin, member):
    poll_id = db.polls.insert_one({
        "question": "Too late?",
        "options": [{"text": "yes", "votes": 0}, {"text": "no", "votes": 0}],
        "expiresAt": utcnow() - timedelta(minutes=1),
        "votedBy": [],
        "createdBy": admin["_id"],
        "createdAt": utcnow() - timedelta(days=1),
    }).inserted_id

    response = client.put(f"/api/polls/{poll_id}/vote", json={"optionId": 0}, headers=member["headers"])

    assert response.status_code == 410
    assert response.json() == {"msg": "This poll has expired"}


def test_vote_on_missing_poll(client, member):
    response = client.put(f"/api/polls/{ObjectId()}/vote", json={"optionId": 0}, headers=member["headers"])

    assert response.status_code == 404


def test_open_polls_exclude_voted_ones(client, poll, member, other_member):
    client.put(f"/api/polls/{poll['id']}/vote", json={"optionId": 0}, headers=member["headers"])

    assert client.get("/api/polls", headers=member["headers"]).json() == []
    open_for_bob = client.get("/api/polls", headers=other_member["headers"]).json()
    assert [item["id"] for item in open_for_bob] == [poll["id"]]
    assert open_for_bob[0]["createdBy"]["username"] == "admin"


def test_poll_routes_require_authentication(client, poll):
    assert client.get("/api/polls").status_code == 401
    assert client.get(f"/api/polls/{poll['id']}").status_code == 401


def test_admin_listing_and_delete(client, db, poll, admin, member):
    assert client.get("/api/polls/admin", headers=member["headers"]).status_code == 403
    assert len(client.get("/api/polls/admin", headers=admin["headers"]).json()) == 1

    response = client.delete(f"/api/polls/{poll['id']}", headers=admin["headers"])
    assert response.json() == {"msg": "Poll removed"}
    assert db.polls.count_documents({}) == 0


def test_missing_poll_reported_before_body_validation(client, member):
    response = client.put(f"/api/polls/{ObjectId()}/vote", json={"optionId": "x"}, headers=member["headers"])

    assert response.status_code == 404
    assert response.json() == {"msg": "Poll not found"}


def test_concurrent_second_vote_is_not_counted(app, client, db, poll, member):
    # Lecture faite avant que le premier vote du même utilisateur soit enregistré
    stale = db.polls.find_one({"_id": ObjectId(poll["id"])})
    client.put(f"/api/polls/{poll['id']}/vote", json={"optionId": 0}, headers=member["headers"])
    app.dependency_overrides[polls.poll_for_vote] = lambda: stale

    response = client.put(f"/api/polls/{poll['id']}/vote", json={"optionId": 1}, headers=member["headers"])

    assert response.status_code == 409
    assert response.json() == {"msg": "You have already voted on this poll"}
    stored = db.polls.find_one({"_id": stale["_id"]})
    assert [option["votes"] for option in stored["options"]] == [1, 0]
    assert stored["votedBy"] == [member["_id"]]


def test_poll_expiring_between_read_and_write(app, client, db, poll, member):
    stale = db.polls.find_one({"_id": ObjectId(poll["id"])})
    db.polls.update_one({"_id": stale["_id"]}, {"$set": {"expiresAt": utcnow() - timedelta(seconds=1)}})
    app.dependency_overrides[polls.poll_for_vote] = lambda: stale

    response = client.put(f"/api/polls/{poll['id']}/vote", json={"optionId": 0}, headers=member["headers"])

    assert response.status_code == 410
    stored = db.polls.find_one({"_id": stale["_id"]})
    assert [option["votes"] for option in stored["options"]] == [0, 0]
    assert stored["votedBy"] == []
