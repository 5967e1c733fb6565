from datetime import datetime, timedelta, timezone

from bson import ObjectId

import schemas
from dependencies import authorize
from utils.accounts import apply_expiry
from utils.dates import add_months, to_naive_utc
from utils.mongo import serialize


def test_add_months_clamps_day():
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert add_months(datetime(2023, 11, 15), 3) == datetime(2024, 2, 15)


def test_to_naive_utc():
    aware = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    assert to_naive_utc(aware) == datetime(2030, 1, 1, 10, 0)
    assert to_naive_utc(datetime(2030, 1, 1)) == datetime(2030, 1, 1)


def test_apply_expiry():
    now = datetime(2030, 6, 1)
    expired = {"status": "active", "expiryDate": now - timedelta(seconds=1)}
    valid = {"status": "active", "expiryDate": now + timedelta(days=1)}

    assert apply_expiry(expired, now)["status"] == "inactive"
    assert apply_expiry(valid, now)["status"] == "active"


def test_authorize():
    owner_id = ObjectId()
    resource = {"owner": owner_id}
    owner = schemas.CurrentUser(id=str(owner_id), role="member")
    stranger = schemas.CurrentUser(id=str(ObjectId()), role="member")
    admin = schemas.CurrentUser(id=str(ObjectId()), role="admin")

    assert authorize(resource, owner)
    assert not authorize(resource, stranger)
    assert authorize(resource, admin)
    assert not authorize(resource, owner, owner_field=None)
    assert authorize(resource, admin, owner_field=None)


def test_serialize_renames_ids_and_hides_password():
    ref = ObjectId()
    document = {"_id": ref, "password": "hash", "friends": [ref], "owner": {"_id": ref, "username": "x"}}

    assert serialize(document) == {"id": str(ref), "friends": [str(ref)], "owner": {"id": str(ref), "username": "x"}}
