CONTACT = {"name": "City Fire Station", "number": "101", "category": "Fire"}


def test_contacts_are_admin_managed(client, member):
    assert client.post("/api/emergency", json=CONTACT).status_code == 401
    assert client.post("/api/emergency", json=CONTACT, headers=member["headers"]).status_code == 403


def test_public_listing_sorted_by_category_then_name(client, admin):
    for contact in (
        {"name": "Zed Plumbing", "number": "1", "category": "Plumber"},
        CONTACT,
        {"name": "Ambulance North", "number": "108", "category": "Ambulance"},
        {"name": "Ambulance East", "number": "109", "category": "Ambulance"},
    ):
        assert client.post("/api/emergency", json=contact, headers=admin["headers"]).status_code == 200

    names = [contact["name"] for contact in client.get("/api/emergency").json()]

    assert names == ["Ambulance East", "Ambulance North", "City Fire Station", "Zed Plumbing"]


def test_invalid_category_rejected(client, admin):
    response = client.post("/api/emergency", json=dict(CONTACT, category="Dragon"), headers=admin["headers"])

    assert response.status_code == 400


def test_update_and_delete_contact(client, db, admin, member):
    contact = client.post("/api/emergency", json=CONTACT, headers=admin["headers"]).json()
    url = f"/api/emergency/{contact['id']}"

    assert client.put(url, json=dict(CONTACT, number="112"), headers=member["headers"]).status_code == 403

    updated = client.put(url, json=dict(CONTACT, number="112"), headers=admin["headers"])
    assert updated.json()["number"] == "112"
    assert client.get(url).json()["number"] == "112"

    assert client.delete(url, headers=admin["headers"]).json() == {"msg": "Emergency contact removed"}
    assert db.emergency_contacts.count_documents({}) == 0
