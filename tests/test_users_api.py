from conftest import bearer
from storage import get_storage


def test_get_profile(client, make_user):
    alice, headers = make_user("alice")

    resp = client.get("/api/users/profile", headers=headers)

    assert resp.status_code == 200
    assert resp.get_json()["username"] == alice["username"]


def test_update_profile(client, make_user):
    _, headers = make_user("alice")

    resp = client.put("/api/users/profile", headers=headers, json={
        "name": "Alice Liddell",
        "profilePicture": "https://pics/alice.png",
    })

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["name"] == "Alice Liddell"
    assert body["profilePicture"] == "https://pics/alice.png"
    assert body["username"] == "alice"


def test_update_profile_rejects_taken_username(client, make_user):
    _, headers = make_user("alice")
    make_user("bob")

    resp = client.put("/api/users/profile", headers=headers, json={"username": "bob"})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Username already taken"


def test_update_profile_needs_a_field(client, make_user):
    _, headers = make_user("alice")
    assert client.put("/api/users/profile", headers=headers, json={}).status_code == 400


def test_change_password(client, make_user):
    _, headers = make_user("alice", email="a@x.com", password="secret1")

    wrong = client.post("/api/users/change-password", headers=headers, json={
        "currentPassword": "nope-nope",
        "newPassword": "secret2",
    })
    assert wrong.status_code == 401

    ok = client.post("/api/users/change-password", headers=headers, json={
        "currentPassword": "secret1",
        "newPassword": "secret2",
    })
    assert ok.status_code == 200
    assert client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret2"}).status_code == 200


def test_change_password_validates_length(client, make_user):
    _, headers = make_user("alice")

    resp = client.post("/api/users/change-password", headers=headers, json={
        "currentPassword": "secret1",
        "newPassword": "abc",
    })

    assert resp.status_code == 400
    assert "newPassword" in resp.get_json()["errors"]


def test_notifications_are_echoed(client, make_user):
    _, headers = make_user("alice")

    resp = client.put("/api/users/notifications", headers=headers, json={"taskReminders": False})

    assert resp.status_code == 200
    assert resp.get_json() == {"emailNotifications": True, "taskReminders": False, "systemUpdates": False}


def test_account_routes_require_authentication(client):
    assert client.get("/api/users/profile").status_code == 401
    assert client.put("/api/users/profile", json={"name": "x"}).status_code == 401
    assert client.put("/api/users/notifications", json={}).status_code == 401


def test_profile_update_cannot_grant_admin(app, client, make_user):
    alice, headers = make_user("alice")

    resp = client.put("/api/users/profile", headers=headers, json={"name": "Alice", "role": "admin"})

    assert resp.status_code == 200
    assert resp.get_json()["role"] == "user"
    with app.app_context():
        assert get_storage().get_user(alice["id"]).role == "user"
    assert client.get("/api/admin/users", headers=headers).status_code == 403


def test_change_password_revokes_old_tokens(client, make_user):
    _, headers = make_user("alice", password="secret1")

    resp = client.post("/api/users/change-password", headers=headers, json={
        "currentPassword": "secret1",
        "newPassword": "secret2",
    })

    assert client.get("/api/users/profile", headers=headers).status_code == 401
    fresh = bearer(resp.get_json()["token"])
    assert client.get("/api/users/profile", headers=fresh).status_code == 200
