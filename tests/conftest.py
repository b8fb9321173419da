import pytest

from app import create_app
from config import TestingConfig
from model import db
from storage import get_storage


@pytest.fixture(params=["sql", "memory"])
def app(request):
    app = create_app(TestingConfig, STORAGE_BACKEND=request.param)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user(app, client):
    """Register a user through the API and return (user_json, auth_headers)."""
    counter = {"n": 0}

    def _make(username=None, email=None, password="secret1", name=None, role="user"):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        email = email or f"{username}@x.com"
        resp = client.post("/api/auth/register", json={
            "username": username,
            "password": password,
            "email": email,
            "name": name or username.title(),
        })
        assert resp.status_code == 201, resp.get_json()
        user = resp.get_json()
        if role == "admin":
            with app.app_context():
                get_storage().update_user(user["id"], {"role": "admin"})
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        body = resp.get_json()
        return body["user"], bearer(body["token"])

    return _make


TASK = {
    "title": "Buy milk",
    "priority": "low",
    "dueDate": "2024-01-01",
    "tag": "Shopping",
}
