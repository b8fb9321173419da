import httpx
import pytest

import auth
from client import ApiError, TaskFlowClient
from errors import ValidationError
from storage import get_storage


@pytest.fixture()
def api(app):
    with TaskFlowClient("http://testserver", transport=httpx.WSGITransport(app=app)) as api:
        yield api


def _signed_in(api, username="alice", email="a@x.com", password="secret1"):
    api.register(username, password, email, username.title())
    return api.login(email, password)


def test_page_state_flow(api):
    assert api.page_state() == "redirect-to-login"

    _signed_in(api)
    assert api.page_state() == "empty"

    api.create_task(title="Buy milk", priority="low", due_date="2024-01-01", tag="Shopping")
    assert api.page_state() == "ready"


def test_task_cache_is_invalidated_by_mutations(app, api):
    user = _signed_in(api)
    first = api.create_task(title="Buy milk", priority="low", due_date="2024-01-01", tag="Shopping")
    assert len(api.tasks()) == 1

    # A write that bypasses the client is invisible until a refetch
    with app.app_context():
        get_storage().create_task({
            "title": "Walk dog", "priority": "medium", "due_date": "2024-01-02", "tag": "Personal", "user_id": user["id"],
        })
    assert len(api.tasks()) == 1
    assert len(api.tasks(refresh=True)) == 2

    api.toggle_task(first["id"])
    assert [t["completed"] for t in api.tasks()] == [True, False]

    api.update_task(first["id"], title="Buy oat milk", priority="high", due_date="2024-01-01", tag="Urgent", completed=True)
    assert api.tasks()[0]["title"] == "Buy oat milk"

    api.delete_task(first["id"])
    assert [t["title"] for t in api.tasks()] == ["Walk dog"]


def test_filtered_tasks(api):
    _signed_in(api)
    api.create_task(title="Buy milk", priority="low", due_date="2024-01-01", tag="Shopping", completed=True)
    api.create_task(title="Write report", priority="high", due_date="2024-01-02", tag="Work")

    assert [t["title"] for t in api.filtered_tasks(status="pending")] == ["Write report"]
    assert [t["title"] for t in api.filtered_tasks(tag="Shopping")] == ["Buy milk"]
    assert [t["title"] for t in api.filtered_tasks(search="REPORT")] == ["Write report"]


def test_invalid_form_never_reaches_server(api, monkeypatch):
    _signed_in(api)

    def fail(*args, **kwargs):
        raise AssertionError("request should not be sent")

    monkeypatch.setattr(api.http, "request", fail)
    with pytest.raises(ValidationError):
        api.create_task(title="", priority="someday", due_date="", tag="Work")


def test_server_errors_raise_api_error(api):
    api.register("alice", "secret1", "a@x.com", "Alice")

    with pytest.raises(ApiError) as exc_info:
        api.register("alice", "secret1", "a@x.com", "Alice")
    assert exc_info.value.status_code == 400

    with pytest.raises(ApiError) as exc_info:
        api.login("a@x.com", "wrong-pass")
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid email or password"
    assert not api.is_authenticated


def test_logout_clears_identity(api):
    _signed_in(api)
    api.tasks()

    api.logout()

    assert api.user is None
    assert api.page_state() == "redirect-to-login"


def test_complete_oauth_login(app, api, monkeypatch):
    monkeypatch.setattr(auth, "fetch_google_profile", lambda: {
        "id": "g-1", "email": "g@x.com", "name": "Grace", "picture": None,
    })
    landing = app.test_client().get("/api/auth/oauth/callback").headers["Location"]

    user = api.complete_oauth_login(landing)

    assert user["email"] == "g@x.com"
    assert api.page_state() == "empty"


def test_complete_oauth_login_without_token(api):
    with pytest.raises(ApiError):
        api.complete_oauth_login("http://client.test/login-success")


def test_account_calls(api):
    _signed_in(api)

    assert api.update_profile(name="Alice L.")["name"] == "Alice L."
    assert api.user["name"] == "Alice L."
    api.change_password("secret1", "secret2")
    assert api.update_notifications(system_updates=True)["systemUpdates"] is True

    api.logout()
    assert api.login("a@x.com", "secret2")["username"] == "alice"


def test_admin_user_cache(app, api):
    admin = _signed_in(api, "root", "root@x.com")
    with app.app_context():
        get_storage().update_user(admin["id"], {"role": "admin"})
    other = TaskFlowClient("http://testserver", transport=httpx.WSGITransport(app=app))
    bob = other.register("bob", "secret1", "bob@x.com", "Bob Builder")
    other.close()

    assert [u["username"] for u in api.users()] == ["root", "bob"]
    assert [u["username"] for u in api.users(search="builder")] == ["bob"]

    api.update_user(bob["id"], role="admin")
    assert api.users()[1]["role"] == "admin"

    api.delete_user(bob["id"])
    assert [u["username"] for u in api.users()] == ["root"]

    with pytest.raises(ApiError) as exc_info:
        api.delete_user(admin["id"])
    assert exc_info.value.status_code == 400
