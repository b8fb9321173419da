"""Python client for the TaskFlow API.

Plays the role of the browser app's data layer: it validates forms with the
shared schemas before sending, keeps the signed-in identity and cached
task/user lists, and drops a cache whenever a mutation touches it so the next
read refetches.
"""

from urllib.parse import parse_qs, urlparse

import httpx

from schemas import (
    AdminUserUpdate,
    LoginInput,
    NotificationPreferences,
    PasswordChange,
    ProfileUpdate,
    RegisterInput,
    TaskFilter,
    TaskForm,
    filter_tasks,
    validate,
)


class ApiError(Exception):
    def __init__(self, status_code, message, errors=None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or {}


class TaskFlowClient:
    def __init__(self, base_url="http://localhost:5000", transport=None, timeout=10.0):
        self.http = httpx.Client(base_url=base_url, transport=transport, timeout=timeout)
        self.token = None
        self.user = None
        self._tasks = None
        self._users = None

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ---------------- Transport ----------------

    def _request(self, method, path, json=None, params=None):
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.http.request(method, path, json=json, params=params, headers=headers)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise ApiError(response.status_code, body.get("message", response.reason_phrase), body.get("errors"))
        return response.json()

    # ---------------- Identity ----------------

    @property
    def is_authenticated(self):
        return self.token is not None

    def register(self, username, password, email, name):
        form = validate(RegisterInput, {"username": username, "password": password, "email": email, "name": name})
        return self._request("POST", "/api/auth/register", json=form.model_dump())

    def login(self, email, password):
        form = validate(LoginInput, {"email": email, "password": password})
        body = self._request("POST", "/api/auth/login", json=form.model_dump())
        self._reset()
        self.token = body["token"]
        self.user = body["user"]
        return self.user

    def complete_oauth_login(self, landing_url):
        """Consume the ``token`` query parameter of the OAuth landing URL."""
        token = parse_qs(urlparse(landing_url).query).get("token", [None])[0]
        if not token:
            raise ApiError(401, "No token in login redirect")
        self._reset()
        self.token = token
        return self.me()

    def me(self):
        self.user = self._request("GET", "/api/auth/me")
        return self.user

    def logout(self):
        if self.token:
            self._request("POST", "/api/auth/logout")
        self._reset()

    def _reset(self):
        self.token = None
        self.user = None
        self._tasks = None
        self._users = None

    def forgot_password(self, email):
        return self._request("POST", "/api/auth/forgot-password", json={"email": email})

    def reset_password(self, token, password):
        return self._request("POST", "/api/auth/reset-password", json={"token": token, "password": password})

    # ---------------- Tasks ----------------

    def tasks(self, refresh=False):
        if self._tasks is None or refresh:
            self._tasks = self._request("GET", "/api/tasks", params={"userId": self.user["id"]})
        return self._tasks

    def filtered_tasks(self, status="all", tag="all", search=""):
        task_filter = validate(TaskFilter, {"status": status, "tag": tag, "search": search})
        return filter_tasks(self.tasks(), task_filter)

    def _task_payload(self, fields):
        return validate(TaskForm, fields).model_dump(by_alias=True)

    def create_task(self, **fields):
        task = self._request("POST", "/api/tasks", json=self._task_payload(fields))
        self._tasks = None
        return task

    def update_task(self, task_id, **fields):
        task = self._request("PUT", f"/api/tasks/{task_id}", json=self._task_payload(fields))
        self._tasks = None
        return task

    def toggle_task(self, task_id):
        task = self._request("PATCH", f"/api/tasks/{task_id}/toggle")
        self._tasks = None
        return task

    def delete_task(self, task_id):
        body = self._request("DELETE", f"/api/tasks/{task_id}")
        self._tasks = None
        return body

    def page_state(self):
        """Dashboard state: ``redirect-to-login``, ``empty`` or ``ready``."""
        if not self.is_authenticated:
            return "redirect-to-login"
        try:
            tasks = self.tasks()
        except ApiError as exc:
            if exc.status_code == 401:
                self._reset()
                return "redirect-to-login"
            raise
        return "ready" if tasks else "empty"

    # ---------------- Account ----------------

    def update_profile(self, **fields):
        form = validate(ProfileUpdate, fields)
        self.user = self._request("PUT", "/api/users/profile", json=form.model_dump(by_alias=True, exclude_none=True))
        return self.user

    def change_password(self, current_password, new_password):
        form = validate(PasswordChange, {"currentPassword": current_password, "newPassword": new_password})
        body = self._request("POST", "/api/users/change-password", json=form.model_dump(by_alias=True, exclude_none=True))
        self.token = body["token"]
        return body

    def update_notifications(self, **prefs):
        form = validate(NotificationPreferences, prefs)
        return self._request("PUT", "/api/users/notifications", json=form.model_dump(by_alias=True))

    # ---------------- Admin ----------------

    def users(self, search="", refresh=False):
        if self._users is None or refresh:
            self._users = self._request("GET", "/api/admin/users")
        term = search.strip().lower()
        if not term:
            return self._users
        return [
            u for u in self._users
            if term in (u.get("name") or "").lower()
            or term in u["email"].lower()
            or term in u["username"].lower()
        ]

    def update_user(self, user_id, **fields):
        form = validate(AdminUserUpdate, fields)
        user = self._request("PUT", f"/api/admin/users/{user_id}", json=form.model_dump(exclude_none=True))
        self._users = None
        return user

    def delete_user(self, user_id):
        body = self._request("DELETE", f"/api/admin/users/{user_id}")
        self._users = None
        return body
