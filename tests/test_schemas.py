from types import SimpleNamespace

import pytest

from errors import ValidationError
from schemas import (
    AdminUserUpdate,
    PasswordChange,
    RegisterInput,
    TaskFilter,
    TaskForm,
    filter_tasks,
    validate,
)


def test_register_lists_every_bad_field():
    with pytest.raises(ValidationError) as exc_info:
        validate(RegisterInput, {"username": "al", "password": "123", "email": "nope", "name": ""})

    assert set(exc_info.value.fields) == {"username", "password", "email", "name"}
    assert exc_info.value.status_code == 400


def test_register_accepts_valid_input():
    data = validate(RegisterInput, {"username": "alice", "password": "secret1", "email": "a@x.com", "name": "Alice"})
    assert data.username == "alice"
    assert data.email == "a@x.com"


def test_non_object_body_is_rejected():
    with pytest.raises(ValidationError):
        validate(RegisterInput, None)
    with pytest.raises(ValidationError):
        validate(RegisterInput, ["alice"])


def test_task_form_defaults_and_aliases():
    form = validate(TaskForm, {"title": "Buy milk", "priority": "low", "dueDate": "2024-01-01", "tag": "Shopping"})

    assert form.completed is False
    assert form.description is None
    assert form.due_date == "2024-01-01"
    assert form.model_dump(by_alias=True)["dueDate"] == "2024-01-01"


def test_task_form_rejects_unknown_literals():
    with pytest.raises(ValidationError) as exc_info:
        validate(TaskForm, {"title": " ", "priority": "urgent", "dueDate": "", "tag": "Chores", "completed": "yes"})

    assert set(exc_info.value.fields) == {"title", "priority", "dueDate", "tag", "completed"}


def test_empty_admin_update_is_invalid():
    with pytest.raises(ValidationError) as exc_info:
        validate(AdminUserUpdate, {})
    assert exc_info.value.fields == {"body": "No values provided for update"}
    with pytest.raises(ValidationError):
        validate(AdminUserUpdate, {"role": "owner"})


def test_password_confirmation_must_match():
    with pytest.raises(ValidationError) as exc_info:
        validate(PasswordChange, {"currentPassword": "secret1", "newPassword": "secret2", "confirmPassword": "secret3"})
    assert exc_info.value.fields == {"body": "Passwords don't match"}


def _task(title, completed=False, tag="Work", description=None):
    return SimpleNamespace(title=title, completed=completed, tag=tag, description=description)


def test_filter_tasks():
    tasks = [
        _task("Write report", tag="Work"),
        _task("Buy milk", completed=True, tag="Shopping", description="Oat milk"),
        _task("Call mum", tag="Personal"),
    ]

    assert len(filter_tasks(tasks)) == 3
    assert [t.title for t in filter_tasks(tasks, TaskFilter(status="completed"))] == ["Buy milk"]
    assert [t.title for t in filter_tasks(tasks, TaskFilter(status="pending", tag="Personal"))] == ["Call mum"]
    assert [t.title for t in filter_tasks(tasks, TaskFilter(search="OAT"))] == ["Buy milk"]


def test_filter_tasks_accepts_json_dicts():
    tasks = [{"title": "Buy milk", "completed": False, "tag": "Shopping", "description": None}]
    assert filter_tasks(tasks, TaskFilter(tag="Shopping")) == tasks
    assert filter_tasks(tasks, TaskFilter(tag="Work")) == []


def test_filter_rejects_unknown_tag():
    with pytest.raises(ValidationError):
        validate(TaskFilter, {"tag": "Chores"})
