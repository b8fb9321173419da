"""Input schemas shared by the API routes and the Python client.

Each schema is a pydantic model whose field aliases match the JSON the
browser sends (camelCase). ``validate`` turns a raw payload into a model or
raises ``errors.ValidationError`` listing every violated field.
"""

from typing import Annotated, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool, StringConstraints, model_validator

from errors import ValidationError

TAGS = ("Work", "Personal", "Urgent", "Shopping")

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3)]
Password = Annotated[str, StringConstraints(min_length=6)]


class Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterInput(Schema):
    username: Username
    password: Password
    email: EmailStr
    name: NonEmptyStr


class LoginInput(Schema):
    email: EmailStr
    password: Password


class TaskForm(Schema):
    title: NonEmptyStr
    description: Optional[str] = None
    priority: Literal["high", "medium", "low"]
    due_date: NonEmptyStr = Field(alias="dueDate")
    tag: Literal["Work", "Personal", "Urgent", "Shopping"]
    completed: StrictBool = False


class TaskCreate(TaskForm):
    user_id: Optional[int] = Field(default=None, alias="userId")


class ProfileUpdate(Schema):
    name: Optional[NonEmptyStr] = None
    email: Optional[EmailStr] = None
    username: Optional[Username] = None
    profile_picture: Optional[str] = Field(default=None, alias="profilePicture")

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_dump(exclude_none=True):
            raise ValueError("No values provided for update")
        return self


class AdminUserUpdate(Schema):
    name: Optional[NonEmptyStr] = None
    role: Optional[Literal["user", "admin"]] = None
    username: Optional[Username] = None
    email: Optional[EmailStr] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_dump(exclude_none=True):
            raise ValueError("No values provided for update")
        return self


class PasswordChange(Schema):
    current_password: Annotated[str, StringConstraints(min_length=1)] = Field(alias="currentPassword")
    new_password: Password = Field(alias="newPassword")
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("Passwords don't match")
        return self


class NotificationPreferences(Schema):
    email_notifications: StrictBool = Field(default=True, alias="emailNotifications")
    task_reminders: StrictBool = Field(default=True, alias="taskReminders")
    system_updates: StrictBool = Field(default=False, alias="systemUpdates")


class ForgotPasswordInput(Schema):
    email: EmailStr


class ResetPasswordInput(Schema):
    token: NonEmptyStr
    password: Password


class TaskFilter(Schema):
    status: Literal["all", "pending", "completed"] = "all"
    tag: str = "all"
    search: str = ""

    @model_validator(mode="after")
    def _known_tag(self):
        if self.tag != "all" and self.tag not in TAGS:
            raise ValueError(f"Unknown tag {self.tag!r}")
        return self


def validate(schema, data):
    """Parse ``data`` with ``schema``; raise ValidationError on any violation."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as exc:
        fields = {}
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "body"
            fields.setdefault(field, err["msg"].removeprefix("Value error, "))
        raise ValidationError("Validation failed: " + ", ".join(fields), fields=fields) from None


def _get(task, name):
    if isinstance(task, dict):
        return task.get(name)
    return getattr(task, name)


def filter_tasks(tasks, task_filter=None):
    """Apply a TaskFilter to Task objects or their JSON dicts."""
    if task_filter is None:
        return list(tasks)
    search = task_filter.search.strip().lower()
    result = []
    for task in tasks:
        completed = _get(task, "completed")
        if task_filter.status == "pending" and completed:
            continue
        if task_filter.status == "completed" and not completed:
            continue
        if task_filter.tag != "all" and _get(task, "tag") != task_filter.tag:
            continue
        if search:
            haystack = (_get(task, "title") or "") + "\n" + (_get(task, "description") or "")
            if search not in haystack.lower():
                continue
        result.append(task)
    return result
