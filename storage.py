"""Persistence for users and tasks.

Two interchangeable backends implement the same interface:

* ``MemStorage`` keeps transient model instances in process-local maps,
  guarded by one lock. Nothing survives a restart.
* ``SqlStorage`` goes through Flask-SQLAlchemy's session.

Route code only ever talks to ``get_storage()``.
"""

import threading
from abc import ABC, abstractmethod

from flask import current_app
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from errors import ConflictError, NotFoundError
from model import Task, User, db, utcnow

USER_FIELDS = ("username", "email", "password", "name", "role", "google_id", "profile_picture")
TASK_FIELDS = ("title", "description", "priority", "due_date", "tag", "completed")

EXTENSION_KEY = "taskflow.storage"


def _pick(data, fields):
    return {key: data[key] for key in fields if key in data}


class Storage(ABC):
    # User operations
    @abstractmethod
    def get_user(self, user_id): ...

    @abstractmethod
    def get_user_by_username(self, username): ...

    @abstractmethod
    def get_user_by_email(self, email): ...

    @abstractmethod
    def get_user_by_google_id(self, google_id): ...

    @abstractmethod
    def get_all_users(self): ...

    @abstractmethod
    def create_user(self, data): ...

    @abstractmethod
    def update_user(self, user_id, data): ...

    @abstractmethod
    def delete_user(self, user_id): ...

    # Task operations
    @abstractmethod
    def get_task(self, task_id): ...

    @abstractmethod
    def get_tasks_by_user_id(self, user_id): ...

    @abstractmethod
    def create_task(self, data): ...

    @abstractmethod
    def update_task(self, task_id, form): ...

    @abstractmethod
    def delete_task(self, task_id): ...

    def check_unique(self, username=None, email=None, exclude_id=None):
        """Raise ConflictError if another user already holds username or email."""
        if username is not None:
            other = self.get_user_by_username(username)
            if other is not None and other.id != exclude_id:
                raise ConflictError("Username already taken")
        if email is not None:
            other = self.get_user_by_email(email)
            if other is not None and other.id != exclude_id:
                raise ConflictError("Email already registered")


class MemStorage(Storage):
    def __init__(self):
        self._users = {}
        self._tasks = {}
        self._next_user_id = 1
        self._next_task_id = 1
        self._lock = threading.RLock()

    def get_user(self, user_id):
        with self._lock:
            return self._users.get(user_id)

    def _find_user(self, attr, value):
        with self._lock:
            for user in self._users.values():
                if getattr(user, attr) == value:
                    return user
        return None

    def get_user_by_username(self, username):
        return self._find_user("username", username)

    def get_user_by_email(self, email):
        return self._find_user("email", email)

    def get_user_by_google_id(self, google_id):
        if google_id is None:
            return None
        return self._find_user("google_id", google_id)

    def get_all_users(self):
        with self._lock:
            return sorted(self._users.values(), key=lambda u: u.id)

    def create_user(self, data):
        fields = _pick(data, USER_FIELDS)
        with self._lock:
            self.check_unique(fields.get("username"), fields.get("email"))
            user = User(
                id=self._next_user_id,
                role=fields.pop("role", None) or "user",
                created_at=utcnow(),
                **fields,
            )
            self._users[user.id] = user
            self._next_user_id += 1
            return user

    def update_user(self, user_id, data):
        fields = _pick(data, USER_FIELDS)
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            self.check_unique(fields.get("username"), fields.get("email"), exclude_id=user_id)
            for key, value in fields.items():
                setattr(user, key, value)
            return user

    def delete_user(self, user_id):
        with self._lock:
            if user_id not in self._users:
                return False
            for task_id in [t.id for t in self._tasks.values() if t.user_id == user_id]:
                del self._tasks[task_id]
            del self._users[user_id]
            return True

    def get_task(self, task_id):
        with self._lock:
            return self._tasks.get(task_id)

    def get_tasks_by_user_id(self, user_id):
        with self._lock:
            tasks = [t for t in self._tasks.values() if t.user_id == user_id]
        return sorted(tasks, key=lambda t: (t.due_date, t.id))

    def create_task(self, data):
        fields = _pick(data, TASK_FIELDS)
        with self._lock:
            if data["user_id"] not in self._users:
                raise NotFoundError("User not found")
            task = Task(
                id=self._next_task_id,
                title=fields["title"],
                description=fields.get("description"),
                priority=fields["priority"],
                due_date=fields["due_date"],
                tag=fields["tag"],
                completed=bool(fields.get("completed", False)),
                user_id=data["user_id"],
                created_at=utcnow(),
            )
            self._tasks[task.id] = task
            self._next_task_id += 1
            return task

    def update_task(self, task_id, form):
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            for key in TASK_FIELDS:
                setattr(task, key, form.get(key))
            task.completed = bool(task.completed)
            return task

    def delete_task(self, task_id):
        with self._lock:
            return self._tasks.pop(task_id, None) is not None


class SqlStorage(Storage):
    def __init__(self, read_retries=1):
        self.read_retries = read_retries

    def _read(self, query):
        # Reads are idempotent, so a dropped connection gets another attempt.
        attempt = 0
        while True:
            try:
                return query()
            except OperationalError:
                db.session.rollback()
                if attempt >= self.read_retries:
                    raise
                attempt += 1
                current_app.logger.warning("Database read failed, retrying (%d/%d)", attempt, self.read_retries)

    def _commit(self):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            reason = str(exc.orig).lower()
            if "unique" in reason or "duplicate" in reason:
                raise ConflictError("Username or email already in use") from None
            if "foreign key" in reason:
                raise NotFoundError("Referenced user not found") from None
            raise
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def get_user(self, user_id):
        return self._read(lambda: db.session.get(User, user_id))

    def get_user_by_username(self, username):
        return self._read(lambda: User.query.filter_by(username=username).first())

    def get_user_by_email(self, email):
        return self._read(lambda: User.query.filter_by(email=email).first())

    def get_user_by_google_id(self, google_id):
        if google_id is None:
            return None
        return self._read(lambda: User.query.filter_by(google_id=google_id).first())

    def get_all_users(self):
        return self._read(lambda: User.query.order_by(User.id).all())

    def create_user(self, data):
        fields = _pick(data, USER_FIELDS)
        self.check_unique(fields.get("username"), fields.get("email"))
        fields["role"] = fields.get("role") or "user"
        user = User(**fields)
        db.session.add(user)
        self._commit()
        return user

    def update_user(self, user_id, data):
        user = self.get_user(user_id)
        if user is None:
            return None
        fields = _pick(data, USER_FIELDS)
        self.check_unique(fields.get("username"), fields.get("email"), exclude_id=user_id)
        for key, value in fields.items():
            setattr(user, key, value)
        self._commit()
        return user

    def delete_user(self, user_id):
        user = self.get_user(user_id)
        if user is None:
            return False
        # Tasks and user go in one transaction.
        Task.query.filter_by(user_id=user_id).delete()
        db.session.delete(user)
        self._commit()
        return True

    def get_task(self, task_id):
        return self._read(lambda: db.session.get(Task, task_id))

    def get_tasks_by_user_id(self, user_id):
        return self._read(
            lambda: Task.query.filter_by(user_id=user_id).order_by(Task.due_date, Task.id).all()
        )

    def create_task(self, data):
        if self.get_user(data["user_id"]) is None:
            raise NotFoundError("User not found")
        fields = _pick(data, TASK_FIELDS)
        fields["completed"] = bool(fields.get("completed", False))
        task = Task(user_id=data["user_id"], **fields)
        db.session.add(task)
        self._commit()
        return task

    def update_task(self, task_id, form):
        task = self.get_task(task_id)
        if task is None:
            return None
        for key in TASK_FIELDS:
            setattr(task, key, form.get(key))
        task.completed = bool(task.completed)
        self._commit()
        return task

    def delete_task(self, task_id):
        task = self.get_task(task_id)
        if task is None:
            return False
        db.session.delete(task)
        self._commit()
        return True


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_storage(app):
    backend = app.config.get("STORAGE_BACKEND", "sql")
    if backend == "memory":
        storage = MemStorage()
    elif backend == "sql":
        storage = SqlStorage(read_retries=app.config.get("READ_RETRIES", 1))
        with app.app_context():
            # SQLite only enforces ForeignKey constraints when asked to.
            if db.engine.dialect.name == "sqlite":
                event.listen(db.engine, "connect", _enable_sqlite_foreign_keys)
            db.create_all()
    else:
        raise RuntimeError(f"Unknown STORAGE_BACKEND {backend!r}")
    app.extensions[EXTENSION_KEY] = storage
    app.logger.debug("Using %s storage", backend)
    return storage


def get_storage():
    return current_app.extensions[EXTENSION_KEY]
