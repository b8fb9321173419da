from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    google_id = db.Column(db.String(255), unique=True)
    name = db.Column(db.String(255))
    username = db.Column(db.String(255), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255))  # hash; None until a password is set
    role = db.Column(db.String(10), nullable=False, default="user")
    profile_picture = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    tasks = db.relationship("Task", backref="user", lazy=True, cascade="all, delete-orphan")

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_dict(self):
        # The password hash never leaves the server.
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "googleId": self.google_id,
            "profilePicture": self.profile_picture,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.username!r}>"


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    priority = db.Column(db.String(10), nullable=False)
    due_date = db.Column(db.String(50), nullable=False)
    tag = db.Column(db.String(50), nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "dueDate": self.due_date,
            "tag": self.tag,
            "completed": bool(self.completed),
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Task {self.id} {self.title!r}>"
