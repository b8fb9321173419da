from flask import current_app

from auth import hash_password

SAMPLE_USER = {
    "username": "user",
    "password": "password",
    "email": "user@taskflow.app",
    "name": "John Doe",
}

SAMPLE_TASKS = [
    {
        "title": "Complete project proposal",
        "description": "Draft and finalize the project proposal document for client review.",
        "priority": "high",
        "due_date": "2023-06-25",
        "tag": "Work",
        "completed": False,
    },
    {
        "title": "Buy groceries",
        "description": "Purchase items for the week: fruits, vegetables, milk, and bread.",
        "priority": "medium",
        "due_date": "2023-06-22",
        "tag": "Personal",
        "completed": True,
    },
    {
        "title": "Schedule team meeting",
        "description": "Coordinate with team members to set up the weekly progress meeting.",
        "priority": "medium",
        "due_date": "2023-06-23",
        "tag": "Work",
        "completed": False,
    },
    {
        "title": "Renew gym membership",
        "description": "Visit the gym to renew monthly membership plan.",
        "priority": "low",
        "due_date": "2023-06-30",
        "tag": "Personal",
        "completed": False,
    },
    {
        "title": "Fix website bug",
        "description": "Address the login page issue reported by users.",
        "priority": "high",
        "due_date": "2023-06-21",
        "tag": "Urgent",
        "completed": False,
    },
]


def seed_sample_data(storage):
    """Create the demo user and its tasks unless the user already exists."""
    if storage.get_user_by_email(SAMPLE_USER["email"]) is not None:
        return None
    user = storage.create_user(dict(SAMPLE_USER, password=hash_password(SAMPLE_USER["password"])))
    for task in SAMPLE_TASKS:
        storage.create_task(dict(task, user_id=user.id))
    current_app.logger.info("Seeded sample user %s with %d tasks", user.id, len(SAMPLE_TASKS))
    return user


def ensure_admin(storage, email, password, username="admin"):
    """Make sure an admin account exists for ``email``."""
    user = storage.get_user_by_email(email)
    if user is None:
        user = storage.create_user({
            "username": username,
            "email": email,
            "password": hash_password(password),
            "name": "Administrator",
            "role": "admin",
        })
        current_app.logger.info("Created admin user %s", user.id)
    elif user.role != "admin":
        user = storage.update_user(user.id, {"role": "admin"})
        current_app.logger.info("Promoted user %s to admin", user.id)
    return user
