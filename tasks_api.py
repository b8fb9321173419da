from flask import Blueprint, current_app, g, jsonify, request

from auth import login_required
from errors import AuthorizationError, NotFoundError, ValidationError
from schemas import TaskCreate, TaskFilter, TaskForm, filter_tasks, validate
from storage import TASK_FIELDS, get_storage

tasks_bp = Blueprint("tasks_api", __name__, url_prefix="/api/tasks")


def _owned_task(task_id):
    task = get_storage().get_task(task_id)
    if task is None:
        raise NotFoundError("Task not found")
    if task.user_id != g.user.id:
        current_app.logger.warning("User %s denied access to task %s", g.user.id, task_id)
        raise AuthorizationError("You do not have access to this task")
    return task


def _requested_user_id():
    raw = request.args.get("userId")
    if raw is None or raw == "":
        return g.user.id
    try:
        user_id = int(raw)
    except ValueError:
        raise ValidationError("Invalid user ID", fields={"userId": "Must be an integer"}) from None
    if user_id != g.user.id:
        raise AuthorizationError("You can only list your own tasks")
    return user_id


@tasks_bp.route("", methods=["GET"])
@login_required
def list_tasks():
    user_id = _requested_user_id()
    task_filter = validate(TaskFilter, {k: v for k, v in request.args.items() if k in ("status", "tag", "search")})
    tasks = filter_tasks(get_storage().get_tasks_by_user_id(user_id), task_filter)
    return jsonify([t.to_dict() for t in tasks])


@tasks_bp.route("", methods=["POST"])
@login_required
def create_task():
    form = validate(TaskCreate, request.get_json(silent=True))
    if form.user_id is not None and form.user_id != g.user.id:
        raise AuthorizationError("Tasks can only be created for yourself")
    data = form.model_dump(exclude={"user_id"})
    data["user_id"] = g.user.id
    task = get_storage().create_task(data)
    return jsonify(task.to_dict()), 201


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@login_required
def get_task(task_id):
    return jsonify(_owned_task(task_id).to_dict())


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@login_required
def update_task(task_id):
    form = validate(TaskForm, request.get_json(silent=True))
    _owned_task(task_id)
    task = get_storage().update_task(task_id, form.model_dump())
    if task is None:
        raise NotFoundError("Task not found")
    return jsonify(task.to_dict())


@tasks_bp.route("/<int:task_id>/toggle", methods=["PATCH"])
@login_required
def toggle_task(task_id):
    task = _owned_task(task_id)
    form = {key: getattr(task, key) for key in TASK_FIELDS}
    form["completed"] = not task.completed
    task = get_storage().update_task(task_id, form)
    if task is None:
        raise NotFoundError("Task not found")
    return jsonify(task.to_dict())


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    _owned_task(task_id)
    if not get_storage().delete_task(task_id):
        raise NotFoundError("Task not found")
    return jsonify({"message": "Task deleted successfully"})
