from flask import Blueprint, current_app, g, jsonify, request

from auth import admin_required
from errors import ConflictError, NotFoundError
from schemas import AdminUserUpdate, validate
from storage import get_storage

admin_bp = Blueprint("admin_api", __name__, url_prefix="/api/admin")


@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    return jsonify([u.to_dict() for u in get_storage().get_all_users()])


@admin_bp.route("/users/<int:user_id>", methods=["PUT"])
@admin_required
def update_user(user_id):
    form = validate(AdminUserUpdate, request.get_json(silent=True))
    user = get_storage().update_user(user_id, form.model_dump(exclude_none=True))
    if user is None:
        raise NotFoundError("User not found")
    current_app.logger.info("Admin %s updated user %s", g.user.id, user_id)
    return jsonify(user.to_dict())


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    if user_id == g.user.id:
        raise ConflictError("You cannot delete your own account")
    if not get_storage().delete_user(user_id):
        raise NotFoundError("User not found")
    current_app.logger.info("Admin %s deleted user %s", g.user.id, user_id)
    return jsonify({"message": "User deleted successfully"})
