from flask import Blueprint, current_app, g, jsonify, request

from auth import generate_token, hash_password, login_required, verify_password
from errors import AuthenticationError, NotFoundError
from schemas import NotificationPreferences, PasswordChange, ProfileUpdate, validate
from storage import get_storage

users_bp = Blueprint("users_api", __name__, url_prefix="/api/users")


@users_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    return jsonify(g.user.to_dict())


@users_bp.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    form = validate(ProfileUpdate, request.get_json(silent=True))
    user = get_storage().update_user(g.user.id, form.model_dump(exclude_none=True))
    if user is None:
        raise NotFoundError("User not found")
    return jsonify(user.to_dict())


@users_bp.route("/change-password", methods=["POST"])
@login_required
def change_password():
    form = validate(PasswordChange, request.get_json(silent=True))
    if not verify_password(g.user, form.current_password):
        current_app.logger.warning("Wrong current password for user %s", g.user.id)
        raise AuthenticationError("Current password is incorrect")
    user = get_storage().update_user(g.user.id, {"password": hash_password(form.new_password)})
    if user is None:
        raise NotFoundError("User not found")
    # Earlier tokens stop working; hand the caller a fresh one.
    return jsonify({"message": "Password changed successfully", "token": generate_token(user)})


@users_bp.route("/notifications", methods=["PUT"])
@login_required
def update_notifications():
    # Accepted and echoed back; preferences are not stored yet.
    prefs = validate(NotificationPreferences, request.get_json(silent=True))
    return jsonify(prefs.model_dump(by_alias=True))
