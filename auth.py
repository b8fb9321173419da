import hashlib
import re
import secrets
from functools import wraps
from urllib.parse import urlencode

from flask import Blueprint, current_app, g, jsonify, redirect, request, url_for
from flask_dance.contrib.google import google, make_google_blueprint
from flask_mail import Mail, Message
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from requests.exceptions import RequestException
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    TaskFlowError,
    UnexpectedError,
    ValidationError,
)
from schemas import ForgotPasswordInput, LoginInput, RegisterInput, ResetPasswordInput, validate
from storage import get_storage

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
mail = Mail()

TOKEN_SALT = "access-token"
RESET_SALT = "password-reset-salt"
GOOGLE_SCOPE = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


# ---------------- Tokens ----------------

def _serializer(salt):
    return URLSafeTimedSerializer(current_app.secret_key, salt=salt)


def password_fingerprint(user):
    """Short digest of the stored hash; changes whenever the password does."""
    return hashlib.sha256((user.password or "").encode()).hexdigest()[:16]


def generate_token(user):
    return _serializer(TOKEN_SALT).dumps({
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "username": user.username,
        "pwd": password_fingerprint(user),
    })


def decode_token(token):
    try:
        return _serializer(TOKEN_SALT).loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired:
        raise AuthenticationError("Token expired") from None
    except BadSignature:
        raise AuthenticationError("Invalid token") from None


def hash_password(password):
    return generate_password_hash(password)


def verify_password(user, password):
    return bool(user.password) and check_password_hash(user.password, password)


# ---------------- Identity ----------------

def load_identity():
    """Resolve the bearer token on the current request to a stored user."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Missing or malformed bearer token")
    payload = decode_token(token.strip())
    user = get_storage().get_user(payload.get("id"))
    if user is None:
        raise AuthenticationError("Account no longer exists")
    if payload.get("pwd") != password_fingerprint(user):
        raise AuthenticationError("Token revoked by password change")
    return user


def login_required(view):
    """Decorator for route handlers that require an authenticated user."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user = load_identity()
        return view(*args, **kwargs)
    return wrapped


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user = load_identity()
        if not g.user.is_admin:
            current_app.logger.warning("User %s denied admin route %s", g.user.id, request.path)
            raise AuthorizationError("Admin access required")
        return view(*args, **kwargs)
    return wrapped


def login_payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name or "User",
        "username": user.username,
        "role": user.role,
        "profilePicture": user.profile_picture,
    }


# ---------------- Credential routes ----------------

@auth_bp.route("/register", methods=["POST"])
def register():
    data = validate(RegisterInput, request.get_json(silent=True))
    user = get_storage().create_user({
        "username": data.username,
        "email": data.email,
        "password": hash_password(data.password),
        "name": data.name,
        "role": "user",
    })
    current_app.logger.info("Registered user %s (%s)", user.id, user.username)
    return jsonify(user.to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = validate(LoginInput, request.get_json(silent=True))
    user = get_storage().get_user_by_email(data.email)
    if user is None or not verify_password(user, data.password):
        current_app.logger.warning("Failed login for %s", data.email)
        raise AuthenticationError("Invalid email or password")
    return jsonify({"token": generate_token(user), "user": login_payload(user)})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(g.user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
def logout():
    # Tokens are stateless; the client drops its copy.
    return jsonify({"message": "Logged out"})


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    data = validate(ForgotPasswordInput, request.get_json(silent=True))
    user = get_storage().get_user_by_email(data.email)
    if user is not None:
        token = _serializer(RESET_SALT).dumps({"email": user.email, "pwd": password_fingerprint(user)})
        reset_url = f"{current_app.config['CLIENT_URL']}/reset-password?{urlencode({'token': token})}"
        msg = Message("Password Reset", recipients=[user.email])
        msg.body = f"Click to reset your password: {reset_url}"
        try:
            mail.send(msg)
        except OSError:
            current_app.logger.exception("Failed to send password reset mail to user %s", user.id)
            raise UnexpectedError("Could not send reset email") from None
    return jsonify({"message": "If that account exists, a reset link has been sent."})


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    data = validate(ResetPasswordInput, request.get_json(silent=True))
    invalid = ValidationError("Invalid or expired token", fields={"token": "Invalid or expired token"})
    try:
        payload = _serializer(RESET_SALT).loads(data.token, max_age=current_app.config["RESET_TOKEN_MAX_AGE"])
    except BadSignature:
        raise invalid from None

    storage = get_storage()
    user = storage.get_user_by_email(payload.get("email"))
    if user is None:
        raise NotFoundError("User not found")
    # A reset link works once: using it changes the fingerprint it carries.
    if payload.get("pwd") != password_fingerprint(user):
        raise invalid
    storage.update_user(user.id, {"password": hash_password(data.password)})
    current_app.logger.info("Password reset for user %s", user.id)
    return jsonify({"message": "Password reset successful"})


# ---------------- Google OAuth ----------------

def make_google_oauth_blueprint(app):
    return make_google_blueprint(
        client_id=app.config.get("GOOGLE_CLIENT_ID"),
        client_secret=app.config.get("GOOGLE_CLIENT_SECRET"),
        scope=GOOGLE_SCOPE,
        redirect_to="auth.oauth_callback",
    )


def fetch_google_profile():
    """Return the signed-in Google profile as a dict, or None."""
    if not google.authorized:
        return None
    try:
        resp = google.get("/oauth2/v2/userinfo", timeout=current_app.config["GOOGLE_PROFILE_TIMEOUT"])
    except RequestException:
        current_app.logger.exception("Google userinfo request failed")
        return None
    if not resp.ok:
        current_app.logger.warning("Google userinfo error %s: %s", resp.status_code, resp.text)
        return None
    info = resp.json()
    return {
        "id": info.get("id"),
        "email": info.get("email"),
        "name": info.get("name"),
        "picture": info.get("picture"),
    }


def _unique_username(storage, seed):
    base = re.sub(r"[^a-z0-9_.]", "", seed.lower()) or "user"
    if len(base) < 3:
        base = f"{base}user"
    candidate = base
    while storage.get_user_by_username(candidate) is not None:
        candidate = f"{base}_{secrets.token_hex(3)}"
    return candidate


def link_oauth_profile(storage, profile):
    """Find or create the account for an external profile.

    Lookup order is external id, then email (linking the id to the existing
    account), then a new ``user`` account with a random unusable password.
    """
    google_id = str(profile["id"])
    email = profile.get("email")

    user = storage.get_user_by_google_id(google_id)
    if user is not None:
        return user

    if email:
        user = storage.get_user_by_email(email)
    if user is not None:
        if user.google_id:
            return user
        user = storage.update_user(user.id, {
            "google_id": google_id,
            "profile_picture": user.profile_picture or profile.get("picture"),
        })
        current_app.logger.info("Linked Google account to user %s", user.id)
        return user

    if not email:
        raise AuthenticationError("Google account has no email address")

    username = _unique_username(storage, email.split("@")[0])
    user = storage.create_user({
        "username": username,
        "email": email,
        "password": hash_password(secrets.token_urlsafe(24)),
        "name": profile.get("name") or username,
        "role": "user",
        "google_id": google_id,
        "profile_picture": profile.get("picture"),
    })
    current_app.logger.info("Created user %s from Google sign-in", user.id)
    return user


def _client_redirect(path, **params):
    return redirect(f"{current_app.config['CLIENT_URL']}{path}?{urlencode(params)}")


@auth_bp.route("/oauth/start", methods=["GET"])
def oauth_start():
    return redirect(url_for("google.login"))


@auth_bp.route("/oauth/callback", methods=["GET"])
def oauth_callback():
    profile = fetch_google_profile()
    if not profile or not profile.get("id"):
        return _client_redirect("/login", error="oauth")
    try:
        user = link_oauth_profile(get_storage(), profile)
    except TaskFlowError as exc:
        current_app.logger.warning("Google sign-in rejected: %s", exc.message)
        return _client_redirect("/login", error="oauth")
    except SQLAlchemyError:
        current_app.logger.exception("Google sign-in failed to store the account")
        return _client_redirect("/login", error="oauth")
    return _client_redirect("/login-success", token=generate_token(user))
