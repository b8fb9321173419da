import os
import time
from collections.abc import Mapping

import click
from flask import Flask, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from admin_api import admin_bp
from auth import auth_bp, generate_token, mail, make_google_oauth_blueprint
from config import Config
from errors import TaskFlowError
from model import db
from seed import ensure_admin, seed_sample_data
from storage import get_storage, init_storage
from tasks_api import tasks_bp
from users_api import users_bp


def create_app(config=None, **overrides):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if isinstance(config, Mapping):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)
    app.config.update(overrides)

    # Ensure instance folder exists
    os.makedirs(app.instance_path, exist_ok=True)
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///" + os.path.join(app.instance_path, "tasks.db")

    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    mail.init_app(app)
    init_storage(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(make_google_oauth_blueprint(app), url_prefix="/login")

    register_error_handlers(app)
    register_request_logging(app)
    register_commands(app)

    with app.app_context():
        storage = get_storage()
        if app.config.get("SEED_SAMPLE_DATA"):
            seed_sample_data(storage)
        if app.config.get("ADMIN_EMAIL") and app.config.get("ADMIN_PASSWORD"):
            ensure_admin(storage, app.config["ADMIN_EMAIL"], app.config["ADMIN_PASSWORD"])

    return app


def register_error_handlers(app):
    @app.errorhandler(TaskFlowError)
    def handle_taskflow_error(err):
        if err.status_code >= 500:
            app.logger.error("%s: %s", type(err).__name__, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(err):
        db.session.rollback()
        app.logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"message": "Database error"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"message": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"message": "Internal server error"}), 500


def register_request_logging(app):
    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        if request.path.startswith("/api"):
            started = g.get("request_started", time.perf_counter())
            duration = (time.perf_counter() - started) * 1000
            app.logger.info("%s %s %s in %dms", request.method, request.path, response.status_code, duration)
        return response


def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create database tables."""
        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("seed")
    @click.option("--admin-email", default=None)
    @click.option("--admin-password", default=None)
    def seed_command(admin_email, admin_password):
        """Insert the sample user, its tasks and optionally an admin."""
        storage = get_storage()
        user = seed_sample_data(storage)
        click.echo("Sample data created." if user else "Sample data already present.")
        if admin_email and admin_password:
            admin = ensure_admin(storage, admin_email, admin_password)
            click.echo(f"Admin ready: {admin.email}")

    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token_command(email):
        """Print a bearer token for an existing user."""
        user = get_storage().get_user_by_email(email)
        if user is None:
            raise click.ClickException(f"No user with email {email}")
        click.echo(generate_token(user))


if __name__ == "__main__":
    create_app().run(debug=True)
