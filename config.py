import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-key-change-me")

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")  # None -> sqlite in instance folder
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql")
    READ_RETRIES = int(os.getenv("READ_RETRIES", "1"))

    # Tokens
    TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", str(24 * 3600)))
    RESET_TOKEN_MAX_AGE = int(os.getenv("RESET_TOKEN_MAX_AGE", "3600"))

    # Where OAuth and password reset links land
    CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")

    # Google OAuth
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
    GOOGLE_PROFILE_TIMEOUT = float(os.getenv("GOOGLE_PROFILE_TIMEOUT", "10"))

    # Mail config
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "25"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS") == "True"
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME or "noreply@taskflow.app")

    # Seeding
    SEED_SAMPLE_DATA = _env_bool("SEED_SAMPLE_DATA")
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STORAGE_BACKEND = "sql"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@taskflow.app"
    SEED_SAMPLE_DATA = False
    ADMIN_EMAIL = None
    ADMIN_PASSWORD = None
    CLIENT_URL = "http://client.test"
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    LOG_LEVEL = "DEBUG"
