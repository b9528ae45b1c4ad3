"""Configuration classes; every value can be overridden from the environment or ``.env``."""
import os
from datetime import timedelta

MB = 1024 * 1024


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


class BaseConfig:
    def __init__(self) -> None:
        instance_dir = os.path.join(os.getcwd(), "instance")

        # Flask, sessions and forms
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.SESSION_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.REMEMBER_COOKIE_HTTPONLY = True
        self.PERMANENT_SESSION_LIFETIME = timedelta(days=_env_int("SESSION_DAYS", 30))
        self.WTF_CSRF_ENABLED = True
        self.WTF_CSRF_TIME_LIMIT = 3600

        # State document storage
        self.SQLALCHEMY_DATABASE_URI = os.getenv(
            "DATABASE_URL", f"sqlite:///{os.path.join(instance_dir, 'society.db')}"
        )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.STATE_STORAGE_KEY = os.getenv("STATE_STORAGE_KEY", "society_app_data_v4")

        # Accounts
        self.DEFAULT_SUPER_ADMIN_HOUSE = os.getenv("DEFAULT_SUPER_ADMIN_HOUSE", "SA01").strip().upper()
        self.DEFAULT_SUPER_ADMIN_PHONE = os.getenv("DEFAULT_SUPER_ADMIN_PHONE", "00000000000")
        self.DEFAULT_SUPER_ADMIN_PASSWORD = os.getenv("DEFAULT_SUPER_ADMIN_PASSWORD", "123")
        self.DEFAULT_RESET_PIN = os.getenv("DEFAULT_RESET_PIN", "1234")
        self.MIN_PIN_LENGTH = _env_int("MIN_PIN_LENGTH", 3)
        self.PHONE_DIGITS = _env_int("PHONE_DIGITS", 11)

        # Gemini
        self.GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
        self.GEMINI_VISION_MODEL = os.getenv("GEMINI_VISION_MODEL", "gemini-2.5-flash")
        self.GEMINI_AUDIO_MODEL = os.getenv("GEMINI_AUDIO_MODEL", "gemini-2.5-flash")

        # Uploads (photos and voice notes are stored inline, so keep them small)
        self.MAX_IMAGE_UPLOAD_BYTES = _env_int("MAX_IMAGE_UPLOAD_BYTES", 8 * MB)
        self.MAX_AUDIO_UPLOAD_BYTES = _env_int("MAX_AUDIO_UPLOAD_BYTES", 10 * MB)
        self.MAX_CONTENT_LENGTH = _env_int("MAX_REQUEST_BYTES", 24 * MB)

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.SESSION_COOKIE_SECURE = True
        self.REMEMBER_COOKIE_SECURE = True
        self.SEND_FILE_MAX_AGE_DEFAULT = 31536000


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
        self.WTF_CSRF_ENABLED = False
        self.PREFERRED_URL_SCHEME = "http"
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False
        self.GEMINI_API_KEY = ""
