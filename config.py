from __future__ import annotations
import os
from datetime import time
from pathlib import Path

# 2-hour windows, 05:00..23:00
DEFAULT_SLOT_WINDOWS = [(time(h, 0), time(h + 2, 0)) for h in range(5, 23, 2)]

class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'gym.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "15"))

    # CSRF (Flask-WTF): API clients send the token in a header
    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ["X-CSRFToken", "X-CSRF-Token"]

    GYM_TIMEZONE = os.getenv("GYM_TIMEZONE", "UTC")
    SLOT_CAPACITY = int(os.getenv("SLOT_CAPACITY", "50"))
    SLOT_WINDOWS = DEFAULT_SLOT_WINDOWS

    BOOKING_CODE_LENGTH = int(os.getenv("BOOKING_CODE_LENGTH", "8"))
    BOOKING_CODE_ATTEMPTS = int(os.getenv("BOOKING_CODE_ATTEMPTS", "5"))

    STATS_WEEKLY_THRESHOLD_DAYS = 60
    STATS_MAX_WINDOW_DAYS = 730

    AUTH_RL_MAX = int(os.getenv("AUTH_RL_MAX", "5"))
    AUTH_RL_WINDOW = int(os.getenv("AUTH_RL_WINDOW", "300"))  # 5 minutes

class DevConfig(BaseConfig):
    DEBUG = True
    SEED_TEST_DATA = True
    DEFAULT_USERS = [
        {"email": "admin@powerzone.com", "password": "admin123", "username": "admin",
         "full_name": "Gym Admin", "role": "ADMIN"},
        {"email": "member@powerzone.com", "password": "member123", "username": "johndoe",
         "full_name": "John Doe", "role": "MEMBER"},
    ]

class ProdConfig(BaseConfig):
    DEBUG = False
    SEED_TEST_DATA = False
    DEFAULT_USERS = []

class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    SEED_TEST_DATA = False
    DEFAULT_USERS = []

config_map = {
    "dev": DevConfig,
    "prod": ProdConfig,
    "test": TestConfig,
    "default": DevConfig,
}
