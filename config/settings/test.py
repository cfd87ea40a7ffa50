# config/settings/test.py
from .base import *  # noqa

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Never reach real services from tests; clients get a MockTransport or a fake port.
CASE_SERVICE_URL = "http://case-service.test"
APPOINTMENT_SERVICE_URL = "http://appointment-service.test"

LIFECYCLE = {
    "MIN_CONSULTATION_FEE": 100,
    "MAX_CONSULTATION_FEE": 500,
    "JOIN_OPENS_MINUTES_BEFORE": 15,
    "JOIN_CLOSES_MINUTES_AFTER": 30,
    "NO_SHOW_GRACE_MINUTES": 30,
    "MIN_REASON_LENGTH": 10,
    "ALLOWED_DURATIONS": [15, 30, 45, 60, 90, 120],
}

LOGGING["loggers"]["tm_core"]["level"] = "WARNING"
