# backend/opscore/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/opscore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///opscore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # What to do with a line whose discount exceeds its subtotal:
    # "reject" raises InvoiceError, "allow_credit" keeps it as a credit line.
    NEGATIVE_LINE_POLICY = os.environ.get("NEGATIVE_LINE_POLICY", "reject")

    # Invoice/payment numbers are regenerated on a uniqueness collision
    DOCUMENT_NUMBER_ATTEMPTS = int(os.environ.get("DOCUMENT_NUMBER_ATTEMPTS", "5"))

    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 200


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    NEGATIVE_LINE_POLICY = "reject"
