# backend/mesapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///mesapos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BCRYPT_ROUNDS = int(os.environ.get("MESAPOS_BCRYPT_ROUNDS", "12"))

    # Number of tables shown on the floor map
    MAX_TABLES = int(os.environ.get("MESAPOS_MAX_TABLES", "20"))

    # Mixed payments must add up to the total within this many cents
    MIXED_PAYMENT_TOLERANCE_CENTS = 1

    BUSINESS_NAME = os.environ.get("MESAPOS_BUSINESS_NAME", "MesaPOS")
    RECEIPT_OUTPUT_DIR = os.environ.get("MESAPOS_RECEIPT_DIR", "receipts")

    # Terminal front-ends allowed to call the API from a browser
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "MESAPOS_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    )
