# backend/sitestock/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/sitestock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///sitestock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Stocktake sessions
    INVENTORY_BULK_CHUNK_SIZE = int(os.environ.get("INVENTORY_BULK_CHUNK_SIZE", 40))
    INVENTORY_BULK_MAX_MATERIALS = int(os.environ.get("INVENTORY_BULK_MAX_MATERIALS", 5000))
    MATERIAL_SEARCH_LIMIT = int(os.environ.get("MATERIAL_SEARCH_LIMIT", 20))

    # Locale used for user-facing error messages when Accept-Language is absent
    DEFAULT_LOCALE = os.environ.get("DEFAULT_LOCALE", "en")
