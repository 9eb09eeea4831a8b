# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # What to do when a product's aggregate stock moved between the first scan
    # and completion of an opname: "flag" commits and reports, "reject" refuses.
    OPNAME_BASELINE_DRIFT_POLICY = os.environ.get("OPNAME_BASELINE_DRIFT_POLICY", "flag")

    # Attempts at drawing an unused OPN-YYYYMMDD-XXXX number
    OPNAME_NUMBER_ATTEMPTS = int(os.environ.get("OPNAME_NUMBER_ATTEMPTS", "10"))

    # Retry knobs for lock/optimistic-version conflicts
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
    DB_RETRY_BACKOFF = float(os.environ.get("DB_RETRY_BACKOFF", "0.1"))
