"""
config.py
Settings from the environment (.env supported) + logging setup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

DB_FILE = Path(os.getenv("CSP_DB_FILE") or BASE_DIR / "cay_seker.db")
UPLOAD_DIR = Path(os.getenv("CSP_UPLOAD_DIR") or BASE_DIR / "uploads")
PAGE_SIZE = int(os.getenv("CSP_PAGE_SIZE", "10"))
LOG_LEVEL = os.getenv("CSP_LOG_LEVEL", "INFO")
DEFAULT_ADMIN_PASSWORD = os.getenv("CSP_DEFAULT_ADMIN_PASSWORD", "admin123")

# "today": payment_date is always the day of the create/edit
# "manual": the admin picks payment_date in the form
PAYMENT_DATE_POLICIES = ("today", "manual")
PAYMENT_DATE_POLICY = os.getenv("CSP_PAYMENT_DATE_POLICY", "today").strip().lower()
if PAYMENT_DATE_POLICY not in PAYMENT_DATE_POLICIES:
    PAYMENT_DATE_POLICY = "today"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level or LOG_LEVEL)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
