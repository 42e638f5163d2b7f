"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, change password)
on top of the profiles table.
"""

from __future__ import annotations

import logging

import bcrypt

import db
from models import Profile

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(secret, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def get_profile_row(username: str):
    rows = db.select("profiles", filters=[("eq", "username", username)])
    return rows[0] if rows else None


def get_profile(profile_id: int) -> Profile | None:
    row = db.get_by_id("profiles", profile_id)
    return Profile.from_row(row) if row else None


def login(username: str, password: str) -> Profile | None:
    row = get_profile_row(username)
    if not row or not verify_password(password, row["password_hash"]):
        logger.info("Failed login for %r", username)
        return None
    logger.info("Login: %s", username)
    return Profile.from_row(row)


def create_profile(username: str, password: str, full_name: str, is_admin: bool = False) -> int:
    return db.insert(
        "profiles",
        {
            "username": username,
            "password_hash": hash_password(password),
            "full_name": full_name,
            "is_admin": int(is_admin),
        },
    )


def update_user(profile_id: int, new_password: str) -> None:
    """Set a new password for the profile; raises LookupError if it doesn't exist."""
    count = db.update("profiles", profile_id, {"password_hash": hash_password(new_password)})
    if count == 0:
        raise LookupError(f"No profile with id {profile_id}")
