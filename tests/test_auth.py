from __future__ import annotations

import pytest

import auth


def test_hash_and_verify():
    hashed = auth.hash_password("gizli123")
    assert hashed != "gizli123"
    assert auth.verify_password("gizli123", hashed)
    assert not auth.verify_password("yanlis", hashed)


def test_long_passwords_are_truncated_to_72_bytes():
    hashed = auth.hash_password("a" * 100)
    assert auth.verify_password("a" * 72 + "b" * 10, hashed)


def test_login_returns_profile(store):
    profile = auth.login("admin", "admin123")
    assert profile is not None
    assert profile.is_admin
    assert profile.username == "admin"


def test_login_fails_on_wrong_password_or_user(store):
    assert auth.login("admin", "nope") is None
    assert auth.login("ghost", "admin123") is None


def test_create_profile_and_get(store):
    new_id = auth.create_profile("cem", "sifre12", "Cem Kaya")
    profile = auth.get_profile(new_id)
    assert profile.full_name == "Cem Kaya"
    assert not profile.is_admin
    assert auth.login("cem", "sifre12").id == new_id


def test_update_user_changes_password(store):
    admin = auth.login("admin", "admin123")
    auth.update_user(admin.id, "yeni-sifre")

    assert auth.login("admin", "admin123") is None
    assert auth.login("admin", "yeni-sifre").id == admin.id


def test_update_user_unknown_profile(store):
    with pytest.raises(LookupError):
        auth.update_user(12345, "whatever")
    assert auth.get_profile(12345) is None
