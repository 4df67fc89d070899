import pytest
from jose import jwt
from passlib.hash import bcrypt

from app.api.auth import services
from app.config import settings
from app.core.errors import AppError, ErrorKind
from app.core.hashing import Hasher
from app.core.security import create_refresh_token, decode_access_token
from app.db.models.user import User


def _kind(excinfo):
    return excinfo.value.kind


# ---------------------------------------------------
# Registration
# ---------------------------------------------------

@pytest.mark.parametrize("blank_field", ["full_name", "email", "username", "password"])
@pytest.mark.parametrize("blank_value", [None, "", "   "])
def test_register_rejects_blank_fields(db, blank_field, blank_value):
    fields = {
        "full_name": "Alice Example",
        "email": "alice@example.com",
        "username": "alice",
        "password": "s3cret-pass",
    }
    fields[blank_field] = blank_value

    with pytest.raises(AppError) as excinfo:
        services.register_user(db, **fields)

    assert _kind(excinfo) is ErrorKind.VALIDATION
    assert db.query(User).count() == 0


def test_register_stores_hash_not_password(make_user):
    user = make_user(password="s3cret-pass")
    assert user.hashed_password != "s3cret-pass"
    assert Hasher.verify_password("s3cret-pass", user.hashed_password)
    assert user.refresh_token is None


def test_register_normalizes_username_and_email(make_user):
    user = make_user(username="  Alice ", email="Alice@Example.com")
    assert user.username == "alice"
    assert user.email == "alice@example.com"


def test_register_rejects_invalid_email(db):
    with pytest.raises(AppError) as excinfo:
        services.register_user(db, "Alice", "not-an-email", "alice", "pw")
    assert _kind(excinfo) is ErrorKind.VALIDATION


def test_register_duplicate_email_conflicts(db, make_user):
    first = make_user(username="alice", email="shared@example.com")

    with pytest.raises(AppError) as excinfo:
        make_user(username="bob", email="shared@example.com")

    assert _kind(excinfo) is ErrorKind.CONFLICT
    assert db.query(User).count() == 1
    db.refresh(first)
    assert first.username == "alice"


def test_register_duplicate_username_conflicts(db, make_user):
    make_user(username="alice", email="a1@example.com")

    with pytest.raises(AppError) as excinfo:
        make_user(username="ALICE", email="a2@example.com")

    assert _kind(excinfo) is ErrorKind.CONFLICT
    assert db.query(User).count() == 1


# ---------------------------------------------------
# Hashing
# ---------------------------------------------------

def test_verify_fails_for_single_character_mutations():
    password = "Tr0ub4dor&3"
    hashed = Hasher.hash_password(password)
    assert hashed != password
    assert Hasher.verify_password(password, hashed)

    for i in range(len(password)):
        mutated = password[:i] + chr(ord(password[i]) + 1) + password[i + 1:]
        assert not Hasher.verify_password(mutated, hashed)


def test_same_password_hashes_differently():
    assert Hasher.hash_password("same") != Hasher.hash_password("same")


def test_long_passwords_differ_past_seventy_two_bytes():
    password = "a" * 80
    hashed = Hasher.hash_password(password)

    assert Hasher.verify_password(password, hashed)
    assert not Hasher.verify_password("a" * 79 + "b", hashed)
    assert not Hasher.verify_password("a" * 72, hashed)


# ---------------------------------------------------
# Login
# ---------------------------------------------------

def test_login_returns_tokens_with_identity(db, make_user):
    user = make_user()

    access_token, refresh_token, logged_in = services.login_user(db, "s3cret-pass", username="alice")

    identity = decode_access_token(access_token)
    assert (identity.id, identity.username, identity.email) == (user.id, "alice", "alice@example.com")
    assert logged_in.id == user.id
    db.refresh(user)
    assert user.refresh_token == refresh_token


def test_login_by_email(db, make_user):
    make_user()
    _, _, user = services.login_user(db, "s3cret-pass", email="ALICE@example.com")
    assert user.username == "alice"


def test_login_prefers_username_over_email(db, make_user):
    alice = make_user(username="alice")
    make_user(username="bob", password="bobs-pass")

    _, _, user = services.login_user(db, "s3cret-pass", username="alice", email="bob@example.com")
    assert user.id == alice.id

    with pytest.raises(AppError) as excinfo:
        services.login_user(db, "bobs-pass", username="alice", email="bob@example.com")
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED


def test_login_upgrades_plain_bcrypt_hash(db, make_user):
    user = make_user()
    user.hashed_password = bcrypt.using(rounds=4).hash("s3cret-pass")
    db.commit()

    services.login_user(db, "s3cret-pass", username="alice")

    db.refresh(user)
    assert user.hashed_password.startswith("$bcrypt-sha256$")
    assert Hasher.verify_password("s3cret-pass", user.hashed_password)


def test_access_token_expires_after_configured_minutes(db, make_user):
    make_user()
    access_token, _, _ = services.login_user(db, "s3cret-pass", username="alice")
    claims = jwt.get_unverified_claims(access_token)
    assert claims["exp"] - claims["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_login_unknown_user_is_not_found(db):
    with pytest.raises(AppError) as excinfo:
        services.login_user(db, "whatever", username="ghost")
    assert _kind(excinfo) is ErrorKind.NOT_FOUND


def test_login_wrong_password_is_unauthorized(db, make_user):
    make_user()
    with pytest.raises(AppError) as excinfo:
        services.login_user(db, "wrong", username="alice")
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED


def test_login_without_identifier_is_validation(db):
    with pytest.raises(AppError) as excinfo:
        services.login_user(db, "pw")
    assert _kind(excinfo) is ErrorKind.VALIDATION


# ---------------------------------------------------
# Refresh rotation
# ---------------------------------------------------

def test_rotate_issues_new_pair_and_invalidates_old(db, make_user):
    user = make_user()
    _, original_refresh, _ = services.login_user(db, "s3cret-pass", username="alice")

    access_token, new_refresh = services.rotate_refresh_token(db, original_refresh)

    assert new_refresh != original_refresh
    assert decode_access_token(access_token).id == user.id
    db.refresh(user)
    assert user.refresh_token == new_refresh

    # Replaying the original token fails and leaves the current one intact
    with pytest.raises(AppError) as excinfo:
        services.rotate_refresh_token(db, original_refresh)
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED
    db.refresh(user)
    assert user.refresh_token == new_refresh


def test_rotate_loses_race_when_stored_token_changed(db, make_user):
    make_user()
    _, token_a, _ = services.login_user(db, "s3cret-pass", username="alice")
    services.rotate_refresh_token(db, token_a)

    # A second caller holding token_a arrives after the swap
    with pytest.raises(AppError):
        services.rotate_refresh_token(db, token_a)


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_rotate_rejects_missing_or_malformed(db, token):
    with pytest.raises(AppError) as excinfo:
        services.rotate_refresh_token(db, token)
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED


def test_rotate_rejects_access_token(db, make_user):
    make_user()
    access_token, _, _ = services.login_user(db, "s3cret-pass", username="alice")
    with pytest.raises(AppError) as excinfo:
        services.rotate_refresh_token(db, access_token)
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED


def test_rotate_rejects_expired_token(db, make_user, monkeypatch):
    user = make_user()
    monkeypatch.setattr(settings, "REFRESH_TOKEN_EXPIRE_DAYS", -1)
    expired = create_refresh_token(user.id)
    user.refresh_token = expired
    db.commit()

    with pytest.raises(AppError) as excinfo:
        services.rotate_refresh_token(db, expired)
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED


def test_rotate_rejects_valid_but_unstored_token(db, make_user):
    user = make_user()
    services.login_user(db, "s3cret-pass", username="alice")
    forged_elsewhere = create_refresh_token(user.id)

    with pytest.raises(AppError):
        services.rotate_refresh_token(db, forged_elsewhere)


# ---------------------------------------------------
# Logout / password change
# ---------------------------------------------------

def test_logout_clears_token_and_is_idempotent(db, make_user):
    user = make_user()
    _, refresh_token, _ = services.login_user(db, "s3cret-pass", username="alice")

    services.logout_user(db, user.id)
    services.logout_user(db, user.id)

    db.refresh(user)
    assert user.refresh_token is None
    with pytest.raises(AppError):
        services.rotate_refresh_token(db, refresh_token)


def test_change_password(db, make_user):
    user = make_user()
    _, refresh_token, _ = services.login_user(db, "s3cret-pass", username="alice")

    services.change_password(db, user.id, "s3cret-pass", "n3w-pass")

    with pytest.raises(AppError):
        services.login_user(db, "s3cret-pass", username="alice")
    # Existing tokens are not revoked by a password change
    services.rotate_refresh_token(db, refresh_token)
    services.login_user(db, "n3w-pass", username="alice")


def test_change_password_wrong_old_password(db, make_user):
    user = make_user()
    with pytest.raises(AppError) as excinfo:
        services.change_password(db, user.id, "nope", "n3w-pass")
    assert _kind(excinfo) is ErrorKind.UNAUTHORIZED


def test_change_password_blank_new_password(db, make_user):
    user = make_user()
    with pytest.raises(AppError) as excinfo:
        services.change_password(db, user.id, "s3cret-pass", "  ")
    assert _kind(excinfo) is ErrorKind.VALIDATION
