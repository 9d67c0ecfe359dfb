"""Accounts, password hashing and the session cookie."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from flask import current_app, session as cookie_session
from werkzeug.security import check_password_hash, generate_password_hash

from donext.errors import AuthenticationError, ConflictError, ValidationError
from donext.models import User, utcnow

logger = logging.getLogger(__name__)

RESET_MESSAGE = "If an account with that email exists, we've sent a password reset link"


def hash_password(password: str) -> str:
    return generate_password_hash(password, method=current_app.config["PASSWORD_HASH_METHOD"])


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# --- session cookie -----------------------------------------------------

def login_user(user: User) -> None:
    cookie_session.clear()
    cookie_session["user_id"] = user.id
    cookie_session.permanent = True


def logout_user() -> None:
    cookie_session.clear()


def current_user_id() -> int | None:
    return cookie_session.get("user_id")


def current_user(session) -> User:
    """Resolve the caller from the session cookie or raise a 401."""
    user_id = current_user_id()
    if user_id is None:
        raise AuthenticationError()
    user = session.get(User, user_id)
    if user is None:
        # Cookie outlived its account
        logout_user()
        raise AuthenticationError()
    return user


# --- account operations -------------------------------------------------

def signup(session, name: str, email: str, password: str) -> User:
    email = _normalize_email(email)
    if session.query(User).filter_by(email=email).first():
        raise ConflictError("User with this email already exists")

    user = User(name=name.strip(), email=email, password_hash=hash_password(password))
    session.add(user)
    session.commit()
    logger.info("Created user %s", user.id)
    return user


def authenticate(session, email: str, password: str) -> User:
    user = session.query(User).filter_by(email=_normalize_email(email)).first()
    if not user or not check_password_hash(user.password_hash, password):
        raise AuthenticationError("Invalid email or password")
    return user


def request_password_reset(session, email: str) -> str:
    """Issue a reset token if the account exists.

    The returned message is the same either way so callers cannot probe
    which emails are registered.
    """
    user = session.query(User).filter_by(email=_normalize_email(email)).first()
    if user:
        token = secrets.token_hex(32)
        user.reset_token_hash = _hash_token(token)
        user.reset_token_expiry = utcnow() + timedelta(seconds=current_app.config["RESET_TOKEN_TTL"])
        session.commit()
        reset_link = f"{current_app.config['APP_URL']}/auth/reset-password?token={token}"
        logger.info("Password reset link for user %s: %s", user.id, reset_link)
    else:
        logger.info("Password reset requested for unknown email")
    return RESET_MESSAGE


def reset_password(session, token: str, new_password: str) -> User:
    token_hash = _hash_token(token)
    user = session.query(User).filter(
        User.reset_token_hash == token_hash,
        User.reset_token_expiry > utcnow(),
    ).first()
    if not user:
        raise ValidationError("Invalid or expired token")

    user.password_hash = hash_password(new_password)
    user.reset_token_hash = None
    user.reset_token_expiry = None
    session.commit()
    logger.info("Password reset for user %s", user.id)
    return user


def update_settings(session, user: User, changes: dict) -> User:
    if "email" in changes and changes["email"] is not None:
        email = _normalize_email(changes["email"])
        clash = session.query(User).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ConflictError("Email is already in use")
        changes["email"] = email

    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)
    session.commit()
    return user
