# Overview: Service-layer operations for auth; password hashing and customer bearer tokens.

"""
Authentication helpers

WHY: Delivery customers sign in with email + password once approved.
Passwords are hashed with bcrypt; API calls carry a signed, time-limited
bearer token (itsdangerous) instead of a server-side session.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower and a digit
- Tokens are signed with SECRET_KEY and expire after
  CUSTOMER_TOKEN_MAX_AGE_SECONDS
"""

from __future__ import annotations

import hmac
import re

import bcrypt
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer


TOKEN_SALT = "delivery-customer"


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# =============================================================================
# TOKENS
# =============================================================================

def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_customer_token(customer_id: int) -> str:
    return _serializer().dumps({"customer_id": customer_id})


def load_customer_token(token: str) -> int | None:
    """Customer id for a valid, unexpired token; None otherwise."""
    max_age = int(current_app.config["CUSTOMER_TOKEN_MAX_AGE_SECONDS"])
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except (SignatureExpired, BadSignature):
        return None
    customer_id = payload.get("customer_id") if isinstance(payload, dict) else None
    return customer_id if isinstance(customer_id, int) else None


def is_valid_admin_token(token: str | None) -> bool:
    expected = current_app.config.get("ADMIN_API_TOKEN") or ""
    if not expected or not token:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8"))
