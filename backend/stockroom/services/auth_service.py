# Overview: Service-layer operations for user accounts and password checks.

"""
Authentication Service

WHY: Every stock change is attributed to a user. Uses bcrypt for password
hashing and validates password strength before anything is stored.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_STAFF
from ..validation import ConflictError, ValidationError
from . import session_service
from stockroom.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserNotFoundError(Exception):
    """Raised when a referenced user does not exist."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash with bcrypt after the strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(username: str, email: str, password: str, role: str = ROLE_STAFF) -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises:
        ValidationError: unknown role or weak password
        ConflictError: username or email already taken
    """
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User.id).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Check credentials; `username` may also be the account email.

    Returns the User and stamps last_login_at on success, None otherwise.
    Inactive users never authenticate.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def deactivate_user(user_id: int, *, actor_user_id: int | None = None) -> tuple[User, int]:
    """
    Deactivate an account and revoke all of its sessions.

    Returns (user, sessions_revoked). The user is logged out immediately
    and can no longer authenticate.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    if not user.is_active:
        raise ValidationError("User is already deactivated")
    if user.id == actor_user_id:
        raise ValidationError("Cannot deactivate your own account")

    user.is_active = False
    revoked = session_service.revoke_all_user_sessions(user.id, "Account deactivated by admin")
    db.session.commit()
    return user, revoked
