# Overview: Service-layer operations for PIN users; credential hashing and verification.

"""
PIN Authentication Service

WHY: Every sale, session open/close and void is attributed to a user.
Users sign in on the terminal with a short numeric PIN.

SECURITY NOTES:
- PINs are hashed with bcrypt; the per-user bcrypt salt is stored next to the hash
- Verification is timing-safe (bcrypt.checkpw)
- Inactive users never authenticate
- The first admin can only be created while no admin exists
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError

PIN_PATTERN = re.compile(r"^\d{4,6}$")
BCRYPT_ROUNDS = 12


class PinValidationError(ValidationError):
    """Raised when a PIN doesn't meet format requirements."""


def validate_pin(pin: str) -> None:
    """
    Validate PIN format.

    Requirements:
    - 4 to 6 digits
    - Not all the same digit (e.g., 1111)
    """
    if not isinstance(pin, str) or not PIN_PATTERN.match(pin):
        raise PinValidationError("PIN must be 4 to 6 digits")
    if len(set(pin)) == 1:
        raise PinValidationError("PIN cannot be a single repeated digit")


def generate_salt() -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", BCRYPT_ROUNDS)
    return bcrypt.gensalt(rounds=rounds).decode("utf-8")


def hash_pin(pin: str, salt: str) -> str:
    """Hash a PIN with the given bcrypt salt (from generate_salt)."""
    hashed = bcrypt.hashpw(pin.encode("utf-8"), salt.encode("utf-8"))
    return hashed.decode("utf-8")


def verify_pin(pin: str, salt: str, pin_hash: str) -> bool:
    """
    Verify a PIN against the stored hash.

    The salt is embedded in bcrypt hashes; it is still checked so a hash
    paired with the wrong salt row never validates.
    """
    if not pin or not pin_hash or not salt:
        return False
    if not pin_hash.startswith(salt[:29]):
        return False
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_username(username: str) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    return username


def create_user(username: str, pin: str, role: str = User.ROLE_SELLER) -> User:
    """
    Create a new PIN user.

    Raises:
        ValidationError: invalid username, role or PIN
        ConflictError: username already taken
    """
    username = _normalize_username(username)
    if role not in User.ROLES:
        raise ValidationError(f"role must be one of: {', '.join(User.ROLES)}")
    validate_pin(pin)

    existing = db.session.query(User).filter(db.func.lower(User.username) == username.lower()).first()
    if existing:
        raise ConflictError("Username already exists")

    salt = generate_salt()
    user = User(
        username=username,
        role=role,
        pin_salt=salt,
        pin_hash=hash_pin(pin, salt),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def verify_credentials(username: str, pin: str) -> User | None:
    """Return the active user matching username + PIN, or None."""
    if not username or not pin:
        return None

    user = db.session.query(User).filter(
        db.func.lower(User.username) == username.strip().lower(),
        User.is_active.is_(True),
    ).first()
    if user is None:
        return None

    if not verify_pin(pin, user.pin_salt, user.pin_hash):
        return None
    return user


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def list_users(include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username.asc()).all()


def update_pin(user_id: int, new_pin: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise ValidationError("User not found")
    validate_pin(new_pin)

    salt = generate_salt()
    user.pin_salt = salt
    user.pin_hash = hash_pin(new_pin, salt)
    db.session.commit()
    return user


def set_user_active(user_id: int, is_active: bool) -> User:
    """
    Activate or deactivate a user.

    The last active admin cannot be deactivated; the terminal would be
    left without anyone able to manage users.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValidationError("User not found")

    if not is_active and user.is_admin and user.is_active:
        other_admins = db.session.query(User).filter(
            User.role == User.ROLE_ADMIN,
            User.is_active.is_(True),
            User.id != user.id,
        ).count()
        if other_admins == 0:
            raise ConflictError("Cannot deactivate the last active admin")

    user.is_active = is_active
    db.session.commit()
    return user


def has_admin() -> bool:
    return db.session.query(User.id).filter(
        User.role == User.ROLE_ADMIN,
        User.is_active.is_(True),
    ).first() is not None


def setup_admin(username: str, pin: str) -> User:
    """First-run bootstrap: create the initial admin."""
    if has_admin():
        raise ConflictError("An admin user already exists")
    return create_user(username, pin, role=User.ROLE_ADMIN)
