from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    Terminal user authenticated by PIN.

    The PIN itself is never stored: only a bcrypt salt and the salted hash.
    Users are deactivated rather than deleted so sales keep their attribution.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    ROLE_ADMIN = "admin"
    ROLE_SELLER = "seller"
    ROLES = (ROLE_ADMIN, ROLE_SELLER)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_SELLER)

    pin_salt = db.Column(db.String(64), nullable=False)
    pin_hash = db.Column(db.String(128), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
