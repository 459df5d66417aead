# Overview: Service-layer operations for users; creation with bcrypt hashing and lookup.

"""
User store.

The transaction engine only needs to resolve that a user exists; role checks
happen outside of it. Passwords are hashed with bcrypt and never returned.
"""

import bcrypt

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User, USER_ROLES

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def create_user(username: str, password: str, role: str = "cashier") -> User:
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username '{username}' already exists", details={"username": username})

    user = User(username=username, password_hash=hash_password(password), role=role)
    db.session.add(user)
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User with ID {user_id} not found", details={"user_id": user_id})
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()
