"""Staff account rules shared by login and user management."""
from typing import Optional

from sqlalchemy.orm import Session

from safari_ops.auth import hash_password, verify_password
from safari_ops.exceptions import DuplicateEmail
from safari_ops.models import User
from safari_ops.permissions import VALID_ROLES

MIN_PASSWORD_LENGTH = 6


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_role(role: str) -> str:
    if role not in VALID_ROLES:
        raise ValueError(f"Role must be one of: {', '.join(VALID_ROLES)}")
    return role


def validate_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(db: Session, email: str, name: str, password: str, role: str) -> User:
    """Add a staff account. The caller commits.

    Raises ValueError for a bad role or password and DuplicateEmail when the
    normalized address is taken.
    """
    email = normalize_email(email)
    validate_role(role)
    if find_by_email(db, email):
        raise DuplicateEmail(email)
    validate_password(password)

    user = User(email=email, name=name, hashed_password=hash_password(password), role=role)
    db.add(user)
    db.flush()
    return user


def update_user(
    user: User,
    name: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    password: Optional[str] = None,
) -> list[str]:
    """Apply the given fields to `user` and describe what changed.

    Everything is validated before anything is written, so a bad role or
    password leaves the account untouched.
    """
    if role is not None:
        validate_role(role)
    if password is not None:
        validate_password(password)

    changes = []
    if name is not None:
        user.name = name
        changes.append(f"name='{name}'")
    if role is not None:
        user.role = role
        changes.append(f"role='{role}'")
    if is_active is not None:
        user.is_active = is_active
        changes.append(f"is_active={is_active}")
    if password is not None:
        user.hashed_password = hash_password(password)
        changes.append("password changed")
    return changes


def change_password(user: User, old_password: str, new_password: str):
    if not verify_password(old_password, user.hashed_password):
        raise ValueError("Current password is incorrect")
    validate_password(new_password)
    user.hashed_password = hash_password(new_password)
