"""
User Service — login, admin account management, startup admin seeding.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from docflow.core.enums import UserRole, enum_values
from docflow.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from docflow.models import db
from docflow.models.auth import User
from docflow.services.jwt_service import generate_access_token
from docflow.utils.crypto import hash_password, verify_password
from docflow.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_ROLES = enum_values(UserRole)


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email is required", details={"email": "required"})
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}", details={"email": "invalid"}) from exc


def _check_password(password) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too_short"},
        )
    return password


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════


def get_user_by_email(email: str) -> User | None:
    return db.session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def authenticate(email, password) -> tuple[User, str]:
    """Check credentials and issue an access token.

    Returns:
        (user, token)

    Raises:
        UnauthorizedError: unknown email or wrong password (same message
            for both so the response does not reveal which accounts exist).
    """
    missing = {
        key: "required"
        for key, value in (("email", email), ("password", password))
        if not isinstance(value, str) or not value
    }
    if missing:
        raise ValidationError("Email and password are required", details=missing)
    user = get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise UnauthorizedError("Invalid email or password")

    token = generate_access_token(user.id, user.email, user.role)
    logger.info("User logged in", extra={"user_id": user.id})
    return user, token


# ═══════════════════════════════════════════════════════════════
# Admin operations
# ═══════════════════════════════════════════════════════════════


def list_users() -> list[User]:
    return list(db.session.execute(select(User).order_by(User.created_at, User.email)).scalars())


def create_user(email, password, role=UserRole.USER.value) -> User:
    """Create an account (admin only; there is no self-registration).

    Raises:
        ValidationError: bad email, short password, unknown role.
        ConflictError: email already registered.
    """
    email = _normalize_email(email)
    password = _check_password(password)
    role = role or UserRole.USER.value
    if role not in _ROLES:
        raise ValidationError("Invalid role", details={"role": "invalid_enum"})
    if get_user_by_email(email) is not None:
        raise ConflictError("User", "email", email)

    user = User(email=email, password_hash=hash_password(password), role=role)
    db.session.add(user)
    commit_or_raise("User", "email")
    logger.info("User created: %s (%s)", email, role, extra={"user_id": user.id})
    return user


def reset_password(user_id: str, new_password) -> User:
    user = get_user(user_id)
    user.password_hash = hash_password(_check_password(new_password))
    commit_or_raise("User")
    logger.info("Password reset", extra={"user_id": user.id})
    return user


def seed_admin(email: str, password: str) -> User | None:
    """Create the initial ADMIN account if no user has that email.

    Returns the created user, or None when it already existed. The
    address comes from deployment config and may use a local-only domain
    (``admin@docmv.local``), so it is not run through email validation.
    """
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
    if get_user_by_email(email) is not None:
        return None
    user = User(email=email, password_hash=hash_password(password), role=UserRole.ADMIN.value)
    db.session.add(user)
    commit_or_raise("User", "email")
    logger.info("Seeded admin user %s", email)
    return user
