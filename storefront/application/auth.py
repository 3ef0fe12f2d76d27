from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from storefront.core.logging_config import get_logger
from storefront.core_settings import Settings
from storefront.domain.models import Role, User
from storefront.domain.repository import Repository
from storefront.errors import BadRequestError, ConflictError, UnauthorizedError

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_access_token(settings: Settings, user: User) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(settings: Settings, token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None


def validate_admin_credentials(email: str, password: str) -> None:
    if "@" not in email:
        raise BadRequestError("A valid email address is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class AuthService:
    def __init__(self, repo: Repository, settings: Settings):
        self.repo = repo
        self.settings = settings

    def login(self, email: str, password: str) -> str:
        user = self.repo.get_user_by_email(email.lower())
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed sign-in attempt", extra={"extra_fields": {"email": email}})
            raise UnauthorizedError("Invalid email or password")
        with self.repo.transaction():
            self.repo.update_user(user.id, {"last_signed_in": datetime.utcnow()})
        logger.info("User signed in", extra={"extra_fields": {"user_id": user.id, "role": user.role}})
        return create_access_token(self.settings, user)

    def create_admin(self, email: str, password: str, name: Optional[str] = None) -> User:
        """Create an admin account, or promote an existing user and reset its password."""
        email = email.strip().lower()
        validate_admin_credentials(email, password)
        with self.repo.transaction():
            existing = self.repo.get_user_by_email(email)
            if existing is not None:
                if existing.role == Role.ADMIN.value:
                    raise ConflictError(f"Admin {email} already exists", code="USER_EXISTS")
                return self.repo.update_user(existing.id, {
                    "role": Role.ADMIN.value,
                    "password_hash": hash_password(password),
                    "name": name or existing.name,
                })
            user = self.repo.add_user(User(
                email=email,
                name=name,
                password_hash=hash_password(password),
                role=Role.ADMIN.value,
            ))
        logger.info("Admin account created", extra={"extra_fields": {"user_id": user.id}})
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        return self.repo.get_user(user_id)
