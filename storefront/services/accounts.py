"""Durable accounts: lookup, creation, login, admin seeding."""
import logging
import re

from email_validator import validate_email, EmailNotValidError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.errors import ConflictError, ValidationError
from storefront.models.user import User, UserRole
from storefront.schemas.auth import UserResponse
from storefront.services.auth import get_password_hash, verify_password

log = logging.getLogger("uvicorn.error")

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15


def require(**fields: str | None) -> dict[str, str]:
    """Strip every field; raise ValidationError naming the ones that are missing or blank."""
    cleaned = {k: (v or "").strip() for k, v in fields.items()}
    missing = [k for k, v in cleaned.items() if not v]
    if missing:
        names = ", ".join(k.replace("_", " ") for k in missing)
        raise ValidationError(f"Missing required field(s): {names}")
    return cleaned


def normalize_email(value: str) -> str:
    try:
        return validate_email(value, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e}")


def normalize_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value)
    if len(digits) < PHONE_MIN_DIGITS:
        raise ValidationError(f"Phone number must have at least {PHONE_MIN_DIGITS} digits.")
    if len(digits) > PHONE_MAX_DIGITS:
        raise ValidationError(f"Phone number cannot exceed {PHONE_MAX_DIGITS} digits.")
    return value.strip()


def check_city(city: str) -> str:
    allowed = get_settings().allowed_cities
    if city not in allowed:
        raise ValidationError(f"Only Tricity users allowed ({', '.join(allowed)})")
    return city


def get_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email).first()


def ensure_email_free(db: Session, email: str) -> None:
    if get_by_email(db, email) is not None:
        raise ConflictError("User already exists with this email")


def create_account(
    db: Session,
    *,
    name: str,
    email: str,
    phone: str | None,
    password: str,
    city: str,
    role: UserRole = UserRole.user,
) -> User:
    """Hash the password and insert the user. A unique-email race surfaces as ConflictError."""
    user = User(
        name=name,
        email=email,
        phone=phone,
        password=get_password_hash(password),
        city=city,
        role=role,
        is_blocked=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User already exists with this email")
    db.refresh(user)
    log.info("[Accounts] User registered successfully: %s", user.email)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = get_by_email(db, email)
    if not user or not verify_password(password, user.password):
        return None
    return user


def to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


def seed_admin(db: Session) -> User | None:
    """Create the configured admin account if ADMIN_EMAIL is set and not yet taken."""
    s = get_settings()
    if not (s.admin_email or "").strip() or not s.admin_password:
        return None
    email = normalize_email(s.admin_email.strip())
    existing = get_by_email(db, email)
    if existing:
        log.info("[Accounts] Admin user already exists with email: %s", email)
        return existing
    return create_account(
        db,
        name=s.admin_name,
        email=email,
        phone=s.admin_phone,
        password=s.admin_password,
        city=s.admin_city,
        role=UserRole.admin,
    )
