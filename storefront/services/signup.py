"""Multi-step signup: step 1 stages the profile and emails a code, step 2 confirms
the code, step 3 creates the account.

States per email: no record -> PENDING -> VERIFIED -> account created (record gone).
The pending record lives in the key-value store under ``signup:<email>`` with a
one-hour TTL; the code inside it is only good for the first five minutes.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.config import Settings, get_settings
from storefront.errors import (
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    NotVerifiedError,
)
from storefront.models.user import User
from storefront.services import accounts
from storefront.services.auth import create_access_token
from storefront.services.kv_store import KeyValueStore
from storefront.services.notifications import send_verification_email

log = logging.getLogger("uvicorn.error")

Notifier = Callable[[str, str, int], object]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp() -> str:
    """Uniformly random 6-digit code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


def codes_match(submitted: str, stored: str) -> bool:
    return secrets.compare_digest(submitted.encode("utf-8"), stored.encode("utf-8"))


class PendingSignup(BaseModel):
    name: str
    email: str
    phone: str
    otp: str
    otp_expiry: datetime
    verified: bool = False
    created_at: datetime
    verified_at: datetime | None = None


class SignupWorkflow:
    key_prefix = "signup:"

    def __init__(
        self,
        db: Session,
        store: KeyValueStore,
        settings: Settings | None = None,
        notify: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.store = store
        self.settings = settings or get_settings()
        self.notify = notify or send_verification_email
        self.clock = clock

    def _key(self, email: str) -> str:
        return f"{self.key_prefix}{email}"

    def _save(self, pending: PendingSignup) -> None:
        self.store.set(self._key(pending.email), pending.model_dump_json(), self.settings.signup_record_ttl_seconds)

    def load(self, email: str) -> PendingSignup | None:
        raw = self.store.get(self._key(email))
        if raw is None:
            return None
        return PendingSignup.model_validate_json(raw)

    def discard(self, email: str) -> None:
        self.store.delete(self._key(email))

    def begin(self, name: str | None, email: str | None, phone: str | None) -> PendingSignup:
        f = accounts.require(name=name, email=email, phone=phone)
        email = accounts.normalize_email(f["email"])
        phone = accounts.normalize_phone(f["phone"])
        accounts.ensure_email_free(self.db, email)

        now = self.clock()
        pending = PendingSignup(
            name=f["name"],
            email=email,
            phone=phone,
            otp=generate_otp(),
            otp_expiry=now + timedelta(minutes=self.settings.signup_otp_expire_minutes),
            created_at=now,
        )
        # Overwrites any earlier record for this email, which invalidates its code
        self._save(pending)
        log.info("[Signup] Step 1 staged for %s", email)
        self._dispatch(pending)
        return pending

    def _dispatch(self, pending: PendingSignup) -> None:
        try:
            self.notify(pending.email, pending.otp, self.settings.signup_otp_expire_minutes)
        except Exception:
            log.exception("[Signup] Failed to send OTP email to %s", pending.email)

    def confirm(self, email: str | None, code: str | None) -> PendingSignup:
        f = accounts.require(email=email, otp=code)
        email = accounts.normalize_email(f["email"])
        pending = self.load(email)
        if pending is None:
            raise NotFoundError("No signup process found. Please start again.")
        if self.clock() > pending.otp_expiry:
            self.discard(email)
            raise ExpiredError("OTP has expired. Please start again.")
        if not codes_match(f["otp"], pending.otp):
            raise InvalidCodeError("Invalid OTP")

        pending.verified = True
        pending.verified_at = self.clock()
        self._save(pending)
        log.info("[Signup] Step 2 verified for %s", email)
        return pending

    def complete(self, email: str | None, password: str | None, city: str | None) -> tuple[User, str]:
        f = accounts.require(email=email, password=password, city=city)
        city = accounts.check_city(f["city"])
        email = accounts.normalize_email(f["email"])
        pending = self.load(email)
        if pending is None:
            raise NotFoundError("No signup process found. Please start again.")
        if not pending.verified:
            raise NotVerifiedError("Please verify your OTP first")
        if accounts.get_by_email(self.db, email) is not None:
            self.discard(email)
            raise ConflictError("User already exists with this email")

        try:
            user = accounts.create_account(
                self.db,
                name=pending.name,
                email=pending.email,
                phone=pending.phone,
                password=password,
                city=city,
            )
        except ConflictError:
            self.discard(email)
            raise
        # Only after the account is committed, so a failed insert leaves the record retryable
        self.discard(email)
        token = create_access_token(user.id, user.email, user.role)
        return user, token
