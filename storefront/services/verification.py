"""Single-step email codes for back-compatible clients: send-code, verify-otp, register.

Codes live in the same key-value store as pending signups (``otp:<email>``), so
every app instance sees the same code. No profile data is staged; the client
supplies it at register time together with the code.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.config import Settings, get_settings
from storefront.errors import ExpiredError, InvalidCodeError, NotFoundError
from storefront.models.user import User
from storefront.services import accounts
from storefront.services.auth import create_access_token
from storefront.services.kv_store import KeyValueStore
from storefront.services.notifications import send_verification_email
from storefront.services.signup import Notifier, codes_match, generate_otp, utcnow

log = logging.getLogger("uvicorn.error")


class VerificationCode(BaseModel):
    code: str
    expires_at: datetime
    verified: bool = False


class VerificationCodes:
    key_prefix = "otp:"

    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings | None = None,
        notify: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.notify = notify or send_verification_email
        self.clock = clock

    @property
    def ttl_seconds(self) -> int:
        # Store ceiling only; expires_at gates validity
        return self.settings.signup_record_ttl_seconds

    def _key(self, email: str) -> str:
        return f"{self.key_prefix}{email}"

    def send_code(self, email: str | None) -> str:
        f = accounts.require(email=email)
        email = accounts.normalize_email(f["email"])
        code = generate_otp()
        record = VerificationCode(
            code=code,
            expires_at=self.clock() + timedelta(minutes=self.settings.verification_code_expire_minutes),
        )
        # A new code replaces the previous one
        self.store.set(self._key(email), record.model_dump_json(), self.ttl_seconds)
        try:
            self.notify(email, code, self.settings.verification_code_expire_minutes)
        except Exception:
            log.exception("[Verification] Failed to send verification email to %s", email)
        return code

    def _check(self, email: str, code: str) -> VerificationCode:
        raw = self.store.get(self._key(email))
        if raw is None:
            raise NotFoundError("No verification code found. Please request a new one.")
        record = VerificationCode.model_validate_json(raw)
        if self.clock() > record.expires_at:
            self.store.delete(self._key(email))
            raise ExpiredError("Verification code has expired. Please request a new one.")
        if not codes_match(code, record.code):
            raise InvalidCodeError("Invalid verification code")
        return record

    def verify(self, email: str | None, code: str | None) -> str:
        """Check the code and mark it verified; it stays usable for register."""
        f = accounts.require(email=email, code=code)
        email = accounts.normalize_email(f["email"])
        record = self._check(email, f["code"])
        record.verified = True
        self.store.set(self._key(email), record.model_dump_json(), self.ttl_seconds)
        return email

    def consume(self, email: str | None, code: str | None) -> str:
        """Check the code and delete it (single use)."""
        f = accounts.require(email=email, code=code)
        email = accounts.normalize_email(f["email"])
        self._check(email, f["code"])
        self.store.delete(self._key(email))
        return email

    def register(
        self,
        db: Session,
        *,
        name: str | None,
        phone: str | None,
        email: str | None,
        password: str | None,
        city: str | None,
        code: str | None,
    ) -> tuple[User, str]:
        f = accounts.require(name=name, phone=phone, email=email, password=password, city=city, code=code)
        city = accounts.check_city(f["city"])
        email = accounts.normalize_email(f["email"])
        phone = accounts.normalize_phone(f["phone"])
        accounts.ensure_email_free(db, email)
        self.consume(email, f["code"])
        user = accounts.create_account(
            db,
            name=f["name"],
            email=email,
            phone=phone,
            password=password,
            city=city,
        )
        return user, create_access_token(user.id, user.email, user.role)
