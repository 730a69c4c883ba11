"""Auth and signup request/response bodies.

Request fields are optional strings on purpose: presence and format are checked
by the signup services so that a missing field is a 400 with a readable message.
"""
from pydantic import BaseModel, ConfigDict, Field
from storefront.models.user import UserRole


class SignupStep1Request(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class SignupStep2Request(BaseModel):
    email: str | None = None
    otp: str | None = None


class SignupStep3Request(BaseModel):
    email: str | None = None
    password: str | None = None
    city: str | None = None


class SendCodeRequest(BaseModel):
    email: str | None = None


class VerifyCodeRequest(BaseModel):
    email: str | None = None
    code: str | None = None


class RegisterRequest(BaseModel):
    """Single-step registration; the mobile client sends either ``code`` or ``verificationCode``."""
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    phone: str | None = None
    email: str | None = None
    password: str | None = None
    city: str | None = None
    code: str | None = None
    verification_code: str | None = Field(default=None, alias="verificationCode")

    @property
    def otp(self) -> str | None:
        return self.code or self.verification_code


class UserLogin(BaseModel):
    email: str | None = None
    password: str | None = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str | None = None
    city: str
    role: UserRole
    is_blocked: bool = False

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str
    # Only populated when EXPOSE_OTP is on (dev/test)
    otp: str | None = None


class VerifyCodeResponse(BaseModel):
    message: str
    email: str


class AuthResponse(BaseModel):
    message: str | None = None
    user: UserResponse
    token: str
