"""Authentication: multi-step signup, legacy code endpoints, login."""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.dependencies import get_current_user, get_signup_workflow, get_verification_codes
from storefront.errors import SignupError
from storefront.models.user import User
from storefront.schemas.auth import (
    AuthResponse,
    MessageResponse,
    RegisterRequest,
    SendCodeRequest,
    SignupStep1Request,
    SignupStep2Request,
    SignupStep3Request,
    UserLogin,
    UserResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from storefront.services import accounts
from storefront.services.auth import create_access_token
from storefront.services.notifications import email_configured, send_welcome_email
from storefront.services.signup import SignupWorkflow
from storefront.services.verification import VerificationCodes

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _code_sent_message() -> str:
    if email_configured():
        return "OTP sent to your email"
    return "OTP generated. Please check your email or contact support if not received."


def _exposed(code: str) -> str | None:
    return code if get_settings().expose_otp else None


@router.post("/signup/step1", response_model=MessageResponse)
def signup_step1(data: SignupStep1Request, workflow: SignupWorkflow = Depends(get_signup_workflow)):
    try:
        pending = workflow.begin(data.name, data.email, data.phone)
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return MessageResponse(message=_code_sent_message(), otp=_exposed(pending.otp))


@router.post("/signup/step2", response_model=MessageResponse)
def signup_step2(data: SignupStep2Request, workflow: SignupWorkflow = Depends(get_signup_workflow)):
    try:
        workflow.confirm(data.email, data.otp)
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return MessageResponse(message="OTP verified successfully")


@router.post("/signup/step3", response_model=AuthResponse, status_code=201)
def signup_step3(
    data: SignupStep3Request,
    background_tasks: BackgroundTasks,
    workflow: SignupWorkflow = Depends(get_signup_workflow),
):
    try:
        user, token = workflow.complete(data.email, data.password, data.city)
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    background_tasks.add_task(send_welcome_email, user.email, user.name)
    return AuthResponse(
        message="Registration completed successfully",
        user=accounts.to_response(user),
        token=token,
    )


@router.post("/send-code", response_model=MessageResponse)
def send_code(data: SendCodeRequest, codes: VerificationCodes = Depends(get_verification_codes)):
    try:
        code = codes.send_code(data.email)
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return MessageResponse(message="Verification code sent to your email", otp=_exposed(code))


@router.post("/verify-otp", response_model=VerifyCodeResponse)
def verify_otp(data: VerifyCodeRequest, codes: VerificationCodes = Depends(get_verification_codes)):
    try:
        email = codes.verify(data.email, data.code)
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return VerifyCodeResponse(message="OTP verified successfully!", email=email)


@router.post("/test-verify-otp", response_model=VerifyCodeResponse)
def test_verify_otp(data: VerifyCodeRequest, codes: VerificationCodes = Depends(get_verification_codes)):
    """Dev/test only: verify and consume a code. Disabled unless EXPOSE_OTP is on."""
    if not get_settings().expose_otp:
        raise HTTPException(status_code=404, detail="Not found")
    try:
        email = codes.consume(data.email, data.code)
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return VerifyCodeResponse(message="OTP verified successfully!", email=email)


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    codes: VerificationCodes = Depends(get_verification_codes),
):
    try:
        user, token = codes.register(
            db,
            name=data.name,
            phone=data.phone,
            email=data.email,
            password=data.password,
            city=data.city,
            code=data.otp,
        )
    except SignupError as e:
        raise HTTPException(status_code=400, detail=e.message)
    background_tasks.add_task(send_welcome_email, user.email, user.name)
    return AuthResponse(user=accounts.to_response(user), token=token)


@router.post("/login", response_model=AuthResponse)
def login(data: UserLogin, db: Session = Depends(get_db)):
    raw_email = (data.email or "").strip()
    if not raw_email or not data.password:
        raise HTTPException(status_code=400, detail="Email and password required")
    try:
        email = accounts.normalize_email(raw_email)
    except SignupError:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    user = accounts.authenticate(db, email, data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if user.is_blocked:
        raise HTTPException(status_code=403, detail="Access blocked")
    token = create_access_token(user.id, user.email, user.role)
    return AuthResponse(user=accounts.to_response(user), token=token)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return accounts.to_response(current_user)


@router.post("/logout", response_model=MessageResponse)
def logout(current_user: User = Depends(get_current_user)):
    return MessageResponse(message="Logout success (client deletes token)")
