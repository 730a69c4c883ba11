"""Shared dependencies: DB session, key-value store, signup services, current user."""
from fastapi import BackgroundTasks, Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.models.user import User
from storefront.services.auth import decode_token_with_error
from storefront.services.kv_store import KeyValueStore, get_store
from storefront.services.notifications import send_verification_email
from storefront.services.signup import Notifier, SignupWorkflow
from storefront.services.verification import VerificationCodes

security = HTTPBearer(auto_error=False)


def get_kv_store() -> KeyValueStore:
    return get_store()


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    """Queue the code email to go out after the response is sent."""
    def notify(to_email: str, code: str, expire_minutes: int) -> None:
        background_tasks.add_task(send_verification_email, to_email, code, expire_minutes)
    return notify


def get_signup_workflow(
    db: Session = Depends(get_db),
    store: KeyValueStore = Depends(get_kv_store),
    notify: Notifier = Depends(get_notifier),
) -> SignupWorkflow:
    return SignupWorkflow(db, store, notify=notify)


def get_verification_codes(
    store: KeyValueStore = Depends(get_kv_store),
    notify: Notifier = Depends(get_notifier),
) -> VerificationCodes:
    return VerificationCodes(store, notify=notify)


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload, _ = decode_token_with_error((credentials.credentials or "").strip())
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.is_blocked:
        raise HTTPException(status_code=403, detail="Access blocked")
    return user
