"""Notification service (Mailgun/SendGrid email).

Email is optional: with neither provider configured every send is a logged
no-op that returns False. Senders never raise; callers treat delivery as best-effort.
"""
import logging

import httpx

from storefront.config import Settings, get_settings

log = logging.getLogger("uvicorn.error")

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def email_configured(settings: Settings | None = None) -> bool:
    s = settings or get_settings()
    return bool((s.mailgun_api_key and s.mailgun_domain) or s.sendgrid_api_key)


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send email via Mailgun (preferred) or SendGrid. Returns True if a provider accepted it."""
    settings = get_settings()
    if settings.mailgun_api_key and settings.mailgun_domain:
        log.info("[Email] Calling Mailgun API: to=%s subject=%s domain=%s", to_email, subject, settings.mailgun_domain)
        return _send_email_mailgun(to_email, subject, html_content, text_content=text_content, settings=settings)
    if settings.sendgrid_api_key:
        return _send_email_sendgrid(to_email, subject, html_content, text_content=text_content, settings=settings)
    log.info("[Email] Email credentials not configured, skipping email to %s (subject=%s)", to_email, subject)
    return False


def _send_email_mailgun(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    domain = (settings.mailgun_domain or "").strip().lower()
    from_addr = (settings.mailgun_from_email or "").strip()
    from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
    if domain and from_domain != domain:
        # Mailgun drops mail whose sender domain differs from the sending domain
        from_addr = f"noreply@{domain}"
    data = {
        "from": f"{settings.mailgun_from_name} <{from_addr}>",
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if 200 <= r.status_code < 300:
                log.info("[Mailgun] API success: to=%s status=%s", to_email, r.status_code)
                return True
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                log.warning("[Mailgun] 401 with US endpoint. Retrying with EU endpoint...")
                r2 = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
                if 200 <= r2.status_code < 300:
                    log.info("[Mailgun] API success (EU): to=%s", to_email)
                    return True
                log.error("[Mailgun] EU request failed: status=%s body=%s", r2.status_code, r2.text[:500])
                return False
            log.error("[Mailgun] API failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
            return False
    except httpx.HTTPError as e:
        log.error("[Mailgun] Exception: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False


def _send_email_sendgrid(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    from sendgrid import SendGridAPIClient
    from sendgrid.helpers.mail import Mail

    message = Mail(
        from_email=(settings.sendgrid_from_email, settings.sendgrid_from_name),
        to_emails=to_email,
        subject=subject,
        html_content=html_content,
        plain_text_content=text_content or "",
    )
    try:
        SendGridAPIClient(settings.sendgrid_api_key).send(message)
        return True
    except Exception as e:  # python_http_client raises per-status subclasses of Exception
        log.error("[SendGrid] Send failed: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False


def send_verification_email(to_email: str, code: str, expire_minutes: int) -> bool:
    """Send the 6-digit verification code used by both signup flows."""
    settings = get_settings()
    if settings.debug:
        log.info("[Verification] Sending code %s to %s", code, to_email)
    subject = f"Your Verification Code - {settings.mailgun_from_name}"
    text_content = f"Your verification code is: {code}. It expires in {expire_minutes} minutes."
    html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #0066CC;">Email Verification</h2>
      <p>Your verification code is:</p>
      <div style="background-color: #f0f0f0; padding: 20px; text-align: center; font-size: 24px; font-weight: bold; color: #0066CC;">{code}</div>
      <p>This code will expire in {expire_minutes} minutes.</p>
      <p>If you didn't request this code, please ignore this email.</p>
    </div>
    """
    ok = send_email(to_email, subject, html_content, text_content=text_content)
    if not ok:
        log.warning("[Verification] Code email to %s was not delivered", to_email)
    return ok


def send_welcome_email(to_email: str, name: str | None = None) -> bool:
    """Send welcome email once the account exists."""
    settings = get_settings()
    who = (name or "").strip() or "there"
    subject = f"Welcome to {settings.mailgun_from_name}"
    text = f"Hi {who}, your account is ready. You can now sign in and start shopping."
    html = f"""
    <p>Hi {who},</p>
    <p>Your account is ready. You can now sign in and start shopping.</p>
    <p>- {settings.mailgun_from_name}</p>
    """
    return send_email(to_email, subject, html, text_content=text)
