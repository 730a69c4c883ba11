import json
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from storefront.errors import (
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    NotVerifiedError,
    ValidationError,
)
from storefront.models.user import User, UserRole
from storefront.services import accounts
from storefront.services.auth import decode_token, verify_password
from storefront.services.signup import PendingSignup, generate_otp

from conftest import other_code

EMAIL = "a@x.com"


def _begin(workflow, email=EMAIL):
    return workflow.begin("A", email, "9999999999")


def test_generate_otp_is_six_digits():
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6 and code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_begin_stages_pending_record_and_sends_code(workflow, store, outbox, clock):
    pending = _begin(workflow)

    raw = store.get("signup:a@x.com")
    stored = PendingSignup.model_validate_json(raw)
    assert stored.name == "A"
    assert stored.phone == "9999999999"
    assert stored.verified is False
    assert stored.otp == pending.otp
    assert stored.created_at == clock.now
    assert stored.otp_expiry == clock.now + timedelta(minutes=5)
    assert outbox.sent == [(EMAIL, pending.otp, 5)]


def test_begin_normalizes_email(workflow, store):
    workflow.begin("A", "  A@X.com ", "9999999999")
    assert store.get("signup:a@x.com") is not None


@pytest.mark.parametrize(
    "name,email,phone",
    [
        (None, EMAIL, "9999999999"),
        ("A", "", "9999999999"),
        ("A", EMAIL, "   "),
        ("A", "not-an-email", "9999999999"),
        ("A", EMAIL, "12345"),
    ],
)
def test_begin_rejects_bad_input(workflow, store, name, email, phone):
    with pytest.raises(ValidationError):
        workflow.begin(name, email, phone)
    assert len(store) == 0


def test_begin_rejects_registered_email(workflow, db):
    accounts.create_account(db, name="B", email=EMAIL, phone="8888888888", password="pw123456", city="Mohali")
    with pytest.raises(ConflictError):
        _begin(workflow)


def test_begin_survives_dispatch_failure(db, store, clock):
    from storefront.services.signup import SignupWorkflow

    def broken(to_email, code, minutes):
        raise RuntimeError("smtp down")

    wf = SignupWorkflow(db, store, notify=broken, clock=clock)
    pending = wf.begin("A", EMAIL, "9999999999")
    assert wf.load(EMAIL).otp == pending.otp


def test_confirm_with_correct_code(workflow, clock):
    pending = _begin(workflow)
    clock.advance(minutes=2)
    confirmed = workflow.confirm(EMAIL, pending.otp)
    assert confirmed.verified is True
    assert confirmed.verified_at == clock.now
    assert workflow.load(EMAIL).verified is True


def test_confirm_with_wrong_code_keeps_record(workflow):
    pending = _begin(workflow)
    for _ in range(5):
        with pytest.raises(InvalidCodeError):
            workflow.confirm(EMAIL, other_code(pending.otp))
    # unlimited retries until expiry
    assert workflow.confirm(EMAIL, pending.otp).verified is True


def test_confirm_without_record(workflow):
    with pytest.raises(NotFoundError):
        workflow.confirm(EMAIL, "123456")


def test_confirm_after_expiry_removes_record(workflow, clock):
    pending = _begin(workflow)
    clock.advance(minutes=5, seconds=1)
    with pytest.raises(ExpiredError):
        workflow.confirm(EMAIL, pending.otp)
    assert workflow.load(EMAIL) is None
    with pytest.raises(NotFoundError):
        workflow.confirm(EMAIL, pending.otp)


def test_confirm_at_exact_expiry_still_valid(workflow, clock):
    pending = _begin(workflow)
    clock.advance(minutes=5)
    assert workflow.confirm(EMAIL, pending.otp).verified is True


def test_rebegin_invalidates_previous_code(workflow):
    first = _begin(workflow)
    second = _begin(workflow)
    if first.otp == second.otp:
        second = _begin(workflow)
    assert first.otp != second.otp
    with pytest.raises(InvalidCodeError):
        workflow.confirm(EMAIL, first.otp)
    assert workflow.confirm(EMAIL, second.otp).verified is True


def test_complete_before_confirm(workflow):
    _begin(workflow)
    with pytest.raises(NotVerifiedError):
        workflow.complete(EMAIL, "secret1", "Mohali")


def test_complete_without_record(workflow):
    with pytest.raises(NotFoundError):
        workflow.complete(EMAIL, "secret1", "Mohali")


@pytest.mark.parametrize("verified", [False, True])
def test_complete_rejects_city_outside_tricity(workflow, verified):
    pending = _begin(workflow)
    if verified:
        workflow.confirm(EMAIL, pending.otp)
    with pytest.raises(ValidationError):
        workflow.complete(EMAIL, "secret1", "Delhi")
    # record untouched
    assert workflow.load(EMAIL).verified is verified


def test_complete_rejects_city_even_without_record(workflow):
    with pytest.raises(ValidationError):
        workflow.complete(EMAIL, "secret1", "Ludhiana")


def test_complete_creates_account_and_token(workflow, db):
    pending = _begin(workflow)
    workflow.confirm(EMAIL, pending.otp)
    user, token = workflow.complete(EMAIL, "secret1", "Mohali")

    assert user.id is not None
    assert user.name == "A"
    assert user.phone == "9999999999"
    assert user.city == "Mohali"
    assert user.role == UserRole.user
    assert user.is_blocked is False
    assert user.password != "secret1"
    assert verify_password("secret1", user.password)
    assert workflow.load(EMAIL) is None

    payload = decode_token(token)
    assert payload["sub"] == str(user.id)
    assert payload["role"] == "user"
    assert db.query(User).count() == 1


def test_second_begin_after_completion_conflicts(workflow):
    pending = _begin(workflow)
    workflow.confirm(EMAIL, pending.otp)
    workflow.complete(EMAIL, "secret1", "Mohali")
    with pytest.raises(ConflictError):
        _begin(workflow)


def test_old_code_fails_on_fresh_cycle(workflow, db):
    first = _begin(workflow)
    workflow.confirm(EMAIL, first.otp)
    workflow.complete(EMAIL, "secret1", "Mohali")

    other = "b@x.com"
    fresh = _begin(workflow, other)
    if fresh.otp == first.otp:
        fresh = _begin(workflow, other)
    with pytest.raises(InvalidCodeError):
        workflow.confirm(other, first.otp)


def test_complete_discards_record_when_email_taken_meanwhile(workflow, db):
    pending = _begin(workflow)
    workflow.confirm(EMAIL, pending.otp)
    accounts.create_account(db, name="Other", email=EMAIL, phone="8888888888", password="pw123456", city="Panchkula")

    with pytest.raises(ConflictError):
        workflow.complete(EMAIL, "secret1", "Mohali")
    assert workflow.load(EMAIL) is None


def test_complete_keeps_record_when_insert_fails(workflow, monkeypatch):
    pending = _begin(workflow)
    workflow.confirm(EMAIL, pending.otp)

    def failing_create(*args, **kwargs):
        raise OperationalError("INSERT INTO users", {}, Exception("database is locked"))

    monkeypatch.setattr(accounts, "create_account", failing_create)
    with pytest.raises(OperationalError):
        workflow.complete(EMAIL, "secret1", "Mohali")
    assert workflow.load(EMAIL).verified is True


def test_pending_record_is_plain_json(workflow, store):
    _begin(workflow)
    data = json.loads(store.get("signup:a@x.com"))
    assert set(data) == {"name", "email", "phone", "otp", "otp_expiry", "verified", "created_at", "verified_at"}
