"""
Auth service tests: registration, verification, login, refresh-token
rotation and the password flows.

Services are called directly against an in-memory database; mail goes to
the FakeTransport from conftest.
"""

import re
from datetime import timedelta

import pytest

from conftest import DEFAULT_PASSWORD, make_user
from pds_api.core.config import settings
from pds_api.core.exceptions import (
    AccountDeactivatedError, AlreadyUsedError, DuplicateCredentialError,
    EmailNotVerifiedError, InvalidCredentialsError, InvalidTokenError,
    ValidationError,
)
from pds_api.core.security import decode_access_token, hash_token, verify_password
from pds_api.models.audit_log import AuditAction, AuditTrail
from pds_api.models.auth_token import AuthToken, TokenType
from pds_api.models.user import User
from pds_api.services.auth_service import (
    FORGOT_PASSWORD_MESSAGE, INVALID_LOGIN, AuthService,
)
from pds_api.services.token_service import TokenLedger

NEW_PASSWORD = "N3w-Secret!"


@pytest.fixture
def auth(mailer):
    return AuthService(mailer, settings)


def registration(email="a@x.com", phone="111", **extra):
    data = {
        "first_name": "Ada",
        "last_name": "Moyo",
        "email": email,
        "phone_number": phone,
        "password": DEFAULT_PASSWORD,
    }
    data.update(extra)
    return data


def mailed_token(transport):
    """Pull the token out of the most recent email link."""
    return re.search(r"token=([0-9a-f]+)", transport.sent[-1]["html"]).group(1)


class TestRegister:
    """Account creation and credential collisions."""

    def test_creates_unverified_user_and_sends_verification(self, db, auth, transport):
        result = auth.register(db, registration())

        user = result["user"]
        assert user.is_verified is False
        assert user.role_name == "USER"
        assert user.hashed_password != DEFAULT_PASSWORD
        assert verify_password(DEFAULT_PASSWORD, user.hashed_password)
        assert result["email_sent"] is True
        assert transport.sent[0]["to"] == "a@x.com"
        assert mailed_token(transport) == result["verification_token"]

    def test_duplicate_email_cites_email_only(self, db, auth):
        auth.register(db, registration())

        with pytest.raises(DuplicateCredentialError) as exc:
            auth.register(db, registration(phone="222"))

        assert exc.value.message == "User with this email already exists"
        assert db.query(User).count() == 1

    def test_duplicate_phone_cites_phone_only(self, db, auth):
        auth.register(db, registration())

        with pytest.raises(DuplicateCredentialError) as exc:
            auth.register(db, registration(email="b@x.com"))

        assert exc.value.message == "User with this phone number already exists"
        assert db.query(User).count() == 1

    def test_duplicate_email_and_phone(self, db, auth):
        auth.register(db, registration())

        with pytest.raises(DuplicateCredentialError) as exc:
            auth.register(db, registration())

        assert exc.value.message == "Both email and phone number are already registered"

    def test_duplicate_national_id(self, db, auth):
        auth.register(db, registration(nat_id="63-123456A-42"))

        with pytest.raises(DuplicateCredentialError) as exc:
            auth.register(db, registration(email="b@x.com", phone="222", nat_id="63-123456A-42"))

        assert "national ID" in exc.value.message

    def test_mail_failure_still_creates_account(self, db, auth, transport):
        transport.fail = True

        result = auth.register(db, registration())

        assert result["email_sent"] is False
        assert db.query(User).filter(User.email == "a@x.com").count() == 1

    def test_verification_email_escapes_name(self, db, auth, transport):
        auth.register(db, registration(first_name="<b>Ada</b>"))

        html = transport.sent[-1]["html"]
        assert "&lt;b&gt;Ada&lt;/b&gt;" in html
        assert "<b>Ada" not in html


class TestVerifyEmail:

    def test_verifies_once_then_already_used(self, db, auth, transport):
        token = auth.register(db, registration())["verification_token"]

        user = auth.verify_email(db, token)
        assert user.is_verified is True
        assert transport.sent[-1]["subject"].startswith("Welcome")

        with pytest.raises(AlreadyUsedError) as exc:
            auth.verify_email(db, token)
        assert exc.value.message == "Email already verified"

    def test_superseded_token_is_reported_as_used(self, db, auth):
        first = auth.register(db, registration())["verification_token"]
        auth.resend_verification(db, "a@x.com")

        with pytest.raises(AlreadyUsedError) as exc:
            auth.verify_email(db, first)

        assert exc.value.message == "This verification token has already been used"
        assert db.query(User).filter(User.email == "a@x.com").one().is_verified is False

    def test_unknown_token(self, db, auth):
        with pytest.raises(InvalidTokenError):
            auth.verify_email(db, "deadbeef")

    def test_expired_token(self, db, auth):
        user = make_user(db, verified=False)
        token = TokenLedger().issue(db, user.id, TokenType.VERIFICATION, ttl=timedelta(seconds=-1))
        db.commit()

        with pytest.raises(InvalidTokenError):
            auth.verify_email(db, token)

    def test_records_audit_entry(self, db, auth):
        token = auth.register(db, registration())["verification_token"]
        auth.verify_email(db, token)

        entry = db.query(AuditTrail).filter(AuditTrail.action == AuditAction.EMAIL_VERIFIED.value).one()
        assert entry.email == "a@x.com"

    def test_resend_supersedes_previous_token(self, db, auth):
        first = auth.register(db, registration())["verification_token"]

        second = auth.resend_verification(db, "a@x.com")["verification_token"]

        assert TokenLedger().find_valid(db, first, TokenType.VERIFICATION) is None
        assert auth.verify_email(db, second).is_verified is True

    def test_resend_for_unknown_email_reveals_nothing(self, db, auth, transport):
        result = auth.resend_verification(db, "ghost@x.com")

        assert "verification_token" not in result
        assert transport.sent == []


class TestLogin:

    def test_success_issues_access_and_hashed_refresh_token(self, db, auth):
        user = make_user(db)

        result = auth.login(db, user.email, DEFAULT_PASSWORD, device_info="pytest")

        claims = decode_access_token(result["access_token"])
        assert claims["sub"] == user.id
        assert claims["role"] == "USER"
        assert result["token_type"] == "Bearer"
        raw = result["refresh_token"]
        assert db.query(AuthToken).filter(AuthToken.token_hash == raw).count() == 0
        stored = db.query(AuthToken).filter(AuthToken.token_hash == hash_token(raw)).one()
        assert stored.token_type == TokenType.REFRESH.value
        assert stored.device_info == "pytest"
        assert result["user"].last_login_at is not None

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, db, auth):
        make_user(db)

        with pytest.raises(InvalidCredentialsError) as unknown:
            auth.login(db, "nobody@example.com", DEFAULT_PASSWORD)
        with pytest.raises(InvalidCredentialsError) as wrong:
            auth.login(db, "jane@example.com", "Wrong-pass1")

        assert unknown.value.message == wrong.value.message == INVALID_LOGIN
        assert unknown.value.details == wrong.value.details == {}

    def test_unverified_user_gets_no_token(self, db, auth):
        make_user(db, verified=False)

        with pytest.raises(EmailNotVerifiedError):
            auth.login(db, "jane@example.com", DEFAULT_PASSWORD)

        assert db.query(AuthToken).filter(AuthToken.token_type == TokenType.REFRESH.value).count() == 0

    def test_deactivated_user_rejected(self, db, auth):
        make_user(db, active=False)

        with pytest.raises(AccountDeactivatedError):
            auth.login(db, "jane@example.com", DEFAULT_PASSWORD)

    def test_remember_me_extends_refresh_lifetime(self, db, auth):
        make_user(db)

        normal = auth.login(db, "jane@example.com", DEFAULT_PASSWORD)
        remembered = auth.login(db, "jane@example.com", DEFAULT_PASSWORD, remember_me=True)

        assert remembered["refresh_max_age"] == 2 * normal["refresh_max_age"]

    def test_login_is_audited(self, db, auth):
        make_user(db)
        auth.login(db, "jane@example.com", DEFAULT_PASSWORD, origin={"ip_address": "10.0.0.9"})

        entry = db.query(AuditTrail).filter(AuditTrail.action == AuditAction.LOGIN.value).one()
        assert entry.ip_address == "10.0.0.9"


class TestRefreshAndLogout:

    def test_refresh_mints_new_access_token(self, db, auth):
        user = make_user(db)
        refresh = auth.login(db, user.email, DEFAULT_PASSWORD)["refresh_token"]

        result = auth.refresh_access_token(db, refresh)

        assert decode_access_token(result["access_token"])["sub"] == user.id

    def test_logged_out_token_cannot_refresh(self, db, auth):
        make_user(db)
        refresh = auth.login(db, "jane@example.com", DEFAULT_PASSWORD)["refresh_token"]

        auth.logout(db, refresh)

        with pytest.raises(InvalidTokenError):
            auth.refresh_access_token(db, refresh)

    def test_logout_with_unknown_token_does_not_fail(self, db, auth):
        auth.logout(db, "not-a-real-token")
        auth.logout(db, None)

    def test_missing_refresh_token(self, db, auth):
        with pytest.raises(InvalidTokenError):
            auth.refresh_access_token(db, None)

    def test_inactive_user_cannot_refresh(self, db, auth):
        user = make_user(db)
        refresh = auth.login(db, user.email, DEFAULT_PASSWORD)["refresh_token"]
        user.is_active = False
        db.commit()

        with pytest.raises(InvalidTokenError):
            auth.refresh_access_token(db, refresh)


class TestPasswordReset:

    def test_reset_revokes_every_refresh_token(self, db, auth, transport):
        make_user(db)
        sessions = [auth.login(db, "jane@example.com", DEFAULT_PASSWORD)["refresh_token"] for _ in range(2)]

        assert auth.forgot_password(db, "jane@example.com") == FORGOT_PASSWORD_MESSAGE
        auth.reset_password(db, mailed_token(transport), NEW_PASSWORD)

        for refresh in sessions:
            with pytest.raises(InvalidTokenError):
                auth.refresh_access_token(db, refresh)
        assert auth.login(db, "jane@example.com", NEW_PASSWORD)["access_token"]

    def test_reset_token_is_single_use(self, db, auth, transport):
        make_user(db)
        auth.forgot_password(db, "jane@example.com")
        token = mailed_token(transport)
        auth.reset_password(db, token, NEW_PASSWORD)

        with pytest.raises(InvalidTokenError):
            auth.reset_password(db, token, "An0ther-pass!")

    def test_forgot_password_for_unknown_email_sends_nothing(self, db, auth, transport):
        assert auth.forgot_password(db, "ghost@x.com") == FORGOT_PASSWORD_MESSAGE
        assert transport.sent == []

    def test_forgot_password_swallows_mail_failure(self, db, auth, transport):
        make_user(db)
        transport.fail = True

        assert auth.forgot_password(db, "jane@example.com") == FORGOT_PASSWORD_MESSAGE


class TestChangePassword:

    def test_keeps_only_the_current_session(self, db, auth):
        user = make_user(db)
        first, current, third = (
            auth.login(db, user.email, DEFAULT_PASSWORD)["refresh_token"] for _ in range(3)
        )

        auth.change_password(db, user, DEFAULT_PASSWORD, NEW_PASSWORD, current_refresh_token=current)

        assert auth.refresh_access_token(db, current)["access_token"]
        for sibling in (first, third):
            with pytest.raises(InvalidTokenError):
                auth.refresh_access_token(db, sibling)
        assert verify_password(NEW_PASSWORD, user.hashed_password)

    def test_overlong_new_password_is_rejected(self, db, auth):
        user = make_user(db)

        with pytest.raises(ValidationError):
            auth.change_password(db, user, DEFAULT_PASSWORD, "Aa1!" + "\u20ac" * 28)

        db.refresh(user)
        assert verify_password(DEFAULT_PASSWORD, user.hashed_password)

    def test_wrong_current_password(self, db, auth):
        user = make_user(db)

        with pytest.raises(InvalidCredentialsError):
            auth.change_password(db, user, "Not-it-1!", NEW_PASSWORD)

    def test_profile_update_rejects_taken_phone(self, db, auth):
        make_user(db, email="other@example.com", phone_number="0779999999")
        user = make_user(db)

        with pytest.raises(DuplicateCredentialError):
            auth.update_profile(db, user, {"phone_number": "0779999999"})

        updated = auth.update_profile(db, user, {"first_name": "Janet"})
        assert updated.first_name == "Janet"
