"""Auth service: registration, verification, login, token rotation, passwords."""

import logging
from datetime import timedelta
from typing import Optional, Dict, Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pds_api.core.clock import utcnow
from pds_api.core.config import Settings, settings as default_settings
from pds_api.core.exceptions import (
    AccountDeactivatedError, AlreadyUsedError, DuplicateCredentialError,
    EmailNotVerifiedError, InvalidCredentialsError, InvalidTokenError,
    ResourceNotFoundError, TransportError,
)
from pds_api.core.security import (
    create_access_token, hash_password, token_claims, verify_password,
)
from pds_api.models.audit_log import AuditAction
from pds_api.models.auth_token import TokenType
from pds_api.models.role import Role
from pds_api.models.user import User
from pds_api.services.audit_service import AuditService
from pds_api.services.mail_service import MailService
from pds_api.services.token_service import TokenLedger

logger = logging.getLogger("pds.auth")

DEFAULT_ROLE = "USER"

INVALID_LOGIN = "Invalid email or password"
FORGOT_PASSWORD_MESSAGE = "If your email is registered, you will receive password reset instructions"
RESEND_MESSAGE = "If your email is registered and not verified, you will receive a verification email"


def duplicate_credential_message(
    db: Session, email: str, phone_number: str, nat_id: Optional[str] = None,
) -> Optional[str]:
    """Describe which unique credential(s) already exist, or None."""
    clauses = [User.email == email, User.phone_number == phone_number]
    if nat_id:
        clauses.append(User.nat_id == nat_id)
    existing = db.query(User).filter(or_(*clauses)).all()
    if not existing:
        return None

    email_taken = any(u.email == email for u in existing)
    phone_taken = any(u.phone_number == phone_number for u in existing)
    if email_taken and phone_taken:
        return "Both email and phone number are already registered"
    if email_taken:
        return "User with this email already exists"
    if phone_taken:
        return "User with this phone number already exists"
    return "User with this national ID already exists"


def default_role(db: Session, name: str = DEFAULT_ROLE) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if not role:
        raise ResourceNotFoundError(f"Role '{name}' not found")
    return role


class AuthService:
    """Handles the account and session lifecycle.

    The mail service is injected; the token ledger and audit sink default to
    fresh instances bound to the same settings.
    """

    def __init__(
        self,
        mailer: MailService,
        settings: Settings = default_settings,
        tokens: Optional[TokenLedger] = None,
        audit: Optional[AuditService] = None,
    ):
        self.mailer = mailer
        self.settings = settings
        self.tokens = tokens or TokenLedger(settings)
        self.audit = audit or AuditService()

    # ---- registration / verification ----

    def register(self, db: Session, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an unverified USER account and email a verification token.

        Raises:
            DuplicateCredentialError: If email, phone or national ID is taken.
        """
        nat_id = data.get("nat_id") or None
        message = duplicate_credential_message(db, data["email"], data["phone_number"], nat_id)
        if message:
            raise DuplicateCredentialError(message)

        user = User(
            first_name=data["first_name"],
            last_name=data["last_name"],
            email=data["email"],
            phone_number=data["phone_number"],
            nat_id=nat_id,
            department=data.get("department"),
            hashed_password=hash_password(data["password"]),
            role_id=default_role(db).id,
            is_verified=False,
            is_active=True,
        )
        db.add(user)
        try:
            db.flush()
            token = self.tokens.issue(db, user.id, TokenType.VERIFICATION)
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            db.rollback()
            raise DuplicateCredentialError(
                duplicate_credential_message(db, data["email"], data["phone_number"], nat_id)
                or "User already exists"
            )
        db.refresh(user)

        email_sent = True
        try:
            self.mailer.send_verification_email(user.email, user.first_name, token)
        except TransportError as e:
            email_sent = False
            logger.warning("Verification email to %s failed: %s", user.email, e.message)

        result: Dict[str, Any] = {"user": user, "email_sent": email_sent}
        if not self.settings.is_production:
            result["verification_token"] = token
        return result

    def verify_email(self, db: Session, token: str) -> User:
        """Mark the token owner verified.

        Raises:
            InvalidTokenError: Unknown or expired token.
            AlreadyUsedError: Token already consumed or user already verified.
        """
        record = self.tokens.find_any(db, token, TokenType.VERIFICATION)
        if not record or record.expires_at <= utcnow():
            raise InvalidTokenError("Invalid verification token")
        user = record.user
        if user.is_verified:
            raise AlreadyUsedError("Email already verified")
        if record.is_revoked:
            raise AlreadyUsedError("This verification token has already been used")

        user.is_verified = True
        db.commit()

        try:
            self.tokens.revoke(db, token, TokenType.VERIFICATION)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not revoke verification token for %s: %s", user.email, e)

        self.audit.log(db, AuditAction.EMAIL_VERIFIED, "Email address verified",
                       user_id=user.id, email=user.email)
        try:
            self.mailer.send_welcome_email(user.email, user.first_name)
        except TransportError as e:
            logger.warning("Welcome email to %s failed: %s", user.email, e.message)
        return user

    def resend_verification(self, db: Session, email: str) -> Dict[str, Any]:
        """Reissue a verification token; the reply never reveals whether the account exists.

        Raises:
            TransportError: In production, when the email cannot be sent.
        """
        result: Dict[str, Any] = {"message": RESEND_MESSAGE}
        user = db.query(User).filter(User.email == email).first()
        if not user or user.is_verified or not user.is_active:
            return result

        token = self.tokens.issue(db, user.id, TokenType.VERIFICATION)
        db.commit()

        try:
            self.mailer.send_verification_email(user.email, user.first_name, token)
        except TransportError as e:
            logger.warning("Verification resend to %s failed: %s", user.email, e.message)
            if self.settings.is_production:
                raise TransportError("Failed to send verification email. Please try again later.")
        if not self.settings.is_production:
            result["verification_token"] = token
        return result

    # ---- sessions ----

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        remember_me: bool = False,
        device_info: Optional[str] = None,
        origin: Optional[dict] = None,
    ) -> Dict[str, Any]:
        """Authenticate and issue an access token plus a persisted refresh token.

        Raises:
            InvalidCredentialsError: Same message for unknown email and bad password.
            AccountDeactivatedError: If the account is inactive.
            EmailNotVerifiedError: If the email is not verified yet.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            raise InvalidCredentialsError(INVALID_LOGIN)
        if not user.is_active:
            raise AccountDeactivatedError("Your account has been deactivated. Please contact support.")
        if not user.is_verified:
            raise EmailNotVerifiedError("Please verify your email before logging in")

        refresh_ttl = timedelta(days=self.settings.REFRESH_TOKEN_EXPIRY_DAYS)
        if remember_me:
            refresh_ttl *= 2
        device = device_info or "Unknown device"

        access_token = create_access_token(token_claims(user))
        refresh_token = self.tokens.issue(db, user.id, TokenType.REFRESH, device, refresh_ttl)
        user.last_login_at = utcnow()
        self.audit.log(db, AuditAction.LOGIN, f"User logged in from {device}",
                       user_id=user.id, email=user.email, commit=False, **(origin or {}))
        db.commit()
        db.refresh(user)

        return {
            "access_token": access_token,
            "token_type": "Bearer",
            "refresh_token": refresh_token,
            "refresh_max_age": int(refresh_ttl.total_seconds()),
            "user": user,
        }

    def refresh_access_token(self, db: Session, refresh_token: Optional[str]) -> Dict[str, Any]:
        """Mint a new access token; the refresh token itself is left untouched."""
        record = self.tokens.find_valid(db, refresh_token or "", TokenType.REFRESH)
        if not record or not record.user.is_active:
            raise InvalidTokenError("Invalid or expired refresh token")
        return {
            "access_token": create_access_token(token_claims(record.user)),
            "token_type": "Bearer",
        }

    def logout(
        self,
        db: Session,
        refresh_token: Optional[str],
        user: Optional[User] = None,
        origin: Optional[dict] = None,
    ) -> None:
        """Revoke the presented refresh token. Never fails the caller."""
        try:
            if refresh_token:
                record = self.tokens.find_any(db, refresh_token, TokenType.REFRESH)
                if record and user is None:
                    user = record.user
                self.tokens.revoke(db, refresh_token, TokenType.REFRESH)
            if user is not None:
                self.audit.log(db, AuditAction.LOGOUT, "User logged out",
                               user_id=user.id, email=user.email, commit=False, **(origin or {}))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Logout revocation failed: %s", e)

    # ---- passwords ----

    def forgot_password(self, db: Session, email: str) -> str:
        """Email a reset token to a valid account; always returns the same message."""
        user = db.query(User).filter(User.email == email).first()
        if not user or not user.is_active:
            return FORGOT_PASSWORD_MESSAGE

        token = self.tokens.issue(db, user.id, TokenType.PASSWORD_RESET)
        db.commit()
        try:
            self.mailer.send_password_reset_email(user.email, user.first_name, token)
        except TransportError as e:
            logger.warning("Password reset email to %s failed: %s", user.email, e.message)
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(
        self, db: Session, token: str, new_password: str, origin: Optional[dict] = None,
    ) -> None:
        """Set a new password and sign the user out everywhere."""
        record = self.tokens.find_valid(db, token, TokenType.PASSWORD_RESET)
        if not record:
            raise InvalidTokenError("Invalid or expired password reset token")
        user = record.user
        if not user.is_active:
            raise ResourceNotFoundError("User not found or inactive")

        user.hashed_password = hash_password(new_password)
        self.tokens.revoke(db, token, TokenType.PASSWORD_RESET)
        self.tokens.revoke_all(db, user.id, TokenType.REFRESH)
        self.audit.log(db, AuditAction.PASSWORD_RESET, "Password reset via email token",
                       user_id=user.id, email=user.email, commit=False, **(origin or {}))
        db.commit()

    def change_password(
        self,
        db: Session,
        user: User,
        current_password: str,
        new_password: str,
        current_refresh_token: Optional[str] = None,
        origin: Optional[dict] = None,
    ) -> None:
        """Change the password, keeping only the caller's own refresh token alive."""
        if not verify_password(current_password, user.hashed_password):
            raise InvalidCredentialsError("Current password is incorrect")

        user.hashed_password = hash_password(new_password)
        self.tokens.revoke_all(db, user.id, TokenType.REFRESH, except_raw=current_refresh_token)
        self.audit.log(db, AuditAction.PASSWORD_CHANGE, "Password changed",
                       user_id=user.id, email=user.email, commit=False, **(origin or {}))
        db.commit()

    # ---- profile ----

    def update_profile(self, db: Session, user: User, changes: Dict[str, Any]) -> User:
        phone = changes.get("phone_number")
        if phone and phone != user.phone_number:
            taken = db.query(User).filter(User.phone_number == phone, User.id != user.id).first()
            if taken:
                raise DuplicateCredentialError("User with this phone number already exists")
        for field, value in changes.items():
            if value is not None:
                setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return user

    def cleanup_expired_tokens(self, db: Session) -> int:
        return self.tokens.cleanup_expired(db)
