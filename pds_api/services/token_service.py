"""Token ledger: issue, look up, revoke and sweep opaque tokens."""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from pds_api.core.clock import utcnow
from pds_api.core.config import Settings, settings as default_settings
from pds_api.core.security import generate_opaque_token, hash_token
from pds_api.models.auth_token import AuthToken, TokenType

logger = logging.getLogger("pds.tokens")

# Kinds where a new issue supersedes the outstanding ones
SINGLE_INTENT = {TokenType.VERIFICATION, TokenType.PASSWORD_RESET}

TOKEN_BYTES = {
    TokenType.REFRESH: 40,
    TokenType.VERIFICATION: 32,
    TokenType.PASSWORD_RESET: 32,
}


class TokenLedger:
    """Persists opaque tokens by digest.

    None of these methods commit; the calling operation owns the transaction.
    """

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    def default_ttl(self, kind: TokenType) -> timedelta:
        if kind == TokenType.REFRESH:
            return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRY_DAYS)
        if kind == TokenType.VERIFICATION:
            return timedelta(hours=self.settings.VERIFICATION_TOKEN_EXPIRY_HOURS)
        if kind == TokenType.PASSWORD_RESET:
            return timedelta(hours=self.settings.PASSWORD_RESET_TOKEN_EXPIRY_HOURS)
        return timedelta(hours=self.settings.ACCESS_TOKEN_EXPIRY_HOURS)

    def issue(
        self,
        db: Session,
        user_id: str,
        kind: TokenType,
        device_info: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Create a token row and return the raw token (never stored)."""
        if kind in SINGLE_INTENT:
            self.revoke_all(db, user_id, kind)

        raw = generate_opaque_token(TOKEN_BYTES.get(kind, 32))
        db.add(AuthToken(
            user_id=user_id,
            token_hash=hash_token(raw),
            token_type=kind.value,
            expires_at=utcnow() + (ttl or self.default_ttl(kind)),
            device_info=device_info[:255] if device_info else None,
        ))
        db.flush()
        return raw

    def find_valid(self, db: Session, raw: str, kind: TokenType) -> Optional[AuthToken]:
        """Return the token row if it is unrevoked and unexpired."""
        if not raw:
            return None
        return db.query(AuthToken).filter(
            AuthToken.token_hash == hash_token(raw),
            AuthToken.token_type == kind.value,
            AuthToken.is_revoked.is_(False),
            AuthToken.expires_at > utcnow(),
        ).first()

    def find_any(self, db: Session, raw: str, kind: TokenType) -> Optional[AuthToken]:
        """Return the token row regardless of revocation or expiry."""
        if not raw:
            return None
        return db.query(AuthToken).filter(
            AuthToken.token_hash == hash_token(raw),
            AuthToken.token_type == kind.value,
        ).first()

    def revoke(self, db: Session, raw: str, kind: Optional[TokenType] = None) -> int:
        stmt = update(AuthToken).where(AuthToken.token_hash == hash_token(raw))
        if kind is not None:
            stmt = stmt.where(AuthToken.token_type == kind.value)
        result = db.execute(stmt.values(is_revoked=True))
        return result.rowcount

    def revoke_all(
        self,
        db: Session,
        user_id: str,
        kind: Optional[TokenType] = None,
        except_raw: Optional[str] = None,
    ) -> int:
        """Revoke every live token of a user, optionally sparing one."""
        stmt = update(AuthToken).where(
            AuthToken.user_id == user_id,
            AuthToken.is_revoked.is_(False),
        )
        if kind is not None:
            stmt = stmt.where(AuthToken.token_type == kind.value)
        if except_raw:
            stmt = stmt.where(AuthToken.token_hash != hash_token(except_raw))
        result = db.execute(stmt.values(is_revoked=True).execution_options(synchronize_session="fetch"))
        return result.rowcount

    def cleanup_expired(self, db: Session) -> int:
        """Delete rows past expiry, revoked or not. Commits."""
        result = db.execute(delete(AuthToken).where(AuthToken.expires_at < utcnow()))
        db.commit()
        logger.info("Cleaned up %s expired tokens", result.rowcount)
        return result.rowcount
