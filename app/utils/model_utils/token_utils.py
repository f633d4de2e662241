from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from app.extensions import db
from app.models.Token import Token
from app.utils.logging_utils import get_logger, log_context

from .base import first_instance

logger = get_logger("auth")


def block_token(
    jti: str,
    expires_at: datetime,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Token:
    """Add a JWT id to the block-list; repeated calls reuse the existing row."""
    existing = first_instance(Token, filters=[Token.jti == jti, Token.token_type == "block"])
    if existing is not None:
        return existing
    token = Token(
        token_type="block",
        jti=jti,
        user_id=user_id,
        revoked=True,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        expires_at=expires_at,
    )
    db.session.add(token)
    db.session.commit()
    with log_context(module="token_utils", action="block_token", actor_id=user_id):
        logger.info("Token blocked jti=%s", jti)
    return token


def is_token_blocked(jti: Optional[str]) -> bool:
    if not jti:
        return False
    now = datetime.now(timezone.utc)
    return first_instance(
        Token,
        filters=[Token.token_type == "block", Token.jti == jti, Token.expires_at > now],
    ) is not None


def purge_expired_tokens() -> int:
    now = datetime.now(timezone.utc)
    deleted = Token.query.filter(Token.expires_at <= now).delete(synchronize_session=False)
    db.session.commit()
    logger.info("Purged %s expired block-list entries", deleted)
    return deleted
