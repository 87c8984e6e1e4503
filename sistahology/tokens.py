"""Admin registration token lifecycle.

Tokens move through ``unused`` -> ``used`` (consumed once) or ``unused``
-> ``expired`` -> reaped by :func:`cleanup_expired`. Consumed rows stay
as an audit trail.

Generic row updates on the token table are closed to every actor.
:func:`validate_and_consume` marks its conditional UPDATE with the
token-consumption execution option, the one update the session guard lets
through, and grants the admin flag in the same transaction.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .core import get_settings
from .errors import NotFound, ValidationFailed
from .guard import TOKEN_CONSUMPTION_OPTION, acting_as, current_principal
from .policy import SERVICE

logger = logging.getLogger(__name__)

TOKEN_UNUSED = "unused"
TOKEN_USED = "used"
TOKEN_EXPIRED = "expired"


def generate_token() -> str:
    """Return a new URL-safe token string carrying 256 bits of randomness."""
    return secrets.token_urlsafe(32)


def token_status(token: models.AdminRegistrationToken, now: datetime | None = None) -> str:
    """
    Classify a token row.

    Args:
        token (AdminRegistrationToken): Token row.
        now (datetime | None): Reference time, defaults to the current time.

    Returns:
        str: ``"used"``, ``"expired"`` or ``"unused"``.
    """
    now = now or models.utcnow()
    if token.used_at is not None:
        return TOKEN_USED
    if token.expires_at <= now:
        return TOKEN_EXPIRED
    return TOKEN_UNUSED


def issue(
    db: Session, email: str | None = None, ttl_days: int | None = None
) -> models.AdminRegistrationToken:
    """
    Create a new admin registration token.

    The session's principal must be an admin (or the service actor); the
    insert is checked like any other write.

    Args:
        db (Session): Database session bound to the issuing principal.
        email (str | None): Optional email the token is reserved for.
        ttl_days (int | None): Lifetime in days, defaults to
            ``ADMIN_TOKEN_TTL_DAYS``.

    Raises:
        Forbidden: If the principal may not create tokens.
        ValidationFailed: If ``ttl_days`` is below one day.

    Returns:
        AdminRegistrationToken: The stored token.
    """
    if ttl_days is None:
        ttl_days = get_settings().ADMIN_TOKEN_TTL_DAYS
    if ttl_days < 1:
        raise ValidationFailed("expires_in_days", "must be at least 1 day")
    issuer = current_principal(db)
    row = models.AdminRegistrationToken(
        token=generate_token(),
        email=email,
        expires_at=models.utcnow() + timedelta(days=ttl_days),
        created_by_user_id=issuer.id,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(
        "Issued admin token %s (email bound: %s, expires %s)",
        row.id,
        row.email is not None,
        row.expires_at.isoformat(),
    )
    return row


def validate_and_consume(
    db: Session, token: str, email: str | None, user_id: uuid.UUID
) -> bool:
    """
    Consume ``token`` for ``user_id`` and grant the admin flag.

    Both effects commit together or not at all. Every failure reason
    (unknown, used, expired, email mismatch, lost race, missing profile)
    yields the same ``False``.

    Args:
        db (Session): Database session; committed on success, rolled back
            on failure.
        token (str): Token string presented by the caller.
        email (str | None): Email of the consuming account.
        user_id (uuid.UUID): Account/profile id receiving the admin flag.

    Returns:
        bool: ``True`` if the token was consumed and the flag granted.
    """
    if not token:
        return False
    now = models.utcnow()
    table = models.AdminRegistrationToken.__table__
    email_matches = table.c.email.is_(None)
    if email:
        email_matches = or_(email_matches, func.lower(table.c.email) == email.lower())

    consume = (
        update(table)
        .where(
            table.c.token == token,
            table.c.used_at.is_(None),
            table.c.expires_at > now,
            email_matches,
        )
        .values(used_at=now, used_by_user_id=user_id)
    )

    try:
        with acting_as(db, SERVICE):
            result = db.execute(consume, execution_options={TOKEN_CONSUMPTION_OPTION: True})
            if result.rowcount != 1:
                db.rollback()
                logger.info("Admin token rejected for user %s", user_id)
                return False
            profile = db.get(models.Profile, user_id)
            if profile is None:
                db.rollback()
                logger.warning("Admin token presented for user %s without a profile", user_id)
                return False
            profile.is_admin = True
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Admin token consumption failed for user %s", user_id)
        return False

    logger.info("Admin token consumed; user %s is now an admin", user_id)
    return True


def list_tokens(db: Session) -> list[models.AdminRegistrationToken]:
    """Return tokens visible to the session's principal, newest first."""
    return list(
        db.scalars(
            select(models.AdminRegistrationToken).order_by(
                models.AdminRegistrationToken.created_at.desc()
            )
        ).all()
    )


def delete_token(db: Session, token_id: uuid.UUID) -> None:
    """
    Delete a token row.

    Args:
        db (Session): Database session bound to an admin principal.
        token_id (uuid.UUID): Token identifier.

    Raises:
        NotFound: If the token does not exist or is not visible.
    """
    row = db.scalars(
        select(models.AdminRegistrationToken).where(
            models.AdminRegistrationToken.id == token_id
        )
    ).first()
    if row is None:
        raise NotFound("Token not found")
    db.delete(row)
    db.commit()
    logger.info("Deleted admin token %s", token_id)


def cleanup_expired(db: Session) -> int:
    """
    Delete tokens that are past expiry and were never used.

    Consumed tokens are kept. The row filter of the session's principal
    applies, so a non-admin session deletes nothing.

    Returns:
        int: Number of deleted tokens.
    """
    stmt = (
        delete(models.AdminRegistrationToken)
        .where(
            models.AdminRegistrationToken.used_at.is_(None),
            models.AdminRegistrationToken.expires_at < models.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    deleted = db.execute(stmt).rowcount
    db.commit()
    logger.info("Removed %d expired admin tokens", deleted)
    return deleted


def lookup_for_display(db: Session, token: str) -> dict | None:
    """
    Return non-sensitive metadata for a token before registration.

    Disabled unless ``ALLOW_PUBLIC_TOKEN_LOOKUP`` is set. The read runs as
    the service actor and only exposes the bound email and validity.

    Args:
        db (Session): Database session, any principal.
        token (str): Token string.

    Returns:
        dict | None: ``{"email", "is_valid"}``, or ``None`` if lookups are
        disabled or the token is unknown.
    """
    if not get_settings().ALLOW_PUBLIC_TOKEN_LOOKUP:
        return None
    with acting_as(db, SERVICE):
        row = db.execute(
            select(
                models.AdminRegistrationToken.email,
                models.AdminRegistrationToken.used_at,
                models.AdminRegistrationToken.expires_at,
            ).where(models.AdminRegistrationToken.token == token)
        ).first()
    if row is None:
        return None
    is_valid = row.used_at is None and row.expires_at > models.utcnow()
    return {"email": row.email, "is_valid": is_valid}
