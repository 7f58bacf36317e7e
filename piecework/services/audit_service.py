from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from piecework.models import AuditLog, AuthEvent

logger = logging.getLogger(__name__)


def log_auth_event(
    db: Session,
    *,
    attempted_username: str,
    success: bool,
    ip: str | None,
    user_agent: str | None,
    principal_id: int | None = None,
    failure_reason: str | None = None,
) -> None:
    if success:
        logger.info('Login succeeded for %r from %s', attempted_username, ip)
    else:
        logger.warning('Login failed for %r from %s: %s', attempted_username, ip, failure_reason)
    db.add(
        AuthEvent(
            attempted_username=attempted_username,
            success=success,
            failure_reason=failure_reason,
            principal_id=principal_id,
            ip=ip,
            user_agent=user_agent,
        )
    )


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    # Money values arrive as Decimal; the JSON column only takes plain types.
    meta = {key: str(value) if isinstance(value, Decimal) else value for key, value in (metadata or {}).items()}
    logger.info('%s by principal %s', action, actor_principal_id)
    db.add(
        AuditLog(
            actor_principal_id=actor_principal_id,
            action=action,
            ip=ip,
            meta=meta,
        )
    )
