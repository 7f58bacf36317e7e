from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import select

from piecework.auth import Principal, Role
from piecework.config import settings
from piecework.db import SessionLocal
from piecework.models import Principal as PrincipalModel
from piecework.models import WebSession

logger = logging.getLogger(__name__)

AUTH_EXEMPT_PATHS = {'/login', '/robots.txt'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def session_ttl() -> timedelta:
    return timedelta(minutes=settings.session_ttl_minutes)


def create_web_session(db, principal_id: int, ip: str | None, user_agent: str | None) -> str:
    token = secrets.token_urlsafe(48)
    now = _now()
    web_session = WebSession(
        session_token=token,
        principal_id=principal_id,
        ip=ip,
        user_agent=user_agent,
        last_seen_at=now,
        expires_at=now + session_ttl(),
    )
    db.add(web_session)
    db.flush()
    return token


def revoke_web_session(db, token: str) -> None:
    session = db.execute(select(WebSession).where(WebSession.session_token == token)).scalar_one_or_none()
    if not session or session.revoked_at is not None:
        return
    session.revoked_at = _now()


def resolve_principal(web_session: WebSession, principal: PrincipalModel, now: datetime) -> Principal | None:
    if not web_session.is_valid(now):
        return None
    web_session.touch(now, session_ttl())
    role = Role(principal.role.value if hasattr(principal.role, 'value') else principal.role)
    return Principal(
        id=principal.id,
        username=principal.username,
        role=role,
        active=principal.active,
    )


def load_principal_from_token(db, token: str | None) -> Principal | None:
    if not token:
        return None

    row = db.execute(
        select(WebSession, PrincipalModel)
        .join(PrincipalModel, PrincipalModel.id == WebSession.principal_id)
        .where(WebSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    web_session, principal = row
    return resolve_principal(web_session, principal, _now())


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token = request.cookies.get(settings.session_cookie_name)
        with SessionLocal() as db:
            request.state.principal = load_principal_from_token(db, token)
            db.commit()

        if request.url.path not in AUTH_EXEMPT_PATHS and request.state.principal is None:
            if token:
                logger.info('Expired or unknown session for %s', request.url.path)
            return RedirectResponse('/login', status_code=303)

        return await call_next(request)
