import logging
from datetime import datetime, timezone
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

logger = logging.getLogger(__name__)


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def redirect_with_message(path: str, *, notice: str | None = None, error: str | None = None, **params) -> RedirectResponse:
    query = {key: value for key, value in params.items() if value}
    if notice:
        query['notice'] = notice
    if error:
        query['error'] = error
    target = f'{path}?{urlencode(query)}' if query else path
    return RedirectResponse(target, status_code=303)


def store_failure_redirect(db, exc: Exception, *, path: str, message: str, **params) -> RedirectResponse:
    db.rollback()
    logger.error('%s: %s', message, exc, exc_info=exc)
    return redirect_with_message(path, error=message, **params)


def file_response(content: bytes, *, media_type: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )
