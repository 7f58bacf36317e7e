import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from piecework.config import settings
from piecework.routers import advances, auth, entries, profiles, reports
from piecework.security.csrf import install_csrf_cookie_middleware
from piecework.security.headers import install_security_headers
from piecework.security.sessions import install_auth_session_middleware
from piecework.services.salary_math_service import format_money
from piecework.services.week_service import to_local

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Piecework Payroll')

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'
app.state.templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def _csrf_token(request: Request) -> str:
    return getattr(request.state, 'csrf_token', '')


def _local_date(moment) -> str:
    return to_local(moment).date().isoformat()


app.state.templates.env.globals['csrf_token'] = _csrf_token
app.state.templates.env.globals['currency_symbol'] = settings.currency_symbol
app.state.templates.env.filters['money'] = format_money
app.state.templates.env.filters['local_date'] = _local_date

install_security_headers(app)
install_csrf_cookie_middleware(app)
install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(entries.router)
app.include_router(reports.router)
app.include_router(advances.router)
app.include_router(profiles.router)


@app.get('/')
def root():
    return RedirectResponse('/workers', status_code=303)


@app.get('/robots.txt', response_class=PlainTextResponse)
def robots_txt() -> str:
    return 'User-agent: *\nDisallow: /\n'
