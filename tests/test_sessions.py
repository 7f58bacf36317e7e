from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from piecework.auth import Role
from piecework.models import PrincipalRole, WebSession
from piecework.security.passwords import verify_password
from piecework.security.sessions import resolve_principal, session_ttl

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _web_session(expires_at: datetime, revoked_at: datetime | None = None) -> WebSession:
    return WebSession(
        session_token='token',
        principal_id=1,
        last_seen_at=NOW - timedelta(hours=1),
        expires_at=expires_at,
        revoked_at=revoked_at,
    )


class WebSessionTests(unittest.TestCase):
    def test_is_valid_until_expiry(self) -> None:
        web_session = _web_session(NOW + timedelta(minutes=1))
        self.assertTrue(web_session.is_valid(NOW))
        self.assertFalse(web_session.is_valid(NOW + timedelta(minutes=1)))

    def test_revoked_session_is_invalid(self) -> None:
        self.assertFalse(_web_session(NOW + timedelta(hours=1), revoked_at=NOW).is_valid(NOW))

    def test_touch_slides_expiry(self) -> None:
        web_session = _web_session(NOW + timedelta(minutes=1))
        web_session.touch(NOW, timedelta(hours=24))
        self.assertEqual(web_session.last_seen_at, NOW)
        self.assertEqual(web_session.expires_at, NOW + timedelta(hours=24))


class ResolvePrincipalTests(unittest.TestCase):
    def setUp(self) -> None:
        self.principal = SimpleNamespace(id=7, username='admin', role=PrincipalRole.ADMIN, active=True)

    def test_valid_session_resolves_and_extends(self) -> None:
        web_session = _web_session(NOW + timedelta(minutes=5))
        resolved = resolve_principal(web_session, self.principal, NOW)
        self.assertEqual(resolved.id, 7)
        self.assertEqual(resolved.role, Role.ADMIN)
        self.assertEqual(web_session.expires_at, NOW + session_ttl())

    def test_expired_session_resolves_to_none(self) -> None:
        web_session = _web_session(NOW - timedelta(seconds=1))
        self.assertIsNone(resolve_principal(web_session, self.principal, NOW))
        self.assertEqual(web_session.expires_at, NOW - timedelta(seconds=1))

    def test_default_ttl_is_one_day(self) -> None:
        self.assertEqual(session_ttl(), timedelta(hours=24))


class PasswordTests(unittest.TestCase):
    def test_empty_inputs_never_verify(self) -> None:
        self.assertFalse(verify_password('', 'hash'))
        self.assertFalse(verify_password('secret', None))


if __name__ == '__main__':
    unittest.main()
