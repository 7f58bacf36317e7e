from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

from sqlalchemy.exc import OperationalError

from piecework.routers.entries import export_summary
from piecework.routers.reports import export_io_report

STORE_DOWN = OperationalError('INSERT INTO audit_log', {}, Exception('connection lost'))


def _request(**params) -> SimpleNamespace:
    return SimpleNamespace(query_params=params, headers={}, client=SimpleNamespace(host='127.0.0.1'))


def _redirect_query(response) -> dict[str, list[str]]:
    return parse_qs(urlsplit(response.headers['location']).query)


class ExportAuditFailureTests(unittest.TestCase):
    @patch('piecework.routers.entries.log_audit', side_effect=STORE_DOWN)
    @patch('piecework.routers.entries.render', return_value=b'csv')
    @patch('piecework.routers.entries.worker_summary_document')
    @patch('piecework.routers.entries._load_report')
    def test_worker_summary_export_redirects_when_audit_fails(self, load_report, _document, _render, _log_audit) -> None:
        load_report.return_value = SimpleNamespace(selected_week=SimpleNamespace(key='2024-01-08'), summaries=[])
        db = MagicMock()

        response = export_summary('csv', _request(week='2024-01-08'), SimpleNamespace(id=1), db)

        self.assertEqual(response.status_code, 303)
        self.assertTrue(response.headers['location'].startswith('/workers?'))
        self.assertEqual(_redirect_query(response)['error'], ['Failed to record export'])
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    @patch('piecework.routers.reports.log_audit', side_effect=STORE_DOWN)
    @patch('piecework.routers.reports.render', return_value=b'csv')
    @patch('piecework.routers.reports.production_order_document')
    @patch('piecework.routers.reports._io_report')
    def test_io_export_redirects_when_audit_fails(self, io_report, _document, _render, _log_audit) -> None:
        io_report.return_value = ([], SimpleNamespace(orders=[], totals=None, query='', week=None))
        db = MagicMock()

        response = export_io_report('csv', _request(), SimpleNamespace(id=1), db)

        self.assertEqual(response.status_code, 303)
        self.assertEqual(_redirect_query(response)['error'], ['Failed to record export'])
        db.rollback.assert_called_once()
        db.commit.assert_not_called()


if __name__ == '__main__':
    unittest.main()
