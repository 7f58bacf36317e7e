from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

from piecework.services.advance_ledger_service import (
    advance_balance,
    advance_weeks,
    create_advance,
    entries_in_week,
    ledger_totals,
    record_repayment,
    split_active_settled,
)
from piecework.services.week_service import CURRENT_WEEK_LABEL, WEDNESDAY

IST = ZoneInfo('Asia/Kolkata')


def _advance(advance_id: int, amount: str, paid: str, advance_date: datetime) -> SimpleNamespace:
    return SimpleNamespace(
        id=advance_id,
        worker_name='Ravi',
        amount=Decimal(amount),
        paid_back_amount=Decimal(paid),
        advance_date=advance_date,
    )


class LedgerHelperTests(unittest.TestCase):
    def test_balance_and_split(self) -> None:
        entries = [
            _advance(1, '500', '200', datetime(2024, 1, 10, tzinfo=IST)),
            _advance(2, '300', '300', datetime(2024, 1, 10, tzinfo=IST)),
            _advance(3, '100', '150', datetime(2024, 1, 10, tzinfo=IST)),
        ]
        self.assertEqual(advance_balance(entries[0]), Decimal('300'))
        active, settled = split_active_settled(entries)
        self.assertEqual([entry.id for entry in active], [1])
        self.assertEqual([entry.id for entry in settled], [2, 3])

    def test_ledger_totals(self) -> None:
        totals = ledger_totals(
            [
                _advance(1, '500', '200', datetime(2024, 1, 10, tzinfo=IST)),
                _advance(2, '300', '0', datetime(2024, 1, 10, tzinfo=IST)),
            ]
        )
        self.assertEqual(totals.total_advanced, Decimal('800'))
        self.assertEqual(totals.total_paid_back, Decimal('200'))
        self.assertEqual(totals.total_balance, Decimal('600'))

    def test_wednesday_weeks(self) -> None:
        now = datetime(2024, 1, 17, 12, tzinfo=IST)
        entries = [
            _advance(1, '100', '0', datetime(2024, 1, 16, 23, 0, tzinfo=IST)),
            _advance(2, '100', '0', datetime(2024, 1, 17, 9, 0, tzinfo=IST)),
        ]
        weeks = advance_weeks(entries, now=now, anchor_weekday=WEDNESDAY)
        self.assertEqual([week.label for week in weeks], [CURRENT_WEEK_LABEL, 'Week 1'])
        self.assertEqual(weeks[1].key, '2024-01-10')
        self.assertEqual([entry.id for entry in entries_in_week(entries, weeks[0])], [2])


class AdvanceMutationTests(unittest.TestCase):
    def test_amount_must_be_positive(self) -> None:
        db = MagicMock()
        for amount in ('0', '-5', 'abc', ''):
            with self.assertRaisesRegex(ValueError, 'Enter a valid advance amount'):
                create_advance(db, worker_name='Ravi', amount=amount, advance_date=date(2024, 1, 10), notes=None)
        db.add.assert_not_called()

    def test_create_stores_local_midnight(self) -> None:
        db = MagicMock()
        entry = create_advance(db, worker_name=' Ravi ', amount='250', advance_date=date(2024, 1, 10), notes='  ')
        self.assertEqual(entry.worker_name, 'Ravi')
        self.assertEqual(entry.amount, Decimal('250'))
        self.assertIsNone(entry.notes)
        self.assertEqual(entry.advance_date, datetime(2024, 1, 9, 18, 30, tzinfo=timezone.utc))
        db.add.assert_called_once_with(entry)

    @patch('piecework.services.advance_ledger_service._get_advance')
    def test_repayment_accumulates(self, get_advance_mock) -> None:
        entry = _advance(1, '500', '100', datetime(2024, 1, 10, tzinfo=IST))
        get_advance_mock.return_value = entry
        record_repayment(MagicMock(), advance_id=1, amount='150')
        self.assertEqual(entry.paid_back_amount, Decimal('250'))
        with self.assertRaisesRegex(ValueError, 'Enter a valid repayment amount'):
            record_repayment(MagicMock(), advance_id=1, amount='0')


if __name__ == '__main__':
    unittest.main()
