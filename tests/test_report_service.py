from __future__ import annotations

import unittest
from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from piecework.services.entry_records import EntryRecord
from piecework.services.report_service import (
    build_production_order_report,
    build_weekly_report,
    build_worker_report,
)
from piecework.services.week_service import CURRENT_WEEK_LABEL, MONDAY, bucket_for

IST = ZoneInfo('Asia/Kolkata')
NOW = datetime(2024, 1, 24, 12, 0, tzinfo=IST)


def _record(record_id: int, worker_name: str, production_order_id: str, created_at: datetime) -> EntryRecord:
    return EntryRecord(
        id=record_id,
        worker_name=worker_name,
        production_order_id=production_order_id,
        work_type='Stitching',
        piece_count=10,
        rate_per_piece=Decimal('2'),
        line_total=Decimal('20.00'),
        created_at=created_at,
    )


RECORDS = [
    _record(1, 'Ravi', '101', NOW),
    _record(2, 'Sita', '102', NOW - timedelta(hours=1)),
    _record(3, 'Ravi', '101', NOW - timedelta(days=7)),
]


class WorkerReportTests(unittest.TestCase):
    def test_defaults_to_current_week(self) -> None:
        report = build_worker_report(RECORDS, now=NOW, anchor_weekday=MONDAY)
        self.assertEqual(report.selected_week.label, CURRENT_WEEK_LABEL)
        self.assertEqual([summary.worker_name for summary in report.summaries], ['Ravi', 'Sita'])
        self.assertEqual(report.totals.total_salary, Decimal('40.00'))

    def test_selects_previous_week_by_key(self) -> None:
        report = build_worker_report(RECORDS, now=NOW, anchor_weekday=MONDAY, week_key='2024-01-15')
        self.assertEqual(report.selected_week.label, 'Week 1')
        self.assertEqual([summary.worker_name for summary in report.summaries], ['Ravi'])
        self.assertIsNone(report.find_worker('Sita'))

    def test_empty_data_still_has_current_week(self) -> None:
        report = build_worker_report([], now=NOW, anchor_weekday=MONDAY)
        self.assertEqual(len(report.weeks), 1)
        self.assertEqual(report.summaries, [])


class WeeklyReportTests(unittest.TestCase):
    def test_one_section_per_week_with_data(self) -> None:
        sections = build_weekly_report(RECORDS, anchor_weekday=MONDAY)
        self.assertEqual(len(sections), 2)
        self.assertEqual(sections[0].week.key, '2024-01-22')
        self.assertEqual(sections[0].totals.worker_count, 2)
        self.assertEqual(sections[1].totals.worker_count, 1)


class ProductionOrderReportTests(unittest.TestCase):
    def test_unfiltered_by_default(self) -> None:
        report = build_production_order_report(RECORDS)
        self.assertIsNone(report.week)
        self.assertEqual(report.totals.total_quantity, 30)

    def test_week_and_query_filters(self) -> None:
        week = bucket_for(NOW, MONDAY, tz=IST)
        report = build_production_order_report(RECORDS, query=' 101 ', week=week)
        self.assertEqual(report.query, '101')
        self.assertEqual([order.production_order_id for order in report.orders], ['101'])
        self.assertEqual(report.orders[0].total_quantity, 10)


if __name__ == '__main__':
    unittest.main()
