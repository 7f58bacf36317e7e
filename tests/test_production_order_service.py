from __future__ import annotations

import unittest
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from piecework.services.entry_records import EntryRecord
from piecework.services.production_order_service import (
    group_by_production_order,
    production_order_sort_key,
    production_order_totals,
    search_production_orders,
)

IST = ZoneInfo('Asia/Kolkata')


def _record(record_id: int, production_order_id: str, pieces: int, worker_name: str = 'Ravi') -> EntryRecord:
    return EntryRecord(
        id=record_id,
        worker_name=worker_name,
        production_order_id=production_order_id,
        work_type='Stitching',
        piece_count=pieces,
        rate_per_piece=Decimal('1'),
        line_total=Decimal(pieces),
        created_at=datetime(2024, 1, 10, tzinfo=IST),
    )


class ProductionOrderSortKeyTests(unittest.TestCase):
    def test_leading_integer_is_used(self) -> None:
        self.assertEqual(production_order_sort_key('12abc'), 12)
        self.assertEqual(production_order_sort_key(' -3x'), -3)
        self.assertEqual(production_order_sort_key('abc'), 0)
        self.assertEqual(production_order_sort_key(''), 0)


class GroupByProductionOrderTests(unittest.TestCase):
    def test_numeric_ordering_with_non_numeric_as_zero(self) -> None:
        records = [_record(1, '10', 1), _record(2, '2', 1), _record(3, 'abc', 1), _record(4, '1', 1)]
        orders = group_by_production_order(records)
        self.assertEqual([order.production_order_id for order in orders], ['abc', '1', '2', '10'])

    def test_contributions_and_totals(self) -> None:
        records = [
            _record(1, ' 7 ', 10, worker_name=' Ravi '),
            _record(2, '7', 5, worker_name='Sita'),
            _record(3, '8', 3),
        ]
        orders = group_by_production_order(records)
        self.assertEqual(orders[0].production_order_id, '7')
        self.assertEqual(orders[0].total_quantity, 15)
        self.assertEqual([c.worker_name for c in orders[0].contributions], ['Ravi', 'Sita'])
        totals = production_order_totals(orders)
        self.assertEqual(totals.order_count, 2)
        self.assertEqual(totals.total_quantity, 18)
        self.assertEqual(totals.contribution_count, 3)

    def test_blank_io_is_skipped(self) -> None:
        orders = group_by_production_order([_record(1, '   ', 4), _record(2, '', 4)])
        self.assertEqual(orders, [])

    def test_equal_keys_keep_encounter_order(self) -> None:
        orders = group_by_production_order([_record(1, 'x', 1), _record(2, 'y', 1), _record(3, '0', 1)])
        self.assertEqual([order.production_order_id for order in orders], ['x', 'y', '0'])


class SearchProductionOrdersTests(unittest.TestCase):
    def test_case_insensitive_substring(self) -> None:
        orders = group_by_production_order([_record(1, '1', 1), _record(2, '10', 1), _record(3, 'AB-2', 1)])
        self.assertEqual([o.production_order_id for o in search_production_orders(orders, '1')], ['1', '10'])
        self.assertEqual([o.production_order_id for o in search_production_orders(orders, 'ab')], ['AB-2'])
        self.assertEqual(len(search_production_orders(orders, '  ')), 3)

    def test_surrounding_spaces_are_part_of_the_query(self) -> None:
        orders = group_by_production_order([_record(1, '1', 1), _record(2, 'AB 1', 1)])
        self.assertEqual([o.production_order_id for o in search_production_orders(orders, ' 1')], ['AB 1'])
        self.assertEqual(search_production_orders(orders, '1 '), [])


if __name__ == '__main__':
    unittest.main()
