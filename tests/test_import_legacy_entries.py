from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from piecework.import_legacy_entries import parse_legacy_row, read_legacy_export


class LegacyImportTests(unittest.TestCase):
    def test_parse_row_decodes_label(self) -> None:
        record = parse_legacy_row(
            2,
            {
                'name': 'Ravi | 101 | Stitching | 100.00 | 0.00 | 0.00 | 0.00 | N/A',
                'pieces': '12',
                'rate_per_piece': '15.5',
                'total_salary': '186',
                'created_at': '2024-01-10T06:30:00Z',
            },
        )
        self.assertEqual(record.worker_name, 'Ravi')
        self.assertEqual(record.production_order_id, '101')
        self.assertEqual(record.advance_amount, Decimal('100.00'))
        self.assertEqual(record.line_total, Decimal('186.00'))
        self.assertEqual(record.created_at, datetime(2024, 1, 10, 6, 30, tzinfo=timezone.utc))

    def test_missing_total_is_recomputed(self) -> None:
        record = parse_legacy_row(
            3,
            {'name': 'Ravi | 101 | Stitching', 'pieces': '3', 'rate_per_piece': '2', 'created_at': '2024-01-10'},
        )
        self.assertEqual(record.line_total, Decimal('6.00'))

    def test_line_total_is_recomputed_from_pieces_and_rate(self) -> None:
        record = parse_legacy_row(
            2,
            {'name': 'Ravi | 101 | Stitching', 'pieces': '12', 'rate_per_piece': '15.50', 'created_at': '2024-01-10'},
        )
        self.assertEqual(str(record.line_total), '186.00')

    def test_mismatched_total_rejected(self) -> None:
        row = {
            'name': 'Ravi | 101 | Stitching',
            'pieces': '12',
            'rate_per_piece': '15.50',
            'total_salary': '999',
            'created_at': '2024-01-10',
        }
        with self.assertRaisesRegex(ValueError, r'Row 5: total_salary 999 does not match pieces x rate \(186.00\)'):
            parse_legacy_row(5, row)

    def test_negative_or_non_finite_values_rejected(self) -> None:
        base = {'name': 'Ravi | 101 | Stitching', 'pieces': '4', 'rate_per_piece': '15.50', 'created_at': '2024-01-10'}
        cases = [
            ({'pieces': '-4'}, 'pieces cannot be negative'),
            ({'rate_per_piece': '-15.50'}, 'rate_per_piece cannot be negative'),
            ({'rate_per_piece': 'NaN'}, 'rate_per_piece is not a number'),
            ({'rate_per_piece': 'Infinity'}, 'rate_per_piece is not a number'),
        ]
        for override, message in cases:
            with self.subTest(override=override):
                with self.assertRaisesRegex(ValueError, f'Row 2: {message}'):
                    parse_legacy_row(2, {**base, **override})

    def test_negative_row_is_skipped_not_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'legacy.csv'
            path.write_text(
                'name,pieces,rate_per_piece,total_salary,created_at\n'
                'Ravi | 101 | Stitching,-4,15.50,-62.00,2024-01-10T06:30:00+00:00\n'
                'Sita | 102 | Hemming,4,2.50,10.00,2024-01-10T06:30:00+00:00\n',
                encoding='utf-8',
            )
            records, problems = read_legacy_export(path)
        self.assertEqual([record.worker_name for record in records], ['Sita'])
        self.assertEqual(problems, ['Row 2: pieces cannot be negative'])

    def test_bad_rows_are_reported(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'legacy.csv'
            path.write_text(
                'id,name,pieces,rate_per_piece,total_salary,created_at\n'
                'a,Ravi | 101 | Stitching,12,15.50,186.00,2024-01-10T06:30:00+00:00\n'
                'b,Sita | 102 | Hemming,4,ten,,2024-01-10T06:30:00+00:00\n'
                'c,,1,1,1,2024-01-10T06:30:00+00:00\n',
                encoding='utf-8',
            )
            records, problems = read_legacy_export(path)
        self.assertEqual([record.worker_name for record in records], ['Ravi'])
        self.assertEqual(problems, ['Row 3: rate_per_piece is not a number', 'Row 4: worker name is empty'])

    def test_missing_columns_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'legacy.csv'
            path.write_text('name,pieces\nRavi,1\n', encoding='utf-8')
            with self.assertRaisesRegex(ValueError, 'Missing columns: created_at, rate_per_piece'):
                read_legacy_export(path)


if __name__ == '__main__':
    unittest.main()
