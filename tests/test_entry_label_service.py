from __future__ import annotations

import unittest
from decimal import Decimal

from piecework.services.entry_label_service import decode_label, encode_label


class EntryLabelServiceTests(unittest.TestCase):
    def test_encode_formats_money_and_phone_placeholder(self) -> None:
        label = encode_label('Ravi', '101', 'Stitching', Decimal('100'), Decimal('20.5'), Decimal('-30'), 10, None)
        self.assertEqual(label, 'Ravi | 101 | Stitching | 100.00 | 20.50 | -30.00 | 10.00 | N/A')

    def test_full_label_decodes_every_field(self) -> None:
        label = encode_label('Ravi', '101', 'Stitching', '100', '20', '-30', '10', '9876543210')
        decoded = decode_label(label)
        self.assertEqual(decoded.worker_name, 'Ravi')
        self.assertEqual(decoded.production_order_id, '101')
        self.assertEqual(decoded.work_type, 'Stitching')
        self.assertEqual(decoded.advance, Decimal('100.00'))
        self.assertEqual(decoded.benefit_fund_deduction, Decimal('20.00'))
        self.assertEqual(decoded.carry_over_balance, Decimal('-30.00'))
        self.assertEqual(decoded.extra_amount, Decimal('10.00'))
        self.assertEqual(decoded.phone_number, '9876543210')
        self.assertEqual(decoded.segment_count, 8)

    def test_three_segment_label_defaults_adjustments(self) -> None:
        decoded = decode_label('Ravi | 101 | Stitching')
        self.assertEqual(decoded.production_order_id, '101')
        self.assertEqual(decoded.advance, Decimal('0'))
        self.assertEqual(decoded.extra_amount, Decimal('0'))
        self.assertEqual(decoded.phone_number, '')

    def test_placeholder_phone_decodes_to_empty(self) -> None:
        decoded = decode_label('Ravi | 101 | Stitching | 0.00 | 0.00 | 0.00 | 0.00 | N/A')
        self.assertEqual(decoded.phone_number, '')

    def test_malformed_amount_decodes_to_zero(self) -> None:
        decoded = decode_label('Ravi | 101 | Stitching | abc')
        self.assertEqual(decoded.advance, Decimal('0'))
        self.assertEqual(decoded.segment_count, 4)

    def test_non_finite_amounts_decode_to_zero(self) -> None:
        decoded = decode_label('Ravi | 101 | Stitching | NaN | Infinity | -inf | sNaN | N/A')
        self.assertEqual(decoded.advance, Decimal('0'))
        self.assertEqual(decoded.benefit_fund_deduction, Decimal('0'))
        self.assertEqual(decoded.carry_over_balance, Decimal('0'))
        self.assertEqual(decoded.extra_amount, Decimal('0'))


if __name__ == '__main__':
    unittest.main()
