"""Codec for the legacy composite entry label.

Older rows packed every per-entry field into one free-text column::

    worker | production order | work type | advance | benefit fund | carry over | extra | phone

Only the first three segments are guaranteed; labels written before the
adjustment fields existed stop there. New rows are stored with typed columns,
so this module is only used to read legacy exports.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

LABEL_DELIMITER = ' | '
PHONE_PLACEHOLDER = 'N/A'
CENT = Decimal('0.01')


@dataclass(frozen=True)
class DecodedLabel:
    worker_name: str
    production_order_id: str
    work_type: str
    advance: Decimal = Decimal('0')
    benefit_fund_deduction: Decimal = Decimal('0')
    carry_over_balance: Decimal = Decimal('0')
    extra_amount: Decimal = Decimal('0')
    phone_number: str = ''
    segment_count: int = 3


def _money_segment(value: Decimal | int | float | str | None) -> str:
    amount = Decimal(str(value)) if value is not None else Decimal('0')
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def _decimal_segment(parts: list[str], index: int) -> Decimal:
    if index >= len(parts):
        return Decimal('0')
    raw = parts[index].strip()
    if not raw:
        return Decimal('0')
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return Decimal('0')
    return value if value.is_finite() else Decimal('0')


def encode_label(
    worker_name: str,
    production_order_id: str,
    work_type: str,
    advance: Decimal | int | float | str | None = None,
    benefit_fund_deduction: Decimal | int | float | str | None = None,
    carry_over_balance: Decimal | int | float | str | None = None,
    extra_amount: Decimal | int | float | str | None = None,
    phone_number: str | None = None,
) -> str:
    phone = (phone_number or '').strip() or PHONE_PLACEHOLDER
    return LABEL_DELIMITER.join(
        [
            worker_name,
            production_order_id,
            work_type,
            _money_segment(advance),
            _money_segment(benefit_fund_deduction),
            _money_segment(carry_over_balance),
            _money_segment(extra_amount),
            phone,
        ]
    )


def decode_label(label: str) -> DecodedLabel:
    parts = (label or '').split(LABEL_DELIMITER)
    phone = parts[7].strip() if len(parts) > 7 else ''
    if phone == PHONE_PLACEHOLDER:
        phone = ''
    return DecodedLabel(
        worker_name=parts[0],
        production_order_id=parts[1] if len(parts) > 1 else '',
        work_type=parts[2] if len(parts) > 2 else '',
        advance=_decimal_segment(parts, 3),
        benefit_fund_deduction=_decimal_segment(parts, 4),
        carry_over_balance=_decimal_segment(parts, 5),
        extra_amount=_decimal_segment(parts, 6),
        phone_number=phone,
        segment_count=len(parts),
    )
