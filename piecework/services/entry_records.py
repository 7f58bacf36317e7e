from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from piecework.services.entry_label_service import decode_label

CENT = Decimal('0.01')
ZERO = Decimal('0')


def compute_line_total(piece_count: int, rate_per_piece: Decimal) -> Decimal:
    return (Decimal(piece_count) * Decimal(rate_per_piece)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class EntryRecord:
    """Point-in-time copy of one stored work entry, detached from the ORM session."""

    id: int
    worker_name: str
    production_order_id: str
    work_type: str
    piece_count: int
    rate_per_piece: Decimal
    line_total: Decimal
    created_at: datetime
    advance_amount: Decimal = ZERO
    benefit_fund_deduction: Decimal = ZERO
    carry_over_balance: Decimal = ZERO
    extra_amount: Decimal = ZERO
    phone_number: str | None = None

    @classmethod
    def from_row(cls, row) -> EntryRecord:
        return cls(
            id=row.id,
            worker_name=row.worker_name,
            production_order_id=row.production_order_id,
            work_type=row.work_type,
            piece_count=int(row.piece_count or 0),
            rate_per_piece=Decimal(row.rate_per_piece or 0),
            line_total=Decimal(row.line_total or 0),
            created_at=row.created_at,
            advance_amount=Decimal(row.advance_amount or 0),
            benefit_fund_deduction=Decimal(row.benefit_fund_deduction or 0),
            carry_over_balance=Decimal(row.carry_over_balance or 0),
            extra_amount=Decimal(row.extra_amount or 0),
            phone_number=row.phone_number or None,
        )

    @classmethod
    def from_legacy(
        cls,
        *,
        id: int,
        label: str,
        piece_count: int,
        rate_per_piece: Decimal,
        created_at: datetime,
        line_total: Decimal | None = None,
    ) -> EntryRecord:
        decoded = decode_label(label)
        return cls(
            id=id,
            worker_name=decoded.worker_name.strip(),
            production_order_id=decoded.production_order_id.strip() if decoded.segment_count >= 3 else '',
            work_type=decoded.work_type.strip(),
            piece_count=piece_count,
            rate_per_piece=rate_per_piece,
            line_total=line_total if line_total is not None else compute_line_total(piece_count, rate_per_piece),
            created_at=created_at,
            advance_amount=decoded.advance,
            benefit_fund_deduction=decoded.benefit_fund_deduction,
            carry_over_balance=decoded.carry_over_balance,
            extra_amount=decoded.extra_amount,
            phone_number=decoded.phone_number or None,
        )
