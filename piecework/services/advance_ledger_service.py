from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from piecework.models import AdvanceLedgerEntry
from piecework.services.week_service import WeekBucket, available_weeks, filter_to_bucket, report_tz

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


class AdvanceNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class LedgerTotals:
    total_advanced: Decimal
    total_paid_back: Decimal
    total_balance: Decimal


def advance_balance(entry) -> Decimal:
    return Decimal(entry.amount or 0) - Decimal(entry.paid_back_amount or 0)


def is_active(entry) -> bool:
    return advance_balance(entry) > 0


def split_active_settled(entries: Iterable) -> tuple[list, list]:
    active: list = []
    settled: list = []
    for entry in entries:
        (active if is_active(entry) else settled).append(entry)
    return active, settled


def ledger_totals(entries: Iterable) -> LedgerTotals:
    entries = list(entries)
    advanced = sum((Decimal(entry.amount or 0) for entry in entries), ZERO)
    paid = sum((Decimal(entry.paid_back_amount or 0) for entry in entries), ZERO)
    return LedgerTotals(total_advanced=advanced, total_paid_back=paid, total_balance=advanced - paid)


def advance_weeks(entries: Iterable, *, now: datetime, anchor_weekday: int) -> list[WeekBucket]:
    return available_weeks((entry.advance_date for entry in entries), now, anchor_weekday)


def entries_in_week(entries: Iterable, bucket: WeekBucket) -> list:
    return filter_to_bucket(entries, bucket, key=lambda entry: entry.advance_date)


def _parse_amount(raw: str, label: str) -> Decimal:
    try:
        amount = Decimal((raw or '').strip())
    except InvalidOperation as exc:
        raise ValueError(f'Enter a valid {label}') from exc
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f'Enter a valid {label}')
    return amount


def _advance_moment(advance_date: date) -> datetime:
    return datetime.combine(advance_date, time.min, tzinfo=report_tz()).astimezone(timezone.utc)


def _clean_fields(worker_name: str, amount: str, notes: str | None) -> tuple[str, Decimal, str | None]:
    clean_name = (worker_name or '').strip()
    if not clean_name:
        raise ValueError('Worker name is required')
    clean_notes = notes.strip() if notes and notes.strip() else None
    return clean_name, _parse_amount(amount, 'advance amount'), clean_notes


def list_advances(db: Session) -> list[AdvanceLedgerEntry]:
    return db.execute(
        select(AdvanceLedgerEntry).order_by(AdvanceLedgerEntry.advance_date.desc(), AdvanceLedgerEntry.id.desc())
    ).scalars().all()


def _get_advance(db: Session, advance_id: int) -> AdvanceLedgerEntry:
    entry = db.execute(select(AdvanceLedgerEntry).where(AdvanceLedgerEntry.id == advance_id)).scalar_one_or_none()
    if not entry:
        raise AdvanceNotFoundError('Advance not found')
    return entry


def create_advance(
    db: Session,
    *,
    worker_name: str,
    amount: str,
    advance_date: date,
    notes: str | None,
) -> AdvanceLedgerEntry:
    clean_name, clean_amount, clean_notes = _clean_fields(worker_name, amount, notes)
    entry = AdvanceLedgerEntry(
        worker_name=clean_name,
        amount=clean_amount,
        advance_date=_advance_moment(advance_date),
        paid_back_amount=ZERO,
        notes=clean_notes,
    )
    db.add(entry)
    db.flush()
    logger.info('Advance of %s recorded for %s', clean_amount, clean_name)
    return entry


def update_advance(
    db: Session,
    *,
    advance_id: int,
    worker_name: str,
    amount: str,
    advance_date: date,
    notes: str | None,
) -> AdvanceLedgerEntry:
    entry = _get_advance(db, advance_id)
    clean_name, clean_amount, clean_notes = _clean_fields(worker_name, amount, notes)
    entry.worker_name = clean_name
    entry.amount = clean_amount
    entry.advance_date = _advance_moment(advance_date)
    entry.notes = clean_notes
    entry.updated_at = func.now()
    db.flush()
    return entry


def record_repayment(db: Session, *, advance_id: int, amount: str) -> AdvanceLedgerEntry:
    entry = _get_advance(db, advance_id)
    repayment = _parse_amount(amount, 'repayment amount')
    entry.paid_back_amount = Decimal(entry.paid_back_amount or 0) + repayment
    entry.updated_at = func.now()
    db.flush()
    logger.info('Repayment of %s recorded against advance %s', repayment, advance_id)
    return entry


def delete_advance(db: Session, *, advance_id: int) -> None:
    entry = _get_advance(db, advance_id)
    db.delete(entry)
    db.flush()
