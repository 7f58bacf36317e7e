from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from piecework.models import WorkEntry
from piecework.services.entry_records import EntryRecord, compute_line_total
from piecework.services.salary_math_service import records_for_worker
from piecework.services.week_service import WeekBucket, filter_to_bucket

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


class SubmissionError(ValueError):
    pass


class EntryNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class EntryLineInput:
    production_order_id: str
    work_type: str
    piece_count: str
    rate_per_piece: str


@dataclass(frozen=True)
class EntrySubmission:
    worker_name: str
    lines: list[EntryLineInput]
    advance: str = ''
    benefit_fund_deduction: str = ''
    carry_over_balance: str = ''
    extra_amount: str = ''
    phone_number: str = ''


@dataclass(frozen=True)
class ValidatedLine:
    production_order_id: str
    work_type: str
    piece_count: int
    rate_per_piece: Decimal

    @property
    def line_total(self) -> Decimal:
        return compute_line_total(self.piece_count, self.rate_per_piece)


@dataclass(frozen=True)
class ValidatedSubmission:
    worker_name: str
    lines: list[ValidatedLine]
    advance: Decimal = ZERO
    benefit_fund_deduction: Decimal = ZERO
    carry_over_balance: Decimal = ZERO
    extra_amount: Decimal = ZERO
    phone_number: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def total_salary(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)


def _parse_piece_count(raw: str, line_no: int) -> int:
    value = (raw or '').strip()
    if not value:
        raise SubmissionError(f'Line {line_no}: quantity is required')
    try:
        count = int(value)
    except ValueError as exc:
        raise SubmissionError(f'Line {line_no}: quantity must be a whole number') from exc
    if count < 0:
        raise SubmissionError(f'Line {line_no}: quantity cannot be negative')
    return count


def _parse_rate(raw: str, line_no: int) -> Decimal:
    value = (raw or '').strip()
    if not value:
        raise SubmissionError(f'Line {line_no}: rate is required')
    try:
        rate = Decimal(value)
    except InvalidOperation as exc:
        raise SubmissionError(f'Line {line_no}: rate must be a number') from exc
    if not rate.is_finite():
        raise SubmissionError(f'Line {line_no}: rate must be a number')
    if rate < 0:
        raise SubmissionError(f'Line {line_no}: rate cannot be negative')
    return rate


def _parse_adjustment(raw: str, label: str) -> Decimal:
    value = (raw or '').strip()
    if not value:
        return ZERO
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise SubmissionError(f'{label} must be a number') from exc
    if not amount.is_finite():
        raise SubmissionError(f'{label} must be a number')
    return amount


def validate_submission(submission: EntrySubmission) -> ValidatedSubmission:
    worker_name = (submission.worker_name or '').strip()
    if not worker_name:
        raise SubmissionError('Worker name is required')
    if not submission.lines:
        raise SubmissionError('Enter at least one work line')

    lines: list[ValidatedLine] = []
    for line_no, line in enumerate(submission.lines, start=1):
        production_order_id = (line.production_order_id or '').strip()
        work_type = (line.work_type or '').strip()
        if not production_order_id:
            raise SubmissionError(f'Line {line_no}: IO number is required')
        if not work_type:
            raise SubmissionError(f'Line {line_no}: work type is required')
        lines.append(
            ValidatedLine(
                production_order_id=production_order_id,
                work_type=work_type,
                piece_count=_parse_piece_count(line.piece_count, line_no),
                rate_per_piece=_parse_rate(line.rate_per_piece, line_no),
            )
        )

    warnings: list[str] = []
    advance = _parse_adjustment(submission.advance, 'Advance')
    benefit_fund = _parse_adjustment(submission.benefit_fund_deduction, 'ESI/BF deduction')
    # Negative deductions are still subtracted as entered.
    if advance < 0:
        warnings.append('Advance is negative')
    if benefit_fund < 0:
        warnings.append('ESI/BF deduction is negative')

    return ValidatedSubmission(
        worker_name=worker_name,
        lines=lines,
        advance=advance,
        benefit_fund_deduction=benefit_fund,
        carry_over_balance=_parse_adjustment(submission.carry_over_balance, 'Carry-over balance'),
        extra_amount=_parse_adjustment(submission.extra_amount, 'Extra amount'),
        phone_number=(submission.phone_number or '').strip() or None,
        warnings=warnings,
    )


def build_entry_batch(validated: ValidatedSubmission) -> list[WorkEntry]:
    """One row per line; only the first row carries the adjustments and phone."""
    rows: list[WorkEntry] = []
    for index, line in enumerate(validated.lines):
        first = index == 0
        rows.append(
            WorkEntry(
                worker_name=validated.worker_name,
                production_order_id=line.production_order_id,
                work_type=line.work_type,
                piece_count=line.piece_count,
                quantity_multiplier=1,
                rate_per_piece=line.rate_per_piece,
                line_total=line.line_total,
                advance_amount=validated.advance if first else ZERO,
                benefit_fund_deduction=validated.benefit_fund_deduction if first else ZERO,
                carry_over_balance=validated.carry_over_balance if first else ZERO,
                extra_amount=validated.extra_amount if first else ZERO,
                phone_number=validated.phone_number if first else None,
            )
        )
    return rows


def create_entry_batch(db: Session, submission: EntrySubmission) -> tuple[ValidatedSubmission, list[WorkEntry]]:
    validated = validate_submission(submission)
    for warning in validated.warnings:
        logger.warning('Entry batch for %s: %s', validated.worker_name, warning)
    rows = build_entry_batch(validated)
    db.add_all(rows)
    db.flush()
    logger.info('Recorded %d work line(s) for %s', len(rows), validated.worker_name)
    return validated, rows


def list_entries(db: Session) -> list[EntryRecord]:
    rows = db.execute(select(WorkEntry).order_by(WorkEntry.created_at.desc(), WorkEntry.id.desc())).scalars().all()
    return [EntryRecord.from_row(row) for row in rows]


def _get_entry(db: Session, entry_id: int) -> WorkEntry:
    entry = db.execute(select(WorkEntry).where(WorkEntry.id == entry_id)).scalar_one_or_none()
    if not entry:
        raise EntryNotFoundError('Work entry not found')
    return entry


def update_entry(
    db: Session,
    *,
    entry_id: int,
    production_order_id: str,
    work_type: str,
    piece_count: str,
    rate_per_piece: str,
) -> WorkEntry:
    entry = _get_entry(db, entry_id)
    validated = validate_submission(
        EntrySubmission(
            worker_name=entry.worker_name,
            lines=[
                EntryLineInput(
                    production_order_id=production_order_id,
                    work_type=work_type,
                    piece_count=piece_count,
                    rate_per_piece=rate_per_piece,
                )
            ],
        )
    )
    line = validated.lines[0]
    entry.production_order_id = line.production_order_id
    entry.work_type = line.work_type
    entry.piece_count = line.piece_count
    entry.rate_per_piece = line.rate_per_piece
    entry.line_total = line.line_total
    db.flush()
    return entry


def delete_entry(db: Session, *, entry_id: int) -> None:
    entry = _get_entry(db, entry_id)
    db.delete(entry)
    db.flush()


def delete_entries(db: Session, *, entry_ids: list[int]) -> int:
    if not entry_ids:
        return 0
    result = db.execute(delete(WorkEntry).where(WorkEntry.id.in_(entry_ids)))
    return result.rowcount or 0


def worker_entry_ids(records: list[EntryRecord], *, worker_name: str, bucket: WeekBucket | None) -> list[int]:
    scoped = filter_to_bucket(records, bucket, key=lambda record: record.created_at) if bucket else records
    return [record.id for record in records_for_worker(scoped, worker_name)]


def delete_worker_entries(db: Session, *, worker_name: str, bucket: WeekBucket | None) -> int:
    ids = worker_entry_ids(list_entries(db), worker_name=worker_name, bucket=bucket)
    deleted = delete_entries(db, entry_ids=ids)
    logger.info('Deleted %d work line(s) for %s', deleted, worker_name)
    return deleted


def delete_all_entries(db: Session) -> int:
    result = db.execute(delete(WorkEntry))
    return result.rowcount or 0
