from __future__ import annotations

import argparse
import csv
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path

from piecework.db import SessionLocal
from piecework.models import WorkEntry
from piecework.services.entry_records import EntryRecord, compute_line_total

REQUIRED_COLUMNS = {'name', 'pieces', 'rate_per_piece', 'created_at'}


def _parse_timestamp(raw: str) -> datetime:
    value = raw.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _parse_decimal(raw: str | None) -> Decimal | None:
    value = (raw or '').strip()
    if not value:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_legacy_row(line_no: int, row: dict[str, str]) -> EntryRecord:
    try:
        piece_count = int((row.get('pieces') or '0').strip() or 0)
        created_at = _parse_timestamp(row.get('created_at') or '')
    except ValueError as exc:
        raise ValueError(f'Row {line_no}: {exc}') from exc
    if piece_count < 0:
        raise ValueError(f'Row {line_no}: pieces cannot be negative')
    rate = _parse_decimal(row.get('rate_per_piece'))
    if rate is None:
        raise ValueError(f'Row {line_no}: rate_per_piece is not a number')
    if rate < 0:
        raise ValueError(f'Row {line_no}: rate_per_piece cannot be negative')

    line_total = compute_line_total(piece_count, rate)
    exported_total = _parse_decimal(row.get('total_salary'))
    if exported_total is not None and exported_total != line_total:
        raise ValueError(f'Row {line_no}: total_salary {exported_total} does not match pieces x rate ({line_total})')
    return EntryRecord.from_legacy(
        id=line_no,
        label=row.get('name') or '',
        piece_count=piece_count,
        rate_per_piece=rate,
        created_at=created_at,
        line_total=line_total,
    )


def read_legacy_export(path: Path) -> tuple[list[EntryRecord], list[str]]:
    records: list[EntryRecord] = []
    problems: list[str] = []
    with path.open(newline='', encoding='utf-8') as handle:
        reader = csv.DictReader(handle)
        missing = REQUIRED_COLUMNS - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"Missing columns: {', '.join(sorted(missing))}")
        for line_no, row in enumerate(reader, start=2):
            try:
                record = parse_legacy_row(line_no, row)
            except ValueError as exc:
                problems.append(str(exc))
                continue
            if not record.worker_name:
                problems.append(f'Row {line_no}: worker name is empty')
                continue
            records.append(record)
    return records, problems


def import_entries(records: list[EntryRecord]) -> int:
    with SessionLocal() as db:
        for record in records:
            db.add(
                WorkEntry(
                    worker_name=record.worker_name,
                    production_order_id=record.production_order_id,
                    work_type=record.work_type,
                    piece_count=record.piece_count,
                    quantity_multiplier=1,
                    rate_per_piece=record.rate_per_piece,
                    line_total=record.line_total,
                    advance_amount=record.advance_amount,
                    benefit_fund_deduction=record.benefit_fund_deduction,
                    carry_over_balance=record.carry_over_balance,
                    extra_amount=record.extra_amount,
                    phone_number=record.phone_number,
                    created_at=record.created_at,
                )
            )
        db.commit()
    return len(records)


def main() -> None:
    parser = argparse.ArgumentParser(description='Import work entries from a legacy CSV export.')
    parser.add_argument('path', type=Path, help='CSV with name, pieces, rate_per_piece, total_salary, created_at columns.')
    parser.add_argument('--dry-run', action='store_true', help='Parse and report without writing to the database.')
    args = parser.parse_args()

    records, problems = read_legacy_export(args.path)
    for problem in problems:
        print(f'Skipped: {problem}')
    imported = 0 if args.dry_run else import_entries(records)
    print(f'Legacy import complete: parsed={len(records)}, imported={imported}, skipped={len(problems)}')


if __name__ == '__main__':
    main()
