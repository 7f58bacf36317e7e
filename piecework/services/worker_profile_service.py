from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from piecework.models import SalaryHistory, WorkerProfile
from piecework.services.week_service import WeekBucket, available_weeks, report_tz, week_range

PHONE_RE = re.compile(r'^[0-9]{10}$')
ZERO = Decimal('0')


class ProfileNotFoundError(LookupError):
    pass


def _clean_profile_fields(name: str, phone_number: str) -> tuple[str, str]:
    clean_name = (name or '').strip()
    clean_phone = (phone_number or '').strip()
    if not clean_name:
        raise ValueError('Worker name is required')
    if not clean_phone:
        raise ValueError('Phone number is required')
    if not PHONE_RE.match(clean_phone):
        raise ValueError('Enter a valid 10-digit phone number')
    return clean_name, clean_phone


def _name_taken(db: Session, name: str, *, exclude_id: int | None = None) -> bool:
    query = select(WorkerProfile.id).where(WorkerProfile.name == name)
    if exclude_id is not None:
        query = query.where(WorkerProfile.id != exclude_id)
    return db.execute(query).first() is not None


def list_profiles(db: Session) -> list[WorkerProfile]:
    return db.execute(select(WorkerProfile).order_by(WorkerProfile.name.asc())).scalars().all()


def search_profiles(profiles: Iterable, query: str | None) -> list:
    needle = (query or '').strip()
    if not needle:
        return list(profiles)
    lowered = needle.lower()
    return [
        profile
        for profile in profiles
        if lowered in profile.name.lower() or (profile.phone_number and needle in profile.phone_number)
    ]


def get_profile(db: Session, profile_id: int) -> WorkerProfile:
    profile = db.execute(select(WorkerProfile).where(WorkerProfile.id == profile_id)).scalar_one_or_none()
    if not profile:
        raise ProfileNotFoundError('Worker profile not found')
    return profile


def create_profile(db: Session, *, name: str, phone_number: str) -> WorkerProfile:
    clean_name, clean_phone = _clean_profile_fields(name, phone_number)
    if _name_taken(db, clean_name):
        raise ValueError('A worker with this name already exists')
    profile = WorkerProfile(name=clean_name, phone_number=clean_phone)
    db.add(profile)
    db.flush()
    return profile


def update_profile(db: Session, *, profile_id: int, name: str, phone_number: str) -> WorkerProfile:
    profile = get_profile(db, profile_id)
    clean_name, clean_phone = _clean_profile_fields(name, phone_number)
    if _name_taken(db, clean_name, exclude_id=profile.id):
        raise ValueError('A worker with this name already exists')
    profile.name = clean_name
    profile.phone_number = clean_phone
    profile.updated_at = func.now()
    db.flush()
    return profile


def delete_profile(db: Session, *, profile_id: int) -> None:
    profile = get_profile(db, profile_id)
    db.delete(profile)
    db.flush()


def _money(raw: str | None, label: str) -> Decimal:
    value = (raw or '').strip()
    if not value:
        return ZERO
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f'{label} must be a number') from exc
    if not amount.is_finite():
        raise ValueError(f'{label} must be a number')
    return amount


def salary_week_dates(week_of: date, anchor_weekday: int) -> tuple[date, date]:
    start, end = week_range(datetime.combine(week_of, datetime.min.time(), tzinfo=report_tz()), anchor_weekday)
    return start.date(), end.date()


def list_salary_history(db: Session, *, profile_id: int) -> list[SalaryHistory]:
    return db.execute(
        select(SalaryHistory)
        .where(SalaryHistory.worker_profile_id == profile_id)
        .order_by(SalaryHistory.week_start_date.desc())
    ).scalars().all()


def upsert_salary_week(
    db: Session,
    *,
    profile_id: int,
    week_of: date,
    anchor_weekday: int,
    weekly_salary: str | None,
    weekly_advance: str | None,
    advance_paid: str | None,
    notes: str | None,
) -> SalaryHistory:
    profile = get_profile(db, profile_id)
    week_start, week_end = salary_week_dates(week_of, anchor_weekday)
    row = db.execute(
        select(SalaryHistory).where(
            SalaryHistory.worker_profile_id == profile.id,
            SalaryHistory.week_start_date == week_start,
        )
    ).scalar_one_or_none()
    if not row:
        row = SalaryHistory(worker_profile_id=profile.id, week_start_date=week_start)
        db.add(row)

    row.week_end_date = week_end
    row.weekly_salary = _money(weekly_salary, 'Weekly salary')
    row.weekly_advance = _money(weekly_advance, 'Weekly advance')
    row.advance_paid = _money(advance_paid, 'Advance paid')
    row.notes = notes.strip() if notes and notes.strip() else None
    row.updated_at = func.now()
    db.flush()
    return row


def history_weeks(rows: Iterable, *, now: datetime, anchor_weekday: int) -> list[WeekBucket]:
    tz = report_tz()
    moments = [datetime.combine(row.week_start_date, datetime.min.time(), tzinfo=tz) for row in rows]
    return available_weeks(moments, now, anchor_weekday, tz)


def filter_history(rows: Iterable, bucket: WeekBucket | None) -> list:
    if bucket is None:
        return list(rows)
    return [row for row in rows if bucket.overlaps(row.week_start_date, row.week_end_date)]
