from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import TypeVar
from zoneinfo import ZoneInfo

from piecework.config import settings

MONDAY = 0
TUESDAY = 1
WEDNESDAY = 2
THURSDAY = 3
FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

CURRENT_WEEK_LABEL = 'Current Week'
LAST_INSTANT = timedelta(days=7) - timedelta(milliseconds=1)

T = TypeVar('T')


@dataclass(frozen=True)
class WeekBucket:
    start: datetime
    end: datetime
    label: str
    is_current: bool = False

    @property
    def key(self) -> str:
        return self.start.date().isoformat()

    @property
    def span(self) -> tuple[datetime, datetime]:
        return (self.start, self.end)

    def contains(self, moment: datetime) -> bool:
        return self.start <= to_local(moment, self.start.tzinfo) <= self.end

    def overlaps(self, start: date, end: date) -> bool:
        return start <= self.end.date() and end >= self.start.date()

    def describe(self) -> str:
        return f"{self.start.strftime('%d %b')} - {self.end.strftime('%d %b %Y')}"


def report_tz() -> tzinfo:
    return ZoneInfo(settings.report_timezone)


def to_local(moment: datetime, tz: tzinfo | None = None) -> datetime:
    zone = tz or report_tz()
    return moment.astimezone(zone) if moment.tzinfo is not None else moment.replace(tzinfo=zone)


def _validate_anchor(anchor_weekday: int) -> None:
    if anchor_weekday < MONDAY or anchor_weekday > SUNDAY:
        raise ValueError('Week anchor must be a weekday number between 0 (Monday) and 6 (Sunday)')


def week_range(moment: datetime, anchor_weekday: int, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return the inclusive ``(start, end)`` of the 7-day bucket holding ``moment``.

    The bucket starts at midnight on the most recent ``anchor_weekday`` on or
    before ``moment`` and ends one millisecond before the next anchor day.
    Naive datetimes are treated as already being in ``tz``.
    """
    _validate_anchor(anchor_weekday)
    zone = tz or report_tz()
    local = to_local(moment, zone)
    days_since_anchor = (local.weekday() - anchor_weekday) % 7
    start_day = local.date() - timedelta(days=days_since_anchor)
    start = datetime.combine(start_day, time.min, tzinfo=zone)
    return start, start + LAST_INSTANT


def bucket_for(moment: datetime, anchor_weekday: int, *, label: str = '', tz: tzinfo | None = None) -> WeekBucket:
    start, end = week_range(moment, anchor_weekday, tz)
    return WeekBucket(start=start, end=end, label=label)


def current_week(now: datetime, anchor_weekday: int, tz: tzinfo | None = None) -> WeekBucket:
    start, end = week_range(now, anchor_weekday, tz)
    return WeekBucket(start=start, end=end, label=CURRENT_WEEK_LABEL, is_current=True)


def available_weeks(
    moments: Iterable[datetime],
    now: datetime,
    anchor_weekday: int,
    tz: tzinfo | None = None,
) -> list[WeekBucket]:
    """List the current week followed by every other week that has data.

    Other weeks are sorted most recent first and labelled by position, so a
    label is only meaningful for the load that produced it.
    """
    current = current_week(now, anchor_weekday, tz)
    spans: set[tuple[datetime, datetime]] = set()
    for moment in moments:
        span = week_range(moment, anchor_weekday, tz)
        if span != current.span:
            spans.add(span)

    weeks = [current]
    for position, (start, end) in enumerate(sorted(spans, key=lambda span: span[0], reverse=True), start=1):
        weeks.append(WeekBucket(start=start, end=end, label=f'Week {position}'))
    return weeks


def find_bucket(weeks: list[WeekBucket], key: str | None) -> WeekBucket:
    if key:
        for week in weeks:
            if week.key == key:
                return week
    for week in weeks:
        if week.is_current:
            return week
    return weeks[0]


def bucket_contains(bucket: WeekBucket, moment: datetime) -> bool:
    return bucket.contains(moment)


def filter_to_bucket(items: Iterable[T], bucket: WeekBucket, key: Callable[[T], datetime]) -> list[T]:
    return [item for item in items if bucket_contains(bucket, key(item))]


def group_into_weeks(
    items: Iterable[T],
    anchor_weekday: int,
    key: Callable[[T], datetime],
    tz: tzinfo | None = None,
) -> list[tuple[WeekBucket, list[T]]]:
    """Bucket items by week, newest week first, keeping item order inside a week."""
    grouped: dict[tuple[datetime, datetime], list[T]] = {}
    for item in items:
        grouped.setdefault(week_range(key(item), anchor_weekday, tz), []).append(item)
    return [
        (WeekBucket(start=start, end=end, label=f'Week {position}'), grouped[(start, end)])
        for position, (start, end) in enumerate(sorted(grouped, key=lambda span: span[0], reverse=True), start=1)
    ]
