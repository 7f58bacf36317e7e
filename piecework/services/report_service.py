"""Read models for the worker, weekly and production-order views.

Everything here is a pure function of a point-in-time list of
``EntryRecord`` values, so the same list fetched once per request feeds the
page and its exports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from piecework.services.entry_records import EntryRecord
from piecework.services.production_order_service import (
    ProductionOrderSummary,
    ProductionOrderTotals,
    group_by_production_order,
    production_order_totals,
    search_production_orders,
)
from piecework.services.salary_math_service import WeekTotals, WorkerSummary, group_by_worker, summarise_week
from piecework.services.week_service import WeekBucket, available_weeks, filter_to_bucket, find_bucket, group_into_weeks


@dataclass(frozen=True)
class WorkerReport:
    weeks: list[WeekBucket]
    selected_week: WeekBucket
    summaries: list[WorkerSummary]
    totals: WeekTotals

    def find_worker(self, worker_name: str) -> WorkerSummary | None:
        for summary in self.summaries:
            if summary.worker_name == worker_name:
                return summary
        return None


@dataclass(frozen=True)
class WeeklyReportSection:
    week: WeekBucket
    summaries: list[WorkerSummary]
    totals: WeekTotals


@dataclass(frozen=True)
class ProductionOrderReport:
    orders: list[ProductionOrderSummary]
    totals: ProductionOrderTotals
    query: str
    week: WeekBucket | None


def _created_at(record: EntryRecord) -> datetime:
    return record.created_at


def build_worker_report(
    records: list[EntryRecord],
    *,
    now: datetime,
    anchor_weekday: int,
    week_key: str | None = None,
) -> WorkerReport:
    weeks = available_weeks((record.created_at for record in records), now, anchor_weekday)
    selected = find_bucket(weeks, week_key)
    summaries = group_by_worker(filter_to_bucket(records, selected, key=_created_at))
    return WorkerReport(weeks=weeks, selected_week=selected, summaries=summaries, totals=summarise_week(summaries))


def build_weekly_report(records: list[EntryRecord], *, anchor_weekday: int) -> list[WeeklyReportSection]:
    sections: list[WeeklyReportSection] = []
    for week, week_records in group_into_weeks(records, anchor_weekday, key=_created_at):
        summaries = group_by_worker(week_records)
        sections.append(WeeklyReportSection(week=week, summaries=summaries, totals=summarise_week(summaries)))
    return sections


def build_production_order_report(
    records: list[EntryRecord],
    *,
    query: str | None = None,
    week: WeekBucket | None = None,
) -> ProductionOrderReport:
    scoped = filter_to_bucket(records, week, key=_created_at) if week else records
    orders = search_production_orders(group_by_production_order(scoped), query)
    return ProductionOrderReport(
        orders=orders,
        totals=production_order_totals(orders),
        query=(query or '').strip(),
        week=week,
    )
