from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from piecework.services.entry_records import EntryRecord

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


@dataclass(frozen=True)
class Contribution:
    worker_name: str
    work_type: str
    piece_count: int


@dataclass
class ProductionOrderSummary:
    production_order_id: str
    total_quantity: int = 0
    contributions: list[Contribution] = field(default_factory=list)


@dataclass(frozen=True)
class ProductionOrderTotals:
    order_count: int
    total_quantity: int
    contribution_count: int


def production_order_sort_key(production_order_id: str) -> int:
    """Numeric value of the id's leading integer; ids without one sort as 0."""
    match = _LEADING_INT.match(production_order_id or '')
    if not match:
        return 0
    return int(match.group(1))


def group_by_production_order(records: Iterable[EntryRecord]) -> list[ProductionOrderSummary]:
    grouped: dict[str, ProductionOrderSummary] = {}
    for record in records:
        order_id = (record.production_order_id or '').strip()
        if not order_id:
            continue
        summary = grouped.get(order_id)
        if summary is None:
            summary = ProductionOrderSummary(production_order_id=order_id)
            grouped[order_id] = summary
        quantity = int(record.piece_count or 0)
        summary.total_quantity += quantity
        summary.contributions.append(
            Contribution(
                worker_name=record.worker_name.strip(),
                work_type=record.work_type.strip(),
                piece_count=quantity,
            )
        )
    # sorted() is stable, so equal keys keep encounter order.
    return sorted(grouped.values(), key=lambda summary: production_order_sort_key(summary.production_order_id))


def search_production_orders(summaries: list[ProductionOrderSummary], query: str | None) -> list[ProductionOrderSummary]:
    needle = (query or '').lower()
    if not needle.strip():
        return list(summaries)
    return [summary for summary in summaries if needle in summary.production_order_id.lower()]


def production_order_totals(summaries: Iterable[ProductionOrderSummary]) -> ProductionOrderTotals:
    summaries = list(summaries)
    return ProductionOrderTotals(
        order_count=len(summaries),
        total_quantity=sum(summary.total_quantity for summary in summaries),
        contribution_count=sum(len(summary.contributions) for summary in summaries),
    )
