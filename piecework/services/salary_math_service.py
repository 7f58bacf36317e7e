from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from piecework.services.entry_records import EntryRecord

CENT = Decimal('0.01')
ZERO = Decimal('0')


def worker_identity_key(worker_name: str) -> str:
    # Exact match: case or spacing variants are distinct workers.
    return worker_name


def compute_final_payable(
    total_salary: Decimal,
    advance: Decimal,
    benefit_fund_deduction: Decimal,
    carry_over_balance: Decimal,
    extra_amount: Decimal,
) -> Decimal:
    return total_salary - advance - benefit_fund_deduction + carry_over_balance + extra_amount


def format_money(value: Decimal | int | float | None) -> str:
    amount = Decimal(str(value)) if value is not None else ZERO
    return f'{amount.quantize(CENT, rounding=ROUND_HALF_UP):,.2f}'


@dataclass
class WorkerSummary:
    worker_name: str
    work_count: int = 0
    total_salary: Decimal = ZERO
    advance: Decimal = ZERO
    benefit_fund_deduction: Decimal = ZERO
    carry_over_balance: Decimal = ZERO
    extra_amount: Decimal = ZERO
    phone_number: str | None = None
    entries: list[EntryRecord] = field(default_factory=list, repr=False)

    @property
    def final_payable(self) -> Decimal:
        return compute_final_payable(
            self.total_salary,
            self.advance,
            self.benefit_fund_deduction,
            self.carry_over_balance,
            self.extra_amount,
        )

    def add(self, record: EntryRecord) -> None:
        self.work_count += 1
        self.total_salary += record.line_total
        self.advance += record.advance_amount
        self.benefit_fund_deduction += record.benefit_fund_deduction
        self.carry_over_balance += record.carry_over_balance
        self.extra_amount += record.extra_amount
        if not self.phone_number and record.phone_number:
            self.phone_number = record.phone_number
        self.entries.append(record)


@dataclass(frozen=True)
class AdjustmentLine:
    label: str
    amount: Decimal
    sign: str


@dataclass(frozen=True)
class WeekTotals:
    worker_count: int
    work_count: int
    total_salary: Decimal
    total_advance: Decimal
    total_benefit_fund: Decimal
    total_payout: Decimal


def group_by_worker(records: Iterable[EntryRecord]) -> list[WorkerSummary]:
    """Fold entries into one summary per worker, in first-seen order."""
    grouped: dict[str, WorkerSummary] = {}
    for record in records:
        key = worker_identity_key(record.worker_name)
        summary = grouped.get(key)
        if summary is None:
            summary = WorkerSummary(worker_name=record.worker_name)
            grouped[key] = summary
        summary.add(record)
    return list(grouped.values())


def records_for_worker(records: Iterable[EntryRecord], worker_name: str) -> list[EntryRecord]:
    key = worker_identity_key(worker_name)
    return [record for record in records if worker_identity_key(record.worker_name) == key]


def adjustment_breakdown(summary: WorkerSummary) -> list[AdjustmentLine]:
    lines: list[AdjustmentLine] = []
    if summary.advance > 0:
        lines.append(AdjustmentLine(label='Advance', amount=summary.advance, sign='-'))
    if summary.benefit_fund_deduction > 0:
        lines.append(AdjustmentLine(label='ESI/BF', amount=summary.benefit_fund_deduction, sign='-'))
    if summary.carry_over_balance != 0:
        lines.append(AdjustmentLine(label='Carry-over balance', amount=summary.carry_over_balance, sign='+'))
    if summary.extra_amount != 0:
        lines.append(AdjustmentLine(label='Extra amount', amount=summary.extra_amount, sign='+'))
    return lines


def summarise_week(summaries: Iterable[WorkerSummary]) -> WeekTotals:
    summaries = list(summaries)
    return WeekTotals(
        worker_count=len(summaries),
        work_count=sum(summary.work_count for summary in summaries),
        total_salary=sum((summary.total_salary for summary in summaries), ZERO),
        total_advance=sum((summary.advance for summary in summaries), ZERO),
        total_benefit_fund=sum((summary.benefit_fund_deduction for summary in summaries), ZERO),
        total_payout=sum((summary.final_payable for summary in summaries), ZERO),
    )
