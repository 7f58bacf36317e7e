from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import CITEXT, INET
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PrincipalRole(str, Enum):
    ADMIN = 'ADMIN'


class Principal(Base):
    __tablename__ = 'principals'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str] = mapped_column(CITEXT(), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(SQLEnum(PrincipalRole, name='principal_role'), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WorkEntry(Base):
    """One unit of piece-rate work: a worker, a production order and a work type."""

    __tablename__ = 'work_entries'
    __table_args__ = (
        CheckConstraint('piece_count >= 0', name='work_entries_piece_count_non_negative_ck'),
        CheckConstraint('rate_per_piece >= 0', name='work_entries_rate_non_negative_ck'),
        Index('work_entries_created_at_idx', 'created_at'),
        Index('work_entries_worker_name_idx', 'worker_name'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    worker_name: Mapped[str] = mapped_column(Text, nullable=False)
    production_order_id: Mapped[str] = mapped_column(Text, nullable=False)
    work_type: Mapped[str] = mapped_column(Text, nullable=False)
    piece_count: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_multiplier: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    rate_per_piece: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    advance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0')
    benefit_fund_deduction: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0'
    )
    carry_over_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0'
    )
    extra_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0')
    phone_number: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AdvanceLedgerEntry(Base):
    __tablename__ = 'advance_ledger_entries'
    __table_args__ = (
        CheckConstraint('amount > 0', name='advance_ledger_entries_amount_positive_ck'),
        CheckConstraint('paid_back_amount >= 0', name='advance_ledger_entries_paid_back_non_negative_ck'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    worker_name: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    advance_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    paid_back_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0'
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WorkerProfile(Base):
    __tablename__ = 'worker_profiles'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    phone_number: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SalaryHistory(Base):
    __tablename__ = 'salary_history'
    __table_args__ = (
        UniqueConstraint('worker_profile_id', 'week_start_date', name='salary_history_profile_week_key'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    worker_profile_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('worker_profiles.id', ondelete='CASCADE'), nullable=False
    )
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    weekly_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0')
    weekly_advance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0')
    advance_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'), server_default='0')
    notes: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    attempted_username: Mapped[str] = mapped_column(CITEXT(), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    ip: Mapped[str | None] = mapped_column(INET)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    ip: Mapped[str | None] = mapped_column(INET)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(INET)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def is_valid(self, now: datetime) -> bool:
        return self.revoked_at is None and now < self.expires_at

    def touch(self, now: datetime, ttl: timedelta) -> None:
        self.last_seen_at = now
        self.expires_at = now + ttl
