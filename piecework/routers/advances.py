from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from piecework.auth import Principal, admin_access
from piecework.config import settings
from piecework.db import get_db
from piecework.dependencies import get_client_ip, redirect_with_message, store_failure_redirect, utc_now
from piecework.security.csrf import verify_csrf
from piecework.services.advance_ledger_service import (
    AdvanceNotFoundError,
    advance_balance,
    advance_weeks,
    create_advance,
    delete_advance,
    entries_in_week,
    ledger_totals,
    list_advances,
    record_repayment,
    split_active_settled,
    update_advance,
)
from piecework.services.audit_service import log_audit
from piecework.services.week_service import find_bucket, to_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/advances', tags=['advances'])

ADVANCES_PATH = '/advances'
ALL_WEEKS = 'all'


def _parse_advance_date(raw: str) -> date:
    value = (raw or '').strip()
    if not value:
        return to_local(utc_now()).date()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError('Invalid advance date') from exc


@router.get('')
def advances_page(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    tab = 'settled' if request.query_params.get('tab') == 'settled' else 'active'
    week_key = request.query_params.get('week', '').strip() or ALL_WEEKS
    error = request.query_params.get('error')
    try:
        entries = list_advances(db)
    except SQLAlchemyError as exc:
        logger.error('Failed to load advances: %s', exc, exc_info=exc)
        entries = []
        error = f'Failed to load advances: {exc.__class__.__name__}'

    weeks = advance_weeks(entries, now=utc_now(), anchor_weekday=settings.advance_week_anchor)
    selected_week = None if week_key == ALL_WEEKS else find_bucket(weeks, week_key)
    shown = entries_in_week(entries, selected_week) if selected_week else entries
    active, settled = split_active_settled(shown)
    return request.app.state.templates.TemplateResponse(
        'advances.html',
        {
            'request': request,
            'principal': principal,
            'tab': tab,
            'weeks': weeks,
            'selected_week': selected_week.key if selected_week else ALL_WEEKS,
            'active': active,
            'settled': settled,
            'totals': ledger_totals(shown),
            'balance': advance_balance,
            'today': to_local(utc_now()).date().isoformat(),
            'notice': request.query_params.get('notice'),
            'error': error,
        },
    )


@router.post('')
async def create_advance_submit(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        entry = create_advance(
            db,
            worker_name=str(form.get('worker_name', '')),
            amount=str(form.get('amount', '')),
            advance_date=_parse_advance_date(str(form.get('advance_date', ''))),
            notes=str(form.get('notes', '')),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='ADVANCE_CREATED',
            ip=get_client_ip(request),
            metadata={'advance_id': entry.id, 'worker_name': entry.worker_name, 'amount': str(entry.amount)},
        )
        db.commit()
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(ADVANCES_PATH, error=str(exc))
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=ADVANCES_PATH, message='Failed to save advance')
    return redirect_with_message(ADVANCES_PATH, notice='Advance added successfully')


@router.post('/{advance_id}/update')
async def update_advance_submit(
    advance_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        entry = update_advance(
            db,
            advance_id=advance_id,
            worker_name=str(form.get('worker_name', '')),
            amount=str(form.get('amount', '')),
            advance_date=_parse_advance_date(str(form.get('advance_date', ''))),
            notes=str(form.get('notes', '')),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='ADVANCE_UPDATED',
            ip=get_client_ip(request),
            metadata={'advance_id': entry.id, 'amount': str(entry.amount)},
        )
        db.commit()
    except AdvanceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(ADVANCES_PATH, error=str(exc))
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=ADVANCES_PATH, message='Failed to save advance')
    return redirect_with_message(ADVANCES_PATH, notice='Advance updated successfully')


@router.post('/{advance_id}/repay')
async def repay_advance_submit(
    advance_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        entry = record_repayment(db, advance_id=advance_id, amount=str(form.get('amount', '')))
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='ADVANCE_REPAYMENT_RECORDED',
            ip=get_client_ip(request),
            metadata={'advance_id': entry.id, 'paid_back_amount': str(entry.paid_back_amount)},
        )
        db.commit()
    except AdvanceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(ADVANCES_PATH, error=str(exc))
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=ADVANCES_PATH, message='Failed to record repayment')
    return redirect_with_message(ADVANCES_PATH, notice='Repayment recorded')


@router.post('/{advance_id}/delete')
async def delete_advance_submit(
    advance_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        delete_advance(db, advance_id=advance_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='ADVANCE_DELETED',
            ip=get_client_ip(request),
            metadata={'advance_id': advance_id},
        )
        db.commit()
    except AdvanceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=ADVANCES_PATH, message='Failed to delete advance')
    return redirect_with_message(ADVANCES_PATH, notice='Advance deleted successfully')
