from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from piecework.auth import Principal, admin_access
from piecework.config import settings
from piecework.db import get_db
from piecework.dependencies import (
    file_response,
    get_client_ip,
    redirect_with_message,
    store_failure_redirect,
    utc_now,
)
from piecework.security.csrf import verify_csrf
from piecework.services.audit_service import log_audit
from piecework.services.entry_service import (
    EntryLineInput,
    EntryNotFoundError,
    EntrySubmission,
    create_entry_batch,
    delete_all_entries,
    delete_entry,
    delete_worker_entries,
    list_entries,
    update_entry,
)
from piecework.services.export_service import (
    MEDIA_TYPES,
    ExportError,
    adjustment_text,
    export_filename,
    render,
    worker_detail_document,
    worker_summary_document,
)
from piecework.services.report_service import build_worker_report
from piecework.services.salary_math_service import adjustment_breakdown

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/workers', tags=['workers'])

WORKERS_PATH = '/workers'


def _parse_lines(form) -> list[EntryLineInput]:
    io_numbers = form.getlist('production_order_id')
    work_types = form.getlist('work_type')
    piece_counts = form.getlist('piece_count')
    rates = form.getlist('rate_per_piece')
    width = max(len(io_numbers), len(work_types), len(piece_counts), len(rates))

    def _at(values: list, index: int) -> str:
        return str(values[index]) if index < len(values) else ''

    return [
        EntryLineInput(
            production_order_id=_at(io_numbers, index),
            work_type=_at(work_types, index),
            piece_count=_at(piece_counts, index),
            rate_per_piece=_at(rates, index),
        )
        for index in range(width)
    ]


def _load_report(db: Session, week_key: str | None):
    return build_worker_report(
        list_entries(db),
        now=utc_now(),
        anchor_weekday=settings.worker_week_anchor,
        week_key=week_key,
    )


@router.get('')
def workers_page(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    week_key = request.query_params.get('week', '').strip() or None
    expanded = request.query_params.get('worker', '').strip() or None
    error = request.query_params.get('error')
    try:
        report = _load_report(db, week_key)
    except SQLAlchemyError as exc:
        logger.error('Failed to load work entries: %s', exc, exc_info=exc)
        report = build_worker_report([], now=utc_now(), anchor_weekday=settings.worker_week_anchor)
        error = 'Failed to load workers'

    return request.app.state.templates.TemplateResponse(
        'workers.html',
        {
            'request': request,
            'principal': principal,
            'report': report,
            'expanded': report.find_worker(expanded) if expanded else None,
            'breakdown': adjustment_breakdown,
            'adjustment_text': adjustment_text,
            'notice': request.query_params.get('notice'),
            'error': error,
        },
    )


@router.post('/entries')
async def create_entries(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    submission = EntrySubmission(
        worker_name=str(form.get('worker_name', '')),
        lines=_parse_lines(form),
        advance=str(form.get('advance', '')),
        benefit_fund_deduction=str(form.get('benefit_fund_deduction', '')),
        carry_over_balance=str(form.get('carry_over_balance', '')),
        extra_amount=str(form.get('extra_amount', '')),
        phone_number=str(form.get('phone_number', '')),
    )
    try:
        validated, rows = create_entry_batch(db, submission)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORK_ENTRIES_CREATED',
            ip=get_client_ip(request),
            metadata={'worker_name': validated.worker_name, 'entry_ids': [row.id for row in rows]},
        )
        db.commit()
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(WORKERS_PATH, error=str(exc))
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to add worker. Please try again.')

    notice = (
        f'{validated.worker_name} added with {len(rows)} work(s) - '
        f'Total: {settings.currency_symbol}{validated.total_salary:.2f}'
    )
    return redirect_with_message(WORKERS_PATH, notice=notice)


@router.post('/entries/{entry_id}/update')
async def update_entry_submit(
    entry_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    week_key = str(form.get('week', '')).strip()
    worker = str(form.get('worker', '')).strip()
    try:
        entry = update_entry(
            db,
            entry_id=entry_id,
            production_order_id=str(form.get('production_order_id', '')),
            work_type=str(form.get('work_type', '')),
            piece_count=str(form.get('piece_count', '')),
            rate_per_piece=str(form.get('rate_per_piece', '')),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORK_ENTRY_UPDATED',
            ip=get_client_ip(request),
            metadata={'entry_id': entry.id, 'line_total': str(entry.line_total)},
        )
        db.commit()
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(WORKERS_PATH, error=str(exc), week=week_key, worker=worker)
    except SQLAlchemyError as exc:
        return store_failure_redirect(
            db, exc, path=WORKERS_PATH, message='Failed to update work', week=week_key, worker=worker
        )
    return redirect_with_message(WORKERS_PATH, notice='Work updated successfully', week=week_key, worker=worker)


@router.post('/entries/{entry_id}/delete')
async def delete_entry_submit(
    entry_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    week_key = str(form.get('week', '')).strip()
    worker = str(form.get('worker', '')).strip()
    try:
        delete_entry(db, entry_id=entry_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORK_ENTRY_DELETED',
            ip=get_client_ip(request),
            metadata={'entry_id': entry_id},
        )
        db.commit()
    except EntryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        return store_failure_redirect(
            db, exc, path=WORKERS_PATH, message='Failed to delete work', week=week_key, worker=worker
        )
    return redirect_with_message(WORKERS_PATH, notice='Work removed', week=week_key, worker=worker)


@router.post('/delete')
async def delete_worker_submit(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    worker_name = str(form.get('worker_name', ''))
    week_key = str(form.get('week', '')).strip()
    if not worker_name.strip():
        return redirect_with_message(WORKERS_PATH, error='Worker name is required', week=week_key)
    try:
        report = _load_report(db, week_key or None)
        deleted = delete_worker_entries(db, worker_name=worker_name, bucket=report.selected_week)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORKER_ENTRIES_DELETED',
            ip=get_client_ip(request),
            metadata={'worker_name': worker_name, 'week': report.selected_week.key, 'deleted': deleted},
        )
        db.commit()
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to delete worker', week=week_key)
    return redirect_with_message(
        WORKERS_PATH, notice=f'{worker_name} and all works removed successfully', week=week_key
    )


@router.post('/delete-all')
async def delete_all_submit(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    if str(form.get('confirm', '')).strip().upper() != 'DELETE':
        return redirect_with_message(WORKERS_PATH, error='Type DELETE to confirm removing every entry')
    try:
        deleted = delete_all_entries(db)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORK_ENTRIES_PURGED',
            ip=get_client_ip(request),
            metadata={'deleted': deleted},
        )
        db.commit()
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to delete all entries')
    logger.warning('All %d work entries deleted by principal %s', deleted, principal.id)
    return redirect_with_message(WORKERS_PATH, notice='All entries removed')


@router.get('/export.{extension}')
def export_summary(
    extension: str,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    if extension not in MEDIA_TYPES:
        raise HTTPException(status_code=404)
    week_key = request.query_params.get('week', '').strip() or None
    try:
        report = _load_report(db, week_key)
        content = render(worker_summary_document(report), extension)
    except ExportError as exc:
        return redirect_with_message(WORKERS_PATH, error=str(exc), week=week_key)
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to load workers', week=week_key)

    try:
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORKER_SUMMARY_EXPORTED',
            ip=get_client_ip(request),
            metadata={'week': report.selected_week.key, 'format': extension, 'rows': len(report.summaries)},
        )
        db.commit()
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to record export', week=week_key)
    filename = export_filename(f'weekly-report-{report.selected_week.key}', extension, utc_now())
    return file_response(content, media_type=MEDIA_TYPES[extension], filename=filename)


@router.get('/detail/export.{extension}')
def export_worker_detail(
    extension: str,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    if extension not in MEDIA_TYPES:
        raise HTTPException(status_code=404)
    week_key = request.query_params.get('week', '').strip() or None
    worker_name = request.query_params.get('worker', '')
    try:
        report = _load_report(db, week_key)
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to load workers', week=week_key)
    summary = report.find_worker(worker_name)
    if summary is None:
        raise HTTPException(status_code=404, detail='Worker not found in the selected week')
    try:
        content = render(worker_detail_document(summary, report.selected_week.describe()), extension)
    except ExportError as exc:
        return redirect_with_message(WORKERS_PATH, error=str(exc), week=week_key, worker=worker_name)

    try:
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORKER_DETAIL_EXPORTED',
            ip=get_client_ip(request),
            metadata={'worker_name': worker_name, 'week': report.selected_week.key, 'format': extension},
        )
        db.commit()
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=WORKERS_PATH, message='Failed to record export', week=week_key)
    return file_response(
        content,
        media_type=MEDIA_TYPES[extension],
        filename=export_filename(worker_name, extension, utc_now()),
    )
