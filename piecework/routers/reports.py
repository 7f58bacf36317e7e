from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from piecework.auth import Principal, admin_access
from piecework.config import settings
from piecework.db import get_db
from piecework.dependencies import file_response, get_client_ip, redirect_with_message, store_failure_redirect, utc_now
from piecework.services.audit_service import log_audit
from piecework.services.entry_records import EntryRecord
from piecework.services.entry_service import list_entries
from piecework.services.export_service import (
    MEDIA_TYPES,
    ExportError,
    export_filename,
    production_order_document,
    render,
)
from piecework.services.production_order_service import production_order_totals
from piecework.services.report_service import ProductionOrderReport, build_production_order_report, build_weekly_report
from piecework.services.week_service import WeekBucket, available_weeks, find_bucket, to_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/reports', tags=['reports'])

IO_REPORT_PATH = '/reports/io'
ALL_WEEKS = 'all'


def _io_week(records: list[EntryRecord], week_key: str) -> tuple[list[WeekBucket], WeekBucket | None]:
    weeks = available_weeks((record.created_at for record in records), utc_now(), settings.worker_week_anchor)
    if not week_key or week_key == ALL_WEEKS:
        return weeks, None
    return weeks, find_bucket(weeks, week_key)


def _io_report(db: Session, request: Request) -> tuple[list[WeekBucket], ProductionOrderReport]:
    records = list_entries(db)
    weeks, week = _io_week(records, request.query_params.get('week', '').strip())
    return weeks, build_production_order_report(records, query=request.query_params.get('q'), week=week)


@router.get('/weekly')
def weekly_report_page(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    error = None
    try:
        sections = build_weekly_report(list_entries(db), anchor_weekday=settings.worker_week_anchor)
    except SQLAlchemyError as exc:
        logger.error('Failed to load weekly reports: %s', exc, exc_info=exc)
        sections = []
        error = 'Failed to load weekly reports'

    selected_raw = request.query_params.get('index', '0').strip()
    selected_index = int(selected_raw) if selected_raw.isdigit() else 0
    selected = sections[selected_index] if selected_index < len(sections) else None
    return request.app.state.templates.TemplateResponse(
        'weekly_report.html',
        {
            'request': request,
            'principal': principal,
            'sections': sections,
            'selected': selected,
            'selected_index': selected_index,
            'error': error,
        },
    )


@router.get('/io')
def io_report_page(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    error = request.query_params.get('error')
    try:
        weeks, report = _io_report(db, request)
    except SQLAlchemyError as exc:
        logger.error('Failed to load IO report: %s', exc, exc_info=exc)
        weeks, report = [], build_production_order_report([])
        error = 'Failed to load IO report'

    return request.app.state.templates.TemplateResponse(
        'io_report.html',
        {
            'request': request,
            'principal': principal,
            'report': report,
            'weeks': weeks,
            'selected_week': report.week.key if report.week else ALL_WEEKS,
            'error': error,
        },
    )


@router.get('/io/export.{extension}')
def export_io_report(
    extension: str,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    return _export_io(extension, request, principal, db, production_order_id=None)


@router.get('/io/{production_order_id}/export.{extension}')
def export_single_io(
    production_order_id: str,
    extension: str,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    return _export_io(extension, request, principal, db, production_order_id=production_order_id)


def _export_io(extension: str, request: Request, principal: Principal, db: Session, *, production_order_id: str | None):
    if extension not in MEDIA_TYPES:
        raise HTTPException(status_code=404)
    try:
        _, report = _io_report(db, request)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error('Failed to load IO report for export: %s', exc, exc_info=exc)
        return redirect_with_message(IO_REPORT_PATH, error='Failed to load IO report')

    identifier = f"IO_Report_{to_local(utc_now()).date().isoformat()}"
    if production_order_id is not None:
        orders = [order for order in report.orders if order.production_order_id == production_order_id]
        if not orders:
            raise HTTPException(status_code=404, detail='IO not found')
        report = ProductionOrderReport(
            orders=orders,
            totals=production_order_totals(orders),
            query=report.query,
            week=report.week,
        )
        identifier = f'IO_{production_order_id}'

    try:
        content = render(production_order_document(report), extension)
    except ExportError as exc:
        return redirect_with_message(IO_REPORT_PATH, error=str(exc))

    try:
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='IO_REPORT_EXPORTED',
            ip=get_client_ip(request),
            metadata={'production_order_id': production_order_id, 'format': extension, 'orders': len(report.orders)},
        )
        db.commit()
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=IO_REPORT_PATH, message='Failed to record export')
    return file_response(
        content,
        media_type=MEDIA_TYPES[extension],
        filename=export_filename(identifier, extension, utc_now()),
    )
