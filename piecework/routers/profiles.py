from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from piecework.auth import Principal, admin_access
from piecework.config import settings
from piecework.db import get_db
from piecework.dependencies import get_client_ip, redirect_with_message, store_failure_redirect, utc_now
from piecework.security.csrf import verify_csrf
from piecework.services.audit_service import log_audit
from piecework.services.week_service import find_bucket, to_local
from piecework.services.worker_profile_service import (
    ProfileNotFoundError,
    create_profile,
    delete_profile,
    filter_history,
    get_profile,
    history_weeks,
    list_profiles,
    list_salary_history,
    search_profiles,
    update_profile,
    upsert_salary_week,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/profiles', tags=['profiles'])

PROFILES_PATH = '/profiles'
ALL_WEEKS = 'all'


def _profile_path(profile_id: int) -> str:
    return f'{PROFILES_PATH}/{profile_id}'


@router.get('')
def profiles_page(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    query = request.query_params.get('q', '').strip()
    error = request.query_params.get('error')
    try:
        profiles = list_profiles(db)
    except SQLAlchemyError as exc:
        logger.error('Failed to load worker profiles: %s', exc, exc_info=exc)
        profiles = []
        error = 'Failed to load worker profiles'

    return request.app.state.templates.TemplateResponse(
        'profiles.html',
        {
            'request': request,
            'principal': principal,
            'profiles': search_profiles(profiles, query),
            'profile_count': len(profiles),
            'query': query,
            'notice': request.query_params.get('notice'),
            'error': error,
        },
    )


@router.post('')
async def create_profile_submit(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        profile = create_profile(
            db,
            name=str(form.get('name', '')),
            phone_number=str(form.get('phone_number', '')),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORKER_PROFILE_CREATED',
            ip=get_client_ip(request),
            metadata={'profile_id': profile.id, 'name': profile.name},
        )
        db.commit()
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(PROFILES_PATH, error=str(exc))
    except IntegrityError:
        db.rollback()
        return redirect_with_message(PROFILES_PATH, error='A worker with this name already exists')
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=PROFILES_PATH, message='Failed to save worker profile')
    return redirect_with_message(PROFILES_PATH, notice='Worker profile added successfully')


@router.post('/{profile_id}/update')
async def update_profile_submit(
    profile_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        profile = update_profile(
            db,
            profile_id=profile_id,
            name=str(form.get('name', '')),
            phone_number=str(form.get('phone_number', '')),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORKER_PROFILE_UPDATED',
            ip=get_client_ip(request),
            metadata={'profile_id': profile.id, 'name': profile.name},
        )
        db.commit()
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(PROFILES_PATH, error=str(exc))
    except IntegrityError:
        db.rollback()
        return redirect_with_message(PROFILES_PATH, error='A worker with this name already exists')
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=PROFILES_PATH, message='Failed to save worker profile')
    return redirect_with_message(PROFILES_PATH, notice='Worker profile updated successfully')


@router.post('/{profile_id}/delete')
async def delete_profile_submit(
    profile_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        delete_profile(db, profile_id=profile_id)
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='WORKER_PROFILE_DELETED',
            ip=get_client_ip(request),
            metadata={'profile_id': profile_id},
        )
        db.commit()
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=PROFILES_PATH, message='Failed to delete worker profile')
    return redirect_with_message(PROFILES_PATH, notice='Worker profile deleted successfully')


@router.get('/{profile_id}')
def profile_detail_page(
    profile_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    week_key = request.query_params.get('week', '').strip() or ALL_WEEKS
    try:
        profile = get_profile(db, profile_id)
        history = list_salary_history(db, profile_id=profile.id)
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    weeks = history_weeks(history, now=utc_now(), anchor_weekday=settings.advance_week_anchor)
    selected_week = None if week_key == ALL_WEEKS else find_bucket(weeks, week_key)
    return request.app.state.templates.TemplateResponse(
        'profile_detail.html',
        {
            'request': request,
            'principal': principal,
            'profile': profile,
            'history': filter_history(history, selected_week),
            'weeks': weeks,
            'selected_week': selected_week.key if selected_week else ALL_WEEKS,
            'today': to_local(utc_now()).date().isoformat(),
            'notice': request.query_params.get('notice'),
            'error': request.query_params.get('error'),
        },
    )


@router.post('/{profile_id}/salary')
async def salary_week_submit(
    profile_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    path = _profile_path(profile_id)
    try:
        week_of = date.fromisoformat(str(form.get('week_of', '')).strip())
    except ValueError:
        return redirect_with_message(path, error='Select a valid week date')
    try:
        row = upsert_salary_week(
            db,
            profile_id=profile_id,
            week_of=week_of,
            anchor_weekday=settings.advance_week_anchor,
            weekly_salary=str(form.get('weekly_salary', '')),
            weekly_advance=str(form.get('weekly_advance', '')),
            advance_paid=str(form.get('advance_paid', '')),
            notes=str(form.get('notes', '')),
        )
        log_audit(
            db,
            actor_principal_id=principal.id,
            action='SALARY_WEEK_SAVED',
            ip=get_client_ip(request),
            metadata={'profile_id': profile_id, 'week_start_date': row.week_start_date.isoformat()},
        )
        db.commit()
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        db.rollback()
        return redirect_with_message(path, error=str(exc))
    except SQLAlchemyError as exc:
        return store_failure_redirect(db, exc, path=path, message='Failed to save salary week')
    return redirect_with_message(path, notice='Salary week saved')
