from __future__ import annotations

from fastapi import APIRouter, Depends

from schoolcomms.core.identity import Party
from schoolcomms.gateway import DataStoreGateway
from schoolcomms.route_logging import EndpointNameRoute
from schoolcomms.routers.deps import get_gateway, require_student, unwrap
from schoolcomms.schemas import ContentUpdateView, NoticeView
from schoolcomms.services import content_update_service, notice_service, notification_service


router = APIRouter(prefix='/api/student', tags=['Student Portal'], route_class=EndpointNameRoute)


@router.get('/notices', response_model=list[NoticeView])
async def notices(
    student: Party = Depends(require_student),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await notice_service.list_notices(gateway, student.id))


@router.post('/notices/{notice_id}/read')
async def mark_notice_read(
    notice_id: str,
    student: Party = Depends(require_student),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return {'changed': unwrap(await notice_service.mark_notice_read(gateway, notice_id, student.id))}


@router.get('/updates', response_model=list[ContentUpdateView])
async def updates(
    student: Party = Depends(require_student),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return unwrap(await content_update_service.list_content_updates(gateway, student.id))


@router.post('/updates/{update_id}/read')
async def mark_update_read(
    update_id: str,
    student: Party = Depends(require_student),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    return {'changed': unwrap(await content_update_service.mark_update_read(gateway, update_id, student.id))}


@router.get('/unread-summary')
async def unread_summary(
    student: Party = Depends(require_student),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    summary = unwrap(await notification_service.student_unread_summary(gateway, student.id))
    return {
        **summary.model_dump(),
        'total': summary.total,
        'label': notification_service.format_badge(summary.total),
    }
