from __future__ import annotations

from fastapi import APIRouter, Depends

from schoolcomms.core.identity import Party
from schoolcomms.gateway import DataStoreGateway
from schoolcomms.route_logging import EndpointNameRoute
from schoolcomms.routers.deps import get_gateway, require_staff, unwrap
from schoolcomms.schemas import ContentUpdateCreateRequest, ContentUpdateView, NoticeCreateRequest, NoticeView
from schoolcomms.services import content_update_service, notice_service


router = APIRouter(prefix='/api', tags=['Publishing'], route_class=EndpointNameRoute)


@router.post('/notices', response_model=NoticeView)
async def post_notice(
    payload: NoticeCreateRequest,
    staff: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    outcome = await notice_service.post_notice(
        gateway,
        student_id=payload.student_id,
        posted_by=staff.id,
        notice_type=payload.notice_type,
        title=payload.title,
        content=payload.content,
    )
    return unwrap(outcome)


@router.post('/content-updates', response_model=ContentUpdateView)
async def publish_content_update(
    payload: ContentUpdateCreateRequest,
    staff: Party = Depends(require_staff),
    gateway: DataStoreGateway = Depends(get_gateway),
):
    outcome = await content_update_service.publish_content_update(
        gateway,
        student_id=payload.student_id,
        update_type=payload.update_type,
        title=payload.title,
        reference_id=payload.reference_id,
    )
    return unwrap(outcome)
