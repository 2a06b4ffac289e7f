from typing import Optional

from fastapi import APIRouter, Depends, status

from shortlink_app.dependencies import get_current_user_id, get_link_service, get_version_log
from shortlink_app.schemas.link import LinkResponse, ModerationNote
from shortlink_app.schemas.version import IntegrityReport, RepairRequest
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.version_log import VersionLog

router = APIRouter(prefix="/admin/links", tags=["admin"])


@router.post("/{short_code}/restrict", response_model=LinkResponse)
def restrict_link(
    short_code: str,
    data: Optional[ModerationNote] = None,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.restrict(link.id, user_id, note=data.note if data else None)


@router.post("/{short_code}/unrestrict", response_model=LinkResponse)
def unrestrict_link(
    short_code: str,
    data: Optional[ModerationNote] = None,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.unrestrict(link.id, user_id, note=data.note if data else None)


@router.get("/{short_code}/integrity", response_model=IntegrityReport)
def check_integrity(
    short_code: str,
    link_service: LinkService = Depends(get_link_service),
    version_log: VersionLog = Depends(get_version_log)
):
    """Report numbering gaps, pointer drift and interrupted rollbacks"""
    link = link_service.get_link_by_short_code(short_code)
    return version_log.verify(link.id)


@router.post("/{short_code}/repair", response_model=LinkResponse)
def repair_rollback(
    short_code: str,
    data: RepairRequest,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service),
    version_log: VersionLog = Depends(get_version_log)
):
    """Complete or abandon an interrupted rollback"""
    link = link_service.get_link_by_short_code(short_code)
    return version_log.repair_rollback(link.id, data.action, acting_user_id=user_id)


@router.delete("/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
def purge_link(
    short_code: str,
    link_service: LinkService = Depends(get_link_service)
):
    """Hard delete a link and its version history"""
    link = link_service.get_link_by_short_code(short_code)
    link_service.purge_link(link.id)
