from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from shortlink_app.config import settings
from shortlink_app.dependencies import get_current_user_id, get_link_service, get_version_log
from shortlink_app.schemas.link import LinkResponse
from shortlink_app.schemas.version import ChangeLogEntry, RollbackRequest, VersionResponse
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.version_log import VersionLog

router = APIRouter(prefix="/links", tags=["versions"])


@router.get("/{short_code}/versions", response_model=List[VersionResponse])
def list_versions(
    short_code: str,
    limit: int = Query(settings.versions_page_size, ge=1, le=settings.versions_max_page_size),
    offset: int = Query(0, ge=0),
    link_service: LinkService = Depends(get_link_service),
    version_log: VersionLog = Depends(get_version_log)
):
    """Version history, newest first"""
    link = link_service.get_link_by_short_code(short_code)
    return version_log.list_versions(link.id, limit=limit, offset=offset)


@router.get("/{short_code}/versions/{version}", response_model=VersionResponse)
def get_version(
    short_code: str,
    version: int,
    link_service: LinkService = Depends(get_link_service),
    version_log: VersionLog = Depends(get_version_log)
):
    link = link_service.get_link_by_short_code(short_code)
    return version_log.get_version(link.id, version)


@router.get("/{short_code}/changelog", response_model=List[ChangeLogEntry])
def get_change_log(
    short_code: str,
    link_service: LinkService = Depends(get_link_service),
    version_log: VersionLog = Depends(get_version_log)
):
    """History as shown in the UI (labels and actor names, no snapshots)"""
    link = link_service.get_link_by_short_code(short_code)
    return version_log.get_change_log(link.id)


@router.post("/{short_code}/rollback", response_model=LinkResponse)
def rollback(
    short_code: str,
    data: RollbackRequest,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service),
    version_log: VersionLog = Depends(get_version_log)
):
    """Restore the link to a previous version (recorded as two new versions)"""
    link = link_service.get_link_by_short_code(short_code)
    return version_log.rollback(link.id, data.version, acting_user_id=user_id)
