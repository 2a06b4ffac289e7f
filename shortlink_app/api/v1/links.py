from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from shortlink_app.dependencies import get_current_user_id, get_link_service
from shortlink_app.schemas.link import (
    ABTestingEnable,
    DestinationUpdate,
    ExpirationUpdate,
    ImageUpdate,
    LinkCreate,
    LinkResponse,
    PasswordUpdate,
    SettingsUpdate,
)
from shortlink_app.services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["links"])

# Handlers are plain `def`: services hold a blocking per-link lock, so they
# run in FastAPI's threadpool instead of on the event loop.


@router.post("/", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
def create_link(
    data: LinkCreate,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    """Create a short link (version 1)"""
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required to create links"
        )
    return link_service.create_link(user_id, data)


@router.get("/{short_code}", response_model=LinkResponse)
def get_link(
    short_code: str,
    link_service: LinkService = Depends(get_link_service)
):
    return link_service.get_link_by_short_code(short_code)


@router.patch("/{short_code}/destination", response_model=LinkResponse)
def update_destination(
    short_code: str,
    data: DestinationUpdate,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.update_destination(link.id, user_id, str(data.destination_url))


@router.patch("/{short_code}/settings", response_model=LinkResponse)
def update_settings(
    short_code: str,
    data: SettingsUpdate,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.update_settings(link.id, user_id, data)


@router.put("/{short_code}/password", response_model=LinkResponse)
def change_password(
    short_code: str,
    data: PasswordUpdate,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.change_password(link.id, user_id, data.password)


@router.put("/{short_code}/expiration", response_model=LinkResponse)
def update_expiration(
    short_code: str,
    data: ExpirationUpdate,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.update_expiration(link.id, user_id, data.expiration_date)


@router.put("/{short_code}/images/{image_type}", response_model=LinkResponse)
def update_image(
    short_code: str,
    image_type: str,
    data: ImageUpdate,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.update_image(link.id, user_id, image_type, data.url)


@router.post("/{short_code}/disable", response_model=LinkResponse)
def disable_link(
    short_code: str,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    """Soft-disable a link (links are not deleted in normal use)"""
    link = link_service.get_link_by_short_code(short_code)
    return link_service.disable(link.id, user_id)


@router.post("/{short_code}/enable", response_model=LinkResponse)
def enable_link(
    short_code: str,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.enable(link.id, user_id)


@router.post("/{short_code}/ab-testing", response_model=LinkResponse)
def enable_ab_testing(
    short_code: str,
    data: ABTestingEnable,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.enable_ab_testing(link.id, user_id, data.variants)


@router.delete("/{short_code}/ab-testing", response_model=LinkResponse)
def disable_ab_testing(
    short_code: str,
    user_id: Optional[int] = Depends(get_current_user_id),
    link_service: LinkService = Depends(get_link_service)
):
    link = link_service.get_link_by_short_code(short_code)
    return link_service.disable_ab_testing(link.id, user_id)
