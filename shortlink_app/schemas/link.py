from pydantic import BaseModel, HttpUrl, Field, computed_field, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime
from shortlink_app.config import settings


class LinkSettingsFields(BaseModel):
    """Presentation settings shared by create and update payloads"""
    custom_name: Optional[str] = Field(None, max_length=50)
    preview_image: Optional[str] = None
    loading_page_image: Optional[str] = None
    loading_page_text: Optional[str] = Field(None, max_length=200)
    brand_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{3,8}$")
    splash_image: Optional[str] = None
    generate_qr_code: Optional[bool] = None
    smart_dynamic_links: Optional[bool] = None
    enable_affiliate_tracking: Optional[bool] = None


class LinkCreate(LinkSettingsFields):
    destination_url: HttpUrl = Field(..., description="The URL the short link points to")
    password: Optional[str] = Field(None, min_length=1)
    expiration_date: Optional[datetime] = None


class DestinationUpdate(BaseModel):
    destination_url: HttpUrl


class SettingsUpdate(LinkSettingsFields):
    """Only fields present in the request body are applied"""
    pass


class PasswordUpdate(BaseModel):
    password: Optional[str] = Field(None, min_length=1, description="None removes protection")


class ExpirationUpdate(BaseModel):
    expiration_date: Optional[datetime] = None


class ImageUpdate(BaseModel):
    url: Optional[str] = None


class ModerationNote(BaseModel):
    """Optional reason recorded with restrict/unrestrict"""
    note: Optional[str] = Field(None, max_length=500)


class ABTestVariant(BaseModel):
    destination_url: HttpUrl
    weight: float = Field(1, gt=0)


class ABTestingEnable(BaseModel):
    variants: List[ABTestVariant] = Field(..., min_length=2)


class LinkResponse(BaseModel):
    """Serializes the Link model (from_attributes reads ORM attributes)"""
    id: int
    short_code: str
    destination_url: str
    custom_name: Optional[str] = None
    is_password_protected: bool
    expiration_date: Optional[datetime] = None
    is_active: bool
    is_restricted: bool
    preview_image: Optional[str] = None
    loading_page_image: Optional[str] = None
    loading_page_text: Optional[str] = None
    brand_color: Optional[str] = None
    splash_image: Optional[str] = None
    generate_qr_code: bool
    smart_dynamic_links: bool
    enable_affiliate_tracking: bool
    enable_ab_testing: bool
    ab_test_variants: Optional[List[Dict[str, Any]]] = None
    clicks: int
    current_version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/{self.short_code}"

    model_config = ConfigDict(from_attributes=True)
