"""
Snapshot format stored in LinkVersion.snapshot.

Snapshots outlive the Link schema they were written from, so every field is
optional and unknown keys are ignored: old rows stay readable after columns
are added or removed, and a missing key restores as "unset".
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

# Stored in place of a password hash; snapshots never carry the real value
PASSWORD_SENTINEL = "ENCRYPTED"

SNAPSHOT_SCHEMA_VERSION = 1


class SnapshotSettings(BaseModel):
    preview_image: Optional[str] = None
    loading_page_image: Optional[str] = None
    loading_page_text: Optional[str] = None
    brand_color: Optional[str] = None
    splash_image: Optional[str] = None
    generate_qr_code: Optional[bool] = None
    smart_dynamic_links: Optional[bool] = None
    enable_affiliate_tracking: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")


class SnapshotABTesting(BaseModel):
    enabled: Optional[bool] = None
    variants: Optional[List[Dict[str, Any]]] = None

    model_config = ConfigDict(extra="ignore")


class LinkSnapshot(BaseModel):
    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    destination_url: Optional[str] = None
    custom_name: Optional[str] = None
    password: Optional[str] = None
    expiration_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_restricted: Optional[bool] = None
    settings: Optional[SnapshotSettings] = None
    ab_testing: Optional[SnapshotABTesting] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def has_real_password(self) -> bool:
        """True only for legacy snapshots that stored an actual hash"""
        return bool(self.password) and self.password != PASSWORD_SENTINEL
