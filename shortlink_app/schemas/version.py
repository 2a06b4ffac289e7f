from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from shortlink_app.models.link_version import ChangeReason


class VersionResponse(BaseModel):
    """Full version record, snapshot included"""
    version: int
    reason: ChangeReason
    user_id: Optional[int] = None
    destination_url: str
    details: Dict[str, Any]
    snapshot: Dict[str, Any]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChangeLogEntry(BaseModel):
    """History row as rendered in the UI; carries no snapshot content"""
    version: int
    reason: ChangeReason
    label: str
    changed_by: str
    changed_at: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    has_destination: bool
    has_settings: bool


class RollbackRequest(BaseModel):
    version: int = Field(..., ge=1, description="Version number to restore")


class IntegrityReport(BaseModel):
    link_id: int
    record_count: int
    latest_version: int
    current_version: int
    missing_versions: List[int] = Field(default_factory=list)
    duplicate_versions: List[int] = Field(default_factory=list)
    pointer_consistent: bool
    dangling_rollback: Optional[int] = None

    @computed_field
    @property
    def is_consistent(self) -> bool:
        return (
            not self.missing_versions
            and not self.duplicate_versions
            and self.pointer_consistent
            and self.dangling_rollback is None
        )


class RepairRequest(BaseModel):
    action: Literal["complete", "abandon"]
