"""
Human-readable labels and projections for version records.
"""

from typing import Any, Dict

from shortlink_app.models.link_version import ChangeReason, LinkVersion
from shortlink_app.schemas.version import ChangeLogEntry

SYSTEM_ACTOR = "System"

CHANGE_LABELS: Dict[ChangeReason, str] = {
    ChangeReason.CREATED: "URL was created",
    ChangeReason.DESTINATION_UPDATED: "Destination URL was changed",
    ChangeReason.SETTINGS_UPDATED: "Settings were updated",
    ChangeReason.PASSWORD_CHANGED: "Password protection was changed",
    ChangeReason.EXPIRATION_UPDATED: "Expiration date was updated",
    ChangeReason.IMAGE_UPDATED: "Image was updated",
    ChangeReason.DISABLED: "URL was disabled",
    ChangeReason.ENABLED: "URL was enabled",
    ChangeReason.RESTRICTED: "URL was restricted by admin",
    ChangeReason.UNRESTRICTED: "URL restriction was removed",
    ChangeReason.AB_TESTING_ENABLED: "A/B testing was enabled",
    ChangeReason.AB_TESTING_DISABLED: "A/B testing was disabled",
    ChangeReason.ROLLBACK: "Rollback was initiated",
    ChangeReason.ROLLBACK_COMPLETED: "Rollback was completed",
}

_unlabeled = set(ChangeReason) - set(CHANGE_LABELS)
if _unlabeled:
    raise RuntimeError(f"Change reasons without a label: {sorted(r.value for r in _unlabeled)}")


def describe_change(reason: ChangeReason) -> str:
    return CHANGE_LABELS[reason]


def actor_name(record: LinkVersion) -> str:
    if record.user is not None:
        return record.user.username
    return SYSTEM_ACTOR


def to_change_log_entry(record: LinkVersion) -> ChangeLogEntry:
    snapshot: Dict[str, Any] = record.snapshot or {}
    return ChangeLogEntry(
        version=record.version,
        reason=record.reason,
        label=describe_change(record.reason),
        changed_by=actor_name(record),
        changed_at=record.created_at,
        details=record.details or {},
        has_destination=bool(snapshot.get("destination_url")),
        has_settings=bool(snapshot.get("settings")),
    )
