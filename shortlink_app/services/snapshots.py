"""
Conversion between Link rows and stored snapshots.

"Snapshot on write, restore on read": every version record stores the full
restorable state, so a rollback never has to replay or diff other records.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shortlink_app.exceptions import ValidationError
from shortlink_app.models.link import Link
from shortlink_app.schemas.snapshot import (
    PASSWORD_SENTINEL,
    LinkSnapshot,
    SnapshotABTesting,
    SnapshotSettings,
)

SETTINGS_FIELDS = tuple(SnapshotSettings.model_fields)

# Column defaults used when a snapshot predates a field
_SETTINGS_DEFAULTS = {
    "loading_page_text": "Loading...",
    "brand_color": "#000000",
    "generate_qr_code": False,
    "smart_dynamic_links": False,
    "enable_affiliate_tracking": False,
}
_NON_NULL_SETTINGS = ("generate_qr_code", "smart_dynamic_links", "enable_affiliate_tracking")


def build_snapshot(link: Link) -> LinkSnapshot:
    return LinkSnapshot(
        destination_url=link.destination_url,
        custom_name=link.custom_name,
        password=PASSWORD_SENTINEL if link.password_hash else None,
        expiration_date=link.expiration_date,
        is_active=link.is_active,
        is_restricted=link.is_restricted,
        settings=SnapshotSettings(
            **{field: getattr(link, field) for field in SETTINGS_FIELDS}
        ),
        ab_testing=SnapshotABTesting(
            enabled=link.enable_ab_testing,
            variants=_copy_variants(link.ab_test_variants),
        ),
    )


def dump_snapshot(link: Link) -> Dict[str, Any]:
    """JSON-ready snapshot dict, as stored in LinkVersion.snapshot"""
    return build_snapshot(link).model_dump(mode="json")


def load_snapshot(data: Optional[Dict[str, Any]]) -> LinkSnapshot:
    try:
        return LinkSnapshot.model_validate(data or {})
    except ValueError as e:
        raise ValidationError(f"Unreadable snapshot: {e}") from e


def check_restorable(snapshot: LinkSnapshot) -> None:
    if not snapshot.destination_url:
        raise ValidationError("Snapshot has no destination URL and cannot be restored")


def restore_snapshot(link: Link, snapshot: LinkSnapshot) -> None:
    """
    Overwrite the link's mutable fields from a snapshot.

    Fields missing from the snapshot are reset to their unset value. The
    password is only written back when the snapshot holds a real hash; the
    redaction sentinel leaves the current password untouched.
    """
    check_restorable(snapshot)

    link.destination_url = snapshot.destination_url
    link.custom_name = snapshot.custom_name
    if snapshot.has_real_password:
        link.password_hash = snapshot.password
    link.expiration_date = to_naive_utc(snapshot.expiration_date)
    link.is_active = True if snapshot.is_active is None else snapshot.is_active
    link.is_restricted = bool(snapshot.is_restricted)

    stored_settings = snapshot.settings or SnapshotSettings()
    for field in SETTINGS_FIELDS:
        if field in stored_settings.model_fields_set:
            value = getattr(stored_settings, field)
        else:
            value = _SETTINGS_DEFAULTS.get(field)
        if value is None and field in _NON_NULL_SETTINGS:
            value = _SETTINGS_DEFAULTS[field]
        setattr(link, field, value)

    ab_testing = snapshot.ab_testing or SnapshotABTesting()
    link.enable_ab_testing = bool(ab_testing.enabled)
    link.ab_test_variants = _copy_variants(ab_testing.variants) if ab_testing.enabled else None


def _copy_variants(variants: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    # JSON columns are not mutation-tracked; never share list objects between rows
    if variants is None:
        return None
    return [dict(variant) for variant in variants]


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Link.expiration_date is stored without a timezone, as UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
