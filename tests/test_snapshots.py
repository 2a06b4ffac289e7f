"""
Tests for snapshot building and restoring, including snapshots written by
older versions of the service.
"""

from datetime import datetime

import pytest
from werkzeug.security import check_password_hash, generate_password_hash

from shortlink_app.exceptions import ValidationError
from shortlink_app.models.link import Link
from shortlink_app.models.link_version import ChangeReason, LinkVersion
from shortlink_app.schemas.snapshot import PASSWORD_SENTINEL, SNAPSHOT_SCHEMA_VERSION
from shortlink_app.services.snapshots import (
    build_snapshot,
    dump_snapshot,
    load_snapshot,
    restore_snapshot,
)


def bare_link(**fields):
    values = dict(
        destination_url="https://a.example/",
        is_active=True,
        is_restricted=False,
        loading_page_text="Loading...",
        brand_color="#000000",
        generate_qr_code=False,
        smart_dynamic_links=False,
        enable_affiliate_tracking=False,
        enable_ab_testing=False,
    )
    values.update(fields)
    return Link(**values)


def write_legacy_version(db_session, link, version, snapshot):
    db_session.add(LinkVersion(
        link_id=link.id,
        version=version,
        reason=ChangeReason.SETTINGS_UPDATED,
        destination_url=snapshot.get("destination_url") or "",
        details={},
        snapshot=snapshot,
    ))
    db_session.commit()


class TestBuildSnapshot:

    def test_dump_shape(self):
        link = bare_link(
            custom_name="Launch",
            expiration_date=datetime(2030, 1, 1),
            brand_color="#123456",
            enable_ab_testing=True,
            ab_test_variants=[{"destination_url": "https://x.example/", "weight": 1.0, "clicks": 0}],
        )

        data = dump_snapshot(link)

        assert data["schema_version"] == SNAPSHOT_SCHEMA_VERSION
        assert data["destination_url"] == "https://a.example/"
        assert data["custom_name"] == "Launch"
        assert data["expiration_date"] == "2030-01-01T00:00:00"
        assert data["password"] is None
        assert data["settings"]["brand_color"] == "#123456"
        assert data["ab_testing"]["enabled"] is True
        assert data["ab_testing"]["variants"][0]["destination_url"] == "https://x.example/"

    def test_password_is_redacted(self):
        link = bare_link(password_hash=generate_password_hash("s3cret"))
        assert build_snapshot(link).password == PASSWORD_SENTINEL

    def test_variants_are_copied(self):
        variants = [{"destination_url": "https://x.example/", "weight": 1.0}]
        link = bare_link(enable_ab_testing=True, ab_test_variants=variants)

        data = dump_snapshot(link)
        variants[0]["weight"] = 0.5

        assert data["ab_testing"]["variants"][0]["weight"] == 1.0


class TestLoadSnapshot:

    def test_unknown_keys_are_ignored(self):
        snapshot = load_snapshot({
            "destination_url": "https://a.example/",
            "qr_code_style": "rounded",
            "settings": {"brand_color": "#fff", "legacy_theme": "dark"},
        })
        assert snapshot.destination_url == "https://a.example/"
        assert snapshot.settings.brand_color == "#fff"

    def test_empty_snapshot(self):
        snapshot = load_snapshot(None)
        assert snapshot.destination_url is None
        assert snapshot.settings is None

    def test_malformed_snapshot(self):
        with pytest.raises(ValidationError):
            load_snapshot({"is_active": "definitely"})


class TestRestoreSnapshot:

    def test_missing_fields_restore_defaults(self):
        link = bare_link(
            custom_name="Old",
            is_active=False,
            is_restricted=True,
            brand_color="#ffffff",
            generate_qr_code=True,
            splash_image="https://img.example/s.png",
        )

        restore_snapshot(link, load_snapshot({"destination_url": "https://b.example/"}))

        assert link.destination_url == "https://b.example/"
        assert link.custom_name is None
        assert link.is_active is True
        assert link.is_restricted is False
        assert link.brand_color == "#000000"
        assert link.loading_page_text == "Loading..."
        assert link.generate_qr_code is False
        assert link.splash_image is None
        assert link.enable_ab_testing is False
        assert link.ab_test_variants is None

    def test_null_flags_restore_as_false(self):
        link = bare_link(smart_dynamic_links=True)
        restore_snapshot(link, load_snapshot({
            "destination_url": "https://a.example/",
            "settings": {"smart_dynamic_links": None},
        }))
        assert link.smart_dynamic_links is False

    def test_sentinel_keeps_current_password(self):
        current = generate_password_hash("current")
        link = bare_link(password_hash=current)

        restore_snapshot(link, load_snapshot({
            "destination_url": "https://a.example/",
            "password": PASSWORD_SENTINEL,
        }))

        assert link.password_hash == current

    def test_legacy_real_password_is_restored(self):
        legacy = generate_password_hash("legacy")
        link = bare_link(password_hash=generate_password_hash("current"))

        restore_snapshot(link, load_snapshot({
            "destination_url": "https://a.example/",
            "password": legacy,
        }))

        assert check_password_hash(link.password_hash, "legacy")

    def test_no_destination_is_unrestorable(self):
        link = bare_link()
        with pytest.raises(ValidationError):
            restore_snapshot(link, load_snapshot({"custom_name": "x"}))
        assert link.destination_url == "https://a.example/"


class TestRollbackToLegacyVersions:

    def test_rollback_to_partial_snapshot(self, make_link, version_log, db_session):
        link = make_link(brand_color="#abcdef", custom_name="Now")
        write_legacy_version(db_session, link, 2, {"destination_url": "https://old.example/"})

        restored = version_log.rollback(link.id, 2)

        assert restored.destination_url == "https://old.example/"
        assert restored.custom_name is None
        assert restored.brand_color == "#000000"
        assert restored.current_version == 4

    def test_rollback_to_empty_snapshot_fails_cleanly(self, make_link, version_log, db_session):
        link = make_link()
        write_legacy_version(db_session, link, 2, {})

        with pytest.raises(ValidationError):
            version_log.rollback(link.id, 2)

        db_session.expire_all()
        assert version_log.verify(link.id).record_count == 2
        assert version_log.links.get(link.id).destination_url == "https://a.example/"
