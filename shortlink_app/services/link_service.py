import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import urlparse

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from shortlink_app.exceptions import NotFoundError, ValidationError
from shortlink_app.locks.strategies import link_lock_key
from shortlink_app.models.link import Link
from shortlink_app.models.link_version import ChangeReason
from shortlink_app.repositories.link_repository import LinkRepository
from shortlink_app.schemas.link import ABTestVariant, LinkCreate, SettingsUpdate
from shortlink_app.services.short_code_factory import ShortCodeFactory
from shortlink_app.services.short_code_strategies import ShortCodeStrategy
from shortlink_app.services.snapshots import to_naive_utc
from shortlink_app.services.version_log import VersionLog

logger = logging.getLogger(__name__)

# Image slot name -> Link column
IMAGE_FIELDS = {
    "preview": "preview_image",
    "loading_page": "loading_page_image",
    "splash": "splash_image",
}

_NON_NULL_SETTINGS = {"generate_qr_code", "smart_dynamic_links", "enable_affiliate_tracking"}


class LinkService:
    """
    Owner and moderator operations on links.

    Every operation that changes a link goes through VersionLog.apply_change,
    so it writes exactly one version record; operations that would not change
    anything write none and return the link as is.
    """

    def __init__(
        self,
        db: Session,
        links: LinkRepository,
        versions: VersionLog,
        short_code_strategy: Optional[ShortCodeStrategy] = None,
    ):
        self.db = db
        self.links = links
        self.versions = versions
        self.short_code_strategy = short_code_strategy or ShortCodeFactory.create_strategy()

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create_link(self, owner_id: int, data: LinkCreate) -> Link:
        """
        Create a link and its version 1 (`created`).

        Process:
        1. Insert with a placeholder short_code to get the auto-increment ID
        2. Generate the short_code from the ID
        3. Write version 1 and commit everything together
        """
        link = Link(
            user_id=owner_id,
            short_code=None,
            destination_url=str(data.destination_url),
            custom_name=data.custom_name,
            password_hash=generate_password_hash(data.password) if data.password else None,
            expiration_date=to_naive_utc(data.expiration_date),
            is_active=True,
            is_restricted=False,
            preview_image=data.preview_image,
            loading_page_image=data.loading_page_image,
            loading_page_text=data.loading_page_text or "Loading...",
            brand_color=data.brand_color or "#000000",
            splash_image=data.splash_image,
            generate_qr_code=bool(data.generate_qr_code),
            smart_dynamic_links=bool(data.smart_dynamic_links),
            enable_affiliate_tracking=bool(data.enable_affiliate_tracking),
            enable_ab_testing=False,
            clicks=0,
            current_version=0,
        )

        try:
            self.links.add(link)
            link.short_code = self.short_code_strategy.generate(link.id, self.links)
            self.versions.start_history(
                link,
                owner_id,
                {
                    "destination_url": link.destination_url,
                    "settings": {
                        "password": bool(data.password),
                        "expiration": data.expiration_date is not None,
                        "qr_code": link.generate_qr_code,
                        "smart_links": link.smart_dynamic_links,
                    },
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(link)
        logger.info("Created link %s (%s) for user %s", link.id, link.short_code, owner_id)
        return link

    def get_link(self, link_id: int) -> Link:
        return self.links.get_or_404(link_id)

    def get_link_by_short_code(self, short_code: str) -> Link:
        link = self.links.get_by_short_code(short_code)
        if link is None:
            raise NotFoundError(f"Short link '{short_code}' not found")
        return link

    def verify_password(self, link_id: int, password: str) -> bool:
        link = self.get_link(link_id)
        if not link.password_hash:
            return True
        return check_password_hash(link.password_hash, password)

    # ------------------------------------------------------------------
    # Owner edits
    # ------------------------------------------------------------------

    def update_destination(self, link_id: int, actor_id: Optional[int], destination_url: str) -> Link:
        destination_url = _validate_url(destination_url)

        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            if link.destination_url == destination_url:
                return None
            old_destination = link.destination_url
            link.destination_url = destination_url
            return {"old_destination": old_destination, "new_destination": destination_url}

        return self._change(link_id, actor_id, ChangeReason.DESTINATION_UPDATED, mutate)

    def update_settings(
        self,
        link_id: int,
        actor_id: Optional[int],
        changes: Union[SettingsUpdate, Dict[str, Any]],
    ) -> Link:
        """Apply the given settings; only fields actually present are considered"""
        if isinstance(changes, dict):
            changes = _parse(SettingsUpdate, changes)
        requested = changes.model_dump(exclude_unset=True)

        for field in _NON_NULL_SETTINGS & requested.keys():
            if requested[field] is None:
                raise ValidationError(f"'{field}' cannot be null")

        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            changed: List[str] = []
            for field, value in requested.items():
                if getattr(link, field) != value:
                    setattr(link, field, value)
                    changed.append(field)
            if not changed:
                return None
            return {"changed_fields": sorted(changed)}

        return self._change(link_id, actor_id, ChangeReason.SETTINGS_UPDATED, mutate)

    def change_password(self, link_id: int, actor_id: Optional[int], password: Optional[str]) -> Link:
        """Set, replace or (with None) remove the link password"""
        if password == "":
            raise ValidationError("Password must not be empty; pass None to remove it")

        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            if password is None and not link.password_hash:
                return None
            link.password_hash = generate_password_hash(password) if password else None
            return {"password_protected": password is not None}

        return self._change(link_id, actor_id, ChangeReason.PASSWORD_CHANGED, mutate)

    def update_expiration(
        self,
        link_id: int,
        actor_id: Optional[int],
        expiration_date: Optional[datetime],
    ) -> Link:
        expiration_date = to_naive_utc(expiration_date)

        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            if link.expiration_date == expiration_date:
                return None
            previous = link.expiration_date
            link.expiration_date = expiration_date
            return {
                "old_expiration": previous.isoformat() if previous else None,
                "new_expiration": expiration_date.isoformat() if expiration_date else None,
            }

        return self._change(link_id, actor_id, ChangeReason.EXPIRATION_UPDATED, mutate)

    def update_image(
        self,
        link_id: int,
        actor_id: Optional[int],
        image_type: str,
        image_url: Optional[str],
    ) -> Link:
        field = IMAGE_FIELDS.get(image_type)
        if field is None:
            raise ValidationError(
                f"Unknown image type '{image_type}', expected one of {sorted(IMAGE_FIELDS)}"
            )

        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            if getattr(link, field) == image_url:
                return None
            setattr(link, field, image_url)
            return {"image_type": image_type, "removed": image_url is None}

        return self._change(link_id, actor_id, ChangeReason.IMAGE_UPDATED, mutate)

    def disable(self, link_id: int, actor_id: Optional[int]) -> Link:
        return self._set_flag(link_id, actor_id, "is_active", False, ChangeReason.DISABLED)

    def enable(self, link_id: int, actor_id: Optional[int]) -> Link:
        return self._set_flag(link_id, actor_id, "is_active", True, ChangeReason.ENABLED)

    def enable_ab_testing(
        self,
        link_id: int,
        actor_id: Optional[int],
        variants: Sequence[Union[ABTestVariant, Dict[str, Any]]],
    ) -> Link:
        """Turn on A/B testing; weights are normalized to sum to 1"""
        parsed = [
            v if isinstance(v, ABTestVariant) else _parse(ABTestVariant, v)
            for v in variants
        ]
        if len(parsed) < 2:
            raise ValidationError("At least 2 variants are required")

        total_weight = sum(v.weight for v in parsed)
        normalized = [
            {
                "destination_url": str(v.destination_url),
                "weight": v.weight / total_weight,
                "clicks": 0,
            }
            for v in parsed
        ]

        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            link.enable_ab_testing = True
            link.ab_test_variants = normalized
            return {"variants": len(normalized), "total_weight": total_weight}

        return self._change(link_id, actor_id, ChangeReason.AB_TESTING_ENABLED, mutate)

    def disable_ab_testing(self, link_id: int, actor_id: Optional[int]) -> Link:
        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            if not link.enable_ab_testing:
                return None
            link.enable_ab_testing = False
            link.ab_test_variants = None
            return {}

        return self._change(link_id, actor_id, ChangeReason.AB_TESTING_DISABLED, mutate)

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    def restrict(self, link_id: int, actor_id: Optional[int], note: Optional[str] = None) -> Link:
        return self._set_flag(
            link_id, actor_id, "is_restricted", True, ChangeReason.RESTRICTED, note=note
        )

    def unrestrict(self, link_id: int, actor_id: Optional[int], note: Optional[str] = None) -> Link:
        return self._set_flag(
            link_id, actor_id, "is_restricted", False, ChangeReason.UNRESTRICTED, note=note
        )

    def purge_link(self, link_id: int) -> None:
        """Hard delete a link together with its whole version history"""
        with self.versions.lock.hold(link_lock_key(link_id)):
            try:
                link = self.links.get_for_update(link_id)
                self.links.delete(link)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        logger.warning("Purged link %s and its version history", link_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _change(self, link_id, actor_id, reason, mutate) -> Link:
        link, _ = self.versions.apply_change(link_id, actor_id, reason, mutate)
        return link

    def _set_flag(self, link_id, actor_id, field, value, reason, note=None) -> Link:
        def mutate(link: Link) -> Optional[Dict[str, Any]]:
            if getattr(link, field) == value:
                return None
            setattr(link, field, value)
            return {"note": note} if note else {}

        return self._change(link_id, actor_id, reason, mutate)


def _validate_url(url: str) -> str:
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid destination URL: {url!r}")
    return url


def _parse(model: type, data: Dict[str, Any]) -> BaseModel:
    try:
        return model.model_validate(data)
    except SchemaError as e:
        raise ValidationError(str(e)) from e
