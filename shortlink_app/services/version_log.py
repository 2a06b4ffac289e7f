import json
import logging
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shortlink_app.config import settings
from shortlink_app.exceptions import ConflictError, NotFoundError, ValidationError
from shortlink_app.locks.strategies import LockStrategy, link_lock_key
from shortlink_app.models.link import Link
from shortlink_app.models.link_version import ChangeReason, LinkVersion
from shortlink_app.repositories.link_repository import LinkRepository
from shortlink_app.schemas.snapshot import LinkSnapshot
from shortlink_app.schemas.version import ChangeLogEntry, IntegrityReport
from shortlink_app.services.changelog import to_change_log_entry
from shortlink_app.services.snapshots import (
    check_restorable,
    dump_snapshot,
    load_snapshot,
    restore_snapshot,
)

logger = logging.getLogger(__name__)

Mutation = Callable[[Link], Optional[Dict[str, Any]]]

REPAIR_ACTIONS = ("complete", "abandon")


class VersionLog:
    """
    Append-only change log of a link, with point-in-time rollback.

    All writes happen while holding the per-link lock, and the next version
    number is read inside that critical section, so numbers stay gapless
    and unique under concurrent requests. The (link_id, version) unique
    constraint turns any writer that slips past the lock into a
    ConflictError instead of a duplicate.

    Dependencies are injected (see dependencies.get_version_log):
    - db: Database session, committed by this class for each unit of work
    - links: Repository used to load the link being versioned
    - lock: Per-link lock strategy
    """

    def __init__(self, db: Session, links: LinkRepository, lock: LockStrategy):
        self.db = db
        self.links = links
        self.lock = lock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_version(
        self,
        link_id: int,
        acting_user_id: Optional[int],
        reason: Union[ChangeReason, str],
        details: Optional[Dict[str, Any]] = None,
    ) -> LinkVersion:
        """
        Record the link's current state as the next version.

        Does not move link.current_version; use apply_change to mutate a
        link and log the change as one unit.

        Raises:
            NotFoundError: The link does not exist
            ValidationError: Unknown reason or malformed details
            ConflictError: The link is locked by another writer
        """
        reason = self._coerce_reason(reason)
        details = self._coerce_details(details)

        with self.lock.hold(link_lock_key(link_id)):
            try:
                link = self.links.get_for_update(link_id)
                record = self._append(link, acting_user_id, reason, details)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info("Link %s: appended version %s (%s)", link_id, record.version, reason.value)
        return record

    def start_history(
        self,
        link: Link,
        acting_user_id: Optional[int],
        details: Optional[Dict[str, Any]] = None,
    ) -> LinkVersion:
        """
        Write version 1 for a freshly flushed link. The caller commits.
        """
        details = self._coerce_details(details)
        with self.lock.hold(link_lock_key(link.id)):
            record = self._append(link, acting_user_id, ChangeReason.CREATED, details)
            link.current_version = record.version
        return record

    def apply_change(
        self,
        link_id: int,
        acting_user_id: Optional[int],
        reason: Union[ChangeReason, str],
        mutate: Mutation,
    ) -> Tuple[Link, Optional[LinkVersion]]:
        """
        Mutate a link and log the change in one transaction.

        `mutate` receives the locked link, applies its field changes and
        returns the change details, or None when nothing changed (no record
        is written then). The snapshot is taken after `mutate` returns.

        Returns:
            The link and the new record (None for a no-op)
        """
        reason = self._coerce_reason(reason)

        with self.lock.hold(link_lock_key(link_id)):
            try:
                link = self.links.get_for_update(link_id)
                details = mutate(link)
                if details is None:
                    self.db.rollback()
                    return link, None

                details = self._coerce_details(details)
                record = self._append(link, acting_user_id, reason, details)
                link.current_version = record.version
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info("Link %s: %s -> version %s", link_id, reason.value, record.version)
        return link, record

    def rollback(
        self,
        link_id: int,
        target_version: int,
        acting_user_id: Optional[int] = None,
    ) -> Link:
        """
        Restore the link to the state stored in `target_version`.

        Writes two records around the restore: `rollback` (state before the
        restore, so rolling back to it undoes this rollback) and
        `rollback_completed` (state after). Both records and the link update
        commit together; on any failure nothing is written.

        Args:
            link_id: Link to restore
            target_version: Version number whose snapshot is restored
            acting_user_id: Who asked; defaults to the link owner

        Raises:
            NotFoundError: No such version record or link
            ValidationError: Bad target version or unrestorable snapshot
        """
        target_version = self._coerce_version(target_version)

        with self.lock.hold(link_lock_key(link_id)):
            try:
                target = self._find_version(link_id, target_version)
                link = self.links.get_for_update(link_id)
                snapshot = load_snapshot(target.snapshot)
                check_restorable(snapshot)

                actor = acting_user_id if acting_user_id is not None else link.user_id
                from_version = link.current_version

                self._append(
                    link,
                    actor,
                    ChangeReason.ROLLBACK,
                    {"from_version": from_version, "to_version": target_version},
                )
                completed = self._restore_and_complete(link, actor, snapshot, target_version)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Link %s: rolled back from version %s to %s (now version %s)",
            link_id, from_version, target_version, completed.version,
        )
        return link

    def repair_rollback(
        self,
        link_id: int,
        action: str,
        acting_user_id: Optional[int] = None,
    ) -> Link:
        """
        Resolve an interrupted rollback (see verify()).

        - "complete": restore the rollback's target version and write the
          missing `rollback_completed` record
        - "abandon": put the link back to the state captured by the dangling
          `rollback` record and point current_version at it

        Raises:
            ValidationError: Unknown action, or nothing to repair
        """
        if action not in REPAIR_ACTIONS:
            raise ValidationError(f"Unknown repair action '{action}', expected one of {REPAIR_ACTIONS}")

        with self.lock.hold(link_lock_key(link_id)):
            try:
                link = self.links.get_for_update(link_id)
                dangling = self._dangling_rollback(link)
                if dangling is None:
                    raise ValidationError(f"Link {link_id} has no interrupted rollback")

                actor = acting_user_id if acting_user_id is not None else link.user_id
                if action == "complete":
                    to_version = self._coerce_version((dangling.details or {}).get("to_version"))
                    snapshot = load_snapshot(self._find_version(link_id, to_version).snapshot)
                    self._restore_and_complete(
                        link, actor, snapshot, to_version, extra={"repaired": True}
                    )
                else:
                    restore_snapshot(link, load_snapshot(dangling.snapshot))
                    link.current_version = dangling.version
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.warning(
            "Link %s: interrupted rollback at version %s resolved (%s)",
            link_id, dangling.version, action,
        )
        return link

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_versions(
        self,
        link_id: int,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[LinkVersion]:
        """Version records, newest first"""
        if limit is None:
            limit = settings.versions_page_size
        if not 1 <= limit <= settings.versions_max_page_size:
            raise ValidationError(
                f"limit must be between 1 and {settings.versions_max_page_size}"
            )
        if offset < 0:
            raise ValidationError("offset must not be negative")

        self.links.get_or_404(link_id)
        return (
            self.db.query(LinkVersion)
            .filter(LinkVersion.link_id == link_id)
            .order_by(LinkVersion.version.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_version(self, link_id: int, version: int) -> LinkVersion:
        return self._find_version(link_id, self._coerce_version(version))

    def get_change_log(self, link_id: int) -> List[ChangeLogEntry]:
        """Display projection of the full history, newest first"""
        self.links.get_or_404(link_id)
        records = (
            self.db.query(LinkVersion)
            .filter(LinkVersion.link_id == link_id)
            .order_by(LinkVersion.version.desc())
            .all()
        )
        return [to_change_log_entry(record) for record in records]

    def verify(self, link_id: int) -> IntegrityReport:
        """Check numbering and pointer invariants of one link's history"""
        link = self.links.get_or_404(link_id)
        versions = [
            row.version
            for row in self.db.query(LinkVersion.version)
            .filter(LinkVersion.link_id == link_id)
            .order_by(LinkVersion.version)
        ]
        counts = Counter(versions)
        latest = max(versions, default=0)
        dangling = self._dangling_rollback(link)

        return IntegrityReport(
            link_id=link_id,
            record_count=len(versions),
            latest_version=latest,
            current_version=link.current_version,
            missing_versions=sorted(set(range(1, latest + 1)) - set(counts)),
            duplicate_versions=sorted(v for v, n in counts.items() if n > 1),
            pointer_consistent=link.current_version == latest,
            dangling_rollback=dangling.version if dangling else None,
        )

    # ------------------------------------------------------------------
    # Internals (caller holds the link lock)
    # ------------------------------------------------------------------

    def _append(
        self,
        link: Link,
        acting_user_id: Optional[int],
        reason: ChangeReason,
        details: Dict[str, Any],
    ) -> LinkVersion:
        last_version = (
            self.db.query(func.max(LinkVersion.version))
            .filter(LinkVersion.link_id == link.id)
            .scalar()
        ) or 0

        record = LinkVersion(
            link_id=link.id,
            version=last_version + 1,
            user_id=acting_user_id,
            reason=reason,
            destination_url=link.destination_url,
            details=details,
            snapshot=dump_snapshot(link),
        )
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Version {record.version} of link {link.id} was written concurrently"
            ) from e
        return record

    def _restore_and_complete(
        self,
        link: Link,
        actor: Optional[int],
        snapshot: LinkSnapshot,
        target_version: int,
        extra: Optional[Dict[str, Any]] = None,
    ) -> LinkVersion:
        previous_destination = link.destination_url
        restore_snapshot(link, snapshot)
        self.db.flush()

        details = {
            "rolled_back_from": previous_destination,
            "rolled_back_to": link.destination_url,
            "version": target_version,
        }
        details.update(extra or {})
        completed = self._append(link, actor, ChangeReason.ROLLBACK_COMPLETED, details)
        link.current_version = completed.version
        return completed

    def _find_version(self, link_id: int, version: int) -> LinkVersion:
        record = (
            self.db.query(LinkVersion)
            .filter(LinkVersion.link_id == link_id, LinkVersion.version == version)
            .first()
        )
        if record is None:
            raise NotFoundError(f"Version {version} not found for link {link_id}")
        return record

    def _dangling_rollback(self, link: Link) -> Optional[LinkVersion]:
        # A `rollback` record is normally followed by `rollback_completed` in
        # the same transaction; as the newest record, ahead of the pointer,
        # it marks a restore that never finished.
        latest = (
            self.db.query(LinkVersion)
            .filter(LinkVersion.link_id == link.id)
            .order_by(LinkVersion.version.desc())
            .first()
        )
        if (
            latest is not None
            and latest.reason == ChangeReason.ROLLBACK
            and link.current_version < latest.version
        ):
            return latest
        return None

    @staticmethod
    def _coerce_reason(reason: Union[ChangeReason, str]) -> ChangeReason:
        try:
            return ChangeReason(reason)
        except ValueError:
            raise ValidationError(f"Unknown change reason: {reason!r}") from None

    @staticmethod
    def _coerce_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if details is None:
            return {}
        if not isinstance(details, dict):
            raise ValidationError("Change details must be an object")
        try:
            json.dumps(details)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Change details are not JSON serializable: {e}") from e
        return dict(details)

    @staticmethod
    def _coerce_version(version: Any) -> int:
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise ValidationError(f"Version must be a positive integer, got {version!r}")
        return version
