from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column, Integer, Text, DateTime, JSON, ForeignKey, Index, UniqueConstraint, event
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship
from shortlink_app.database.connection import Base
from shortlink_app.exceptions import ValidationError


class ChangeReason(str, Enum):
    """Closed set of reasons a version record can be written for"""
    CREATED = "created"
    DESTINATION_UPDATED = "destination_updated"
    SETTINGS_UPDATED = "settings_updated"
    PASSWORD_CHANGED = "password_changed"
    EXPIRATION_UPDATED = "expiration_updated"
    IMAGE_UPDATED = "image_updated"
    DISABLED = "disabled"
    ENABLED = "enabled"
    RESTRICTED = "restricted"
    UNRESTRICTED = "unrestricted"
    AB_TESTING_ENABLED = "ab_testing_enabled"
    AB_TESTING_DISABLED = "ab_testing_disabled"
    ROLLBACK = "rollback"
    ROLLBACK_COMPLETED = "rollback_completed"


class LinkVersion(Base):
    """
    One immutable entry of a link's change log.

    snapshot holds the full link state *after* the change took effect,
    serialized by schemas.snapshot.LinkSnapshot. Rows are only ever inserted,
    or removed together with their link.
    """
    __tablename__ = "link_versions"
    __table_args__ = (
        # Storage-level backstop against two writers taking the same number
        UniqueConstraint("link_id", "version", name="uq_link_versions_link_version"),
        Index("ix_link_versions_link_id_version", "link_id", "version"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    link_id = Column(
        Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # None = system
    reason = Column(
        SQLEnum(
            ChangeReason,
            native_enum=False,
            length=32,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    destination_url = Column(Text, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    snapshot = Column(JSON, nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    link = relationship("Link", back_populates="versions")
    user = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        return f"<LinkVersion link={self.link_id} v{self.version} {self.reason.value}>"


@event.listens_for(LinkVersion, "before_update")
def _reject_version_update(mapper, connection, target):
    raise ValidationError(
        f"Version {target.version} of link {target.link_id} is immutable"
    )
