from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shortlink_app.database.connection import Base


class Link(Base):
    """
    Current mutable state of one short link.

    Every change to the mutable columns is paired with a LinkVersion row
    (see VersionLog.apply_change); current_version always names the most
    recently applied version record.
    """
    __tablename__ = "links"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Nullable=True allows two-step creation: first get ID, then generate short_code
    short_code = Column(String(16), unique=True, nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    destination_url = Column(Text, nullable=False)
    custom_name = Column(String(50), nullable=True)
    password_hash = Column(String(255), nullable=True)
    expiration_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_restricted = Column(Boolean, default=False, nullable=False)

    # Presentation settings
    preview_image = Column(Text, nullable=True)
    loading_page_image = Column(Text, nullable=True)
    loading_page_text = Column(String(200), default="Loading...")
    brand_color = Column(String(16), default="#000000")
    splash_image = Column(Text, nullable=True)
    generate_qr_code = Column(Boolean, default=False, nullable=False)
    smart_dynamic_links = Column(Boolean, default=False, nullable=False)
    enable_affiliate_tracking = Column(Boolean, default=False, nullable=False)

    # A/B testing: list of {"destination_url", "weight", "clicks"}
    enable_ab_testing = Column(Boolean, default=False, nullable=False)
    ab_test_variants = Column(JSON, nullable=True)

    clicks = Column(Integer, default=0, nullable=False)
    current_version = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner = relationship("User")
    versions = relationship(
        "LinkVersion",
        back_populates="link",
        cascade="all, delete-orphan",
        order_by="LinkVersion.version",
    )

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password_hash)

    def __repr__(self) -> str:
        return f"<Link {self.short_code} v{self.current_version}>"
