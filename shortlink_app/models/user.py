from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from shortlink_app.database.connection import Base


class User(Base):
    """
    Link owners and acting users.

    Accounts are managed elsewhere; this table only backs the display
    names shown in version history.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
