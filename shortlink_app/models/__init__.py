"""
Database models for the short link service.

Links hold current state; LinkVersion rows are the append-only change log.
"""

from .user import User
from .link import Link
from .link_version import LinkVersion, ChangeReason

__all__ = ["User", "Link", "LinkVersion", "ChangeReason"]
