from typing import Optional

from sqlalchemy.orm import Session

from shortlink_app.exceptions import NotFoundError
from shortlink_app.models.link import Link


class LinkRepository:
    """
    Data access for Link rows.

    VersionLog and LinkService receive an instance instead of querying the
    links table themselves, so tests can hand them any session.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, link_id: int) -> Optional[Link]:
        return self.db.get(Link, link_id)

    def get_or_404(self, link_id: int) -> Link:
        link = self.get(link_id)
        if link is None:
            raise NotFoundError(f"Link {link_id} not found")
        return link

    def get_for_update(self, link_id: int) -> Link:
        """
        Load a link inside the current transaction with a row lock.

        SELECT ... FOR UPDATE is ignored by SQLite; there the per-link lock
        is what keeps writers apart.
        """
        link = (
            self.db.query(Link)
            .filter(Link.id == link_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if link is None:
            raise NotFoundError(f"Link {link_id} not found")
        return link

    def get_by_short_code(self, short_code: str) -> Optional[Link]:
        return self.db.query(Link).filter(Link.short_code == short_code).first()

    def short_code_exists(self, short_code: str) -> bool:
        return self.db.query(Link.id).filter(Link.short_code == short_code).first() is not None

    def add(self, link: Link) -> Link:
        self.db.add(link)
        self.db.flush()  # Flush to get ID without committing
        return link

    def delete(self, link: Link) -> None:
        self.db.delete(link)
