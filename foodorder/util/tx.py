from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from foodorder.errors import ConcurrentModification


def commit(db: Session) -> None:
    """Commit, turning a lost optimistic-version race into a Conflict."""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentModification("The record was modified by another request; please retry.")
