import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from services.results import StorageFailure

logger = logging.getLogger(__name__)


@contextmanager
def atomic(action: str):
    """
    One transaction around the block: commit on exit, roll back on any error.

    IntegrityError is re-raised as is so callers can turn a unique-constraint
    hit into a business rejection. Other database errors become StorageFailure.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Transaction failed: %s", action)
        raise StorageFailure(f"Could not {action}") from exc
    except Exception:
        db.session.rollback()
        raise
