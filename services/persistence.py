import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from services.errors import PersistenceError

logger = logging.getLogger(__name__)


def new_id(prefix):
    return f"{prefix}-{uuid.uuid4()}"


def commit_or_raise(table_name):
    """
    Commit the current session. On a store failure the session is rolled
    back and a PersistenceError embedding the store message is raised.
    No retry is attempted.
    """
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        store_message = str(getattr(exc, "orig", None) or exc)
        logger.error("Write to %s failed: %s", table_name, store_message)
        raise PersistenceError(f"Failed to save to {table_name}: {store_message}") from exc


def upsert(model, rows):
    """
    Insert or update each row dict keyed by the model's primary key and
    commit them as one batch.
    """
    merged = [db.session.merge(model(**row)) for row in rows]
    commit_or_raise(model.__tablename__)
    return merged


def delete_where(model, column, values):
    values = list(values)
    if not values:
        return 0
    deleted = (
        db.session.query(model)
        .filter(column.in_(values))
        .delete(synchronize_session=False)
    )
    commit_or_raise(model.__tablename__)
    return deleted
