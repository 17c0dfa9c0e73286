import logging
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.ingestion.errors import TransientPersistenceError

logger = logging.getLogger(__name__)

_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _dedupe_by_hash(rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    out = []
    for row in rows:
        if row["hash"] in seen:
            continue
        seen.add(row["hash"])
        out.append(row)
    return out


def _insert_missing(db: Session, model, rows: list[dict[str, Any]]) -> int:
    hashes = [row["hash"] for row in rows]
    existing = set(db.execute(select(model.hash).where(model.hash.in_(hashes))).scalars())
    fresh = [row for row in rows if row["hash"] not in existing]
    if fresh:
        db.execute(model.__table__.insert(), fresh)
    return len(fresh)


def insert_skip_duplicates(db: Session, model, rows: Sequence[dict[str, Any]]) -> int:
    """
    Append rows to the model's table, silently skipping any whose hash is already stored.
    Returns the number of rows the database reports as inserted.
    """
    rows = _dedupe_by_hash(rows)
    if not rows:
        return 0

    try:
        insert_fn = _CONFLICT_INSERTS.get(db.get_bind().dialect.name)
        if insert_fn is None:
            inserted = _insert_missing(db, model, rows)
        else:
            stmt = insert_fn(model.__table__).values(rows).on_conflict_do_nothing(index_elements=["hash"])
            result = db.execute(stmt)
            inserted = max(int(result.rowcount or 0), 0)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransientPersistenceError(str(exc.orig) if getattr(exc, "orig", None) else str(exc)) from exc

    logger.debug("BULK INSERT: table=%s offered=%s inserted=%s", model.__tablename__, len(rows), inserted)
    return inserted
