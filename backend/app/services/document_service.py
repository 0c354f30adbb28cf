# Overview: Service-layer operations for document numbering; allocates store-scoped sequence numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


JOURNAL_ENTRY_DOCUMENT_TYPE = "JOURNAL_ENTRY"


def _current_next_number(store_id: int, document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(store_id=store_id, document_type=document_type)
        .scalar()
    )


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for a store/type.

    Runs inside the caller's transaction and does NOT commit: the number is
    only consumed if the caller's document commits with it. The UPDATE takes
    the row lock on (store_id, document_type) until that commit.

    Must be the first write of the caller's transaction: losing the race to
    create the sequence row rolls the session back.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_next_number(store_id, document_type) - 1
    else:
        seq = DocumentSequence(store_id=store_id, document_type=document_type, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
            next_num = 1
        except IntegrityError:
            # Another writer created the row first; take the next slot from it.
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_next_number(store_id, document_type) - 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"


def next_journal_entry_number(store_id: int) -> str:
    return next_document_number(
        store_id=store_id,
        document_type=JOURNAL_ENTRY_DOCUMENT_TYPE,
        prefix="JE",
        pad=6,
    )
