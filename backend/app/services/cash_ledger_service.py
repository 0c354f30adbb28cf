# Overview: Service-layer operations for cash on hand; running balance plus append-only movement log.

"""
Cash Ledger Service

WHY: The back office tracks physical cash independently of the general
ledger. Revenue, expenses, vendor payments, reimbursements and customer-tab
activity each move the store's cash-on-hand balance.

INVARIANTS:
- For a store, ordered by sequence_number, every transaction's
  balance_before_cents equals the previous transaction's balance_after_cents.
- balance_after_cents = balance_before_cents + amount_cents.
- cash_on_hand.current_balance_cents equals the last transaction's
  balance_after_cents.

CONCURRENCY: A balance update is a read-modify-write. Writers for one store
are serialized by the per-store lock, a row lock on cash_on_hand, and the
row's version_id. The unique (store_id, sequence_number) constraint rejects
any writer that slipped past all three, so the chain can fail loudly but
never fork.

History is destroyed only by reset_balance.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Store, CashOnHand, CashTransaction
from ..metrics import CASH_LEDGER_UPDATES
from app.time_utils import utcnow, today, parse_iso_date
from .concurrency import lock_for_update, run_with_retry, store_lock


TRANSACTION_TYPE_PAYMENT = "payment"
TRANSACTION_TYPE_PAYMENT_REVERSAL = "payment_reversal"


class CashLedgerError(Exception):
    """Raised for cash ledger operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class StoreNotFoundError(CashLedgerError):
    """Cash ledger requested for a store that does not exist."""


def _assert_store(store_id: int) -> None:
    if not db.session.get(Store, store_id):
        raise StoreNotFoundError("Store not found", details={"store_id": store_id})


def _get_or_create_row(store_id: int, initial_balance_cents: int = 0, *, for_update: bool = False) -> CashOnHand:
    """
    Fetch the store's cash row, creating it when absent.

    Must be the first write of the transaction: a concurrent creator turns
    our insert into an IntegrityError, which rolls the session back.
    """
    query = db.session.query(CashOnHand).filter_by(store_id=store_id)
    if for_update:
        query = lock_for_update(query)
    row = query.first()
    if row:
        return row

    _assert_store(store_id)
    row = CashOnHand(
        store_id=store_id,
        current_balance_cents=initial_balance_cents,
        last_sequence_number=0,
    )
    db.session.add(row)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        row = query.first()
        if row is None:
            raise
    return row


def initialize(store_id: int, initial_balance_cents: int = 0) -> CashOnHand:
    """Create the store's cash row if missing; an existing row is returned untouched."""
    def _op():
        with store_lock("cash_on_hand", store_id):
            row = _get_or_create_row(store_id, initial_balance_cents)
            db.session.commit()
            return row

    return run_with_retry(_op)


def get_balance(store_id: int) -> CashOnHand:
    row = db.session.query(CashOnHand).filter_by(store_id=store_id).first()
    if row:
        return row
    return initialize(store_id)


def _existing_by_key(store_id: int, idempotency_key: str) -> CashTransaction | None:
    return (
        db.session.query(CashTransaction)
        .filter_by(store_id=store_id, idempotency_key=idempotency_key)
        .first()
    )


def update_balance(
    store_id: int,
    amount_cents: int,
    transaction_type: str,
    source_id=None,
    transaction_date=None,
    description: str | None = None,
    entered_by: int | None = None,
    *,
    idempotency_key: str | None = None,
    reverses_transaction_id: int | None = None,
) -> CashTransaction:
    """
    Apply a signed cash movement and append it to the log.

    amount_cents > 0 adds cash, < 0 removes it. With an idempotency_key, a
    repeated call returns the originally logged transaction and leaves the
    balance alone.

    Returns:
        The CashTransaction row (balance_before_cents / balance_after_cents)
    """
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise CashLedgerError("amount_cents must be an integer number of cents", details={"amount_cents": amount_cents})
    if not transaction_type or not str(transaction_type).strip():
        raise CashLedgerError("transaction_type is required")

    transaction_date = parse_iso_date(transaction_date) or today()

    def _op():
        with store_lock("cash_on_hand", store_id):
            if idempotency_key:
                existing = _existing_by_key(store_id, idempotency_key)
                if existing:
                    current_app.logger.info(
                        "Cash movement %s for store %s already recorded as #%s",
                        idempotency_key, store_id, existing.sequence_number,
                    )
                    return existing

            row = _get_or_create_row(store_id, for_update=True)
            balance_before = row.current_balance_cents
            balance_after = balance_before + amount_cents
            sequence_number = row.last_sequence_number + 1

            txn = CashTransaction(
                store_id=store_id,
                sequence_number=sequence_number,
                transaction_date=transaction_date,
                transaction_type=transaction_type,
                source_id=str(source_id) if source_id is not None else None,
                reverses_transaction_id=reverses_transaction_id,
                amount_cents=amount_cents,
                balance_before_cents=balance_before,
                balance_after_cents=balance_after,
                description=description,
                entered_by=entered_by,
                idempotency_key=idempotency_key,
            )
            db.session.add(txn)

            row.current_balance_cents = balance_after
            row.last_sequence_number = sequence_number
            row.last_transaction_id = txn.source_id
            row.last_transaction_type = transaction_type
            row.last_updated = utcnow()

            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                if idempotency_key:
                    existing = _existing_by_key(store_id, idempotency_key)
                    if existing:
                        return existing
                raise CashLedgerError(
                    "Concurrent cash update detected; the movement was not applied",
                    details={"store_id": store_id, "sequence_number": sequence_number},
                )

            CASH_LEDGER_UPDATES.labels(transaction_type=transaction_type).inc()
            current_app.logger.debug(
                "Cash %s for store %s: %s -> %s (#%s)",
                transaction_type, store_id, balance_before, balance_after, sequence_number,
            )
            return txn

    return run_with_retry(_op)


def add_cash(store_id: int, amount_cents: int, transaction_type: str, source_id=None,
             transaction_date=None, description=None, entered_by=None, **kwargs) -> CashTransaction:
    """Inflow: revenue, reimbursement received, tab payment."""
    return update_balance(store_id, abs(amount_cents), transaction_type, source_id,
                          transaction_date, description, entered_by, **kwargs)


def subtract_cash(store_id: int, amount_cents: int, transaction_type: str, source_id=None,
                  transaction_date=None, description=None, entered_by=None, **kwargs) -> CashTransaction:
    """Outflow: expense, vendor payment, reimbursement paid out."""
    return update_balance(store_id, -abs(amount_cents), transaction_type, source_id,
                          transaction_date, description, entered_by, **kwargs)


def reverse_payment_transactions(store_id: int, source_id, actor_id: int | None = None,
                                 transaction_date=None) -> list[CashTransaction]:
    """
    Net out the cash payments logged for a source object (e.g. an invoice
    whose payment was reverted) with compensating movements.

    Payments already compensated are skipped, so calling this twice is safe.
    History is never deleted.

    Returns:
        The compensating transactions created by this call
    """
    source_ref = str(source_id)
    with store_lock("cash_on_hand", store_id):
        payments = (
            db.session.query(CashTransaction)
            .filter_by(store_id=store_id, transaction_type=TRANSACTION_TYPE_PAYMENT, source_id=source_ref)
            .order_by(CashTransaction.sequence_number.asc())
            .all()
        )
        compensated = {
            row.reverses_transaction_id
            for row in db.session.query(CashTransaction.reverses_transaction_id).filter(
                CashTransaction.store_id == store_id,
                CashTransaction.transaction_type == TRANSACTION_TYPE_PAYMENT_REVERSAL,
                CashTransaction.reverses_transaction_id.isnot(None),
            )
        }

        reversals = []
        for payment in payments:
            if payment.id in compensated or payment.amount_cents == 0:
                continue
            reversals.append(update_balance(
                store_id,
                -payment.amount_cents,
                TRANSACTION_TYPE_PAYMENT_REVERSAL,
                source_ref,
                transaction_date,
                f"Reversal of cash payment #{payment.sequence_number}",
                actor_id,
                idempotency_key=f"{TRANSACTION_TYPE_PAYMENT_REVERSAL}:{payment.id}",
                reverses_transaction_id=payment.id,
            ))

    if reversals:
        current_app.logger.info(
            "Reversed %s cash payment(s) for source %s in store %s",
            len(reversals), source_ref, store_id,
        )
    return reversals


def reset_balance(store_id: int, reset_by: int | None = None) -> CashOnHand:
    """
    Purge the store's cash transaction log and zero the balance.

    Administrative; the caller gates access.
    """
    def _op():
        with store_lock("cash_on_hand", store_id):
            row = _get_or_create_row(store_id, for_update=True)
            purged = (
                db.session.query(CashTransaction)
                .filter(CashTransaction.store_id == store_id)
                .delete(synchronize_session=False)
            )
            row.current_balance_cents = 0
            row.last_sequence_number = 0
            row.last_transaction_id = None
            row.last_transaction_type = None
            row.last_updated = utcnow()
            db.session.commit()

            current_app.logger.warning(
                "Cash on hand reset for store %s by user %s (%s transactions purged)",
                store_id, reset_by, purged,
            )
            return row

    return run_with_retry(_op)


def _clamp_limit(limit) -> int:
    max_limit = current_app.config.get("LEDGER_HISTORY_MAX_LIMIT", 500)
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = 100
    return max(1, min(limit, max_limit))


def get_transaction_history(store_id: int, start_date=None, end_date=None, limit=100) -> list[CashTransaction]:
    """Newest first: transaction_date DESC, created_at DESC, sequence DESC."""
    query = db.session.query(CashTransaction).filter(CashTransaction.store_id == store_id)

    start_date = parse_iso_date(start_date)
    end_date = parse_iso_date(end_date)
    if start_date:
        query = query.filter(CashTransaction.transaction_date >= start_date)
    if end_date:
        query = query.filter(CashTransaction.transaction_date <= end_date)

    return (
        query.order_by(
            CashTransaction.transaction_date.desc(),
            CashTransaction.created_at.desc(),
            CashTransaction.sequence_number.desc(),
        )
        .limit(_clamp_limit(limit))
        .all()
    )


def verify_chain(store_id: int) -> list[dict]:
    """
    Audit the store's log in sequence order.

    Returns:
        A list of problems; empty when the chain is consistent and the
        running balance matches the last logged balance.
    """
    problems = []
    transactions = (
        db.session.query(CashTransaction)
        .filter(CashTransaction.store_id == store_id)
        .order_by(CashTransaction.sequence_number.asc())
        .all()
    )

    previous = None
    for txn in transactions:
        if txn.balance_after_cents != txn.balance_before_cents + txn.amount_cents:
            problems.append({
                "sequence_number": txn.sequence_number,
                "problem": "balance_after does not equal balance_before plus amount",
            })
        if previous is not None:
            if txn.sequence_number != previous.sequence_number + 1:
                problems.append({
                    "sequence_number": txn.sequence_number,
                    "problem": f"gap after sequence {previous.sequence_number}",
                })
            if txn.balance_before_cents != previous.balance_after_cents:
                problems.append({
                    "sequence_number": txn.sequence_number,
                    "problem": f"balance_before does not match balance_after of #{previous.sequence_number}",
                })
        previous = txn

    row = db.session.query(CashOnHand).filter_by(store_id=store_id).first()
    if row is not None and previous is not None and row.current_balance_cents != previous.balance_after_cents:
        problems.append({
            "sequence_number": previous.sequence_number,
            "problem": "current balance does not match the last logged balance",
        })
    return problems
