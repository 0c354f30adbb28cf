from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


class CashOnHand(db.Model):
    """
    Running cash-on-hand balance for a store.

    WHY: Sales, expenses, vendor payments, reimbursements and customer tabs
    all move physical cash; the back office needs one number that reflects
    every movement.

    DESIGN: Singleton per store, created lazily with a zero balance. The row
    is the serialization point for writers: updates take a row lock and the
    version_id column rejects a stale read-modify-write.
    """
    __tablename__ = "cash_on_hand"
    __table_args__ = (
        db.UniqueConstraint("store_id", name="uq_cash_on_hand_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)

    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    # Last sequence number handed out to this store's cash_transactions
    last_sequence_number = db.Column(db.Integer, nullable=False, default=0)
    last_transaction_id = db.Column(db.String(64), nullable=True)
    last_transaction_type = db.Column(db.String(32), nullable=True)
    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("cash_on_hand", uselist=False))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "current_balance_cents": self.current_balance_cents,
            "last_sequence_number": self.last_sequence_number,
            "last_transaction_id": self.last_transaction_id,
            "last_transaction_type": self.last_transaction_type,
            "last_updated": to_utc_z(self.last_updated),
            "version_id": self.version_id,
        }


class CashTransaction(db.Model):
    """
    Append-only audit row for one cash movement.

    INVARIANT: For a store, ordered by sequence_number, each row's
    balance_before_cents equals the previous row's balance_after_cents, and
    balance_after_cents = balance_before_cents + amount_cents.
    The (store_id, sequence_number) uniqueness makes a lost update fail at
    insert time instead of silently forking the chain.
    """
    __tablename__ = "cash_transactions"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sequence_number", name="uq_cash_transactions_store_sequence"),
        db.UniqueConstraint("store_id", "idempotency_key", name="uq_cash_transactions_store_idempotency"),
        db.Index("ix_cash_transactions_store_date", "store_id", "transaction_date"),
        db.Index("ix_cash_transactions_source", "store_id", "transaction_type", "source_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    sequence_number = db.Column(db.Integer, nullable=False)

    transaction_date = db.Column(db.Date, nullable=False)
    # Free-form tag: revenue, expense, payment, payment_reversal, reimbursement,
    # customer_tab_charge, customer_tab_payment, adjustment, ...
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    source_id = db.Column(db.String(64), nullable=True)
    # Set on compensating rows; points at the row being netted out
    reverses_transaction_id = db.Column(db.Integer, db.ForeignKey("cash_transactions.id"), nullable=True)

    # All amounts in cents; amount is signed (inflow > 0, outflow < 0)
    amount_cents = db.Column(db.Integer, nullable=False)
    balance_before_cents = db.Column(db.Integer, nullable=False)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    description = db.Column(db.String(255), nullable=True)
    entered_by = db.Column(db.Integer, nullable=True)
    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sequence_number": self.sequence_number,
            "transaction_date": to_iso_date(self.transaction_date),
            "transaction_type": self.transaction_type,
            "source_id": self.source_id,
            "reverses_transaction_id": self.reverses_transaction_id,
            "amount_cents": self.amount_cents,
            "balance_before_cents": self.balance_before_cents,
            "balance_after_cents": self.balance_after_cents,
            "description": self.description,
            "entered_by": self.entered_by,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
        }
