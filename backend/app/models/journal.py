from __future__ import annotations

from enum import Enum

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


class EntryStatus(str, Enum):
    """
    Journal entry lifecycle.

    DRAFT -> POSTED -> REVERSED. Nothing else is reachable: drafts are the
    only mutable state, posting is one-way, and only posted entries can be
    reversed.
    """
    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"

    def can_transition_to(self, target: "EntryStatus") -> bool:
        return target in ENTRY_STATUS_TRANSITIONS[self]


ENTRY_STATUS_TRANSITIONS = {
    EntryStatus.DRAFT: frozenset({EntryStatus.POSTED}),
    EntryStatus.POSTED: frozenset({EntryStatus.REVERSED}),
    EntryStatus.REVERSED: frozenset(),
}


class EntryType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    REVERSAL = "reversal"


class JournalEntry(db.Model):
    """
    Double-entry journal entry header.

    WHY: A dated, described set of balanced debit/credit lines. Totals are
    denormalized onto the header so list views and the posting guard never
    re-sum lines.

    IMMUTABLE: Once posted, header and lines are frozen. Corrections are made
    with a reversal entry; posted rows are never deleted.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.UniqueConstraint("store_id", "entry_number", name="uq_journal_entries_store_number"),
        db.Index("ix_journal_entries_store_status_date", "store_id", "status", "entry_date"),
        db.Index("ix_journal_entries_reference", "store_id", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    entry_date = db.Column(db.Date, nullable=False, index=True)
    # Human-readable, store-scoped, allocation-ordered (e.g., "JE-001-000042")
    entry_number = db.Column(db.String(32), nullable=False)
    entry_type = db.Column(db.String(16), nullable=False, default=EntryType.MANUAL.value)
    description = db.Column(db.String(255), nullable=False)

    # Originating business object (expense, purchase_invoice, revenue, journal_entry, ...)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=EntryStatus.DRAFT.value, index=True)

    # All amounts in cents
    total_debit_cents = db.Column(db.Integer, nullable=False, default=0)
    total_credit_cents = db.Column(db.Integer, nullable=False, default=0)
    is_balanced = db.Column(db.Boolean, nullable=False, default=False)

    entered_by = db.Column(db.Integer, nullable=True)
    posted_by = db.Column(db.Integer, nullable=True)
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    # Optimistic locking: a stale status change or line replacement fails with StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("journal_entries", lazy=True))
    lines = db.relationship(
        "JournalEntryLine",
        back_populates="entry",
        order_by="JournalEntryLine.line_number",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status_enum(self) -> EntryStatus:
        return EntryStatus(self.status)

    def __repr__(self) -> str:
        return f"<JournalEntry id={self.id} number={self.entry_number} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "entry_date": to_iso_date(self.entry_date),
            "entry_number": self.entry_number,
            "entry_type": self.entry_type,
            "description": self.description,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "status": self.status,
            "total_debit_cents": self.total_debit_cents,
            "total_credit_cents": self.total_credit_cents,
            "is_balanced": self.is_balanced,
            "entered_by": self.entered_by,
            "posted_by": self.posted_by,
            "posted_at": to_utc_z(self.posted_at),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class JournalEntryLine(db.Model):
    """
    One side of a journal entry against a single account.

    Exactly one of debit_cents / credit_cents is positive; the other is zero.
    Lines are owned by their entry and replaced as a whole set while the
    entry is a draft.
    """
    __tablename__ = "journal_entry_lines"
    __table_args__ = (
        db.UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_entry_lines_entry_line"),
        db.CheckConstraint(
            "(debit_cents > 0 AND credit_cents = 0) OR (debit_cents = 0 AND credit_cents > 0)",
            name="one_sided",
        ),
        db.Index("ix_journal_entry_lines_account", "account_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    journal_entry_id = db.Column(
        db.Integer,
        db.ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id = db.Column(db.Integer, db.ForeignKey("chart_of_accounts.id"), nullable=False)

    line_number = db.Column(db.Integer, nullable=False)  # 1-based
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    entry = db.relationship("JournalEntry", back_populates="lines")
    account = db.relationship("Account")

    def to_dict(self) -> dict:
        account = self.account
        return {
            "id": self.id,
            "journal_entry_id": self.journal_entry_id,
            "account_id": self.account_id,
            "account_name": account.account_name if account else None,
            "account_code": account.account_code if account else None,
            "account_type": account.account_type if account else None,
            "line_number": self.line_number,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "description": self.description,
        }
