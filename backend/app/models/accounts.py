from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


ACCOUNT_TYPE_ASSET = "asset"
ACCOUNT_TYPE_LIABILITY = "liability"
ACCOUNT_TYPE_EQUITY = "equity"
ACCOUNT_TYPE_REVENUE = "revenue"
ACCOUNT_TYPE_EXPENSE = "expense"

ACCOUNT_TYPES = (
    ACCOUNT_TYPE_ASSET,
    ACCOUNT_TYPE_LIABILITY,
    ACCOUNT_TYPE_EQUITY,
    ACCOUNT_TYPE_REVENUE,
    ACCOUNT_TYPE_EXPENSE,
)

# Types whose balance grows on the debit side; the rest grow on credit.
DEBIT_NORMAL_TYPES = frozenset({ACCOUNT_TYPE_ASSET, ACCOUNT_TYPE_EXPENSE})


class Account(db.Model):
    """
    Chart of accounts row.

    WHY: Journal lines post against accounts; the account type fixes which
    side (debit or credit) is the natural, increasing side.

    DESIGN: Account names are unique per store so concurrent auto-provisioning
    of the same default account collapses into one row. Accounts are never
    hard-deleted; deactivation hides them from lookups and the trial balance.
    """
    __tablename__ = "chart_of_accounts"
    __table_args__ = (
        db.UniqueConstraint("store_id", "account_name", name="uq_chart_of_accounts_store_name"),
        db.Index("ix_chart_of_accounts_store_type_active", "store_id", "account_type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    account_code = db.Column(db.String(32), nullable=True)
    account_name = db.Column(db.String(128), nullable=False)
    account_type = db.Column(db.String(16), nullable=False, index=True)  # asset, liability, equity, revenue, expense

    parent_account_id = db.Column(db.Integer, db.ForeignKey("chart_of_accounts.id"), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("accounts", lazy=True))
    parent = db.relationship("Account", remote_side=[id])

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in DEBIT_NORMAL_TYPES

    def __repr__(self) -> str:
        return f"<Account id={self.id} name={self.account_name!r} type={self.account_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "parent_account_id": self.parent_account_id,
            "parent_account_name": self.parent.account_name if self.parent else None,
            "description": self.description,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
