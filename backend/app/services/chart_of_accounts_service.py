# Overview: Service-layer operations for the chart of accounts; lookups and find-or-create provisioning.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Account, Store
from .concurrency import store_lock
from ..models.accounts import (
    ACCOUNT_TYPES,
    ACCOUNT_TYPE_ASSET,
    ACCOUNT_TYPE_LIABILITY,
    ACCOUNT_TYPE_EQUITY,
    ACCOUNT_TYPE_REVENUE,
    ACCOUNT_TYPE_EXPENSE,
)


class AccountError(Exception):
    """Raised for chart of accounts errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class AccountNotFoundError(AccountError):
    """Raised when an account does not exist, is inactive, or belongs to another store."""
    pass


# Standard retail chart; names are what the auto-posting adapter looks for.
DEFAULT_ACCOUNTS = [
    ("1000", "Cash", ACCOUNT_TYPE_ASSET),
    ("1010", "Bank Account", ACCOUNT_TYPE_ASSET),
    ("1100", "Accounts Receivable", ACCOUNT_TYPE_ASSET),
    ("1110", "Reimbursements Receivable", ACCOUNT_TYPE_ASSET),
    ("1120", "Credit Card Receivable", ACCOUNT_TYPE_ASSET),
    ("1130", "Online Sales Receivable", ACCOUNT_TYPE_ASSET),
    ("1140", "Customer Tabs Receivable", ACCOUNT_TYPE_ASSET),
    ("2000", "Accounts Payable", ACCOUNT_TYPE_LIABILITY),
    ("2100", "Credit Card", ACCOUNT_TYPE_LIABILITY),
    ("2200", "Lottery Payable", ACCOUNT_TYPE_LIABILITY),
    ("3000", "Owner's Equity", ACCOUNT_TYPE_EQUITY),
    ("4000", "Sales Revenue", ACCOUNT_TYPE_REVENUE),
    ("5000", "Purchases", ACCOUNT_TYPE_EXPENSE),
    ("5100", "Transaction Fees", ACCOUNT_TYPE_EXPENSE),
    ("5200", "Other Cash Expenses", ACCOUNT_TYPE_EXPENSE),
]


def _validate_type(account_type: str) -> str:
    if account_type not in ACCOUNT_TYPES:
        raise AccountError(
            f"Invalid account type: {account_type}. Must be one of {list(ACCOUNT_TYPES)}",
            details={"account_type": account_type},
        )
    return account_type


def _active_accounts(store_id: int):
    return db.session.query(Account).filter(
        Account.store_id == store_id,
        Account.is_active.is_(True),
    )


def find_account_by_name(store_id: int, account_name: str, account_type: str | None = None) -> int | None:
    """Exact-name lookup among active accounts; returns the account id or None."""
    if not account_name:
        return None
    query = _active_accounts(store_id).filter(Account.account_name == account_name)
    if account_type:
        query = query.filter(Account.account_type == account_type)
    account = query.first()
    return account.id if account else None


def find_account_by_name_like(store_id: int, fragment: str, account_type: str) -> int | None:
    """Case-insensitive substring lookup among active accounts of a type."""
    account = (
        _active_accounts(store_id)
        .filter(
            Account.account_type == account_type,
            func.lower(Account.account_name).contains(fragment.lower()),
        )
        .order_by(Account.account_name, Account.id)
        .first()
    )
    return account.id if account else None


def find_account_by_type(store_id: int, account_type: str) -> int | None:
    """First active account of a type, ordered by name."""
    account = (
        _active_accounts(store_id)
        .filter(Account.account_type == account_type)
        .order_by(Account.account_name, Account.id)
        .first()
    )
    return account.id if account else None


def get_account(account_id: int, store_id: int | None = None, *, active_only: bool = False) -> Account:
    account = db.session.get(Account, account_id)
    if account is None or (store_id is not None and account.store_id != store_id):
        raise AccountNotFoundError(f"Account {account_id} not found", details={"account_id": account_id})
    if active_only and not account.is_active:
        raise AccountNotFoundError(f"Account {account_id} is inactive", details={"account_id": account_id})
    return account


def list_accounts(store_id: int, include_inactive: bool = False) -> list[Account]:
    query = db.session.query(Account).filter(Account.store_id == store_id)
    if not include_inactive:
        query = query.filter(Account.is_active.is_(True))
    return query.order_by(
        Account.account_type,
        func.coalesce(Account.account_code, ""),
        Account.account_name,
    ).all()


def create_account(
    store_id: int,
    account_name: str,
    account_type: str,
    *,
    account_code: str | None = None,
    parent_account_id: int | None = None,
    description: str | None = None,
    created_by: int | None = None,
    commit: bool = True,
) -> Account:
    """
    Create an account, or return the existing one with the same name.

    Names are unique per store, so two writers racing to provision the same
    default account end up with one row: in-process writers are serialized
    by the store lock, and a cross-process loser hits the unique constraint,
    rolls back and returns the winner's row. Call it before any other
    pending writes in the session.

    A name collision with a different account type is an error rather than a
    silent reuse.
    """
    _validate_type(account_type)
    if not account_name or not account_name.strip():
        raise AccountError("account_name is required")
    account_name = account_name.strip()

    if db.session.get(Store, store_id) is None:
        raise AccountNotFoundError(f"Store {store_id} not found", details={"store_id": store_id})

    with store_lock("chart_of_accounts", store_id):
        existing = db.session.query(Account).filter_by(store_id=store_id, account_name=account_name).first()
        if existing is None:
            account = Account(
                store_id=store_id,
                account_name=account_name,
                account_type=account_type,
                account_code=account_code,
                parent_account_id=parent_account_id,
                description=description,
                created_by=created_by,
                is_active=True,
            )
            db.session.add(account)
            try:
                db.session.flush()
                existing = account
            except IntegrityError:
                # Lost the race to a writer in another process; its row wins.
                db.session.rollback()
                existing = db.session.query(Account).filter_by(store_id=store_id, account_name=account_name).one()

        if existing.account_type != account_type:
            raise AccountError(
                f"Account {account_name!r} already exists with type {existing.account_type}",
                details={"account_id": existing.id, "account_type": existing.account_type},
            )
        if not existing.is_active:
            existing.is_active = True

        if commit:
            db.session.commit()
        return existing


def deactivate_account(account_id: int, store_id: int | None = None) -> Account:
    account = get_account(account_id, store_id)
    account.is_active = False
    db.session.commit()
    return account


def seed_default_accounts(store_id: int, created_by: int | None = None) -> list[Account]:
    """Provision the standard retail chart for a store (idempotent)."""
    return [
        create_account(
            store_id,
            name,
            account_type,
            account_code=code,
            description="Default account",
            created_by=created_by,
        )
        for code, name, account_type in DEFAULT_ACCOUNTS
    ]
