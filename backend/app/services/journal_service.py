# Overview: Service-layer operations for the general ledger; journal entry lifecycle and derived balances.

"""
General Ledger Service

WHY: Every financial fact in the back office ends up as a balanced journal
entry. Manual entries come from the accounting screen; auto entries come from
the auto-posting adapter; reversals cancel posted entries.

INVARIANTS:
- Every entry has at least two lines; each line is one-sided (debit XOR credit).
- |total_debit - total_credit| <= 1 cent for every stored entry.
- Status moves DRAFT -> POSTED -> REVERSED only. Drafts are the only
  mutable/deletable entries.
- Header and lines are committed together or not at all.
- Entry numbers are unique and increasing per store (allocation order, not
  entry_date order).

"Posted activity" (ledger, balances, trial balance) means entries that were
posted: status POSTED or REVERSED. A reversed entry keeps counting because
its reversal entry is what cancels it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Account, JournalEntry, JournalEntryLine, EntryStatus, EntryType
from ..models.accounts import DEBIT_NORMAL_TYPES
from app.time_utils import utcnow, today, parse_iso_date
from .chart_of_accounts_service import AccountNotFoundError
from .concurrency import lock_for_update, run_with_retry, store_lock
from .document_service import next_journal_entry_number


BALANCE_TOLERANCE_CENTS = 1

POSTED_STATUSES = (EntryStatus.POSTED.value, EntryStatus.REVERSED.value)

UPDATABLE_FIELDS = ("entry_date", "description", "notes")


class JournalEntryError(Exception):
    """Raised for general ledger operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class UnbalancedEntryError(JournalEntryError):
    """Debits and credits differ by more than the tolerance."""


class InvalidLineError(JournalEntryError):
    """A line carries both a debit and a credit, neither, or a negative amount."""


class PostedImmutableError(JournalEntryError):
    """Mutation attempted on an entry that is no longer a draft."""


class AlreadyPostedError(JournalEntryError):
    """Post attempted on an entry that has already been posted."""


class NotPostedError(JournalEntryError):
    """Reversal attempted on an entry that is not posted."""


class EntryNotFoundError(JournalEntryError):
    """Journal entry does not exist."""


class InvalidTransitionError(JournalEntryError):
    """Status change outside DRAFT -> POSTED -> REVERSED."""


@dataclass(frozen=True)
class LineInput:
    account_id: int
    debit_cents: int = 0
    credit_cents: int = 0
    description: str | None = None

    @classmethod
    def from_value(cls, value) -> "LineInput":
        if isinstance(value, LineInput):
            return value
        if not isinstance(value, dict):
            raise InvalidLineError("Each line must be an object")
        return cls(
            account_id=value.get("account_id"),
            debit_cents=value.get("debit_cents") or 0,
            credit_cents=value.get("credit_cents") or 0,
            description=value.get("description"),
        )

    def swapped(self, description: str | None = None) -> "LineInput":
        return LineInput(
            account_id=self.account_id,
            debit_cents=self.credit_cents,
            credit_cents=self.debit_cents,
            description=description if description is not None else self.description,
        )


# =============================================================================
# VALIDATION
# =============================================================================

def _normalize_lines(lines) -> list[LineInput]:
    if not lines or len(lines) < 2:
        raise InvalidLineError("Journal entry must have at least 2 lines (double-entry)")

    normalized = []
    for index, raw in enumerate(lines, start=1):
        line = LineInput.from_value(raw)
        if not isinstance(line.account_id, int) or isinstance(line.account_id, bool):
            raise InvalidLineError(f"Line {index}: account_id is required", details={"line_number": index})
        for field in ("debit_cents", "credit_cents"):
            amount = getattr(line, field)
            if not isinstance(amount, int) or isinstance(amount, bool):
                raise InvalidLineError(f"Line {index}: {field} must be an integer number of cents", details={"line_number": index})
            if amount < 0:
                raise InvalidLineError(f"Line {index}: {field} cannot be negative", details={"line_number": index})

        has_debit = line.debit_cents > 0
        has_credit = line.credit_cents > 0
        if has_debit and has_credit:
            raise InvalidLineError(
                f"Line {index}: each line must have either debit OR credit, not both",
                details={"line_number": index},
            )
        if not has_debit and not has_credit:
            raise InvalidLineError(
                f"Line {index}: each line must have either a debit or a credit amount",
                details={"line_number": index},
            )
        normalized.append(line)
    return normalized


def compute_totals(lines: list[LineInput]) -> tuple[int, int]:
    return sum(line.debit_cents for line in lines), sum(line.credit_cents for line in lines)


def is_balanced(total_debit_cents: int, total_credit_cents: int) -> bool:
    return abs(total_debit_cents - total_credit_cents) <= BALANCE_TOLERANCE_CENTS


def _assert_balanced(lines: list[LineInput]) -> tuple[int, int]:
    total_debit, total_credit = compute_totals(lines)
    if not is_balanced(total_debit, total_credit):
        raise UnbalancedEntryError(
            f"Journal entry is not balanced. Debits: {total_debit}, Credits: {total_credit}",
            details={"total_debit_cents": total_debit, "total_credit_cents": total_credit},
        )
    return total_debit, total_credit


def _assert_accounts(store_id: int, lines: list[LineInput], *, active_only: bool = True) -> None:
    """Every line account belongs to the store (and is active, unless reversing history)."""
    account_ids = {line.account_id for line in lines}
    query = db.session.query(Account.id).filter(
        Account.id.in_(account_ids),
        Account.store_id == store_id,
    )
    if active_only:
        query = query.filter(Account.is_active.is_(True))
    found = {row.id for row in query}
    missing = sorted(account_ids - found)
    if missing:
        raise AccountNotFoundError(
            f"Accounts not found or inactive for store {store_id}: {missing}",
            details={"account_ids": missing},
        )


def _build_lines(lines: list[LineInput]) -> list[JournalEntryLine]:
    return [
        JournalEntryLine(
            account_id=line.account_id,
            line_number=index,
            debit_cents=line.debit_cents,
            credit_cents=line.credit_cents,
            description=line.description,
        )
        for index, line in enumerate(lines, start=1)
    ]


def _transition(entry: JournalEntry, target: EntryStatus) -> None:
    current = entry.status_enum
    if not current.can_transition_to(target):
        raise InvalidTransitionError(
            f"Cannot move journal entry {entry.entry_number} from {current.value} to {target.value}",
            details={"entry_id": entry.id, "status": current.value, "target": target.value},
        )
    entry.status = target.value


def _store_id_of(entry_id: int) -> int:
    store_id = db.session.query(JournalEntry.store_id).filter_by(id=entry_id).scalar()
    if store_id is None:
        raise EntryNotFoundError("Journal entry not found", details={"entry_id": entry_id})
    return store_id


def _get_entry_locked(entry_id: int) -> JournalEntry:
    """
    Load an entry for a status change. Caller holds the journal store lock.

    populate_existing() overwrites any copy already in the session, so the
    status checked is the one committed by the previous lock holder.
    """
    entry = (
        lock_for_update(db.session.query(JournalEntry).filter_by(id=entry_id))
        .populate_existing()
        .first()
    )
    if not entry:
        raise EntryNotFoundError("Journal entry not found", details={"entry_id": entry_id})
    db.session.expire(entry, ["lines"])
    return entry


# =============================================================================
# ENTRY LIFECYCLE
# =============================================================================

def _create_entry_locked(
    store_id: int,
    *,
    entry_date,
    description: str,
    lines,
    entry_type: str = EntryType.MANUAL.value,
    reference_type: str | None = None,
    reference_id=None,
    status: str = EntryStatus.DRAFT.value,
    entered_by: int | None = None,
    notes: str | None = None,
    require_active_accounts: bool = True,
) -> JournalEntry:
    """
    Build and flush an entry inside the caller's transaction.

    Caller holds the journal store lock and commits.
    """
    normalized = _normalize_lines(lines)
    total_debit, total_credit = _assert_balanced(normalized)

    try:
        initial_status = EntryStatus(status)
    except ValueError:
        raise InvalidTransitionError(f"Invalid initial status: {status}", details={"status": status})
    if initial_status == EntryStatus.REVERSED:
        raise InvalidTransitionError("A journal entry cannot be created as reversed", details={"status": status})

    try:
        entry_type = EntryType(entry_type).value
    except ValueError:
        raise JournalEntryError(f"Invalid entry type: {entry_type}", details={"entry_type": entry_type})

    if not description or not str(description).strip():
        raise JournalEntryError("description is required")

    entry_date = parse_iso_date(entry_date)
    if entry_date is None:
        raise JournalEntryError("entry_date is required")

    _assert_accounts(store_id, normalized, active_only=require_active_accounts)

    entry_number = next_journal_entry_number(store_id)

    entry = JournalEntry(
        store_id=store_id,
        entry_date=entry_date,
        entry_number=entry_number,
        entry_type=entry_type,
        description=description,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        status=EntryStatus.DRAFT.value,
        total_debit_cents=total_debit,
        total_credit_cents=total_credit,
        is_balanced=True,
        entered_by=entered_by,
        notes=notes,
    )
    entry.lines = _build_lines(normalized)
    db.session.add(entry)

    if initial_status == EntryStatus.POSTED:
        _post_entry_locked(entry, posted_by=entered_by)

    db.session.flush()
    return entry


def create_entry(store_id: int, **kwargs) -> JournalEntry:
    """
    Create a journal entry with its lines as one atomic unit.

    Keyword args: entry_date, description, lines (list of LineInput or dicts
    with account_id/debit_cents/credit_cents/description), entry_type,
    reference_type, reference_id, status ("draft" or "posted"), entered_by,
    notes.

    Raises:
        InvalidLineError: fewer than 2 lines, or a line with both/neither side
        UnbalancedEntryError: debits and credits differ beyond tolerance
        AccountNotFoundError: a line references an unknown/inactive account
    """
    def _op():
        with store_lock("journal_entries", store_id):
            entry = _create_entry_locked(store_id, **kwargs)
            db.session.commit()
            return entry

    return run_with_retry(_op)


def _post_entry_locked(entry: JournalEntry, posted_by: int | None) -> JournalEntry:
    if entry.status != EntryStatus.DRAFT.value:
        raise AlreadyPostedError(
            f"Journal entry {entry.entry_number} is already posted",
            details={"entry_id": entry.id, "status": entry.status},
        )
    if not entry.is_balanced:
        raise UnbalancedEntryError(
            "Cannot post an unbalanced journal entry",
            details={"entry_id": entry.id},
        )

    _transition(entry, EntryStatus.POSTED)
    entry.posted_by = posted_by
    entry.posted_at = utcnow()
    return entry


def post_entry(entry_id: int, posted_by: int | None = None) -> JournalEntry:
    """
    Post a draft entry (irreversible forward transition).

    Raises:
        EntryNotFoundError, AlreadyPostedError, UnbalancedEntryError
    """
    def _op():
        with store_lock("journal_entries", _store_id_of(entry_id)):
            entry = _get_entry_locked(entry_id)
            _post_entry_locked(entry, posted_by)
            db.session.commit()
            return entry

    return run_with_retry(_op)


def update_entry(entry_id: int, patch: dict) -> JournalEntry:
    """
    Update a draft entry.

    With "lines" in the patch the whole line set is replaced (delete-all,
    re-insert, recompute totals) and re-validated. Scalar fields limited to
    entry_date, description and notes. Status changes are not updates.
    """
    def _op():
        with store_lock("journal_entries", _store_id_of(entry_id)):
            entry = _get_entry_locked(entry_id)
            _update_entry_locked(entry, patch)
            db.session.commit()
            return entry

    return run_with_retry(_op)


def _update_entry_locked(entry: JournalEntry, patch: dict) -> None:
    if entry.status != EntryStatus.DRAFT.value:
        raise PostedImmutableError(
            f"Cannot update a {entry.status} journal entry",
            details={"entry_id": entry.id, "status": entry.status},
        )
    if "status" in patch and patch["status"] != entry.status:
        raise InvalidTransitionError(
            "Status cannot be changed through update; use post or reverse",
            details={"entry_id": entry.id, "status": entry.status, "target": patch["status"]},
        )

    changed = False
    for field in UPDATABLE_FIELDS:
        if field not in patch or patch[field] is None:
            continue
        value = patch[field]
        if field == "entry_date":
            value = parse_iso_date(value)
        elif field == "description" and not str(value).strip():
            raise JournalEntryError("description cannot be empty")
        setattr(entry, field, value)
        changed = True

    if patch.get("lines") is not None:
        normalized = _normalize_lines(patch["lines"])
        total_debit, total_credit = _assert_balanced(normalized)
        _assert_accounts(entry.store_id, normalized)

        entry.lines.clear()
        db.session.flush()  # old line numbers must be gone before re-insert
        entry.lines.extend(_build_lines(normalized))
        entry.total_debit_cents = total_debit
        entry.total_credit_cents = total_credit
        entry.is_balanced = True
        changed = True

    if not changed:
        raise JournalEntryError("No valid fields to update")


def delete_entry(entry_id: int) -> None:
    """Hard-delete a draft entry and its lines."""
    def _op():
        with store_lock("journal_entries", _store_id_of(entry_id)):
            entry = _get_entry_locked(entry_id)
            if entry.status != EntryStatus.DRAFT.value:
                raise PostedImmutableError(
                    f"Cannot delete a {entry.status} journal entry",
                    details={"entry_id": entry.id, "status": entry.status},
                )
            db.session.delete(entry)
            db.session.commit()

    run_with_retry(_op)


def reverse_entry(entry_id: int, reversed_by: int | None = None, reversal_date=None) -> JournalEntry:
    """
    Reverse a posted entry.

    Creates a new, already-posted entry whose lines swap debit and credit,
    then marks the original REVERSED, all in one transaction. The original
    lines are left untouched.

    Returns:
        The reversal entry
    """
    def _op():
        with store_lock("journal_entries", _store_id_of(entry_id)):
            entry = _get_entry_locked(entry_id)
            reversal = _reverse_entry_locked(entry, reversed_by, reversal_date)
            db.session.commit()
            return reversal

    return run_with_retry(_op)


def _reverse_entry_locked(entry: JournalEntry, reversed_by: int | None, reversal_date=None) -> JournalEntry:
    if entry.status != EntryStatus.POSTED.value:
        raise NotPostedError(
            "Can only reverse posted journal entries",
            details={"entry_id": entry.id, "status": entry.status},
        )

    reversal_lines = [
        LineInput(
            account_id=line.account_id,
            debit_cents=line.debit_cents,
            credit_cents=line.credit_cents,
        ).swapped(description=f"Reversal of {entry.entry_number}")
        for line in entry.lines
    ]

    reversal = _create_entry_locked(
        entry.store_id,
        entry_date=reversal_date or today(),
        entry_type=EntryType.REVERSAL.value,
        description=f"Reversal of entry {entry.entry_number}",
        reference_type="journal_entry",
        reference_id=entry.id,
        status=EntryStatus.POSTED.value,
        lines=reversal_lines,
        entered_by=reversed_by,
        notes=f"Reversal of journal entry {entry.entry_number}",
        require_active_accounts=False,
    )
    _transition(entry, EntryStatus.REVERSED)
    return reversal


# =============================================================================
# QUERIES
# =============================================================================

def get_entry(entry_id: int) -> JournalEntry:
    entry = db.session.get(JournalEntry, entry_id)
    if not entry:
        raise EntryNotFoundError("Journal entry not found", details={"entry_id": entry_id})
    return entry


def list_entries(
    store_id: int,
    *,
    start_date=None,
    end_date=None,
    status: str | None = None,
    entry_type: str | None = None,
) -> list[JournalEntry]:
    """Entries for a store, newest first (entry_date DESC, created_at DESC)."""
    query = db.session.query(JournalEntry).filter(JournalEntry.store_id == store_id)

    start_date = parse_iso_date(start_date)
    end_date = parse_iso_date(end_date)
    if start_date:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date:
        query = query.filter(JournalEntry.entry_date <= end_date)
    if status:
        query = query.filter(JournalEntry.status == status)
    if entry_type:
        query = query.filter(JournalEntry.entry_type == entry_type)

    return query.order_by(
        JournalEntry.entry_date.desc(),
        JournalEntry.created_at.desc(),
        JournalEntry.id.desc(),
    ).all()


def find_entry_by_reference(store_id: int, reference_type: str, reference_id) -> JournalEntry | None:
    """Latest non-reversed entry created for a business object, if any."""
    return (
        db.session.query(JournalEntry)
        .filter(
            JournalEntry.store_id == store_id,
            JournalEntry.reference_type == reference_type,
            JournalEntry.reference_id == str(reference_id),
            JournalEntry.status != EntryStatus.REVERSED.value,
        )
        .order_by(JournalEntry.id.desc())
        .populate_existing()
        .first()
    )


def _posted_lines_query(store_id: int):
    return (
        db.session.query(JournalEntryLine)
        .join(JournalEntry, JournalEntry.id == JournalEntryLine.journal_entry_id)
        .filter(
            JournalEntry.store_id == store_id,
            JournalEntry.status.in_(POSTED_STATUSES),
        )
    )


def get_account_ledger(store_id: int, account_id: int, *, start_date=None, end_date=None) -> list[dict]:
    """
    Posted activity for one account in chronological order
    (entry_date ASC, then creation order).

    Includes entries in status REVERSED as well as POSTED, so a reversed
    original and its reversal both appear and net to zero.
    """
    query = (
        db.session.query(JournalEntryLine, JournalEntry, Account)
        .join(JournalEntry, JournalEntry.id == JournalEntryLine.journal_entry_id)
        .join(Account, Account.id == JournalEntryLine.account_id)
        .filter(
            JournalEntryLine.account_id == account_id,
            JournalEntry.store_id == store_id,
            JournalEntry.status.in_(POSTED_STATUSES),
        )
    )

    start_date = parse_iso_date(start_date)
    end_date = parse_iso_date(end_date)
    if start_date:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date:
        query = query.filter(JournalEntry.entry_date <= end_date)

    rows = query.order_by(
        JournalEntry.entry_date.asc(),
        JournalEntry.created_at.asc(),
        JournalEntry.id.asc(),
        JournalEntryLine.line_number.asc(),
    ).all()

    return [
        {
            "id": line.id,
            "debit_cents": line.debit_cents,
            "credit_cents": line.credit_cents,
            "line_description": line.description,
            "journal_entry_id": entry.id,
            "entry_date": entry.entry_date.isoformat(),
            "entry_number": entry.entry_number,
            "entry_type": entry.entry_type,
            "entry_description": entry.description,
            "reference_type": entry.reference_type,
            "reference_id": entry.reference_id,
            "status": entry.status,
            "account_name": account.account_name,
            "account_code": account.account_code,
            "account_type": account.account_type,
        }
        for line, entry, account in rows
    ]


def get_account_balance(store_id: int, account_id: int, as_of_date=None) -> dict:
    """
    Raw balance (debits - credits) of posted activity up to as_of_date.

    The sign is not normalized by account type; callers do that.
    """
    query = _posted_lines_query(store_id).filter(JournalEntryLine.account_id == account_id)
    as_of_date = parse_iso_date(as_of_date)
    if as_of_date:
        query = query.filter(JournalEntry.entry_date <= as_of_date)

    total_debit, total_credit = query.with_entities(
        func.coalesce(func.sum(JournalEntryLine.debit_cents), 0),
        func.coalesce(func.sum(JournalEntryLine.credit_cents), 0),
    ).one()

    return {
        "account_id": account_id,
        "total_debit_cents": int(total_debit),
        "total_credit_cents": int(total_credit),
        "balance_cents": int(total_debit) - int(total_credit),
    }


def normal_balance(account_type: str, total_debit_cents: int, total_credit_cents: int) -> int:
    if account_type in DEBIT_NORMAL_TYPES:
        return total_debit_cents - total_credit_cents
    return total_credit_cents - total_debit_cents


def get_trial_balance(store_id: int, as_of_date: date | str | None = None) -> list[dict]:
    """
    Per-account posted totals for active accounts, balance normalized to the
    account type's natural side. Accounts with no posted debits and no
    posted credits are left out.
    """
    debit_sum = func.coalesce(func.sum(JournalEntryLine.debit_cents), 0)
    credit_sum = func.coalesce(func.sum(JournalEntryLine.credit_cents), 0)

    query = (
        db.session.query(
            Account.id,
            Account.account_code,
            Account.account_name,
            Account.account_type,
            debit_sum.label("total_debit"),
            credit_sum.label("total_credit"),
        )
        .join(JournalEntryLine, JournalEntryLine.account_id == Account.id)
        .join(JournalEntry, JournalEntry.id == JournalEntryLine.journal_entry_id)
        .filter(
            Account.store_id == store_id,
            Account.is_active.is_(True),
            JournalEntry.store_id == store_id,
            JournalEntry.status.in_(POSTED_STATUSES),
        )
    )

    as_of_date = parse_iso_date(as_of_date)
    if as_of_date:
        query = query.filter(JournalEntry.entry_date <= as_of_date)

    rows = (
        query.group_by(Account.id, Account.account_code, Account.account_name, Account.account_type)
        .having(or_(debit_sum != 0, credit_sum != 0))
        .order_by(Account.account_type, func.coalesce(Account.account_code, ""), Account.account_name)
        .all()
    )

    return [
        {
            "account_id": row.id,
            "account_code": row.account_code,
            "account_name": row.account_name,
            "account_type": row.account_type,
            "total_debit_cents": int(row.total_debit),
            "total_credit_cents": int(row.total_credit),
            "balance_cents": normal_balance(row.account_type, int(row.total_debit), int(row.total_credit)),
        }
        for row in rows
    ]


def summarize_trial_balance(rows: list[dict]) -> dict:
    """Grand totals; total debits equal total credits when the books balance."""
    total_debit = sum(row["total_debit_cents"] for row in rows)
    total_credit = sum(row["total_credit_cents"] for row in rows)
    return {
        "total_debit_cents": total_debit,
        "total_credit_cents": total_credit,
        "is_balanced": is_balanced(total_debit, total_credit),
    }
