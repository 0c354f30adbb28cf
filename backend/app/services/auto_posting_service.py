# Overview: Service-layer operations for auto-posting; turns business events into posted journal entries.

"""
Auto-Posting Service

WHY: Expenses, purchase invoices, invoice payments, reimbursements and daily
revenue all have accounting consequences. This adapter maps each event to a
balanced set of lines and posts it immediately (no draft stage).

FAILURE POLICY: Posting is a best-effort side effect of the business write.
Every public post_* function returns the posted JournalEntry or None and
never raises; advisory skips are logged at WARNING and counted in
ledger_autopost_skipped_total.

IDEMPOTENCY: Events may be delivered more than once. An event that already
has a live entry with identical lines returns that entry; one whose amounts
or accounts changed gets the old entry reversed and a new one posted.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import JournalEntry, EntryStatus, EntryType
from ..models.accounts import (
    ACCOUNT_TYPE_ASSET,
    ACCOUNT_TYPE_LIABILITY,
    ACCOUNT_TYPE_REVENUE,
    ACCOUNT_TYPE_EXPENSE,
)
from ..metrics import AUTOPOST_ENTRIES, AUTOPOST_SKIPPED
from .account_resolver import AccountResolver, Resolution, Unresolved
from .concurrency import run_with_retry, store_lock
from .journal_service import (
    LineInput,
    compute_totals,
    is_balanced,
    find_entry_by_reference,
    _create_entry_locked,
    _post_entry_locked,
    _reverse_entry_locked,
)
from .posting_events import (
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_BANK,
    PAYMENT_METHOD_CHECK,
    PAYMENT_METHOD_CARD,
    ExpenseRecord,
    PurchaseInvoiceRecord,
    InvoicePaymentRecord,
    ReimbursementRecord,
    DailyRevenueRecord,
)


EVENT_EXPENSE = "expense"
EVENT_PURCHASE_INVOICE = "purchase_invoice"
EVENT_PAYMENT = "payment"
EVENT_REIMBURSEMENT = "reimbursement"
EVENT_REVENUE = "revenue"

SKIP_UNRESOLVED = "unresolved_account"
SKIP_UNBALANCED = "unbalanced"
SKIP_NO_LINES = "no_lines"
SKIP_DUPLICATE = "duplicate"
SKIP_ERROR = "error"


class PostingSkipped(Exception):
    """Advisory: the event cannot be posted; the business write still stands."""
    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class PostingPlan:
    store_id: int
    entry_date: object
    description: str
    reference_type: str
    reference_id: str
    lines: list[LineInput]
    entered_by: int | None = None
    notes: str | None = None


# =============================================================================
# ACCOUNT RESOLUTION
# =============================================================================

def _require(resolution: Resolution, leg: str) -> int:
    if isinstance(resolution, Unresolved):
        raise PostingSkipped(SKIP_UNRESOLVED, f"{leg}: {resolution.reason}")
    return resolution.account_id


def _payment_account(
    resolver: AccountResolver,
    payment_method: str | None,
    *,
    bank_name: str | None = None,
    unknown_method_uses_any_asset: bool = False,
) -> Resolution:
    """Account that money leaves from (or arrives into) for a payment method."""
    if payment_method == PAYMENT_METHOD_CASH:
        return resolver.resolve(ACCOUNT_TYPE_ASSET, ["Cash", "Cash on Hand"])
    if payment_method == PAYMENT_METHOD_BANK:
        return resolver.resolve(ACCOUNT_TYPE_ASSET, [bank_name, "Bank Account"])
    if payment_method == PAYMENT_METHOD_CHECK:
        return resolver.resolve(ACCOUNT_TYPE_ASSET, [bank_name, "Bank Account"])
    if payment_method == PAYMENT_METHOD_CARD:
        return resolver.resolve(ACCOUNT_TYPE_LIABILITY, ["Credit Card"])
    if unknown_method_uses_any_asset:
        return resolver.resolve(ACCOUNT_TYPE_ASSET)
    return Unresolved(ACCOUNT_TYPE_ASSET, f"Unrecognized payment method {payment_method!r}")


def _expense_account(resolver: AccountResolver, *names: str | None) -> Resolution:
    return resolver.resolve(ACCOUNT_TYPE_EXPENSE, list(names))


def _method_label(payment_method: str | None, check_number: str | None = None) -> str:
    label = f"Paid via {payment_method}"
    if check_number:
        label += f" - Check #{check_number}"
    return label


# =============================================================================
# POSTING CORE
# =============================================================================

def _line_signature(lines) -> list[tuple[int, int, int]]:
    return sorted((line.account_id, line.debit_cents, line.credit_cents) for line in lines)


def _post_plan(plan: PostingPlan, event_type: str) -> JournalEntry:
    """
    Create and post the planned entry in one transaction.

    A live entry for the same reference with the same lines is returned as
    is; with different lines it is reversed first.
    """
    def _op():
        with store_lock("journal_entries", plan.store_id):
            existing = find_entry_by_reference(plan.store_id, plan.reference_type, plan.reference_id)
            if existing is not None and existing.entry_type == EntryType.AUTO.value:
                if existing.status == EntryStatus.POSTED.value and _line_signature(existing.lines) == _line_signature(plan.lines):
                    AUTOPOST_SKIPPED.labels(event_type=event_type, reason=SKIP_DUPLICATE).inc()
                    current_app.logger.info(
                        "Auto-post %s %s already posted as %s",
                        plan.reference_type, plan.reference_id, existing.entry_number,
                    )
                    return existing
                if existing.status == EntryStatus.POSTED.value:
                    _reverse_entry_locked(existing, plan.entered_by, plan.entry_date)

            entry = _create_entry_locked(
                plan.store_id,
                entry_date=plan.entry_date,
                entry_type=EntryType.AUTO.value,
                description=plan.description,
                reference_type=plan.reference_type,
                reference_id=plan.reference_id,
                status=EntryStatus.DRAFT.value,
                lines=plan.lines,
                entered_by=plan.entered_by,
                notes=plan.notes,
            )
            _post_entry_locked(entry, posted_by=plan.entered_by)
            db.session.commit()

            AUTOPOST_ENTRIES.labels(event_type=event_type).inc()
            return entry

    return run_with_retry(_op)


def _best_effort(event_type: str, reference, build_plan) -> JournalEntry | None:
    """Run plan building and posting; never let a failure escape."""
    try:
        plan = build_plan()
        return _post_plan(plan, event_type)
    except PostingSkipped as exc:
        db.session.rollback()
        AUTOPOST_SKIPPED.labels(event_type=event_type, reason=exc.reason).inc()
        current_app.logger.warning("%s %s not posted to GL: %s", event_type, reference, exc)
        return None
    except Exception:
        db.session.rollback()
        AUTOPOST_SKIPPED.labels(event_type=event_type, reason=SKIP_ERROR).inc()
        current_app.logger.exception("Error auto-posting %s %s to GL", event_type, reference)
        return None


def _coerce(record, record_cls):
    return record if isinstance(record, record_cls) else record_cls.from_dict(record)


# =============================================================================
# EVENT MAPPINGS
# =============================================================================

def post_expense(expense: ExpenseRecord | dict) -> JournalEntry | None:
    """Debit the expense-category account, credit the account the payment came from."""
    def _plan() -> PostingPlan:
        record = _coerce(expense, ExpenseRecord)
        resolver = AccountResolver(record.store_id, created_by=record.entered_by)

        expense_account_id = _require(_expense_account(resolver, record.expense_type_name), "expense account")
        payment_account_id = _require(
            _payment_account(resolver, record.payment_method, bank_name=record.bank_name),
            f"payment account for {record.payment_method!r}",
        )
        if record.payment_method == PAYMENT_METHOD_BANK and record.bank_name:
            payment_label = record.bank_name
        else:
            payment_label = record.payment_method.title()

        return PostingPlan(
            store_id=record.store_id,
            entry_date=record.entry_date,
            description=f"{record.expense_type_name} Expense - {payment_label}",
            reference_type=EVENT_EXPENSE,
            reference_id=str(record.id),
            lines=[
                LineInput(expense_account_id, debit_cents=record.amount_cents,
                          description=f"{record.expense_type_name} Expense"),
                LineInput(payment_account_id, credit_cents=record.amount_cents,
                          description=_method_label(record.payment_method)),
            ],
            entered_by=record.entered_by,
            notes="Auto-posted from expense entry",
        )

    return _best_effort(EVENT_EXPENSE, _reference_of(expense, "id"), _plan)


def post_purchase_invoice(invoice: PurchaseInvoiceRecord | dict) -> JournalEntry | None:
    """
    Paid on purchase: debit expense, credit cash/bank (or the reimbursement
    receivable when a third party will repay the purchase).
    Unpaid: debit expense, credit Accounts Payable.
    """
    def _plan() -> PostingPlan:
        record = _coerce(invoice, PurchaseInvoiceRecord)
        resolver = AccountResolver(record.store_id, created_by=record.entered_by)
        expense_account_id = _require(
            _expense_account(resolver, record.expense_account_name, "Purchases"),
            "purchase expense account",
        )

        if record.paid_on_purchase:
            if record.is_reimbursable:
                credit_resolution = resolver.resolve(
                    ACCOUNT_TYPE_ASSET, ["Reimbursements Receivable", "Accounts Receivable"]
                )
                credit_label = f"To be reimbursed: {record.reimbursement_to}"
            else:
                credit_resolution = _payment_account(
                    resolver,
                    record.payment_method_on_purchase,
                    bank_name=record.bank_name_on_purchase,
                    unknown_method_uses_any_asset=True,
                )
                credit_label = _method_label(record.payment_method_on_purchase)
            credit_account_id = _require(credit_resolution, "purchase payment account")
            description = "Purchase Invoice - Paid on Purchase"
            notes = f"Reimbursable to: {record.reimbursement_to}" if record.is_reimbursable else None
        else:
            credit_account_id = _require(
                resolver.resolve(ACCOUNT_TYPE_LIABILITY, ["Accounts Payable"], create_default="Accounts Payable"),
                "accounts payable",
            )
            credit_label = "Accounts Payable"
            description = f"Purchase Invoice - {record.invoice_number or 'Pending Payment'}"
            notes = None

        return PostingPlan(
            store_id=record.store_id,
            entry_date=record.purchase_date,
            description=description,
            reference_type=EVENT_PURCHASE_INVOICE,
            reference_id=str(record.id),
            lines=[
                LineInput(expense_account_id, debit_cents=record.amount_cents, description="Purchase Invoice"),
                LineInput(credit_account_id, credit_cents=record.amount_cents, description=credit_label),
            ],
            entered_by=record.entered_by,
            notes=notes,
        )

    return _best_effort(EVENT_PURCHASE_INVOICE, _reference_of(invoice, "id"), _plan)


def post_invoice_payment(payment: InvoicePaymentRecord | dict) -> JournalEntry | None:
    """Debit Accounts Payable, credit the cash/bank account the payment left from."""
    def _plan() -> PostingPlan:
        record = _coerce(payment, InvoicePaymentRecord)
        resolver = AccountResolver(record.store_id, created_by=record.entered_by)

        ap_account_id = _require(resolver.resolve(ACCOUNT_TYPE_LIABILITY, ["Accounts Payable"]), "accounts payable")
        payment_account_id = _require(
            _payment_account(
                resolver,
                record.payment_method,
                bank_name=record.bank_name,
                unknown_method_uses_any_asset=True,
            ),
            f"payment account for {record.payment_method!r}",
        )
        invoice_label = f"Payment for Invoice {record.invoice_number or record.invoice_id}"

        return PostingPlan(
            store_id=record.store_id,
            entry_date=record.payment_date,
            description=invoice_label,
            reference_type=EVENT_PAYMENT,
            reference_id=record.reference_id,
            lines=[
                LineInput(ap_account_id, debit_cents=record.amount_cents, description=invoice_label),
                LineInput(payment_account_id, credit_cents=record.amount_cents,
                          description=_method_label(record.payment_method, record.check_number)),
            ],
            entered_by=record.entered_by,
            notes=f"Check #{record.check_number}" if record.check_number else None,
        )

    return _best_effort(EVENT_PAYMENT, _reference_of(payment, "invoice_id"), _plan)


def post_reimbursement(reimbursement: ReimbursementRecord | dict) -> JournalEntry | None:
    """Debit the cash/bank account the money arrived in, credit the receivable."""
    def _plan() -> PostingPlan:
        record = _coerce(reimbursement, ReimbursementRecord)
        resolver = AccountResolver(record.store_id, created_by=record.entered_by)

        receivable_id = _require(
            resolver.resolve(ACCOUNT_TYPE_ASSET, ["Accounts Receivable", "Reimbursements Receivable"]),
            "reimbursement receivable",
        )
        deposit_id = _require(
            _payment_account(resolver, record.payment_method, bank_name=record.bank_name),
            f"deposit account for {record.payment_method!r}",
        )
        check_suffix = f" - Check #{record.check_number}" if record.check_number else ""

        return PostingPlan(
            store_id=record.store_id,
            entry_date=record.reimbursement_date,
            description=f"Reimbursement for {record.reimbursement_to}",
            reference_type=EVENT_REIMBURSEMENT,
            reference_id=str(record.invoice_id),
            lines=[
                LineInput(deposit_id, debit_cents=record.amount_cents,
                          description=f"Reimbursement received from {record.reimbursement_to}"),
                LineInput(receivable_id, credit_cents=record.amount_cents,
                          description=f"Reimbursement for {record.reimbursement_to}{check_suffix}"),
            ],
            entered_by=record.entered_by,
            notes=f"Check #{record.check_number}" if record.check_number else None,
        )

    return _best_effort(EVENT_REIMBURSEMENT, _reference_of(reimbursement, "invoice_id"), _plan)


def build_revenue_lines(record: DailyRevenueRecord, resolver: AccountResolver) -> list[LineInput]:
    """
    Multi-leg daily revenue entry.

    Debits for cash, business card, net online and net customer tab sales
    (each only when positive) against one Sales Revenue credit; card fees and
    other cash expenses as expense debits with offsetting credits; lottery
    cash owed against Lottery Payable, the sign choosing the side.
    """
    def account(account_type: str, name: str) -> int:
        return _require(
            resolver.resolve(account_type, [name], fuzzy=True, create_default=name),
            name,
        )

    day = record.entry_date.isoformat()
    lines: list[LineInput] = []

    sales_legs = [
        (record.business_cash_cents, "Cash", f"Daily cash revenue - {day}"),
        (record.business_credit_card_cents, "Credit Card Receivable", f"Business credit card sales - {day}"),
        (record.online_net_cents, "Online Sales Receivable", f"Online sales (net) - {day}"),
        (record.customer_tab_cents, "Customer Tabs Receivable", f"Customer tabs (net) - {day}"),
    ]
    total_revenue = 0
    for amount, name, description in sales_legs:
        if amount > 0:
            lines.append(LineInput(account(ACCOUNT_TYPE_ASSET, name), debit_cents=amount, description=description))
            total_revenue += amount

    if total_revenue > 0:
        lines.append(LineInput(
            account(ACCOUNT_TYPE_REVENUE, "Sales Revenue"),
            credit_cents=total_revenue,
            description=f"Total revenue - {day}",
        ))

    if record.credit_card_fees_cents > 0:
        lines.append(LineInput(
            account(ACCOUNT_TYPE_EXPENSE, "Transaction Fees"),
            debit_cents=record.credit_card_fees_cents,
            description=f"Credit card transaction fees - {day}",
        ))
        lines.append(LineInput(
            account(ACCOUNT_TYPE_ASSET, "Credit Card Receivable"),
            credit_cents=record.credit_card_fees_cents,
            description=f"Transaction fees paid - {day}",
        ))

    if record.other_cash_expense_cents > 0:
        lines.append(LineInput(
            account(ACCOUNT_TYPE_EXPENSE, "Other Cash Expenses"),
            debit_cents=record.other_cash_expense_cents,
            description=f"Other cash expenses - {day}",
        ))
        lines.append(LineInput(
            account(ACCOUNT_TYPE_ASSET, "Cash"),
            credit_cents=record.other_cash_expense_cents,
            description=f"Cash expense paid - {day}",
        ))

    lottery = record.lottery_owed_cents
    if lottery > 0:
        lines.append(LineInput(
            account(ACCOUNT_TYPE_LIABILITY, "Lottery Payable"),
            credit_cents=lottery,
            description=f"Lottery cash owed - {day}",
        ))
    elif lottery < 0:
        lines.append(LineInput(
            account(ACCOUNT_TYPE_LIABILITY, "Lottery Payable"),
            debit_cents=-lottery,
            description=f"Lottery payment received - {day}",
        ))

    return lines


def post_revenue(revenue: DailyRevenueRecord | dict) -> JournalEntry | None:
    """
    Post the day's revenue. A composite that does not balance is skipped
    (and counted), never raised: the revenue save must not be blocked.
    """
    def _plan() -> PostingPlan:
        record = _coerce(revenue, DailyRevenueRecord)
        resolver = AccountResolver(record.store_id, created_by=record.entered_by)
        lines = build_revenue_lines(record, resolver)

        if len(lines) < 2:
            raise PostingSkipped(SKIP_NO_LINES, "Nothing to post for daily revenue")

        total_debit, total_credit = compute_totals(lines)
        if not is_balanced(total_debit, total_credit):
            raise PostingSkipped(
                SKIP_UNBALANCED,
                f"Daily revenue lines do not balance (debits {total_debit}, credits {total_credit})",
            )

        day = record.entry_date.isoformat()
        return PostingPlan(
            store_id=record.store_id,
            entry_date=record.entry_date,
            description=f"Daily revenue entry - {day}",
            reference_type=EVENT_REVENUE,
            reference_id=str(record.id),
            lines=lines,
            entered_by=record.entered_by,
            notes="Auto-posted from daily revenue entry",
        )

    return _best_effort(EVENT_REVENUE, _reference_of(revenue, "id"), _plan)


def _reference_of(record, attr: str):
    if isinstance(record, dict):
        return record.get(attr)
    return getattr(record, attr, None)
