# Overview: Pytest coverage for auto-posting business events to the general ledger.

"""
Auto-Posting Tests

Derived postings are best-effort: every post_* returns the posted entry or
None and never raises. Skips are counted in ledger_autopost_skipped_total.
"""

from datetime import date

from prometheus_client import REGISTRY

from app.models import Account, JournalEntry
from app.services import auto_posting_service, chart_of_accounts_service, journal_service
from app.services.posting_events import (
    ExpenseRecord,
    PurchaseInvoiceRecord,
    InvoicePaymentRecord,
    ReimbursementRecord,
    DailyRevenueRecord,
)


def _skipped(event_type: str, reason: str) -> float:
    return REGISTRY.get_sample_value(
        "ledger_autopost_skipped_total", {"event_type": event_type, "reason": reason}
    ) or 0.0


def _sides(entry, accounts_by_id):
    return sorted(
        (accounts_by_id[l.account_id], l.debit_cents, l.credit_cents) for l in entry.lines
    )


def _names(db_session, store):
    return {a.id: a.account_name for a in db_session.query(Account).filter_by(store_id=store.id)}


class TestExpense:

    def test_cash_expense_posts_immediately(self, db_session, store, accounts):
        entry = auto_posting_service.post_expense(ExpenseRecord(
            id=11,
            store_id=store.id,
            entry_date=date(2026, 3, 1),
            amount_cents=4500,
            payment_method="cash",
            expense_type_name="Purchases",
            entered_by=3,
        ))

        assert entry is not None
        assert entry.status == "posted"
        assert entry.entry_type == "auto"
        assert entry.reference_type == "expense"
        assert entry.reference_id == "11"
        assert entry.posted_by == 3
        assert _sides(entry, _names(db_session, store)) == [
            ("Cash", 0, 4500),
            ("Purchases", 4500, 0),
        ]

    def test_card_expense_credits_credit_card_liability(self, db_session, store, accounts):
        entry = auto_posting_service.post_expense({
            "id": 12,
            "store_id": store.id,
            "entry_date": "2026-03-02",
            "amount_cents": 1999,
            "payment_method": "card",
            "expense_type_name": "Transaction Fees",
            "vendor_name": "ignored extra field",
        })

        assert entry is not None
        assert _sides(entry, _names(db_session, store)) == [
            ("Credit Card", 0, 1999),
            ("Transaction Fees", 1999, 0),
        ]

    def test_bank_expense_prefers_named_bank_then_bank_account(self, db_session, store, accounts):
        named = chart_of_accounts_service.create_account(store.id, "First National", "asset")

        to_named = auto_posting_service.post_expense(ExpenseRecord(
            id=13, store_id=store.id, entry_date=date(2026, 3, 3), amount_cents=100,
            payment_method="bank", bank_name="First National",
        ))
        to_default = auto_posting_service.post_expense(ExpenseRecord(
            id=14, store_id=store.id, entry_date=date(2026, 3, 3), amount_cents=100,
            payment_method="bank", bank_name="Unknown Credit Union",
        ))

        assert named.id in {l.account_id for l in to_named.lines}
        assert accounts["Bank Account"].id in {l.account_id for l in to_default.lines}

    def test_unrecognized_payment_method_is_skipped(self, db_session, store, accounts):
        before = _skipped("expense", "unresolved_account")

        result = auto_posting_service.post_expense({
            "id": 15,
            "store_id": store.id,
            "entry_date": "2026-03-04",
            "amount_cents": 5000,
            "payment_method": "barter",
        })

        assert result is None
        assert db_session.query(JournalEntry).count() == 0
        assert _skipped("expense", "unresolved_account") == before + 1

    def test_no_payment_account_is_skipped_without_creating_one(self, db_session, store):
        chart_of_accounts_service.create_account(store.id, "Supplies", "expense")

        result = auto_posting_service.post_expense(ExpenseRecord(
            id=16, store_id=store.id, entry_date=date(2026, 3, 4), amount_cents=5000,
            payment_method="cash", expense_type_name="Supplies",
        ))

        assert result is None
        assert db_session.query(Account).filter_by(store_id=store.id, account_type="asset").count() == 0


class TestIdempotency:

    def _expense(self, store, amount):
        return ExpenseRecord(
            id=21, store_id=store.id, entry_date=date(2026, 3, 5), amount_cents=amount,
            payment_method="cash", expense_type_name="Purchases",
        )

    def test_duplicate_delivery_returns_existing_entry(self, db_session, store, accounts):
        before = _skipped("expense", "duplicate")

        first = auto_posting_service.post_expense(self._expense(store, 2000))
        second = auto_posting_service.post_expense(self._expense(store, 2000))

        assert second.id == first.id
        assert db_session.query(JournalEntry).count() == 1
        assert _skipped("expense", "duplicate") == before + 1

    def test_changed_event_reverses_previous_entry(self, db_session, store, accounts):
        first = auto_posting_service.post_expense(self._expense(store, 2000))
        second = auto_posting_service.post_expense(self._expense(store, 2600))

        assert second.id != first.id
        assert journal_service.get_entry(first.id).status == "reversed"
        assert db_session.query(JournalEntry).count() == 3

        balance = journal_service.get_account_balance(store.id, accounts["Cash"].id)
        assert balance["balance_cents"] == -2600


class TestPurchaseInvoice:

    def test_unpaid_invoice_creates_accounts_payable_when_no_liability_exists(self, db_session, store):
        chart_of_accounts_service.create_account(store.id, "Purchases", "expense")

        entry = auto_posting_service.post_purchase_invoice(PurchaseInvoiceRecord(
            id=31, store_id=store.id, purchase_date=date(2026, 3, 6), amount_cents=12000,
            invoice_number="INV-77",
        ))

        assert entry is not None
        assert "INV-77" in entry.description
        assert _sides(entry, _names(db_session, store)) == [
            ("Accounts Payable", 0, 12000),
            ("Purchases", 12000, 0),
        ]

    def test_paid_on_purchase_credits_cash(self, db_session, store, accounts):
        entry = auto_posting_service.post_purchase_invoice(PurchaseInvoiceRecord(
            id=32, store_id=store.id, purchase_date=date(2026, 3, 6), amount_cents=800,
            paid_on_purchase=True, payment_method_on_purchase="cash",
        ))

        assert _sides(entry, _names(db_session, store)) == [
            ("Cash", 0, 800),
            ("Purchases", 800, 0),
        ]

    def test_reimbursable_purchase_credits_receivable(self, db_session, store, accounts):
        entry = auto_posting_service.post_purchase_invoice(PurchaseInvoiceRecord(
            id=33, store_id=store.id, purchase_date=date(2026, 3, 6), amount_cents=2500,
            paid_on_purchase=True, payment_method_on_purchase="card",
            is_reimbursable=True, reimbursement_to="Head Office",
        ))

        assert _sides(entry, _names(db_session, store)) == [
            ("Purchases", 2500, 0),
            ("Reimbursements Receivable", 0, 2500),
        ]
        assert "Head Office" in entry.notes


class TestInvoicePayment:

    def test_check_payment_debits_payable_credits_bank(self, db_session, store, accounts):
        entry = auto_posting_service.post_invoice_payment(InvoicePaymentRecord(
            invoice_id=41, payment_id=401, store_id=store.id, payment_date=date(2026, 3, 7),
            amount_cents=12000, payment_method="check", check_number="1234",
            invoice_number="INV-77",
        ))

        assert entry.reference_type == "payment"
        assert entry.reference_id == "401"
        assert _sides(entry, _names(db_session, store)) == [
            ("Accounts Payable", 12000, 0),
            ("Bank Account", 0, 12000),
        ]
        credit_line = next(l for l in entry.lines if l.credit_cents)
        assert "Check #1234" in credit_line.description


class TestReimbursement:

    def test_cash_reimbursement_debits_cash_credits_receivable(self, db_session, store, accounts):
        entry = auto_posting_service.post_reimbursement(ReimbursementRecord(
            invoice_id=51, store_id=store.id, reimbursement_date=date(2026, 3, 8),
            amount_cents=2500, payment_method="cash", reimbursement_to="Head Office",
        ))

        assert entry.reference_type == "reimbursement"
        assert _sides(entry, _names(db_session, store)) == [
            ("Accounts Receivable", 0, 2500),
            ("Cash", 2500, 0),
        ]


class TestDailyRevenue:

    def test_multi_leg_revenue_posts_balanced_entry(self, db_session, store, accounts):
        entry = auto_posting_service.post_revenue(DailyRevenueRecord(
            id=61,
            store_id=store.id,
            entry_date=date(2026, 3, 9),
            business_cash_cents=50000,
            business_credit_card_cents=30000,
            online_net_cents=10000,
            customer_tab_cents=5000,
            credit_card_fees_cents=900,
            other_cash_expense_cents=2000,
        ))

        assert entry is not None
        assert entry.reference_type == "revenue"
        assert entry.total_debit_cents == entry.total_credit_cents == 97900
        assert _sides(entry, _names(db_session, store)) == sorted([
            ("Cash", 50000, 0),
            ("Credit Card Receivable", 30000, 0),
            ("Online Sales Receivable", 10000, 0),
            ("Customer Tabs Receivable", 5000, 0),
            ("Sales Revenue", 0, 95000),
            ("Transaction Fees", 900, 0),
            ("Credit Card Receivable", 0, 900),
            ("Other Cash Expenses", 2000, 0),
            ("Cash", 0, 2000),
        ])

    def test_zero_components_are_left_out(self, db_session, store, accounts):
        entry = auto_posting_service.post_revenue(DailyRevenueRecord(
            id=62, store_id=store.id, entry_date=date(2026, 3, 10), business_cash_cents=1000,
        ))

        assert len(entry.lines) == 2

    def test_unbalanced_revenue_is_skipped_and_counted(self, db_session, store, accounts):
        before = _skipped("revenue", "unbalanced")

        result = auto_posting_service.post_revenue(DailyRevenueRecord(
            id=63, store_id=store.id, entry_date=date(2026, 3, 11),
            business_cash_cents=20000, lottery_owed_cents=1500,
        ))

        assert result is None
        assert db_session.query(JournalEntry).count() == 0
        assert _skipped("revenue", "unbalanced") == before + 1

    def test_nothing_to_post_is_skipped(self, db_session, store, accounts):
        before = _skipped("revenue", "no_lines")

        result = auto_posting_service.post_revenue({"id": 64, "store_id": store.id, "entry_date": "2026-03-12"})

        assert result is None
        assert _skipped("revenue", "no_lines") == before + 1

    def test_revenue_creates_missing_default_accounts(self, db_session, store):
        entry = auto_posting_service.post_revenue(DailyRevenueRecord(
            id=65, store_id=store.id, entry_date=date(2026, 3, 13), business_cash_cents=7000,
        ))

        assert entry is not None
        assert _sides(entry, _names(db_session, store)) == [
            ("Cash", 7000, 0),
            ("Sales Revenue", 0, 7000),
        ]

    def test_failures_never_propagate(self, db_session, store, accounts):
        before = _skipped("revenue", "error")

        result = auto_posting_service.post_revenue({"id": 66, "store_id": store.id, "entry_date": "not-a-date"})

        assert result is None
        assert _skipped("revenue", "error") == before + 1
