# Overview: Pytest coverage for the cash on hand balance and its transaction log.

from datetime import date

import pytest

from app.models import CashOnHand, CashTransaction
from app.services import cash_ledger_service
from app.services.cash_ledger_service import CashLedgerError, StoreNotFoundError


class TestBalance:

    def test_balance_lazily_initialized_to_zero(self, db_session, store):
        row = cash_ledger_service.get_balance(store.id)

        assert row.store_id == store.id
        assert row.current_balance_cents == 0
        assert db_session.query(CashOnHand).filter_by(store_id=store.id).count() == 1

    def test_initialize_is_idempotent(self, db_session, store):
        first = cash_ledger_service.initialize(store.id, 5000)
        second = cash_ledger_service.initialize(store.id, 9999)

        assert second.id == first.id
        assert second.current_balance_cents == 5000

    def test_unknown_store(self, db_session):
        with pytest.raises(StoreNotFoundError):
            cash_ledger_service.get_balance(999999)

    def test_update_balance_logs_before_and_after(self, db_session, store):
        cash_ledger_service.initialize(store.id, 10000)

        txn = cash_ledger_service.update_balance(
            store.id, 2500, "revenue", source_id=71, transaction_date=date(2026, 3, 1),
            description="Daily cash", entered_by=4,
        )

        assert txn.sequence_number == 1
        assert txn.balance_before_cents == 10000
        assert txn.balance_after_cents == 12500
        assert txn.source_id == "71"

        row = cash_ledger_service.get_balance(store.id)
        assert row.current_balance_cents == 12500
        assert row.last_transaction_type == "revenue"
        assert row.last_transaction_id == "71"
        assert row.last_sequence_number == 1

    def test_add_and_subtract_fix_the_sign(self, db_session, store):
        added = cash_ledger_service.add_cash(store.id, -3000, "reimbursement")
        subtracted = cash_ledger_service.subtract_cash(store.id, 1200, "expense")

        assert added.amount_cents == 3000
        assert subtracted.amount_cents == -1200
        assert subtracted.balance_before_cents == added.balance_after_cents
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 1800

    def test_non_integer_amount_rejected(self, db_session, store):
        with pytest.raises(CashLedgerError):
            cash_ledger_service.update_balance(store.id, 12.5, "revenue")
        assert db_session.query(CashTransaction).count() == 0

    def test_idempotency_key_applies_once(self, db_session, store):
        first = cash_ledger_service.add_cash(store.id, 700, "customer_tab_payment", idempotency_key="tab-9")
        again = cash_ledger_service.add_cash(store.id, 700, "customer_tab_payment", idempotency_key="tab-9")

        assert again.id == first.id
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 700
        assert db_session.query(CashTransaction).filter_by(store_id=store.id).count() == 1

    def test_stores_are_independent(self, db_session, store, other_store):
        cash_ledger_service.add_cash(store.id, 100, "revenue")
        txn = cash_ledger_service.add_cash(other_store.id, 900, "revenue")

        assert txn.sequence_number == 1
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 100
        assert cash_ledger_service.get_balance(other_store.id).current_balance_cents == 900


class TestPaymentReversal:

    def test_compensates_payments_without_deleting_history(self, db_session, store):
        cash_ledger_service.add_cash(store.id, 50000, "revenue")
        cash_ledger_service.subtract_cash(store.id, 12000, "payment", source_id=81)
        cash_ledger_service.subtract_cash(store.id, 3000, "payment", source_id=81)
        cash_ledger_service.subtract_cash(store.id, 999, "payment", source_id=82)

        reversals = cash_ledger_service.reverse_payment_transactions(store.id, 81, actor_id=5, transaction_date="2026-03-15")

        assert sorted(r.amount_cents for r in reversals) == [3000, 12000]
        assert all(r.transaction_type == "payment_reversal" for r in reversals)
        assert all(r.reverses_transaction_id is not None for r in reversals)
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 50000 - 999
        assert db_session.query(CashTransaction).filter_by(store_id=store.id).count() == 6

    def test_reversal_is_idempotent(self, db_session, store):
        cash_ledger_service.subtract_cash(store.id, 4000, "payment", source_id=83)

        first = cash_ledger_service.reverse_payment_transactions(store.id, 83)
        second = cash_ledger_service.reverse_payment_transactions(store.id, 83)

        assert len(first) == 1
        assert second == []
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 0

    def test_only_payment_transactions_are_reversed(self, db_session, store):
        cash_ledger_service.add_cash(store.id, 600, "reimbursement", source_id=84)

        assert cash_ledger_service.reverse_payment_transactions(store.id, 84) == []
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 600


class TestHistoryAndAudit:

    def test_history_newest_first_with_date_filter(self, db_session, store):
        cash_ledger_service.add_cash(store.id, 100, "revenue", transaction_date=date(2026, 3, 1))
        cash_ledger_service.add_cash(store.id, 200, "revenue", transaction_date=date(2026, 3, 3))
        cash_ledger_service.add_cash(store.id, 300, "revenue", transaction_date=date(2026, 3, 2))

        history = cash_ledger_service.get_transaction_history(store.id)
        assert [t.amount_cents for t in history] == [200, 300, 100]

        ranged = cash_ledger_service.get_transaction_history(store.id, start_date="2026-03-02", end_date="2026-03-02")
        assert [t.amount_cents for t in ranged] == [300]

    def test_history_limit_is_clamped(self, db_session, store):
        for amount in range(1, 6):
            cash_ledger_service.add_cash(store.id, amount, "revenue")

        assert len(cash_ledger_service.get_transaction_history(store.id, limit=2)) == 2
        assert len(cash_ledger_service.get_transaction_history(store.id, limit=0)) == 1
        assert len(cash_ledger_service.get_transaction_history(store.id, limit=10_000)) == 5

    def test_verify_chain_detects_tampering(self, db_session, store):
        cash_ledger_service.add_cash(store.id, 1000, "revenue")
        cash_ledger_service.subtract_cash(store.id, 400, "expense")
        assert cash_ledger_service.verify_chain(store.id) == []

        second = db_session.query(CashTransaction).filter_by(store_id=store.id, sequence_number=2).one()
        second.balance_before_cents = 1
        db_session.commit()

        problems = cash_ledger_service.verify_chain(store.id)
        assert problems
        assert all(p["sequence_number"] == 2 for p in problems)

    def test_reset_purges_log_and_zeroes_balance(self, db_session, store):
        cash_ledger_service.add_cash(store.id, 1000, "revenue")
        cash_ledger_service.subtract_cash(store.id, 250, "expense")

        row = cash_ledger_service.reset_balance(store.id, reset_by=1)

        assert row.current_balance_cents == 0
        assert row.last_sequence_number == 0
        assert db_session.query(CashTransaction).filter_by(store_id=store.id).count() == 0

        txn = cash_ledger_service.add_cash(store.id, 50, "revenue")
        assert txn.sequence_number == 1
        assert txn.balance_before_cents == 0
