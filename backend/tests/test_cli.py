# Overview: Pytest coverage for the Flask CLI command groups.

from app.models import Account, Store
from app.services import cash_ledger_service, journal_service


class TestSystemCommands:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init"])
        second = runner.invoke(args=["system", "init"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "Using existing store" in second.output

        store = db_session.query(Store).filter_by(code="MAIN").one()
        assert db_session.query(Account).filter_by(store_id=store.id).count() > 0
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 0


class TestCashCommands:

    def test_verify_reports_consistent_chain(self, app, db_session, store):
        cash_ledger_service.add_cash(store.id, 1500, "revenue")

        result = app.test_cli_runner().invoke(args=["cash", "verify", "--store-id", str(store.id)])

        assert result.exit_code == 0
        assert "consistent" in result.output

    def test_balance_prints_dollars(self, app, db_session, store):
        cash_ledger_service.add_cash(store.id, 123456, "revenue")

        result = app.test_cli_runner().invoke(args=["cash", "balance", "--store-id", str(store.id)])

        assert result.exit_code == 0
        assert "1,234.56" in result.output

    def test_reset_requires_confirmation(self, app, db_session, store):
        cash_ledger_service.add_cash(store.id, 500, "revenue")

        aborted = app.test_cli_runner().invoke(args=["cash", "reset", "--store-id", str(store.id)], input="n\n")

        assert aborted.exit_code != 0
        assert cash_ledger_service.get_balance(store.id).current_balance_cents == 500


class TestLedgerCommands:

    def test_trial_balance(self, app, db_session, store, accounts):
        journal_service.create_entry(
            store.id,
            entry_date="2026-03-01",
            description="Opening float",
            lines=[
                {"account_id": accounts["Cash"].id, "debit_cents": 20000},
                {"account_id": accounts["Owner's Equity"].id, "credit_cents": 20000},
            ],
            status="posted",
        )

        result = app.test_cli_runner().invoke(args=["ledger", "trial-balance", "--store-id", str(store.id)])

        assert result.exit_code == 0
        assert "Owner's Equity" in result.output
        assert "Balanced: Yes" in result.output
