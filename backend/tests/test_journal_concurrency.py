# Overview: Pytest coverage for concurrent journal entry status changes.

"""
Journal Concurrency Tests

Several threads race to post or reverse the same entry. Exactly one wins;
the others see the committed status and fail with a lifecycle error instead
of applying the change a second time.
"""

import threading
from datetime import date

import pytest

from app.extensions import db
from app.models import Store, JournalEntry, EntryStatus, EntryType
from app.services import chart_of_accounts_service, journal_service
from app.services.journal_service import AlreadyPostedError, NotPostedError


@pytest.fixture()
def ledger_store(file_app):
    """Store with a seeded chart; returns (store_id, {account_name: account_id})."""
    with file_app.app_context():
        store = Store(name="Journal Concurrency Store", code="JC1")
        db.session.add(store)
        db.session.commit()
        seeded = chart_of_accounts_service.seed_default_accounts(store.id)
        return store.id, {account.account_name: account.id for account in seeded}


def _create(store_id, account_ids, amount, status):
    entry = journal_service.create_entry(
        store_id,
        entry_date=date(2026, 3, 1),
        description="Cash sale",
        lines=[
            {"account_id": account_ids["Cash"], "debit_cents": amount},
            {"account_id": account_ids["Sales Revenue"], "credit_cents": amount},
        ],
        status=status,
    )
    return entry.id


def _race(app, calls):
    """Run calls in lockstep; returns [(label, outcome)] where outcome is "ok" or the exception."""
    outcomes = []
    outcomes_guard = threading.Lock()
    barrier = threading.Barrier(len(calls))

    def worker(label, call):
        with app.app_context():
            try:
                barrier.wait()
                call()
                outcome = "ok"
            except Exception as exc:  # collected and asserted below
                outcome = exc
            finally:
                db.session.remove()
            with outcomes_guard:
                outcomes.append((label, outcome))

    threads = [threading.Thread(target=worker, args=(label, call)) for label, call in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    return outcomes


class TestConcurrentReversal:

    def test_entry_is_reversed_once(self, file_app, ledger_store):
        store_id, account_ids = ledger_store
        with file_app.app_context():
            entry_id = _create(store_id, account_ids, 500, "posted")

        calls = [(n, lambda: journal_service.reverse_entry(entry_id)) for n in range(6)]
        outcomes = _race(file_app, calls)

        assert len(outcomes) == 6
        results = [outcome for _, outcome in outcomes]
        assert results.count("ok") == 1
        assert all(isinstance(r, NotPostedError) for r in results if r != "ok")

        with file_app.app_context():
            reversals = (
                db.session.query(JournalEntry)
                .filter_by(store_id=store_id, entry_type=EntryType.REVERSAL.value)
                .all()
            )
            assert len(reversals) == 1
            assert reversals[0].reference_id == str(entry_id)
            assert db.session.get(JournalEntry, entry_id).status == EntryStatus.REVERSED.value
            assert journal_service.get_account_balance(store_id, account_ids["Cash"])["balance_cents"] == 0


class TestConcurrentPosting:

    def test_each_draft_is_posted_once(self, file_app, ledger_store):
        store_id, account_ids = ledger_store
        with file_app.app_context():
            draft_ids = [_create(store_id, account_ids, 100 + n, "draft") for n in range(20)]

        calls = []
        for draft_id in draft_ids:
            for user_id in (1, 2):
                calls.append((draft_id, lambda d=draft_id, u=user_id: journal_service.post_entry(d, posted_by=u)))
        outcomes = _race(file_app, calls)

        assert len(outcomes) == 40
        for draft_id in draft_ids:
            results = [outcome for label, outcome in outcomes if label == draft_id]
            assert results.count("ok") == 1
            assert sum(isinstance(r, AlreadyPostedError) for r in results) == 1

        with file_app.app_context():
            posted = (
                db.session.query(JournalEntry)
                .filter(JournalEntry.id.in_(draft_ids), JournalEntry.status == EntryStatus.POSTED.value)
                .count()
            )
            assert posted == 20
            assert journal_service.get_account_balance(store_id, account_ids["Cash"])["balance_cents"] == sum(100 + n for n in range(20))
