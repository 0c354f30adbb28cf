# Overview: Pytest coverage for the ledger HTTP API.

"""
API Route Tests

Identity comes from the X-User-Id / X-User-Role gateway headers. Ledger
errors map to 400 (invalid/unbalanced), 404 (missing) and 409 (lifecycle).
"""

MANAGER = {"X-User-Id": "7", "X-User-Role": "manager"}
CASHIER = {"X-User-Id": "8", "X-User-Role": "cashier"}
ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}


def _entry_payload(store, accounts, amount=10000, **extra):
    payload = {
        "store_id": store.id,
        "entry_date": "2026-03-01",
        "description": "Owner contribution",
        "lines": [
            {"account_id": accounts["Cash"].id, "debit_cents": amount},
            {"account_id": accounts["Owner's Equity"].id, "credit_cents": amount},
        ],
    }
    payload.update(extra)
    return payload


class TestSystemRoutes:

    def test_health(self, client, db_session):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json["status"] == "healthy"

    def test_metrics_exposition(self, client, db_session):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert b"ledger_autopost_skipped_total" in response.data


class TestJournalEntryRoutes:

    def test_identity_required(self, client, db_session, store):
        response = client.get(f"/api/journal-entries?store_id={store.id}")

        assert response.status_code == 401

    def test_manual_entry_lifecycle(self, client, db_session, store, accounts):
        created = client.post("/api/journal-entries", json=_entry_payload(store, accounts), headers=CASHIER)
        assert created.status_code == 201
        entry = created.json["entry"]
        assert entry["status"] == "draft"
        assert entry["entered_by"] == 8
        assert [l["account_name"] for l in entry["lines"]] == ["Cash", "Owner's Equity"]

        denied = client.post(f"/api/journal-entries/{entry['id']}/post", headers=CASHIER)
        assert denied.status_code == 403

        posted = client.post(f"/api/journal-entries/{entry['id']}/post", headers=MANAGER)
        assert posted.status_code == 200
        assert posted.json["entry"]["status"] == "posted"
        assert posted.json["entry"]["posted_by"] == 7

        immutable = client.put(
            f"/api/journal-entries/{entry['id']}", json={"description": "Changed"}, headers=MANAGER
        )
        assert immutable.status_code == 409

        reposted = client.post(f"/api/journal-entries/{entry['id']}/post", headers=MANAGER)
        assert reposted.status_code == 409

        reversed_ = client.post(
            f"/api/journal-entries/{entry['id']}/reverse", json={"reversal_date": "2026-03-05"}, headers=MANAGER
        )
        assert reversed_.status_code == 201
        assert reversed_.json["original"]["status"] == "reversed"
        reversal = reversed_.json["reversal"]
        assert reversal["entry_type"] == "reversal"
        assert reversal["entry_date"] == "2026-03-05"
        assert [(l["debit_cents"], l["credit_cents"]) for l in reversal["lines"]] == [(0, 10000), (10000, 0)]

    def test_reverse_after_account_deactivated(self, client, db_session, store, accounts):
        entry = client.post(
            "/api/journal-entries", json=_entry_payload(store, accounts, status="posted"), headers=MANAGER
        ).json["entry"]
        equity_id = accounts["Owner's Equity"].id
        deactivated = client.delete(f"/api/accounts/{equity_id}", headers=MANAGER)
        assert deactivated.status_code == 200

        reversed_ = client.post(f"/api/journal-entries/{entry['id']}/reverse", headers=MANAGER)

        assert reversed_.status_code == 201
        assert reversed_.json["original"]["status"] == "reversed"

    def test_unbalanced_entry_is_400(self, client, db_session, store, accounts):
        payload = _entry_payload(store, accounts)
        payload["lines"][1]["credit_cents"] = 9000

        response = client.post("/api/journal-entries", json=payload, headers=MANAGER)

        assert response.status_code == 400
        assert response.json["details"]["total_credit_cents"] == 9000

    def test_decimal_amount_is_400(self, client, db_session, store, accounts):
        payload = _entry_payload(store, accounts)
        payload["lines"][0]["debit_cents"] = 100.5

        response = client.post("/api/journal-entries", json=payload, headers=MANAGER)

        assert response.status_code == 400

    def test_creating_posted_entry_requires_posting_role(self, client, db_session, store, accounts):
        denied = client.post("/api/journal-entries", json=_entry_payload(store, accounts, status="posted"), headers=CASHIER)
        allowed = client.post("/api/journal-entries", json=_entry_payload(store, accounts, status="posted"), headers=MANAGER)

        assert denied.status_code == 403
        assert allowed.status_code == 201
        assert allowed.json["entry"]["status"] == "posted"

    def test_missing_entry_is_404(self, client, db_session, store):
        response = client.get("/api/journal-entries/999999", headers=MANAGER)

        assert response.status_code == 404

    def test_unknown_account_is_404(self, client, db_session, store, accounts):
        payload = _entry_payload(store, accounts)
        payload["lines"][0]["account_id"] = 999999

        response = client.post("/api/journal-entries", json=payload, headers=MANAGER)

        assert response.status_code == 404

    def test_draft_update_and_delete(self, client, db_session, store, accounts):
        entry = client.post("/api/journal-entries", json=_entry_payload(store, accounts), headers=MANAGER).json["entry"]

        updated = client.put(
            f"/api/journal-entries/{entry['id']}",
            json={"lines": [
                {"account_id": accounts["Bank Account"].id, "debit_cents": 500},
                {"account_id": accounts["Owner's Equity"].id, "credit_cents": 500},
            ]},
            headers=MANAGER,
        )
        assert updated.status_code == 200
        assert updated.json["entry"]["total_debit_cents"] == 500

        deleted = client.delete(f"/api/journal-entries/{entry['id']}", headers=MANAGER)
        assert deleted.status_code == 200
        assert client.get(f"/api/journal-entries/{entry['id']}", headers=MANAGER).status_code == 404

    def test_reporting_endpoints(self, client, db_session, store, accounts):
        client.post("/api/journal-entries", json=_entry_payload(store, accounts, status="posted"), headers=MANAGER)
        client.post("/api/journal-entries", json=_entry_payload(store, accounts, amount=777), headers=MANAGER)

        cash_id = accounts["Cash"].id
        ledger = client.get(f"/api/journal-entries/accounts/{cash_id}/ledger?store_id={store.id}", headers=CASHIER)
        balance = client.get(f"/api/journal-entries/accounts/{cash_id}/balance?store_id={store.id}", headers=CASHIER)
        trial = client.get(f"/api/journal-entries/trial-balance?store_id={store.id}", headers=CASHIER)
        listing = client.get(f"/api/journal-entries?store_id={store.id}&status=draft", headers=CASHIER)

        assert [l["debit_cents"] for l in ledger.json["lines"]] == [10000]
        assert balance.json["balance_cents"] == 10000
        assert trial.json["totals"]["is_balanced"] is True
        assert {a["account_name"] for a in trial.json["accounts"]} == {"Cash", "Owner's Equity"}
        assert [e["total_debit_cents"] for e in listing.json["entries"]] == [777]

    def test_store_id_required_for_reports(self, client, db_session, store):
        response = client.get("/api/journal-entries/trial-balance", headers=MANAGER)

        assert response.status_code == 400


class TestCashOnHandRoutes:

    def test_adjust_and_history(self, client, db_session, store):
        added = client.post(
            f"/api/cash-on-hand/store/{store.id}/adjust",
            json={"amount_cents": 5000, "transaction_type": "revenue", "description": "Float"},
            headers=MANAGER,
        )
        removed = client.post(
            f"/api/cash-on-hand/store/{store.id}/adjust",
            json={"amount_cents": -1500},
            headers=MANAGER,
        )

        assert added.status_code == 201
        assert removed.status_code == 201
        assert removed.json["transaction"]["transaction_type"] == "adjustment"
        assert removed.json["transaction"]["balance_before_cents"] == 5000

        balance = client.get(f"/api/cash-on-hand/store/{store.id}", headers=CASHIER)
        assert balance.json["balance"]["current_balance_cents"] == 3500

        history = client.get(f"/api/cash-on-hand/store/{store.id}/history?limit=1", headers=CASHIER)
        assert len(history.json["history"]) == 1

    def test_adjust_requires_posting_role(self, client, db_session, store):
        response = client.post(
            f"/api/cash-on-hand/store/{store.id}/adjust", json={"amount_cents": 100}, headers=CASHIER
        )

        assert response.status_code == 403

    def test_reset_is_admin_only(self, client, db_session, store):
        client.post(f"/api/cash-on-hand/store/{store.id}/adjust", json={"amount_cents": 100}, headers=MANAGER)

        denied = client.post(f"/api/cash-on-hand/store/{store.id}/reset", headers=MANAGER)
        allowed = client.post(f"/api/cash-on-hand/store/{store.id}/reset", headers=ADMIN)

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json["balance"]["current_balance_cents"] == 0

    def test_unknown_store_is_404(self, client, db_session):
        response = client.get("/api/cash-on-hand/store/999999", headers=MANAGER)

        assert response.status_code == 404


class TestAccountRoutes:

    def test_seed_and_list(self, client, db_session, store):
        seeded = client.post(f"/api/accounts/store/{store.id}/seed", headers=MANAGER)
        listed = client.get(f"/api/accounts?store_id={store.id}", headers=CASHIER)

        assert seeded.status_code == 200
        assert len(listed.json["accounts"]) == len(seeded.json["accounts"])

    def test_create_account_validation(self, client, db_session, store):
        bad_type = client.post(
            "/api/accounts",
            json={"store_id": store.id, "account_name": "Misc", "account_type": "income"},
            headers=MANAGER,
        )
        created = client.post(
            "/api/accounts",
            json={"store_id": store.id, "account_name": "Petty Cash", "account_type": "asset"},
            headers=MANAGER,
        )

        assert bad_type.status_code == 400
        assert created.status_code == 201
        assert created.json["account"]["created_by"] == 7
