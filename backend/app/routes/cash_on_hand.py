# Overview: Flask API routes for cash on hand; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_role, POSTING_ROLES, ADMIN_ROLES
from ..services import cash_ledger_service
from ..services.cash_ledger_service import CashLedgerError, StoreNotFoundError
from ..validation import ValidationError, parse_int, parse_cents, parse_date, require_json_object


cash_on_hand_bp = Blueprint("cash_on_hand", __name__, url_prefix="/api/cash-on-hand")


def _cash_error_response(e: CashLedgerError):
    status = 404 if isinstance(e, StoreNotFoundError) else 400
    return jsonify({"error": str(e), "details": e.details}), status


@cash_on_hand_bp.get("/store/<int:store_id>")
@require_actor
def get_balance_route(store_id: int):
    try:
        balance = cash_ledger_service.get_balance(store_id)
        return jsonify({"balance": balance.to_dict()}), 200

    except CashLedgerError as e:
        return _cash_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to fetch cash on hand balance")
        return jsonify({"error": "Internal server error"}), 500


@cash_on_hand_bp.get("/store/<int:store_id>/history")
@require_actor
def get_history_route(store_id: int):
    """Query params: start_date, end_date, limit (default 100, clamped)."""
    try:
        history = cash_ledger_service.get_transaction_history(
            store_id,
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
            limit=parse_int(request.args.get("limit"), "limit", required=False) or 100,
        )
        return jsonify({"history": [t.to_dict() for t in history]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch cash transaction history")
        return jsonify({"error": "Internal server error"}), 500


@cash_on_hand_bp.post("/store/<int:store_id>/adjust")
@require_actor
@require_role(*POSTING_ROLES)
def adjust_route(store_id: int):
    """
    Record a manual cash movement.

    Request body:
    {
        "amount_cents": -2500,                 (signed; > 0 adds cash)
        "transaction_type": "adjustment",      (optional)
        "transaction_date": "2026-03-01",      (optional, default today)
        "description": "Drawer count correction",
        "source_id": "...",                    (optional)
        "idempotency_key": "..."               (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))

        txn = cash_ledger_service.update_balance(
            store_id,
            parse_cents(data.get("amount_cents"), "amount_cents", allow_negative=True),
            data.get("transaction_type") or "adjustment",
            source_id=data.get("source_id"),
            transaction_date=parse_date(data.get("transaction_date"), "transaction_date"),
            description=data.get("description"),
            entered_by=g.current_user_id,
            idempotency_key=data.get("idempotency_key"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CashLedgerError as e:
        return _cash_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust cash on hand")
        return jsonify({"error": "Internal server error"}), 500


@cash_on_hand_bp.post("/store/<int:store_id>/reset")
@require_actor
@require_role(*ADMIN_ROLES)
def reset_route(store_id: int):
    """Purge the cash log and zero the balance. Admin only."""
    try:
        row = cash_ledger_service.reset_balance(store_id, reset_by=g.current_user_id)
        return jsonify({"balance": row.to_dict()}), 200

    except CashLedgerError as e:
        return _cash_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reset cash on hand")
        return jsonify({"error": "Internal server error"}), 500
