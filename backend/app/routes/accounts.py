# Overview: Flask API routes for the chart of accounts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_role, POSTING_ROLES
from ..services import chart_of_accounts_service
from ..services.chart_of_accounts_service import AccountError, AccountNotFoundError
from ..validation import ValidationError, parse_int, require_json_object


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


def _account_error_response(e: AccountError):
    status = 404 if isinstance(e, AccountNotFoundError) else 400
    return jsonify({"error": str(e), "details": e.details}), status


@accounts_bp.get("")
@require_actor
def list_accounts_route():
    """Query params: store_id (required), include_inactive (true/false)."""
    try:
        store_id = parse_int(request.args.get("store_id"), "store_id")
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        accounts = chart_of_accounts_service.list_accounts(store_id, include_inactive=include_inactive)
        return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list accounts")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("")
@require_actor
@require_role(*POSTING_ROLES)
def create_account_route():
    """
    Create an account (or return the existing one with the same name).

    Request body:
    {
        "store_id": 1,
        "account_name": "Petty Cash",
        "account_type": "asset",
        "account_code": "1005",         (optional)
        "description": "..."            (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))

        account = chart_of_accounts_service.create_account(
            parse_int(data.get("store_id"), "store_id"),
            data.get("account_name") or "",
            data.get("account_type") or "",
            account_code=data.get("account_code"),
            parent_account_id=parse_int(data.get("parent_account_id"), "parent_account_id", required=False),
            description=data.get("description"),
            created_by=g.current_user_id,
        )
        return jsonify({"account": account.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccountError as e:
        return _account_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.post("/store/<int:store_id>/seed")
@require_actor
@require_role(*POSTING_ROLES)
def seed_accounts_route(store_id: int):
    try:
        accounts = chart_of_accounts_service.seed_default_accounts(store_id, created_by=g.current_user_id)
        return jsonify({"accounts": [a.to_dict() for a in accounts]}), 200

    except AccountError as e:
        return _account_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to seed default accounts")
        return jsonify({"error": "Internal server error"}), 500


@accounts_bp.delete("/<int:account_id>")
@require_actor
@require_role(*POSTING_ROLES)
def deactivate_account_route(account_id: int):
    try:
        account = chart_of_accounts_service.deactivate_account(account_id)
        return jsonify({"account": account.to_dict()}), 200

    except AccountError as e:
        return _account_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate account")
        return jsonify({"error": "Internal server error"}), 500
