# Overview: Flask API routes for journal entries; parses input and returns JSON responses.

"""
Journal Entry API Routes

WHY: Manual journal entries are entered from the accounting screen, and
reporting reads posted activity through the account ledger, account balance
and trial balance endpoints.

Manual entries are strict: every ledger error is returned to the caller and
nothing is committed. Amounts are integer cents; dates are YYYY-MM-DD.

SECURITY:
- Any identified caller may read and manage drafts
- Posting and reversing require manager, admin or super_admin
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_role, POSTING_ROLES
from ..models import EntryStatus, EntryType
from ..services import journal_service
from ..services.chart_of_accounts_service import AccountError, AccountNotFoundError
from ..services.journal_service import (
    JournalEntryError,
    EntryNotFoundError,
    PostedImmutableError,
    AlreadyPostedError,
    NotPostedError,
    InvalidTransitionError,
)
from ..validation import ValidationError, parse_int, parse_date, parse_lines, require_json_object


journal_entries_bp = Blueprint("journal_entries", __name__, url_prefix="/api/journal-entries")


_CONFLICT_ERRORS = (PostedImmutableError, AlreadyPostedError, NotPostedError, InvalidTransitionError)


def _ledger_error_response(e: Exception):
    if isinstance(e, (EntryNotFoundError, AccountNotFoundError)):
        status = 404
    elif isinstance(e, _CONFLICT_ERRORS):
        status = 409
    else:
        status = 400
    body = {"error": str(e)}
    details = getattr(e, "details", None)
    if details:
        body["details"] = details
    return jsonify(body), status


def _store_id_arg() -> int:
    return parse_int(request.args.get("store_id"), "store_id")


# =============================================================================
# ENTRIES
# =============================================================================

@journal_entries_bp.get("")
@require_actor
def list_entries_route():
    """
    List a store's journal entries, newest first.

    Query params: store_id (required), start_date, end_date, status, entry_type
    """
    try:
        store_id = _store_id_arg()
        entries = journal_service.list_entries(
            store_id,
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
            status=request.args.get("status") or None,
            entry_type=request.args.get("entry_type") or None,
        )
        return jsonify({"entries": [e.to_dict(include_lines=False) for e in entries]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list journal entries")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.get("/<int:entry_id>")
@require_actor
def get_entry_route(entry_id: int):
    try:
        entry = journal_service.get_entry(entry_id)
        return jsonify({"entry": entry.to_dict()}), 200

    except JournalEntryError as e:
        return _ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get journal entry")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.post("")
@require_actor
def create_entry_route():
    """
    Create a manual journal entry.

    Request body:
    {
        "store_id": 1,
        "entry_date": "2026-03-01",
        "description": "Owner contribution",
        "lines": [
            {"account_id": 10, "debit_cents": 10000},
            {"account_id": 20, "credit_cents": 10000}
        ],
        "status": "draft",          (optional; "posted" needs a posting role)
        "reference_type": "...",    (optional)
        "reference_id": "...",      (optional)
        "notes": "..."              (optional)
    }

    Returns:
        201: Entry with lines
        400: Invalid input, invalid line or unbalanced entry
        403: Posting role required for status "posted"
        404: Unknown or inactive account
    """
    try:
        data = require_json_object(request.get_json(silent=True))

        status = data.get("status") or EntryStatus.DRAFT.value
        if status == EntryStatus.POSTED.value and g.current_role not in POSTING_ROLES:
            return jsonify({"error": "Permission denied", "required_roles": list(POSTING_ROLES)}), 403

        entry = journal_service.create_entry(
            parse_int(data.get("store_id"), "store_id"),
            entry_date=parse_date(data.get("entry_date"), "entry_date", required=True),
            description=data.get("description"),
            lines=parse_lines(data.get("lines")),
            entry_type=EntryType.MANUAL.value,
            reference_type=data.get("reference_type"),
            reference_id=data.get("reference_id"),
            status=status,
            entered_by=g.current_user_id,
            notes=data.get("notes"),
        )

        current_app.logger.info(
            "Journal entry %s created by user %s (%s)",
            entry.entry_number, g.current_user_id, entry.status,
        )
        return jsonify({"entry": entry.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (JournalEntryError, AccountError) as e:
        return _ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create journal entry")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.put("/<int:entry_id>")
@require_actor
def update_entry_route(entry_id: int):
    """
    Update a draft entry. "lines" replaces the whole line set; entry_date,
    description and notes are patched individually.
    """
    try:
        data = require_json_object(request.get_json(silent=True))

        patch = {}
        for field in ("description", "notes", "status"):
            if field in data:
                patch[field] = data[field]
        if "entry_date" in data:
            patch["entry_date"] = parse_date(data["entry_date"], "entry_date", required=True)
        if "lines" in data:
            patch["lines"] = parse_lines(data["lines"])

        entry = journal_service.update_entry(entry_id, patch)
        return jsonify({"entry": entry.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (JournalEntryError, AccountError) as e:
        return _ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update journal entry")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.delete("/<int:entry_id>")
@require_actor
def delete_entry_route(entry_id: int):
    try:
        journal_service.delete_entry(entry_id)
        return jsonify({"deleted": True, "entry_id": entry_id}), 200

    except JournalEntryError as e:
        return _ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete journal entry")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.post("/<int:entry_id>/post")
@require_actor
@require_role(*POSTING_ROLES)
def post_entry_route(entry_id: int):
    try:
        entry = journal_service.post_entry(entry_id, posted_by=g.current_user_id)
        current_app.logger.info("Journal entry %s posted by user %s", entry.entry_number, g.current_user_id)
        return jsonify({"entry": entry.to_dict()}), 200

    except JournalEntryError as e:
        return _ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post journal entry")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.post("/<int:entry_id>/reverse")
@require_actor
@require_role(*POSTING_ROLES)
def reverse_entry_route(entry_id: int):
    """
    Reverse a posted entry.

    Request body (optional): {"reversal_date": "2026-03-02"}; defaults to today.

    Returns:
        201: The reversal entry and the original (now reversed)
        409: Entry is not posted
    """
    try:
        data = request.get_json(silent=True) or {}
        reversal_date = parse_date(data.get("reversal_date"), "reversal_date")

        reversal = journal_service.reverse_entry(entry_id, reversed_by=g.current_user_id, reversal_date=reversal_date)
        original = journal_service.get_entry(entry_id)

        current_app.logger.info(
            "Journal entry %s reversed by %s (user %s)",
            original.entry_number, reversal.entry_number, g.current_user_id,
        )
        return jsonify({"reversal": reversal.to_dict(), "original": original.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except JournalEntryError as e:
        return _ledger_error_response(e)
    except AccountError as e:
        return _ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reverse journal entry")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# REPORTING READS
# =============================================================================

@journal_entries_bp.get("/accounts/<int:account_id>/ledger")
@require_actor
def account_ledger_route(account_id: int):
    """Posted activity for one account, oldest first."""
    try:
        store_id = _store_id_arg()
        lines = journal_service.get_account_ledger(
            store_id,
            account_id,
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
        )
        return jsonify({"account_id": account_id, "lines": lines}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to get account ledger")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.get("/accounts/<int:account_id>/balance")
@require_actor
def account_balance_route(account_id: int):
    try:
        store_id = _store_id_arg()
        balance = journal_service.get_account_balance(
            store_id,
            account_id,
            parse_date(request.args.get("as_of_date"), "as_of_date"),
        )
        return jsonify(balance), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to get account balance")
        return jsonify({"error": "Internal server error"}), 500


@journal_entries_bp.get("/trial-balance")
@require_actor
def trial_balance_route():
    try:
        store_id = _store_id_arg()
        as_of_date = parse_date(request.args.get("as_of_date"), "as_of_date")
        rows = journal_service.get_trial_balance(store_id, as_of_date)
        return jsonify({
            "store_id": store_id,
            "as_of_date": as_of_date.isoformat() if as_of_date else None,
            "accounts": rows,
            "totals": journal_service.summarize_trial_balance(rows),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to get trial balance")
        return jsonify({"error": "Internal server error"}), 500
