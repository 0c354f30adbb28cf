# Overview: Prometheus counters for ledger side effects.

"""
Ledger metrics.

Metrics exposed:
- ledger_autopost_entries_total: entries created by the auto-posting adapter
- ledger_autopost_skipped_total: advisory skips (unresolved account,
  unbalanced composite entry, nothing to post, duplicate delivery, error)
- cash_ledger_updates_total: cash-on-hand movements by transaction type
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest


AUTOPOST_ENTRIES = Counter(
    "ledger_autopost_entries",
    "Journal entries created and posted by the auto-posting adapter",
    ["event_type"],
)

AUTOPOST_SKIPPED = Counter(
    "ledger_autopost_skipped",
    "Business events the auto-posting adapter did not post",
    ["event_type", "reason"],
)

CASH_LEDGER_UPDATES = Counter(
    "cash_ledger_updates",
    "Cash-on-hand balance movements",
    ["transaction_type"],
)


def render_latest() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
