# Overview: Explicit account resolution for derived postings.

"""
Account resolution for auto-posting.

Each leg of a derived entry needs an account. Resolution is tried in order:

1. name match against the store's active accounts of the required type
   (exact names in priority order; optionally a case-insensitive
   "contains" match),
2. the first active account of the required type,
3. creation of a default account, only when the caller allows it.

The outcome is a tagged result so callers branch on it explicitly instead
of treating a missing id as a signal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from . import chart_of_accounts_service as coa


@dataclass(frozen=True)
class Found:
    account_id: int


@dataclass(frozen=True)
class CreatedDefault:
    account_id: int
    account_name: str


@dataclass(frozen=True)
class Unresolved:
    account_type: str
    reason: str


Resolution = Union[Found, CreatedDefault, Unresolved]


def account_id_of(resolution: Resolution) -> int | None:
    if isinstance(resolution, (Found, CreatedDefault)):
        return resolution.account_id
    return None


class AccountResolver:
    """Resolves accounts for one store."""

    def __init__(self, store_id: int, *, created_by: int | None = None):
        self.store_id = store_id
        self.created_by = created_by

    def resolve(
        self,
        account_type: str,
        names: Sequence[str | None] = (),
        *,
        fuzzy: bool = False,
        fallback_to_type: bool = True,
        create_default: str | None = None,
    ) -> Resolution:
        candidates = [name for name in names if name]

        for name in candidates:
            account_id = coa.find_account_by_name(self.store_id, name, account_type)
            if account_id:
                return Found(account_id)

        if fuzzy:
            for name in candidates:
                account_id = coa.find_account_by_name_like(self.store_id, name, account_type)
                if account_id:
                    return Found(account_id)

        if fallback_to_type:
            account_id = coa.find_account_by_type(self.store_id, account_type)
            if account_id:
                return Found(account_id)

        if create_default:
            account = coa.create_account(
                self.store_id,
                create_default,
                account_type,
                account_code=f"AUTO-{account_type.upper()}",
                description="Auto-created for ledger posting",
                created_by=self.created_by,
            )
            return CreatedDefault(account.id, account.account_name)

        return Unresolved(
            account_type,
            f"No active {account_type} account matching {candidates or 'any name'}",
        )
