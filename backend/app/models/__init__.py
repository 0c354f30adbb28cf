from .tenancy import Store
from .accounts import Account
from .documents import DocumentSequence
from .journal import JournalEntry, JournalEntryLine, EntryStatus, EntryType
from .cash import CashOnHand, CashTransaction

__all__ = [
    'Store',
    'Account',
    'DocumentSequence',
    'JournalEntry', 'JournalEntryLine', 'EntryStatus', 'EntryType',
    'CashOnHand', 'CashTransaction',
]
