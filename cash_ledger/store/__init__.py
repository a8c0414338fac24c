"""Transactional ledger store and snapshot persistence."""

from cash_ledger.store.ledger import LedgerStore
from cash_ledger.store.snapshot import dump_store, load_store, rewrite_snapshot

__all__ = ["LedgerStore", "dump_store", "load_store", "rewrite_snapshot"]
