"""
History store backings for ClipHistory.

The JSON backing is imported eagerly; the MySQL one only when selected so
that the connector is not loaded for JSON users.
"""

from cliphistory.database.base import HistoryStore, sort_items
from cliphistory.database.factory import create_store
from cliphistory.database.json_store import JsonHistoryStore

__all__ = [
    'HistoryStore',
    'JsonHistoryStore',
    'create_store',
    'sort_items',
]
