from cliphistory.models.clipboard_item import ClipboardItem, ItemType, new_item_id

__all__ = [
    'ClipboardItem',
    'ItemType',
    'new_item_id',
]
