from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from cliphistory.models import ClipboardItem, ItemType


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Render ``timestamp`` the way the history list shows it."""
    now = now or datetime.now()
    diff = now - timestamp
    if diff < timedelta(0):
        diff = timedelta(0)

    if diff < timedelta(minutes=1):
        return f"{int(diff.total_seconds())} seconds ago"
    if diff < timedelta(hours=1):
        return f"{int(diff.total_seconds() // 60)} minutes ago"
    if diff < timedelta(days=1):
        return f"{int(diff.total_seconds() // 3600)} hours ago"
    if diff < timedelta(days=7):
        return f"{diff.days} days ago"
    return timestamp.strftime("%Y-%m-%d %H:%M")


def split_by_favorite(items: Sequence[ClipboardItem]) -> Tuple[List[ClipboardItem], List[ClipboardItem]]:
    """Return ``(favorites, everything)`` for the two history views.

    The full view keeps favorites too, newest first.
    """
    ordered = sorted(items, key=lambda item: item.timestamp, reverse=True)
    favorites = [item for item in ordered if item.is_favorite]
    return favorites, ordered


def preview_text(item: ClipboardItem, width: int = 60) -> str:
    if item.type == ItemType.IMAGE:
        text = f"{item.content} ({item.image_path})"
    elif item.type == ItemType.FILE:
        text = "[files] " + item.content
    else:
        text = item.content
    text = " ".join(text.split())
    if len(text) > width:
        return text[: width - 3] + "..."
    return text
