from cliphistory.utils.display import format_relative_time, preview_text, split_by_favorite
from cliphistory.utils.image_codec import ImageCodec

__all__ = [
    'ImageCodec',
    'format_relative_time',
    'preview_text',
    'split_by_favorite',
]
