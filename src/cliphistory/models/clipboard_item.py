from datetime import datetime
from enum import IntEnum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID


class ItemType(IntEnum):
	TEXT = 0
	IMAGE = 1
	FILE = 2


def new_item_id() -> str:
	return str(ULID.from_datetime(datetime.now()))


class ClipboardItem(BaseModel):
	"""One entry of the clipboard history.

	The JSON form uses the camelCase keys ``imagePath`` and ``isFavorite``;
	Python code reads and writes the snake_case attribute names.
	"""

	model_config = ConfigDict(populate_by_name=True)

	id: str = Field(default_factory=new_item_id)
	type: ItemType = Field(frozen=True)
	content: str
	image_path: str = Field(default="", alias="imagePath")
	timestamp: datetime = Field(default_factory=datetime.now)
	is_favorite: bool = Field(default=False, alias="isFavorite")

	@classmethod
	def new(cls, item_type: ItemType, content: str, image_path: str = "") -> "ClipboardItem":
		return cls(type=item_type, content=content, image_path=image_path)

	@property
	def key(self) -> Tuple[str, ItemType, str]:
		"""Identity used for deduplication inside a store."""
		return self.content, self.type, self.image_path

	def to_record(self) -> dict:
		return self.model_dump(mode="json", by_alias=True)
