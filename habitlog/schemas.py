from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from habitlog.constants import BOOLEAN_DISPLAY, DEFAULT_CATEGORY_NAMES


def new_id() -> str:
    return uuid4().hex


def now_to_second() -> datetime:
    return datetime.now().replace(microsecond=0)


def local_naive(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive local time.
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class CustomColumnType(str, Enum):
    TEXT = "text"
    BOOLEAN = "boolean"


class TextValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    def display(self) -> str:
        return self.text


class BooleanValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["boolean"] = "boolean"
    boolean: bool

    def display(self) -> str:
        return BOOLEAN_DISPLAY[self.boolean]


CustomFieldValue = Annotated[Union[TextValue, BooleanValue], Field(discriminator="kind")]


class HabitCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    is_custom: bool = False


class CustomColumn(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    type: CustomColumnType = CustomColumnType.TEXT


class HabitEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    date: datetime = Field(default_factory=now_to_second)
    category: HabitCategory
    notes: str = ""
    custom_fields: Dict[str, CustomFieldValue] = Field(default_factory=dict)

    @field_validator("date")
    @classmethod
    def _whole_seconds(cls, value: datetime) -> datetime:
        return local_naive(value).replace(microsecond=0)


def default_categories() -> List[HabitCategory]:
    return [HabitCategory(name=name) for name in DEFAULT_CATEGORY_NAMES]


entry_list_adapter = TypeAdapter(List[HabitEntry])
category_list_adapter = TypeAdapter(List[HabitCategory])
column_list_adapter = TypeAdapter(List[CustomColumn])


class EntryCreate(BaseModel):
    date: Optional[datetime] = None
    category: str
    notes: str = ""
    custom_fields: Dict[str, CustomFieldValue] = Field(default_factory=dict)


class EntryPatch(BaseModel):
    date: Optional[datetime] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    custom_fields: Optional[Dict[str, CustomFieldValue]] = None


class CategoryCreate(BaseModel):
    name: str


class CustomColumnCreate(BaseModel):
    name: str
    type: CustomColumnType = CustomColumnType.TEXT


class HabitNamePayload(BaseModel):
    name: str = ""


class CountPair(BaseModel):
    label: str
    count: int


class BucketPoint(BaseModel):
    start: datetime
    count: int


class SyncStatusResponse(BaseModel):
    state: str
    connected: bool
    error: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    document_id: Optional[str] = None
