"""Data models for the chat session.

These models define the structure of messages, settings and system
prompts, independent of the store they are persisted in. Persisted
records use camelCase keys so stored history stays readable by other
clients of the same format.
"""

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..llm import DEFAULT_MODEL, GptModel

DEFAULT_TEMPERATURE = 0.6
DEFAULT_MAX_TOKENS = 2000


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ChatMessage(_Record):
    """One message of the conversation, as shown and as persisted."""

    id: int = Field(description="Unique timestamp-derived identifier, stable across updates")
    text: str
    is_user: bool
    timestamp_ms: int = Field(description="Creation time; history is ordered by this")
    model: GptModel | None = Field(default=None, description="Model that answered; None for user messages")
    request_tokens: int | None = None
    response_tokens: int | None = None
    response_time_ms: int | None = None
    cost_usd: float | None = None
    is_summary: bool = False

    @field_validator("model", mode="before")
    @classmethod
    def parse_model(cls, value: Any) -> Any:
        """Accept persisted enum names; unknown names read as absent."""
        if isinstance(value, str):
            return GptModel.from_name(value)
        return value

    @field_serializer("model")
    def serialize_model(self, value: GptModel | None) -> str | None:
        return value.name if value is not None else None

    @model_validator(mode="after")
    def check_summary_author(self) -> "ChatMessage":
        if self.is_summary and self.is_user:
            raise ValueError("summary messages cannot be authored by the user")
        return self

    @property
    def role(self) -> str:
        return "user" if self.is_user else "assistant"

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        return self.model_dump(mode="json", by_alias=True)


_MESSAGE_LIST = TypeAdapter(list[ChatMessage])


def dump_messages(messages: list[ChatMessage]) -> str:
    """Serialize a history to its persisted JSON array."""
    return _MESSAGE_LIST.dump_json(messages, by_alias=True).decode("utf-8")


def load_messages(payload: str | bytes) -> list[ChatMessage]:
    """Parse a persisted JSON array of message records.

    Raises:
        pydantic.ValidationError: If the payload is not a valid history
    """
    return _MESSAGE_LIST.validate_json(payload)


class Settings(BaseModel):
    """Generation settings the user controls."""

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1, le=32000)
    selected_model: GptModel = DEFAULT_MODEL


class SystemPrompt(_Record):
    """A named, reusable system prompt."""

    id: str
    name: str
    content: str
    is_default: bool = False


class TurnSnapshot(BaseModel):
    """Configuration read once at the start of a turn.

    Everything a turn does, including its compaction, uses this snapshot,
    so edits made while a request is in flight apply to the next turn.
    """

    model_config = ConfigDict(frozen=True)

    temperature: float
    max_tokens: int
    model: GptModel
    system_prompt: str = ""
