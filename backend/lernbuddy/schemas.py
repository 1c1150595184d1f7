"""Typed structures for JSON payloads stored in the database or sent by the client.

JSON columns are never handed to services as raw dicts: they are validated
into these models on read and dumped back on write.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Size of the rolling windows kept on a learning session
METRICS_WINDOW_SIZE = 10
# Maximum number of weakness tags remembered per competency
MAX_WEAKNESS_INDICATORS = 10


class EngagementLevel(str, Enum):
    """Coarse classification of a learner's responsiveness in a turn."""

    FRUSTRATED = "frustrated"
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ProgressStatus(str, Enum):
    """Status of a competency progress record."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    MASTERED = "mastered"


class BuddyPersonality(str, Enum):
    """Personalities the learner can pick for the buddy."""

    ENCOURAGING = "encouraging"
    FUNNY = "funny"
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"


class CamelModel(BaseModel):
    """Base for payloads exchanged with the web client (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionMetrics(BaseModel):
    """Rolling engagement windows of a learning session, oldest sample first."""

    response_times: list[float] = Field(default_factory=list)
    message_lengths: list[int] = Field(default_factory=list)


class WeaknessIndicators(BaseModel):
    """Weakness tags detected while practising a competency."""

    last_detected: datetime | None = None
    indicators: list[str] = Field(default_factory=list)


class TableCell(CamelModel):
    row: int
    col: int
    value: str | None = None
    is_input: bool = False
    correct_answer: str | None = None


class TableData(CamelModel):
    rows: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    cells: list[list[TableCell]] = Field(default_factory=list)


class ChoiceOption(CamelModel):
    text: str
    is_correct: bool = False


class ChoiceData(CamelModel):
    question: str
    options: list[ChoiceOption] = Field(default_factory=list)


class InputField(CamelModel):
    label: str
    correct_answer: str | None = None


class InputsData(CamelModel):
    fields: list[InputField] = Field(default_factory=list)


_ELEMENT_DATA_MODELS = {"table": TableData, "choices": ChoiceData, "inputs": InputsData}


class InteractiveElement(CamelModel):
    """Structured exercise element attached to a simplified task."""

    type: Literal["table", "choices", "inputs", "none"] = "none"
    data: TableData | ChoiceData | InputsData | None = None

    @model_validator(mode="before")
    @classmethod
    def _parse_data_for_type(cls, values: Any) -> Any:
        # The element type decides the shape of data
        if not isinstance(values, dict):
            return values
        data = values.get("data")
        if values.get("type", "none") == "none":
            return {**values, "data": None}
        model = _ELEMENT_DATA_MODELS.get(values.get("type"))
        if model is not None and isinstance(data, dict):
            return {**values, "data": model.model_validate(data)}
        return values


class ActiveTask(CamelModel):
    """An uploaded, simplified exercise the learner is walking through."""

    id: str
    title: str | None = None
    simplified_content: str = ""
    task_type: str | None = None
    interactive_element: InteractiveElement | None = None


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


def count_learner_turns(messages: list[ChatMessage]) -> int:
    """Number of messages the learner has sent in the conversation."""
    return sum(1 for m in messages if m.role == "user")


def latest_learner_message(messages: list[ChatMessage]) -> str:
    """Content of the learner's most recent message, or an empty string."""
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""
