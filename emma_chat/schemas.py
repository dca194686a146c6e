"""
Pydantic models for the chat function. Wire models use camelCase aliases; lead payloads stay snake_case.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

# Import at runtime so Err() accepts ChatError; errors.py does not import schemas.
from emma_chat.errors import ChatError

T = TypeVar("T")

MAX_MESSAGE_LENGTH = 10000


class Phase(str, Enum):
    """Step of the intake script the assistant voiced last."""

    START = "start"
    OPENING = "opening"
    FRAMING = "framing"
    OPT_IN = "opt_in"
    OPT_OUT = "opt_out"
    FIRST_NAME = "first_name"
    FAMILY_NAME = "family_name"
    PHONE = "phone"
    TRANSITION = "transition"
    FOCUS_QUESTION = "focus_question"
    CONTENT_QA = "content_qa"
    ROLE_SHIFT = "role_shift"
    DECISION = "decision"
    INTAKE_CONFIRM = "intake_confirm"
    QUALIFICATION = "qualification"
    CLOSING = "closing"
    DECLINED = "declined"


class Turn(BaseModel):
    """One transcript entry. Anything that is not the assistant counts as the user."""

    role: str = "user"
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: Any) -> str:
        return "assistant" if v == "assistant" else "user"

    @field_validator("content", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class CountryInfo(BaseModel):
    """Country metadata derived from a dialing-code prefix."""

    model_config = ConfigDict(frozen=True)

    country_prefix: str
    country_name: str
    country_code: str
    country_flag: str


class ContactInfo(BaseModel):
    """Contact block emitted by the model. Unknown keys are kept as sent."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: str | None = None
    family_name: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    country_prefix: str | None = None
    country_name: str | None = None
    country_code: str | None = None
    country_flag: str | None = None

    def to_crm_payload(self) -> dict[str, Any]:
        """Only the keys that were actually present or derived."""
        return self.model_dump(exclude_none=True)


class CustomFields(BaseModel):
    """Qualification and bookkeeping block emitted by the model. Open mapping."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: str | None = None
    family_name: str | None = None
    phone: str | None = None

    question_1: str | None = None
    answer_1: str | None = None
    question_2: str | None = None
    answer_2: str | None = None
    question_3: str | None = None
    answer_3: str | None = None
    questions_answered: int | None = None

    retirement_timeline: str | None = None
    risk_tolerance: str | None = None
    budget_range: str | None = None
    coverage_amount: str | None = None
    product_interest: list[str] | None = None
    goal: str | None = None
    timeframe: str | None = None

    intake_complete: bool | None = None
    declined_selection: bool | None = None

    @field_validator("product_interest", mode="before")
    @classmethod
    def wrap_single_product(cls, v: Any) -> Any:
        """Models sometimes send one selection as a bare string."""
        if isinstance(v, str):
            return [v]
        return v

    def to_crm_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DialogueState(BaseModel):
    """Explicit position in the intake script, round-tripped through the client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: Phase = Phase.START
    questions_answered: int = Field(default=0, ge=0, le=3)
    criteria_index: int = Field(default=0, ge=0, le=6)


class UserData(BaseModel):
    name: str | None = None
    whatsapp: str | None = None


class ChatRequest(BaseModel):
    """Incoming chat turn."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    conversation_id: str = Field(..., min_length=1)
    message: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
    language: str = "en"
    conversation_history: list[Turn] = Field(default_factory=list)
    user_data: UserData | None = None
    dialogue_state: DialogueState | None = None

    @field_validator("conversation_history", mode="before")
    @classmethod
    def none_to_empty_history(cls, v: Any) -> Any:
        return [] if v is None else v


class ChatResponse(BaseModel):
    """Sanitized reply plus whatever structured data the reply carried."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    response: str
    collected_info: ContactInfo | None = None
    custom_fields: CustomFields | None = None
    language: str = "en"
    dialogue_state: DialogueState = Field(default_factory=DialogueState)
    missing_fields: list[str] = Field(default_factory=list)
    has_more: bool = False
    remaining_messages: list[str] = Field(default_factory=list)

    @field_serializer("collected_info", "custom_fields")
    def dump_present_keys(self, v: ContactInfo | CustomFields | None) -> dict[str, Any] | None:
        return v.to_crm_payload() if v is not None else None

    def to_wire(self) -> dict[str, Any]:
        """JSON body as the web client expects it."""
        return self.model_dump(mode="json", by_alias=True)


class Ok(Generic[T]):
    """Success result."""

    def __init__(self, value: T) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


class Err:
    """Error result. Holds typed failure, never raw model text."""

    def __init__(self, error: ChatError) -> None:
        self.error = error

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[ChatResponse] | Err
