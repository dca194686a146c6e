"""
emma_chat: scripted intake chat with structured lead-field extraction from model replies.
"""
from emma_chat.countries import COUNTRY_PREFIXES, resolve_country
from emma_chat.errors import (
    ChatError,
    FailureKind,
    LLMTimeoutError,
    MalformedBlock,
    ModelInvalidOutput,
    ProviderError,
)
from emma_chat.extractor import extract_collected_info, extract_custom_fields
from emma_chat.orchestrator import LLMCall, handle_chat
from emma_chat.phases import advance, replay
from emma_chat.sanitizer import sanitize_response
from emma_chat.schemas import (
    ChatRequest,
    ChatResponse,
    ContactInfo,
    CountryInfo,
    CustomFields,
    DialogueState,
    Err,
    Ok,
    Phase,
    Result,
    Turn,
)

__all__ = [
    "handle_chat",
    "LLMCall",
    "advance",
    "replay",
    "extract_collected_info",
    "extract_custom_fields",
    "sanitize_response",
    "resolve_country",
    "COUNTRY_PREFIXES",
    "ChatRequest",
    "ChatResponse",
    "ContactInfo",
    "CountryInfo",
    "CustomFields",
    "DialogueState",
    "Phase",
    "Turn",
    "Result",
    "Ok",
    "Err",
    "ChatError",
    "FailureKind",
    "LLMTimeoutError",
    "MalformedBlock",
    "ModelInvalidOutput",
    "ProviderError",
]
