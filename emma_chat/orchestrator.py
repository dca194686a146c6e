"""
One chat turn: advance the script, ask the model for the step's prose, pull out the structured data.
Contract boundary: handle_chat() never returns raw model output and never raises for model failures.
The model call is isolated: inject llm_call to avoid side effects (network, env) in tests.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from openai import APITimeoutError, OpenAI, OpenAIError

from emma_chat.config import Settings, get_settings
from emma_chat.errors import ChatError, LLMTimeoutError, ModelInvalidOutput, ProviderError
from emma_chat.extractor import extract_collected_info, extract_custom_fields
from emma_chat.phases import ExpectedFields, advance, expected_fields, replay
from emma_chat.prompts import build_messages, build_step_directive, build_system_prompt
from emma_chat.sanitizer import sanitize_response
from emma_chat.schemas import ChatRequest, ChatResponse, ContactInfo, CustomFields, Err, Ok, Result

logger = logging.getLogger(__name__)

# Isolated model boundary: (messages) -> raw reply text; may raise ChatError.
LLMCall = Callable[[list[dict[str, str]]], str]


def _call_llm(messages: list[dict[str, str]], settings: Settings | None = None) -> str:
    """Call the completion endpoint once and return the raw reply. Raises ChatError on failure."""
    settings = settings or get_settings()
    if not settings.openai_api_key:
        raise ProviderError("OPENAI_API_KEY not set")

    # max_retries=0: a failed call goes straight back to the caller.
    client = OpenAI(api_key=settings.openai_api_key, timeout=settings.request_timeout, max_retries=0)
    try:
        response = client.chat.completions.create(
            model=settings.model,
            max_tokens=settings.max_tokens,
            messages=messages,
        )
    except APITimeoutError as e:
        raise LLMTimeoutError(str(e)) from e
    except OpenAIError as e:
        raise ProviderError(str(e)) from e

    choice = response.choices[0] if response.choices else None
    if not choice or not getattr(choice, "message", None):
        raise ModelInvalidOutput("Empty or missing message in response")

    content = (choice.message.content or "").strip()
    if not content:
        raise ModelInvalidOutput("Empty message content")

    return content


def find_missing_fields(
    expected: ExpectedFields,
    collected: ContactInfo | None,
    custom: CustomFields | None,
) -> list[str]:
    """Expected keys the reply did not carry."""
    contact = collected.to_crm_payload() if collected else {}
    fields = custom.to_crm_payload() if custom else {}
    missing = [key for key in expected.contact if key not in contact]
    missing.extend(key for key in expected.custom if key not in fields)
    return missing


def handle_chat(
    request: ChatRequest,
    *,
    llm_call: LLMCall | None = None,
    today: date | None = None,
) -> Result:
    """
    Produce the next scripted reply. Returns Ok(ChatResponse) or Err(ChatError).

    The phase comes from request.dialogue_state, or from replaying the transcript when the
    client did not send one. A reply that lacks the fields its step requires is not retried;
    the gap is logged and reported in missing_fields.
    """
    call: LLMCall = llm_call if llm_call is not None else _call_llm
    history = request.conversation_history

    before = request.dialogue_state or replay(history)
    step = advance(before, request.message)
    logger.info(
        "chat turn conversation_id=%s language=%s phase=%s->%s message=%r",
        request.conversation_id,
        request.language,
        before.phase.value,
        step.state.phase.value,
        request.message[:50],
    )

    messages = build_messages(
        build_system_prompt(request.language, today),
        history,
        request.message,
        build_step_directive(before, step, request.language),
    )

    try:
        raw = call(messages)
    except ChatError as e:
        logger.error(
            "conversation_id=%s %s",
            request.conversation_id,
            e.log_fields,
        )
        return Err(e)

    logger.debug("raw reply conversation_id=%s text=%r", request.conversation_id, raw[:100])

    collected = extract_collected_info(raw)
    custom = extract_custom_fields(raw)
    missing = find_missing_fields(expected_fields(before, step), collected, custom)
    if missing:
        logger.warning(
            "missing_fields conversation_id=%s phase=%s fields=%s",
            request.conversation_id,
            before.phase.value,
            missing,
        )

    return Ok(
        ChatResponse(
            response=sanitize_response(raw),
            collected_info=collected,
            custom_fields=custom,
            language=request.language,
            dialogue_state=step.state,
            missing_fields=missing,
        )
    )
