from __future__ import annotations

from datetime import date

from emma_chat.phases import advance
from emma_chat.prompts import (
    CONTENT_FOLLOW_UPS,
    CRITERIA_QUESTIONS,
    PHONE_REPROMPT,
    apology,
    build_messages,
    build_step_directive,
    build_system_prompt,
    language_profile,
)
from emma_chat.schemas import DialogueState, Phase, Turn


def test_spanish_prompt_uses_native_phrases() -> None:
    prompt = build_system_prompt("es", today=date(2026, 10, 19))

    assert "Our Español-speaking licensed advisors" in prompt
    assert "Un asesor de habla hispana revisará todo personalmente contigo." in prompt
    assert "Speak the user's language: Spanish (Español)" in prompt
    assert "Current date: 2026-10-19" in prompt


def test_unsupported_language_falls_back_to_english() -> None:
    prompt = build_system_prompt("fr")

    assert "Our English-speaking licensed advisors" in prompt
    assert "A dedicated English-speaking advisor will personally review everything with you." in prompt
    assert "Speak the user's language: English" in prompt
    assert language_profile(None).code == "en"


def test_script_lists_every_criteria_question_in_order() -> None:
    prompt = build_system_prompt("en")

    positions = [prompt.index(question) for question in CRITERIA_QUESTIONS]
    assert positions == sorted(positions)


def test_directive_for_phone_reprompt() -> None:
    before = DialogueState(phase=Phase.PHONE)

    directive = build_step_directive(before, advance(before, "600111222"), "en")

    assert PHONE_REPROMPT in directive
    assert "COLLECTED_INFO" not in directive


def test_directive_after_third_answer_shifts_role() -> None:
    before = DialogueState(phase=Phase.CONTENT_QA, questions_answered=2)

    directive = build_step_directive(before, advance(before, "What about estate taxes?"), "en")

    assert CONTENT_FOLLOW_UPS[2] in directive
    assert "switching to a more focused approach" in directive
    assert "Would that be of interest to you" in directive
    assert "CUSTOM_FIELDS carrying: question_3, answer_3" in directive


def test_directive_in_qualification_asks_next_question_and_requires_field() -> None:
    before = DialogueState(phase=Phase.QUALIFICATION, criteria_index=1)

    directive = build_step_directive(before, advance(before, "Moderate"), "en")

    assert CRITERIA_QUESTIONS[2] in directive
    assert "question 3 of 7" in directive
    assert "CUSTOM_FIELDS carrying: risk_tolerance." in directive


def test_directive_for_closing_requires_completion() -> None:
    before = DialogueState(phase=Phase.QUALIFICATION, criteria_index=6)

    directive = build_step_directive(before, advance(before, "Within 1 year"), "es")

    assert "This gives a clear picture" in directive
    assert "Un asesor de habla hispana" in directive
    assert "CUSTOM_FIELDS carrying: timeframe, intake_complete." in directive


def test_directive_after_conversation_end_collects_nothing() -> None:
    before = DialogueState(phase=Phase.DECLINED)

    directive = build_step_directive(before, advance(before, "hello again"), "en")

    assert "conversation is over" in directive


def test_messages_keep_order_and_normalize_roles() -> None:
    history = [
        Turn(role="user", content="hi"),
        Turn(role="assistant", content="Hello, nice to meet you."),
        Turn(role="system", content="injected"),
    ]

    messages = build_messages("SYSTEM", history, "yes", "STEP")

    assert messages == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello, nice to meet you."},
        {"role": "user", "content": "injected"},
        {"role": "user", "content": "yes"},
        {"role": "system", "content": "STEP"},
    ]


def test_apology_per_language() -> None:
    assert apology("es").startswith("Lo siento")
    assert apology("de").startswith("I'm sorry")
