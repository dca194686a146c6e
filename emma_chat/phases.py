"""
Intake script state machine.

The phase is decided here, from the previous state and the user's newest message. The model
only writes the prose for the step(s) it is told to voice. A state is the step the assistant
voiced last; advance() returns the next resting state plus every step to voice on the way.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from typing import NamedTuple

from emma_chat.schemas import DialogueState, Phase, Turn

MAX_CONTENT_QUESTIONS = 3

# Fixed order of the qualification questions.
CRITERIA_FIELDS = (
    "retirement_timeline",
    "risk_tolerance",
    "budget_range",
    "coverage_amount",
    "product_interest",
    "goal",
    "timeframe",
)

TERMINAL_PHASES = frozenset({Phase.OPT_OUT, Phase.CLOSING, Phase.DECLINED})

# Steps that run straight into the next one without waiting for the user.
CHAINED = {
    Phase.FRAMING: Phase.OPT_IN,
    Phase.TRANSITION: Phase.FOCUS_QUESTION,
    Phase.ROLE_SHIFT: Phase.DECISION,
}

# "+" then a digit, at least 8 characters in all.
_PHONE = re.compile(r"\+\d[\d\s\-().]{6,}")

_AGREE_IDIOMS = re.compile(
    r"\b(?:why not|por qu[eé] no|no problem|not a problem|no worries|(?:i )?(?:don'?t|do not) mind|"
    r"no hay problema|sin problema|no me importa)\b",
    re.IGNORECASE,
)
# Soft declines: putting it off counts as no.
_DEFER = re.compile(
    r"\b(?:(?:(?:maybe|perhaps|quiz[aá]s?|tal vez),?\s+)?(?:later|another time|some other time|m[aá]s tarde|"
    r"otro d[ií]a|en otro momento)|not right now|not now|not yet|ahora no)\b",
    re.IGNORECASE,
)
_UNSURE = re.compile(r"\b(?:not sure|no s[eé]|maybe|perhaps|quiz[aá]s?|tal vez)\b", re.IGNORECASE)
_NO = re.compile(
    r"\b(?:no|nope|nah|not|never|decline|rather not|prefer not|nunca|todav[ií]a no)\b",
    re.IGNORECASE,
)
_YES = re.compile(
    r"\b(?:yes|yeah|yep|yup|sure|ok|okay|correct|right|of course|absolutely|fine|go ahead|"
    r"s[ií]|claro|vale|por supuesto|correcto|de acuerdo|perfecto|adelante)\b",
    re.IGNORECASE,
)


class Consent(str, Enum):
    YES = "yes"
    NO = "no"
    UNCLEAR = "unclear"


class Advance(NamedTuple):
    """Result of one user turn: where the dialogue rests and what the reply must cover."""

    state: DialogueState
    voiced: tuple[Phase, ...]
    reprompt: bool = False


class ExpectedFields(NamedTuple):
    """Keys the reply is supposed to carry, per marker."""

    contact: tuple[str, ...] = ()
    custom: tuple[str, ...] = ()


def classify_consent(message: str) -> Consent:
    """Yes/no reading of a short English or Spanish answer."""
    text = _AGREE_IDIOMS.sub("yes", message)
    text = _DEFER.sub("no", text)
    if _UNSURE.search(text):
        return Consent.UNCLEAR
    said_yes = bool(_YES.search(text))
    said_no = bool(_NO.search(text))
    if said_yes and not said_no:
        return Consent.YES
    if said_no and not said_yes:
        return Consent.NO
    return Consent.UNCLEAR


def find_phone(message: str) -> str | None:
    """Phone number with country code in the message, or None if there is no valid one."""
    match = _PHONE.search(message)
    if match is None:
        return None
    phone = match.group(0).strip()
    return phone if len(phone) >= 8 else None


def _goto(state: DialogueState, *phases: Phase, **changes: object) -> Advance:
    voiced = list(phases)
    while voiced[-1] in CHAINED:
        voiced.append(CHAINED[voiced[-1]])
    new_state = state.model_copy(update={"phase": voiced[-1], **changes})
    return Advance(new_state, tuple(voiced))


def _repeat(state: DialogueState) -> Advance:
    return Advance(state, (state.phase,), reprompt=True)


def _on_consent(state: DialogueState, message: str, yes: Phase, no: Phase) -> Advance:
    consent = classify_consent(message)
    if consent is Consent.YES:
        return _goto(state, yes)
    if consent is Consent.NO:
        return _goto(state, no)
    return _repeat(state)


def _on_content_question(state: DialogueState) -> Advance:
    answered = state.questions_answered + 1
    if answered < MAX_CONTENT_QUESTIONS:
        return _goto(state, Phase.CONTENT_QA, questions_answered=answered)
    # Third answer closes free-form Q&A for good.
    return _goto(state, Phase.CONTENT_QA, Phase.ROLE_SHIFT, questions_answered=answered)


def advance(state: DialogueState, message: str) -> Advance:
    """Apply one user message to the dialogue state."""
    phase = state.phase
    text = message.strip()

    if phase is Phase.START:
        return _goto(state, Phase.OPENING)
    if phase in TERMINAL_PHASES or not text:
        return _repeat(state)

    if phase is Phase.OPENING:
        return _goto(state, Phase.FRAMING)
    if phase is Phase.OPT_IN:
        return _on_consent(state, text, yes=Phase.FIRST_NAME, no=Phase.OPT_OUT)
    if phase is Phase.FIRST_NAME:
        return _goto(state, Phase.FAMILY_NAME)
    if phase is Phase.FAMILY_NAME:
        return _goto(state, Phase.PHONE)
    if phase is Phase.PHONE:
        if find_phone(text) is None:
            return _repeat(state)
        return _goto(state, Phase.TRANSITION)
    if phase in (Phase.FOCUS_QUESTION, Phase.CONTENT_QA):
        return _on_content_question(state)
    if phase is Phase.DECISION:
        return _on_consent(state, text, yes=Phase.INTAKE_CONFIRM, no=Phase.DECLINED)
    if phase is Phase.INTAKE_CONFIRM:
        return _on_consent(state, text, yes=Phase.QUALIFICATION, no=Phase.DECLINED)
    if phase is Phase.QUALIFICATION:
        if state.criteria_index < len(CRITERIA_FIELDS) - 1:
            return _goto(state, Phase.QUALIFICATION, criteria_index=state.criteria_index + 1)
        return _goto(state, Phase.CLOSING)

    # Chained steps are never resting states; treat a stale one as a repeat.
    return _repeat(state)


def replay(history: Iterable[Turn], state: DialogueState | None = None) -> DialogueState:
    """Rebuild the state from the user turns of a transcript."""
    state = state or DialogueState()
    for turn in history:
        if turn.role == "user":
            state = advance(state, turn.content).state
    return state


def expected_fields(before: DialogueState, step: Advance) -> ExpectedFields:
    """What the reply to this turn has to carry, judged by the step the user just answered."""
    if step.reprompt:
        return ExpectedFields()

    phase = before.phase
    if phase is Phase.FIRST_NAME:
        return ExpectedFields(contact=("name",))
    if phase is Phase.FAMILY_NAME:
        return ExpectedFields(contact=("family_name",))
    if phase is Phase.PHONE:
        return ExpectedFields(contact=("phone",))
    if phase in (Phase.FOCUS_QUESTION, Phase.CONTENT_QA):
        n = step.state.questions_answered
        return ExpectedFields(custom=(f"question_{n}", f"answer_{n}"))
    if phase is Phase.QUALIFICATION:
        field = CRITERIA_FIELDS[before.criteria_index]
        if step.state.phase is Phase.CLOSING:
            return ExpectedFields(custom=(field, "intake_complete"))
        return ExpectedFields(custom=(field,))
    if step.state.phase is Phase.DECLINED:
        return ExpectedFields(custom=("declined_selection",))
    return ExpectedFields()
