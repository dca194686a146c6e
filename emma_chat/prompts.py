"""
Intake script and prompt assembly.

The full script goes to the model as context; a per-turn directive, derived from the dialogue
state, tells it which step(s) to voice now and which markers the reply has to carry.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import NamedTuple

from emma_chat.phases import CRITERIA_FIELDS, TERMINAL_PHASES, Advance, expected_fields
from emma_chat.schemas import DialogueState, Phase, Turn


class LanguageProfile(NamedTuple):
    code: str
    native: str
    expert_phrase: str
    name: str


DEFAULT_LANGUAGE = "en"

LANGUAGES = {
    "en": LanguageProfile(
        "en",
        "English",
        "A dedicated English-speaking advisor will personally review everything with you.",
        "English",
    ),
    "es": LanguageProfile(
        "es",
        "Español",
        "Un asesor de habla hispana revisará todo personalmente contigo.",
        "Spanish (Español)",
    ),
}

APOLOGIES = {
    "en": "I'm sorry, something went wrong on our side. Please send your last message again in a moment.",
    "es": "Lo siento, algo salió mal de nuestro lado. Por favor, vuelve a enviar tu último mensaje en un momento.",
}


def language_profile(code: str | None) -> LanguageProfile:
    """Profile for a language code; unsupported codes get English phrasing."""
    return LANGUAGES.get((code or "").lower(), LANGUAGES[DEFAULT_LANGUAGE])


def apology(code: str | None) -> str:
    return APOLOGIES.get((code or "").lower(), APOLOGIES[DEFAULT_LANGUAGE])


# Exact step messages. {native} and {expert_phrase} are filled per language.
STEP_MESSAGES: dict[Phase, str] = {
    Phase.OPENING: (
        "Hello, nice to meet you.\n\n"
        "If you're here, you probably have questions about retirement planning, insurance options, "
        "tax strategies, or protecting your family's financial future.\n\n"
        "Is that correct?"
    ),
    Phase.FRAMING: (
        "Thank you.\n\n"
        "Before we go into your questions, I want to briefly explain how this works.\n\n"
        "I will try to answer every question as carefully as possible, but everything discussed here "
        "is also reviewed by a licensed advisor who speaks your language.\n\n"
        "If needed, additional clarification or a correction may follow up via phone or email."
    ),
    Phase.OPT_IN: (
        "To do this correctly and avoid incomplete or incorrect information, I first need a few "
        "details from you.\n\n"
        "Is that okay for you?"
    ),
    Phase.OPT_OUT: (
        "I understand, thank you for your time.\n\n"
        "If you change your mind, you are always welcome to come back."
    ),
    Phase.FIRST_NAME: "I'm your Everence AI Assistant.\n\nHow may I address you?",
    Phase.FAMILY_NAME: "Thank you.\n\nAnd for a correct record, what is your family name?",
    Phase.PHONE: (
        "What's the best phone number to reach you? Please include the country code "
        "(e.g., +1 for US, +52 for Mexico)."
    ),
    Phase.TRANSITION: "Thank you, that's noted.\n\nI can now handle your questions carefully and correctly.",
    Phase.FOCUS_QUESTION: "What is currently the main thing on your mind regarding your financial future?",
    Phase.ROLE_SHIFT: (
        "To avoid staying too general or missing important nuances, I usually suggest switching to "
        "a more focused approach at this point.\n\n"
        "Based on what you've shared so far, we could — if you wish — already look at a first "
        "personalized assessment.\n\n"
        "Our {native}-speaking licensed advisors will carefully review everything and provide you "
        "with strategies that match your specific needs."
    ),
    Phase.DECISION: "Would that be of interest to you, or would you prefer not to do that yet?",
    Phase.INTAKE_CONFIRM: (
        "Perfect.\n\nI'll ask you a few short questions so the assessment is truly relevant.\n\n"
        "Is that okay?"
    ),
    Phase.CLOSING: (
        "Thank you. This gives a clear picture.\n\n"
        "Everything will now be carefully reviewed and consolidated by our licensed advisors who speak "
        "your language. They will ensure every detail is accurate and relevant to your specific "
        "situation.\n\n"
        "{expert_phrase}\n\n"
        "A first personalized assessment will be shared within a maximum of 24 hours."
    ),
    Phase.DECLINED: (
        "That's completely fine.\n\n"
        "Then we'll leave it here for now.\n\n"
        "If you ever want to look at this more concretely later, that option is always open."
    ),
}

PHONE_REPROMPT = (
    "I need the country code to ensure the right advisor contacts you. For example:\n\n"
    "• USA/Canada: +1\n"
    "• Mexico: +52\n"
    "• Spain: +34\n\n"
    "Could you please provide your number with the country code?"
)

# Said after content answers 1, 2 and 3.
CONTENT_FOLLOW_UPS = (
    "Am I heading in the right direction?",
    "Does this help clarify things, or should I frame it differently?",
    "That's a very relevant question — these are exactly the points many families pause on.",
)

# Same order as phases.CRITERIA_FIELDS.
CRITERIA_QUESTIONS = (
    "When are you hoping to retire, or are you already retired?\n\n"
    "Options:\n• Already retired\n• Within 5 years\n• 5-10 years\n• 10-20 years\n• 20+ years\n• Not sure yet",
    "How would you describe your comfort level with investment risk?\n\n"
    "Options:\n• Conservative — protect what I have\n• Moderate — balanced growth and safety\n"
    "• Aggressive — maximize growth potential",
    "What annual budget range are you most comfortable with for insurance and savings?\n\n"
    "Options:\n• Under $5,000/year\n• $5,000 – $15,000/year\n• $15,000 – $50,000/year\n• $50,000+/year",
    "What level of life insurance coverage are you considering?\n\n"
    "Options:\n• $250,000 – $500,000\n• $500,000 – $1,000,000\n• $1,000,000 – $5,000,000\n"
    "• $5,000,000+\n• Not sure yet",
    "What type of financial product are you mainly considering?\n\n"
    "Options (you can select multiple):\n• Whole Life Insurance\n• Term Life Insurance\n• Annuities\n"
    "• IRA / 401(k) Rollover\n• Estate Planning\n• It depends",
    "What is the primary goal for this financial strategy?\n\n"
    "Options:\n• Retirement income\n• Family protection\n• Tax optimization\n"
    "• Wealth transfer / legacy\n• Combination",
    "What kind of timeframe are you looking at to get started?\n\n"
    "Options:\n• Immediately — I'm ready now\n• Within 3 months\n• Within 6 months\n"
    "• Within 1 year\n• Just exploring",
)

_ROLE = """You are the Everence AI Assistant, an intake assistant for Everence Wealth, a fiduciary insurance and wealth management firm helping families protect their financial future.

You are a CONTROLLED INTAKE ASSISTANT, not an open Q&A chatbot. You:
- collect opt-in and contact information BEFORE answering any question
- answer at most 3 substantive questions about insurance, retirement, taxes or wealth management
- then move to a structured personalized assessment
- stress that licensed advisors who speak the user's language review everything

The system decides which step of the script comes next and tells you at the end of this prompt. Voice exactly that step, word for word, in the user's language."""

_RULES = """HARD RULES

Never:
- answer questions before opt-in and contact collection
- answer more than 3 substantive questions, or continue open Q&A after the third
- mention a calendar or scheduling system
- promise contact timing other than "within 24 hours" at the end
- use urgency language, sales pressure, policy quotes, rates, or return/coverage guarantees
- use markdown formatting (no bold, no dash lists, no headers, no italics)
- show internal field names or JSON to the user outside the markers below

Always:
- follow the script word for word
- ask one question at a time and wait for the answer
- output the markers the current step asks for, on their own line at the END of the reply"""

_DATA_FORMAT = """DATA MARKERS

Contact data, whenever a first name, family name or phone number was just given:
COLLECTED_INFO: {"name": "first name", "family_name": "family name", "phone": "+XX1234567890"}
Only include the keys you actually have. The phone must keep its country code; the system derives country and WhatsApp data from it.

Everything else:
CUSTOM_FIELDS: {"key": "value"}

Content answers: {"question_N": "user's exact question", "answer_N": "brief summary of your answer", "questions_answered": N}
Assessment answers, one key per answer: retirement_timeline, risk_tolerance, budget_range, coverage_amount, product_interest, goal, timeframe.
product_interest is always a JSON array, even for one value: {"product_interest": ["Term Life"]}
Final assessment answer: {"timeframe": "Within 3 months", "intake_complete": true}
Declined assessment: {"declined_selection": true}

Example reply after the user says "moderate":
A balanced approach is a great starting point for most families.

What annual budget range are you most comfortable with for insurance and savings?
...
CUSTOM_FIELDS: {"risk_tolerance": "Moderate"}

If a marker is missing, the user's answer is lost."""


def step_message(phase: Phase, state: DialogueState, profile: LanguageProfile) -> str:
    """Exact wording of a step for the given state and language."""
    if phase is Phase.QUALIFICATION:
        return CRITERIA_QUESTIONS[state.criteria_index]
    return STEP_MESSAGES[phase].format(native=profile.native, expert_phrase=profile.expert_phrase)


def _script(profile: LanguageProfile) -> str:
    state = DialogueState()
    lines = ["SCRIPT"]
    for number, phase in enumerate(
        (
            Phase.OPENING,
            Phase.FRAMING,
            Phase.OPT_IN,
            Phase.FIRST_NAME,
            Phase.FAMILY_NAME,
            Phase.PHONE,
            Phase.TRANSITION,
            Phase.FOCUS_QUESTION,
        ),
        start=1,
    ):
        lines.append(f'Step {number} ({phase.value}): "{step_message(phase, state, profile)}"')
    lines.append(f'Step 6 again, if the number has no country code: "{PHONE_REPROMPT}"')
    lines.append("Step 9 (content_qa): answer carefully and neutrally, then say the follow-up for that answer:")
    for n, follow_up in enumerate(CONTENT_FOLLOW_UPS, start=1):
        lines.append(f'  after answer {n}: "{follow_up}"')
    for number, phase in enumerate((Phase.ROLE_SHIFT, Phase.DECISION, Phase.INTAKE_CONFIRM), start=10):
        lines.append(f'Step {number} ({phase.value}): "{step_message(phase, state, profile)}"')
    lines.append("Step 13 (qualification): ask these 7 questions in this order, never skipping one:")
    for n, (field, question) in enumerate(zip(CRITERIA_FIELDS, CRITERIA_QUESTIONS), start=1):
        lines.append(f'  {n} of 7, stored as {field}: "{question}"')
    lines.append(f'Step 14 (closing): "{step_message(Phase.CLOSING, state, profile)}"')
    lines.append(f'Step 15 (declined): "{step_message(Phase.DECLINED, state, profile)}"')
    lines.append(f'If the user refuses the opt-in: "{step_message(Phase.OPT_OUT, state, profile)}"')
    return "\n\n".join(lines)


def build_system_prompt(language: str | None, today: date | None = None) -> str:
    """Full script prompt for one language."""
    profile = language_profile(language)
    today = today or date.today()
    return "\n\n---\n\n".join(
        (
            _ROLE,
            _script(profile),
            _RULES,
            _DATA_FORMAT,
            f"Current date: {today.isoformat()}\nSpeak the user's language: {profile.name}",
        )
    )


def _marker_instructions(before: DialogueState, step: Advance) -> list[str]:
    expected = expected_fields(before, step)
    lines = []
    if expected.contact:
        lines.append("End the reply with COLLECTED_INFO carrying: " + ", ".join(expected.contact) + ".")
    if expected.custom:
        lines.append("End the reply with CUSTOM_FIELDS carrying: " + ", ".join(expected.custom) + ".")
    return lines


def build_step_directive(before: DialogueState, step: Advance, language: str | None) -> str:
    """Tell the model what this reply has to cover. The phase is not its decision."""
    profile = language_profile(language)
    state = step.state
    lines = ["CURRENT STEP (decided by the system, do not skip ahead or go back):"]

    if step.reprompt:
        if state.phase is Phase.PHONE:
            lines.append(f'The phone number is missing its country code. Say exactly: "{PHONE_REPROMPT}"')
        elif state.phase in TERMINAL_PHASES:
            lines.append(
                "The conversation is over. Reply briefly and politely without asking or collecting "
                "anything, and without any marker."
            )
        else:
            lines.append(
                "The user's answer did not settle this step. Ask again: "
                f'"{step_message(state.phase, state, profile)}"'
            )
        return "\n".join(lines)

    for phase in step.voiced:
        if phase is Phase.CONTENT_QA:
            n = state.questions_answered
            lines.append(
                f"Answer the user's question (number {n} of 3) carefully and neutrally, "
                f'then say: "{CONTENT_FOLLOW_UPS[n - 1]}"'
            )
        elif phase is Phase.QUALIFICATION and before.phase is Phase.QUALIFICATION:
            lines.append(
                f"Acknowledge the answer in one short sentence, then ask question "
                f'{state.criteria_index + 1} of 7: "{step_message(phase, state, profile)}"'
            )
        elif phase is Phase.QUALIFICATION:
            lines.append(f'Ask question 1 of 7: "{step_message(phase, state, profile)}"')
        else:
            lines.append(f'Say: "{step_message(phase, state, profile)}"')

    lines.extend(_marker_instructions(before, step))
    return "\n".join(lines)


def build_messages(
    system_prompt: str,
    history: Iterable[Turn],
    message: str,
    directive: str | None = None,
) -> list[dict[str, str]]:
    """Chat-completion message list: system prompt, transcript, newest user message, step directive."""
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in history)
    messages.append({"role": "user", "content": message})
    if directive:
        messages.append({"role": "system", "content": directive})
    return messages
