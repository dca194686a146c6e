from __future__ import annotations

import pytest

from emma_chat.extractor import MARKERS, extract_custom_fields
from emma_chat.sanitizer import sanitize_response

REPLIES = [
    'Thanks!\nCOLLECTED_INFO: {"name":"Ana","phone":"+34600111222"}\nHow can I help?',
    "Hello, nice to meet you.\n\nIs that correct?",
    'A balanced approach is a great starting point.\n\nWhat annual budget range?\n\nCUSTOM_FIELDS: {"risk_tolerance": "Moderate"}',
    'Noted.\nCOLLECTED_INFO: {"phone": "+1 555-123-4567"}\nCUSTOM_FIELDS: {"phone": "+1 555-123-4567"}\n\n\n\nThank you, that\'s noted.',
    '**CUSTOM_FIELDS:** {"product_interest": ["Annuities", "Term Life"]}\nWhat is the primary goal?',
    "CUSTOM_FIELDS: nothing to add\nThank you.",
    'CUSTOM_FIELDS: {"goal": "Retirement income"\nWhat kind of timeframe?',
    'custom_fields {"goal": "Combination"} Thank you.',
    'CUSTOM_COLLECTED_INFO: {"a": 1}FIELDS: {"b": 2} done',
    'Great.\nCUSTOM_FIELDS:\n{"risk_tolerance": "Moderate"}',
    'Noted.\n{\n  "name": "Ana",\n  "phone": "+34600111222"\n}\nThank you.',
    "Noted.\nCUSTOM_FIELDS\nThank you.",
]


def test_marker_and_json_removed_with_blank_line_collapse() -> None:
    text = 'Thanks!\nCOLLECTED_INFO: {"name":"Ana","phone":"+34600111222"}\nHow can I help?'

    assert sanitize_response(text) == "Thanks!\n\nHow can I help?"


def test_trailing_custom_fields_removed() -> None:
    text = (
        "A balanced approach is a great starting point for most families.\n\n"
        "What annual budget range are you most comfortable with for insurance and savings?\n\n"
        'CUSTOM_FIELDS: {"risk_tolerance": "Moderate"}'
    )

    assert sanitize_response(text) == (
        "A balanced approach is a great starting point for most families.\n\n"
        "What annual budget range are you most comfortable with for insurance and savings?"
    )


def test_nested_arrays_are_removed_whole() -> None:
    text = 'CUSTOM_FIELDS: {"product_interest": ["Whole Life", "Annuities"]}\nWhat is the primary goal?'

    assert sanitize_response(text) == "What is the primary goal?"


def test_bare_contact_json_line_removed() -> None:
    text = 'Thank you, Ana.\n{"name": "Ana", "family_name": "Ruiz"}\nWhat is your phone number?'

    assert sanitize_response(text) == "Thank you, Ana.\n\nWhat is your phone number?"


def test_prose_about_phone_and_name_is_kept() -> None:
    text = 'What\'s the best phone number to reach you?\nYour name "Ana" is noted: thank you {as always}.'

    assert sanitize_response(text) == text


def test_unterminated_json_is_removed_to_end_of_line() -> None:
    text = 'Great.\nCUSTOM_FIELDS: {"goal": "Retirement income"\nWhat kind of timeframe?'

    assert sanitize_response(text) == "Great.\n\nWhat kind of timeframe?"


@pytest.mark.parametrize("text", REPLIES)
def test_no_marker_token_survives(text: str) -> None:
    cleaned = sanitize_response(text)

    for marker in MARKERS:
        assert marker not in cleaned
        assert marker.lower() not in cleaned.lower()


@pytest.mark.parametrize("text", REPLIES)
def test_idempotent(text: str) -> None:
    once = sanitize_response(text)

    assert sanitize_response(once) == once


def test_payload_on_the_line_after_the_marker_is_removed() -> None:
    text = 'Great.\nCUSTOM_FIELDS:\n{"risk_tolerance": "Moderate"}'

    assert extract_custom_fields(text).risk_tolerance == "Moderate"
    assert sanitize_response(text) == "Great."


def test_marker_alone_on_its_line_keeps_following_prose() -> None:
    text = "Great.\nCUSTOM_FIELDS:\nWhat kind of timeframe?"

    assert sanitize_response(text) == "Great.\n\nWhat kind of timeframe?"


def test_pretty_printed_contact_json_removed() -> None:
    text = 'Thank you, Ana.\n{\n  "name": "Ana",\n  "family_name": "Ruiz"\n}\nWhat is your phone number?'

    assert sanitize_response(text) == "Thank you, Ana.\n\nWhat is your phone number?"


def test_object_without_contact_keys_is_kept() -> None:
    text = 'Here is the summary:\n{\n  "goal": "Retirement income"\n}'

    assert sanitize_response(text) == text


@pytest.mark.parametrize(
    "text",
    [
        "Your answers end up in the custom_fields of your record.",
        "We keep collected_info private and never share it.",
        "Custom_Fields hold the assessment answers.",
    ],
)
def test_marker_words_in_prose_are_kept(text: str) -> None:
    assert sanitize_response(text) == text
