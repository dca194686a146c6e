"""
Caller-side lead profile.

Each chat turn yields at most one contact record and one custom-fields record; the caller folds
them into a cumulative profile before writing it to the CRM. criteria_from_history() is the
fallback for assessment answers the model never emitted a marker for.
"""
from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from emma_chat.schemas import ContactInfo, CustomFields, Phase, Turn

# Contact record key -> lead profile key.
_CONTACT_KEYS = {
    "name": "first_name",
    "family_name": "last_name",
    "phone": "phone_number",
    "whatsapp": "whatsapp",
    "country_prefix": "country_prefix",
    "country_name": "country_name",
    "country_code": "country_code",
    "country_flag": "country_flag",
}

_RISK = (
    (re.compile(r"conservative|protect what i have|low risk|\bsafe\b", re.I), "conservative"),
    (re.compile(r"moderate|balanced|middle ground", re.I), "moderate"),
    (re.compile(r"aggressive|maximize growth|high growth", re.I), "aggressive"),
)
_BUDGET = (
    (re.compile(r"under \$?5[,.]?000|less than 5k|under 5k", re.I), "Under $5K/year"),
    (re.compile(r"\$?5[,.]?000.*\$?15[,.]?000|5k.*15k", re.I), "$5K-$15K/year"),
    (re.compile(r"\$?15[,.]?000.*\$?50[,.]?000|15k.*50k", re.I), "$15K-$50K/year"),
    (re.compile(r"\$?50[,.]?000\+?|over 50k|50k\+", re.I), "$50K+/year"),
)
_PRODUCTS = (
    (re.compile(r"whole life", re.I), "whole_life"),
    (re.compile(r"term life", re.I), "term_life"),
    (re.compile(r"annuit", re.I), "annuities"),
    (re.compile(r"\bira\b|401\(?k\)?|rollover", re.I), "ira_401k"),
    (re.compile(r"estate planning", re.I), "estate_planning"),
)
_GOALS = (
    (re.compile(r"retirement income|retire", re.I), "retirement_income"),
    (re.compile(r"family protection|protect my family", re.I), "family_protection"),
    (re.compile(r"tax optim|tax strateg|reduce tax", re.I), "tax_optimization"),
    (re.compile(r"wealth transfer|legacy|inheritance", re.I), "wealth_transfer"),
    (re.compile(r"combination|both|all of", re.I), "combination"),
)
_TIMEFRAMES = (
    (re.compile(r"immediately|right now|ready now|asap", re.I), "immediately"),
    (re.compile(r"within 3 months|next 3 months", re.I), "within_3_months"),
    (re.compile(r"within 6 months|next 6 months", re.I), "within_6_months"),
    (re.compile(r"within 1 year|within a year|next year", re.I), "within_1_year"),
    (re.compile(r"just exploring|no rush|not sure", re.I), "just_exploring"),
)


class LeadProfile(BaseModel):
    """Everything known about one conversation's lead."""

    conversation_id: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    whatsapp: str | None = None
    country_prefix: str | None = None
    country_name: str | None = None
    country_code: str | None = None
    country_flag: str | None = None
    detected_language: str | None = None
    exit_point: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    conversation_transcript: list[Turn] = Field(default_factory=list)

    @property
    def intake_complete(self) -> bool:
        return bool(self.custom_fields.get("intake_complete"))

    @property
    def declined_selection(self) -> bool:
        return bool(self.custom_fields.get("declined_selection"))

    def to_crm_payload(self) -> dict[str, Any]:
        payload = self.model_dump(exclude_none=True, exclude={"custom_fields", "conversation_transcript"})
        payload.update(self.custom_fields)
        payload["conversation_transcript"] = [turn.model_dump() for turn in self.conversation_transcript]
        return payload


def merge_lead(
    profile: LeadProfile,
    collected: ContactInfo | None = None,
    custom: CustomFields | None = None,
    phase: Phase | None = None,
) -> LeadProfile:
    """New profile with this turn's records layered on top. Later values win; absent ones never erase."""
    update: dict[str, Any] = {}
    if collected is not None:
        for key, value in collected.to_crm_payload().items():
            if key in _CONTACT_KEYS:
                update[_CONTACT_KEYS[key]] = value

    if custom is not None:
        fields = {**profile.custom_fields, **custom.to_crm_payload()}
        # The contact keys may also arrive through CUSTOM_FIELDS.
        for key in ("name", "family_name", "phone"):
            value = fields.pop(key, None)
            if value is not None and _CONTACT_KEYS[key] not in update:
                update[_CONTACT_KEYS[key]] = value
        update["custom_fields"] = fields

    if phase is not None:
        update["exit_point"] = phase.value

    return profile.model_copy(update=update)


def _first_match(patterns: tuple[tuple[re.Pattern[str], str], ...], text: str) -> str | None:
    for pattern, value in patterns:
        if pattern.search(text):
            return value
    return None


def criteria_from_history(history: list[Turn]) -> dict[str, Any]:
    """Best-effort assessment answers read straight from the user's turns. First hit per field wins."""
    criteria: dict[str, Any] = {}
    for turn in history:
        if turn.role != "user":
            continue
        text = turn.content

        for field, patterns in (
            ("risk_tolerance", _RISK),
            ("budget_range", _BUDGET),
            ("goal", _GOALS),
            ("timeframe", _TIMEFRAMES),
        ):
            if field not in criteria:
                value = _first_match(patterns, text)
                if value is not None:
                    criteria[field] = value

        if "product_interest" not in criteria:
            products = [value for pattern, value in _PRODUCTS if pattern.search(text)]
            if products:
                criteria["product_interest"] = products

    return criteria


def fill_missing_criteria(profile: LeadProfile) -> LeadProfile:
    """Backfill assessment fields the model never reported, from the stored transcript."""
    found = criteria_from_history(profile.conversation_transcript)
    missing = {key: value for key, value in found.items() if key not in profile.custom_fields}
    if not missing:
        return profile
    return profile.model_copy(update={"custom_fields": {**profile.custom_fields, **missing}})
