"""
Structured-field extraction from raw model replies.

The model embeds data as a marker followed by one JSON object, anywhere in its prose:

    COLLECTED_INFO: {"name": "Ana", "phone": "+34600111222"}
    CUSTOM_FIELDS: {"risk_tolerance": "Moderate"}

Contract boundary: extraction never raises. No marker means None; an unusable block is
logged and also comes back as None so the rest of the reply still reaches the user.
The two scans are independent of each other.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from emma_chat.countries import resolve_country
from emma_chat.errors import MalformedBlock
from emma_chat.schemas import ContactInfo, CustomFields

logger = logging.getLogger(__name__)

COLLECTED_INFO_MARKER = "COLLECTED_INFO"
CUSTOM_FIELDS_MARKER = "CUSTOM_FIELDS"
MARKERS = (COLLECTED_INFO_MARKER, CUSTOM_FIELDS_MARKER)

# Case-sensitive; tolerates markdown bold between the colon and the JSON.
_MARKER_PATTERNS = {token: re.compile(rf"{token}:\**\s*") for token in MARKERS}
_WHATSAPP_NOISE = re.compile(r"[\s\-()]")
_decoder = json.JSONDecoder()

M = TypeVar("M", bound=BaseModel)


def _find_block(text: str, token: str) -> dict[str, Any] | None:
    """Decode the JSON object after the first marker that is followed by '{'."""
    seen_marker = False
    for match in _MARKER_PATTERNS[token].finditer(text):
        seen_marker = True
        start = match.end()
        if not text.startswith("{", start):
            continue
        try:
            obj, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError as e:
            raise MalformedBlock(token, f"invalid JSON: {e}") from e
        return obj

    if seen_marker:
        raise MalformedBlock(token, "marker without a JSON object")
    return None


def _parse_block(text: str, token: str, model: type[M]) -> M | None:
    obj = _find_block(text, token)
    if obj is None:
        return None
    try:
        return model.model_validate(obj)
    except ValidationError as e:
        raise MalformedBlock(token, f"schema validation failed: {e}") from e


def _log_malformed(error: MalformedBlock) -> None:
    logger.warning("marker=%s %s", error.marker, error.log_fields)


def enrich_contact(info: ContactInfo) -> ContactInfo:
    """Derive country metadata and the WhatsApp number from the phone, if any."""
    phone = info.phone
    if not phone:
        return info

    if phone.startswith("+"):
        update: dict[str, Any] = {"whatsapp": _WHATSAPP_NOISE.sub("", phone)}
        country = resolve_country(phone)
        if country is not None:
            update.update(country.model_dump())
        return info.model_copy(update=update)

    if info.country_prefix:
        return info.model_copy(update={"whatsapp": f"{info.country_prefix}{phone.lstrip('0')}"})

    return info.model_copy(update={"whatsapp": phone})


def extract_collected_info(text: str) -> ContactInfo | None:
    """Contact block from the reply, enriched from its phone number. None when absent or unusable."""
    try:
        info = _parse_block(text, COLLECTED_INFO_MARKER, ContactInfo)
    except MalformedBlock as e:
        _log_malformed(e)
        return None
    if info is None:
        return None
    return enrich_contact(info)


def extract_custom_fields(text: str) -> CustomFields | None:
    """Custom-fields block from the reply. None when absent or unusable."""
    try:
        return _parse_block(text, CUSTOM_FIELDS_MARKER, CustomFields)
    except MalformedBlock as e:
        _log_malformed(e)
        return None
