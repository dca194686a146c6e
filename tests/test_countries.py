from __future__ import annotations

from types import MappingProxyType

import pytest

from emma_chat.countries import COUNTRY_PREFIXES, resolve_country


@pytest.mark.parametrize("prefix", sorted(COUNTRY_PREFIXES))
def test_known_prefix_resolves_to_its_entry(prefix: str) -> None:
    name, code, flag = COUNTRY_PREFIXES[prefix]

    country = resolve_country(f"{prefix}5550001111")

    assert country is not None
    assert country.country_prefix == prefix
    assert country.country_name == name
    assert country.country_code == code
    assert country.country_flag == flag


def test_us_number() -> None:
    country = resolve_country("+12125551234")

    assert country.model_dump() == {
        "country_prefix": "+1",
        "country_name": "USA/Canada",
        "country_code": "US",
        "country_flag": "🇺🇸",
    }


def test_unknown_code_falls_back_to_placeholder() -> None:
    country = resolve_country("+999123456")

    assert country.model_dump() == {
        "country_prefix": "+999",
        "country_name": "Unknown",
        "country_code": "XX",
        "country_flag": "🌍",
    }


def test_spaced_number_uses_leading_code() -> None:
    assert resolve_country("+52 55 1234 5678").country_code == "MX"


@pytest.mark.parametrize("phone", ["12125551234", "0034600111222", " +34600111222", "", None])
def test_without_plus_is_absent(phone) -> None:
    assert resolve_country(phone) is None


def test_plus_alone_still_resolves() -> None:
    country = resolve_country("+")

    assert country.country_prefix == "+"
    assert country.country_code == "XX"


def test_longest_prefix_wins() -> None:
    table = {
        "+1": ("USA/Canada", "US", "🇺🇸"),
        "+1242": ("Bahamas", "BS", "🇧🇸"),
        "+12": ("Twelve", "TW", "🏳"),
    }

    assert resolve_country("+12425551234", table).country_code == "BS"
    assert resolve_country("+12125551234", table).country_code == "TW"
    assert resolve_country("+13055551234", table).country_code == "US"


def test_table_is_read_only() -> None:
    assert isinstance(COUNTRY_PREFIXES, MappingProxyType)
    with pytest.raises(TypeError):
        COUNTRY_PREFIXES["+7"] = ("Russia", "RU", "🇷🇺")  # type: ignore[index]
