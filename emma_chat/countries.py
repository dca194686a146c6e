"""
Dialing-code lookup. Pure and total over every string that starts with "+".
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

from emma_chat.schemas import CountryInfo

UNKNOWN_NAME = "Unknown"
UNKNOWN_CODE = "XX"
UNKNOWN_FLAG = "🌍"

# prefix -> (name, ISO code, flag)
COUNTRY_PREFIXES: Mapping[str, tuple[str, str, str]] = MappingProxyType(
    {
        "+1": ("USA/Canada", "US", "🇺🇸"),
        "+52": ("Mexico", "MX", "🇲🇽"),
        "+34": ("Spain", "ES", "🇪🇸"),
        "+44": ("United Kingdom", "GB", "🇬🇧"),
        "+33": ("France", "FR", "🇫🇷"),
        "+49": ("Germany", "DE", "🇩🇪"),
        "+39": ("Italy", "IT", "🇮🇹"),
        "+55": ("Brazil", "BR", "🇧🇷"),
        "+57": ("Colombia", "CO", "🇨🇴"),
        "+54": ("Argentina", "AR", "🇦🇷"),
        "+56": ("Chile", "CL", "🇨🇱"),
        "+51": ("Peru", "PE", "🇵🇪"),
        "+61": ("Australia", "AU", "🇦🇺"),
        "+91": ("India", "IN", "🇮🇳"),
    }
)

# E.164 country codes are at most three digits.
_LEADING_DIGITS = re.compile(r"^\+(\d{0,3})")


def resolve_country(
    phone: str | None,
    table: Mapping[str, tuple[str, str, str]] = COUNTRY_PREFIXES,
) -> CountryInfo | None:
    """
    Map a phone string to country metadata by longest matching prefix.

    Returns None unless the string starts with "+". An unknown code still resolves,
    to the "Unknown"/"XX" placeholder with up to three leading digits as the prefix.
    """
    if not phone or not phone.startswith("+"):
        return None

    # Longest first so a specific code is never shadowed by a shorter one.
    for prefix in sorted(table, key=len, reverse=True):
        if phone.startswith(prefix):
            name, code, flag = table[prefix]
            return CountryInfo(
                country_prefix=prefix,
                country_name=name,
                country_code=code,
                country_flag=flag,
            )

    digits = _LEADING_DIGITS.match(phone).group(1)
    return CountryInfo(
        country_prefix=f"+{digits}",
        country_name=UNKNOWN_NAME,
        country_code=UNKNOWN_CODE,
        country_flag=UNKNOWN_FLAG,
    )
