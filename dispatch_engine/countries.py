import enum
import logging
import re

logger = logging.getLogger(__name__)

_FORMATTING = re.compile(r"[\s\-()]+")


class CountryCode(str, enum.Enum):
    AO = "AO"
    MZ = "MZ"
    CV = "CV"
    GW = "GW"
    ST = "ST"
    TL = "TL"
    PT = "PT"
    BR = "BR"
    UNKNOWN = "UNKNOWN"


# Ordered longest/most specific first.
PREFIX_TABLE: tuple[tuple[str, CountryCode], ...] = (
    ("244", CountryCode.AO),
    ("258", CountryCode.MZ),
    ("238", CountryCode.CV),
    ("245", CountryCode.GW),
    ("239", CountryCode.ST),
    ("670", CountryCode.TL),
    ("351", CountryCode.PT),
    ("55", CountryCode.BR),
)

DIALING_CODES: dict[CountryCode, str] = {country: prefix for prefix, country in PREFIX_TABLE}

LOCAL_NUMBER_LENGTH = 9


def strip_formatting(phone: str) -> str:
    return _FORMATTING.sub("", phone or "")


def detect_country(phone: str, *, angola_local_heuristic: bool = True) -> CountryCode:
    """Infer the destination country from a raw phone string.

    International forms (``+244...``, ``00244...``) are matched against the
    prefix table. Bare digits match only when they are longer than a local
    number. A bare nine digit string starting with ``9`` is read as an Angolan
    local mobile number when ``angola_local_heuristic`` is enabled; other
    countries also use that shape, so each such match is logged.
    """
    normalized = strip_formatting(phone)

    if normalized.startswith("+"):
        digits, international = normalized[1:], True
    elif normalized.startswith("00"):
        digits, international = normalized[2:], True
    else:
        digits, international = normalized, False

    if not digits.isdigit():
        return CountryCode.UNKNOWN

    if international or len(digits) > LOCAL_NUMBER_LENGTH:
        for prefix, country in PREFIX_TABLE:
            if digits.startswith(prefix):
                return country
        return CountryCode.UNKNOWN

    if angola_local_heuristic and len(digits) == LOCAL_NUMBER_LENGTH and digits.startswith("9"):
        logger.warning(
            "Ambiguous local-format number treated as Angolan mobile.",
            extra={"country": CountryCode.AO.value},
        )
        return CountryCode.AO

    return CountryCode.UNKNOWN
