import re

from .countries import DIALING_CODES, CountryCode, strip_formatting
from .errors import PhoneFormatError

_ANGOLA_CODE = DIALING_CODES[CountryCode.AO]
_ANGOLA_MOBILE = re.compile(r"^9\d{8}$")


def normalize_angola(phone: str) -> str:
    """Return the E.164 form ``+2449XXXXXXXX`` or raise ``PhoneFormatError``.

    Accepts ``9XXXXXXXX``, ``2449XXXXXXXX``, ``002449XXXXXXXX`` and
    ``+2449XXXXXXXX`` with any spacing, hyphens or parentheses.
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        raise PhoneFormatError(f"Invalid Angolan number {phone!r}: no digits found")

    if digits.startswith("00"):
        digits = digits[2:]
    if digits.startswith(_ANGOLA_CODE) and len(digits) == 12:
        digits = digits[3:]

    if len(digits) != 9:
        raise PhoneFormatError(f"Invalid Angolan number {phone!r}: must be 9 digits")
    if not _ANGOLA_MOBILE.match(digits):
        raise PhoneFormatError(f"Invalid Angolan number {phone!r}: must start with 9")
    return f"+{_ANGOLA_CODE}{digits}"


def normalize_destination(phone: str, country: CountryCode) -> str:
    """Apply the strict format check for countries whose providers bounce bad numbers.

    Other countries pass through with formatting characters removed.
    """
    if country == CountryCode.AO:
        return normalize_angola(phone)
    normalized = strip_formatting(phone)
    if normalized.startswith("00"):
        normalized = "+" + normalized[2:]
    if not normalized.lstrip("+").isdigit():
        raise PhoneFormatError(f"Invalid destination number {phone!r}")
    return normalized

