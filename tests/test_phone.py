import pytest

from dispatch_engine.countries import CountryCode
from dispatch_engine.errors import PhoneFormatError
from dispatch_engine.phone import normalize_angola, normalize_destination


@pytest.mark.parametrize(
    "raw",
    ["923456789", "+244923456789", "244923456789", "00244923456789", "+244 923-456-789", "(+244) 923 456 789"],
)
def test_normalize_angola_accepts_known_shapes(raw):
    assert normalize_angola(raw) == "+244923456789"


@pytest.mark.parametrize(
    "raw,reason",
    [
        ("", "no digits"),
        ("abc", "no digits"),
        ("+24492345678", "must be 9 digits"),
        ("+2449234567890", "must be 9 digits"),
        ("+244823456789", "must start with 9"),
        ("823456789", "must start with 9"),
    ],
)
def test_normalize_angola_rejects_malformed(raw, reason):
    with pytest.raises(PhoneFormatError) as excinfo:
        normalize_angola(raw)
    assert reason in str(excinfo.value)


def test_normalize_destination_is_strict_only_for_angola():
    assert normalize_destination("+244 923 456 789", CountryCode.AO) == "+244923456789"
    assert normalize_destination("+351 912-345-678", CountryCode.PT) == "+351912345678"
    assert normalize_destination("00351912345678", CountryCode.PT) == "+351912345678"


def test_normalize_destination_rejects_non_numeric():
    with pytest.raises(PhoneFormatError):
        normalize_destination("+351abc", CountryCode.PT)
    with pytest.raises(PhoneFormatError):
        normalize_destination("not-a-number", CountryCode.UNKNOWN)
