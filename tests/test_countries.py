import pytest

from dispatch_engine.countries import CountryCode, PREFIX_TABLE, detect_country, strip_formatting


@pytest.mark.parametrize(
    "phone,expected",
    [
        ("+244923456789", CountryCode.AO),
        ("+258841234567", CountryCode.MZ),
        ("+2389912345", CountryCode.CV),
        ("+245955123456", CountryCode.GW),
        ("+2399901234", CountryCode.ST),
        ("+67077212345", CountryCode.TL),
        ("+351912345678", CountryCode.PT),
        ("+5511987654321", CountryCode.BR),
    ],
)
def test_every_prefix_detects_its_country(phone, expected):
    assert detect_country(phone) == expected


def test_prefix_table_covers_every_known_country():
    detected = {country for _, country in PREFIX_TABLE}
    assert detected == set(CountryCode) - {CountryCode.UNKNOWN}


def test_formatting_characters_are_ignored():
    assert detect_country("+244 923-456-789") == CountryCode.AO
    assert detect_country("+351 (91) 234 5678") == CountryCode.PT
    assert strip_formatting(" +244 (92) 345-6789 ") == "+244923456789"


def test_double_zero_is_treated_as_plus():
    assert detect_country("00244923456789") == CountryCode.AO
    assert detect_country("00351912345678") == CountryCode.PT


def test_bare_international_digits_longer_than_local_number():
    assert detect_country("244923456789") == CountryCode.AO
    assert detect_country("351912345678") == CountryCode.PT


def test_unknown_prefix_is_unknown():
    assert detect_country("+14155552671") == CountryCode.UNKNOWN
    assert detect_country("+447911123456") == CountryCode.UNKNOWN


def test_garbage_is_unknown():
    assert detect_country("") == CountryCode.UNKNOWN
    assert detect_country("not a number") == CountryCode.UNKNOWN
    assert detect_country("+") == CountryCode.UNKNOWN


def test_local_angolan_mobile_heuristic():
    assert detect_country("923456789") == CountryCode.AO
    assert detect_country("923 456 789") == CountryCode.AO


def test_local_heuristic_can_be_disabled():
    assert detect_country("923456789", angola_local_heuristic=False) == CountryCode.UNKNOWN


def test_local_heuristic_requires_leading_nine_and_nine_digits():
    assert detect_country("823456789") == CountryCode.UNKNOWN
    assert detect_country("92345678") == CountryCode.UNKNOWN
