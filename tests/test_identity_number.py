"""Tests for South African id number parsing and checksum validation."""

from datetime import date

import pytest

from policyledger.domain import Citizenship, Gender, IdErrorKind, IdType, validate_id
from policyledger.domain.identity_number import luhn_checksum_ok, resolve_century

TODAY = date(2026, 1, 1)


def test_valid_id_derives_birth_date_gender_and_citizenship() -> None:
    result = validate_id("8001015009087", today=TODAY)
    assert result.is_valid
    assert result.errors == []
    assert result.date_of_birth == date(1980, 1, 1)
    assert result.gender is Gender.MALE
    assert result.citizenship is Citizenship.CITIZEN


def test_female_sequence_and_permanent_resident() -> None:
    female = validate_id("9202204720083", today=TODAY)
    assert female.is_valid
    assert female.date_of_birth == date(1992, 2, 20)
    assert female.gender is Gender.FEMALE

    resident = validate_id("8505155123185", today=TODAY)
    assert resident.is_valid
    assert resident.citizenship is Citizenship.PERMANENT_RESIDENT
    assert resident.gender is Gender.MALE


def test_two_digit_year_at_or_below_current_year_is_2000s() -> None:
    result = validate_id("0501014800087", today=TODAY)
    assert result.is_valid
    assert result.date_of_birth == date(2005, 1, 1)
    assert result.gender is Gender.FEMALE


def test_resolve_century() -> None:
    assert resolve_century(80, TODAY) == 1980
    assert resolve_century(26, TODAY) == 2026
    assert resolve_century(27, TODAY) == 1927
    assert resolve_century(0, TODAY) == 2000


@pytest.mark.parametrize("value", ["800101500908", "80010150090871", "", "   "])
def test_wrong_length_only_reports_malformed(value: str) -> None:
    result = validate_id(value, today=TODAY)
    assert not result.is_valid
    assert result.kinds == [IdErrorKind.MALFORMED_ID]
    assert result.errors == ["ID number must be exactly 13 digits"]
    assert result.date_of_birth is None
    assert result.gender is None


def test_non_numeric_only_reports_malformed() -> None:
    result = validate_id("80010150090A7", today=TODAY)
    assert result.kinds == [IdErrorKind.MALFORMED_ID]
    assert result.errors == ["ID number must contain only numeric digits"]


@pytest.mark.parametrize("padded", [" 8001015009087", "8001015009087 ", " 8001015009087 "])
def test_padded_id_is_malformed(padded: str) -> None:
    result = validate_id(padded, today=TODAY)
    assert not result.is_valid
    assert result.kinds == [IdErrorKind.MALFORMED_ID]
    assert result.errors == ["ID number must be exactly 13 digits"]


@pytest.mark.parametrize("position", [0, 3, 6, 9, 12])
def test_single_digit_change_breaks_checksum(position: int) -> None:
    digits = list("8001015009087")
    digits[position] = str((int(digits[position]) + 1) % 10)
    result = validate_id("".join(digits), today=TODAY)
    assert not result.is_valid
    assert result.has(IdErrorKind.CHECKSUM_MISMATCH)


def test_invalid_month_with_valid_checksum() -> None:
    result = validate_id("8013015009082", today=TODAY)
    assert result.kinds == [IdErrorKind.INVALID_BIRTH_DATE]
    assert result.errors == ["Invalid date of birth in ID number"]
    assert result.date_of_birth is None
    # Gender is still derived from a well-formed id.
    assert result.gender is Gender.MALE


def test_february_30_is_rejected() -> None:
    result = validate_id("8002305009084", today=TODAY)
    assert result.kinds == [IdErrorKind.INVALID_BIRTH_DATE]


def test_future_birth_date_is_rejected() -> None:
    result = validate_id("2412315009089", today=date(2024, 6, 1))
    assert result.kinds == [IdErrorKind.INVALID_BIRTH_DATE]
    assert result.errors == ["Date of birth cannot be in the future"]
    assert result.date_of_birth is None


def test_invalid_citizenship_digit() -> None:
    result = validate_id("8001015009285", today=TODAY)
    assert result.kinds == [IdErrorKind.INVALID_CITIZENSHIP_DIGIT]
    assert result.errors == ["Invalid citizenship digit"]


def test_issues_accumulate_in_check_order() -> None:
    # Month 13, citizenship 2 and a wrong check digit.
    result = validate_id("8013015009281", today=TODAY)
    assert result.kinds == [
        IdErrorKind.INVALID_BIRTH_DATE,
        IdErrorKind.INVALID_CITIZENSHIP_DIGIT,
        IdErrorKind.CHECKSUM_MISMATCH,
    ]


def test_passport_accepted_when_non_empty() -> None:
    assert validate_id("A1234567", IdType.PASSPORT).is_valid
    empty = validate_id("  ", IdType.PASSPORT)
    assert empty.kinds == [IdErrorKind.MALFORMED_ID]
    assert empty.errors == ["Passport number is required"]


def test_luhn_checksum() -> None:
    assert luhn_checksum_ok("8001015009087")
    assert luhn_checksum_ok("6001015800081")
    assert not luhn_checksum_ok("6001015800084")
