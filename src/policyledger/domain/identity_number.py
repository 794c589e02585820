"""South African identity number parsing and checksum validation.

Layout of the 13 digits: YYMMDD SSSS C A Z
  - YYMMDD: date of birth
  - SSSS:   gender sequence (< 5000 female, otherwise male)
  - C:      citizenship (0 citizen, 1 permanent resident)
  - A:      historical, unused
  - Z:      Luhn check digit over the whole number

Pure functions only. Passport numbers are accepted as-is when non-empty.

The century of the birth year is resolved against today's two-digit year:
YY greater than it means 19YY, otherwise 20YY. This misreads birth years once
the two-digit year wraps; kept as a known limitation.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from policyledger.domain.entities import Citizenship, Gender, IdType

NATIONAL_ID_LENGTH = 13
FEMALE_SEQUENCE_LIMIT = 5000


class IdErrorKind(str, Enum):
    MALFORMED_ID = "MalformedId"
    INVALID_BIRTH_DATE = "InvalidBirthDate"
    INVALID_CITIZENSHIP_DIGIT = "InvalidCitizenshipDigit"
    CHECKSUM_MISMATCH = "ChecksumMismatch"


@dataclass(frozen=True)
class IdIssue:
    kind: IdErrorKind
    message: str


@dataclass(frozen=True)
class IdValidationResult:
    """Outcome of validate_id. Issues are in check order; derived facts are set when derivable."""

    issues: tuple[IdIssue, ...] = ()
    date_of_birth: date | None = None
    gender: Gender | None = None
    citizenship: Citizenship | None = None

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def kinds(self) -> list[IdErrorKind]:
        return [issue.kind for issue in self.issues]

    def has(self, kind: IdErrorKind) -> bool:
        return kind in self.kinds


def luhn_checksum_ok(digits: str) -> bool:
    """Luhn over all digits, right to left, doubling every second digit."""
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def resolve_century(two_digit_year: int, today: date) -> int:
    if two_digit_year > today.year % 100:
        return 1900 + two_digit_year
    return 2000 + two_digit_year


def validate_id(
    id_number: str,
    id_type: IdType = IdType.NATIONAL_ID,
    *,
    today: date | None = None,
) -> IdValidationResult:
    """Parse and verify an identity number.

    Length and numeric checks gate everything else; after them all checks run and
    issues accumulate. Gender is always derived for a well-formed national id.
    The national id is checked as given; callers trim input before validating.
    """
    raw = id_number or ""
    if IdType(id_type) is IdType.PASSPORT:
        if not raw.strip():
            return IdValidationResult(
                issues=(IdIssue(IdErrorKind.MALFORMED_ID, "Passport number is required"),)
            )
        return IdValidationResult()

    if len(raw) != NATIONAL_ID_LENGTH:
        return IdValidationResult(
            issues=(IdIssue(IdErrorKind.MALFORMED_ID, "ID number must be exactly 13 digits"),)
        )
    if not (raw.isascii() and raw.isdigit()):
        return IdValidationResult(
            issues=(
                IdIssue(IdErrorKind.MALFORMED_ID, "ID number must contain only numeric digits"),
            )
        )

    today = today or date.today()
    issues: list[IdIssue] = []

    birth_date: date | None = None
    try:
        birth_date = date(
            resolve_century(int(raw[0:2]), today), int(raw[2:4]), int(raw[4:6])
        )
    except ValueError:
        issues.append(
            IdIssue(IdErrorKind.INVALID_BIRTH_DATE, "Invalid date of birth in ID number")
        )
    else:
        if birth_date > today:
            issues.append(
                IdIssue(IdErrorKind.INVALID_BIRTH_DATE, "Date of birth cannot be in the future")
            )
            birth_date = None

    gender = Gender.FEMALE if int(raw[6:10]) < FEMALE_SEQUENCE_LIMIT else Gender.MALE

    citizenship_digit = raw[10]
    if citizenship_digit == "0":
        citizenship = Citizenship.CITIZEN
    elif citizenship_digit == "1":
        citizenship = Citizenship.PERMANENT_RESIDENT
    else:
        citizenship = Citizenship.OTHER
        issues.append(
            IdIssue(IdErrorKind.INVALID_CITIZENSHIP_DIGIT, "Invalid citizenship digit")
        )

    if not luhn_checksum_ok(raw):
        issues.append(IdIssue(IdErrorKind.CHECKSUM_MISMATCH, "Invalid ID number checksum"))

    return IdValidationResult(
        issues=tuple(issues),
        date_of_birth=birth_date,
        gender=gender,
        citizenship=citizenship,
    )
