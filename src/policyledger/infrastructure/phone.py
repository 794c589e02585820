"""Phone number normalization to E.164 for storage and deduplication."""

from collections.abc import Callable

import phonenumbers

DEFAULT_REGION = "ZA"


def normalize_phone(raw: str, default_region: str | None = DEFAULT_REGION) -> str | None:
    """Parse and return E.164 form of the number, or None if invalid.

    Local numbers ("082 123 4567") are read in default_region. If the number
    already includes a country code, default_region is ignored.
    """
    if not raw or not str(raw).strip():
        return None
    raw = str(raw).strip()
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def phone_normalizer(default_region: str | None = DEFAULT_REGION) -> Callable[[str], str | None]:
    """normalize_phone bound to a region, for PersonRecordStore."""

    def normalize(raw: str) -> str | None:
        return normalize_phone(raw, default_region=default_region)

    return normalize
