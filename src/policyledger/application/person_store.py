"""Person record store: lookup by identity, validated upsert, contact normalization."""

import logging
import re
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime, timezone

from policyledger.application.dto import Invalid, PersonSaved
from policyledger.application.ports import PersonRepository
from policyledger.domain import (
    ContactKind,
    ContactMethod,
    IdType,
    IdValidationResult,
    Person,
    validate_id,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{4}$")
# Countries whose postal codes follow the 4-digit South African format.
_SOUTH_AFRICA = {"", "south africa", "za", "rsa"}


class PersonRecordStore:
    """Owns canonical personal, contact and address data of every Person.

    Persons are shared across contracts and roles and are never deleted here.
    """

    def __init__(
        self,
        repository: PersonRepository,
        *,
        normalize_phone: Callable[[str], str | None] | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._repo = repository
        self._normalize_phone = normalize_phone
        self._today = today

    def validate_id(self, id_number: str, id_type: IdType) -> IdValidationResult:
        return validate_id(id_number, id_type, today=self._today())

    def find_person(self, id_type: IdType, id_number: str) -> Person | None:
        """Exact match on (id_type, id_number). Used before every create."""
        id_number = (id_number or "").strip()
        if not id_number:
            return None
        return self._repo.find_by_identity(IdType(id_type), id_number)

    def get_person(self, person_id: str) -> Person | None:
        return self._repo.get_by_id(person_id)

    def prepare(self, person: Person) -> Person | Invalid:
        """Validate a person and return it normalized, with id-derived facts applied."""
        if person.id_type is IdType.NATIONAL_ID:
            result = self.validate_id(person.id_number, person.id_type)
            if not result.is_valid:
                return Invalid(reason="; ".join(result.errors))
            # Facts derived from a valid national id are trusted over typed input.
            person = replace(
                person,
                date_of_birth=result.date_of_birth or person.date_of_birth,
                gender=result.gender or person.gender,
            )

        contacts: list[ContactMethod] = []
        for index, contact in enumerate(person.contact_methods, start=1):
            checked = self._check_contact(contact, index)
            if isinstance(checked, Invalid):
                return checked
            contacts.append(checked)

        address = person.address
        if address is not None:
            if address.is_empty:
                address = None
            elif address.postal_code and address.country.lower() in _SOUTH_AFRICA:
                if not POSTAL_CODE_PATTERN.match(address.postal_code):
                    return Invalid(reason="Invalid South African postal code")

        return replace(person, contact_methods=tuple(contacts), address=address)

    def upsert_person(self, person: Person) -> PersonSaved | Invalid:
        """Create the person, or update the one already stored under the same identity.

        On update the stored id and created_at are kept; contact methods and address
        are replaced wholesale.
        """
        prepared = self.prepare(person)
        if isinstance(prepared, Invalid):
            return prepared

        existing = self._repo.find_by_identity(prepared.id_type, prepared.id_number)
        if existing is None:
            self._repo.add(prepared)
            logger.info("Created person %s", prepared.id)
            return PersonSaved(person_id=prepared.id, created=True)

        updated = replace(
            prepared,
            id=existing.id,
            created_at=existing.created_at,
            updated_at=datetime.now(timezone.utc),
        )
        self._repo.update(updated)
        return PersonSaved(person_id=existing.id, created=False)

    def _check_contact(self, contact: ContactMethod, index: int) -> ContactMethod | Invalid:
        if contact.kind is ContactKind.EMAIL:
            if not EMAIL_PATTERN.match(contact.value):
                return Invalid(reason=f"Invalid email format for contact #{index}")
            return contact
        if self._normalize_phone is None:
            return contact
        normalized = self._normalize_phone(contact.value)
        if normalized is None:
            return Invalid(reason=f"Invalid phone number format for contact #{index}")
        return ContactMethod(kind=ContactKind.PHONE, value=normalized)
