"""Add, edit and remove flows for main members, beneficiaries and dependents.

Each flow validates everything it can before its first write, then writes in
foreign-key order: person, relationship, role attributes. Writes for one
contract are serialized behind a per-contract lock.
"""

import logging
from collections.abc import Callable
from datetime import date

from policyledger.application.allocation_validator import AllocationValidator
from policyledger.application.change_feed import ContractLocks
from policyledger.application.contract_service import ContractService
from policyledger.application.dto import (
    AllocationExceeded,
    Attached,
    AttributesSaved,
    ContractHasMainMember,
    ContractNotEditable,
    ContractNotFound,
    Detached,
    DependentLimitReached,
    DuplicatePerson,
    DuplicateRelationship,
    Enrolled,
    Invalid,
    InvalidTransition,
    MainMemberConflict,
    PersonNotFound,
    RelationshipNotFound,
    RoleConflict,
    SameAsMainMember,
)
from policyledger.application.errors import PersistenceError
from policyledger.application.person_store import PersonRecordStore
from policyledger.application.relationship_ledger import RelationshipLedger
from policyledger.application.role_attributes import RoleAttributeService
from policyledger.domain import (
    Contract,
    ContractStatus,
    DependentStatus,
    Person,
    Relationship,
    RelationshipLabel,
    Role,
)

logger = logging.getLogger(__name__)

CHILD_AGE_LIMIT = 21

AttachFailure = (
    DuplicateRelationship
    | MainMemberConflict
    | ContractHasMainMember
    | RoleConflict
    | PersonNotFound
    | ContractNotFound
)


class EnrollmentService:
    def __init__(
        self,
        persons: PersonRecordStore,
        ledger: RelationshipLedger,
        attributes: RoleAttributeService,
        validator: AllocationValidator,
        contracts: ContractService,
        *,
        locks: ContractLocks | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._persons = persons
        self._ledger = ledger
        self._attributes = attributes
        self._validator = validator
        self._contracts = contracts
        self._locks = locks or ContractLocks()
        self._today = today

    # Main member

    def add_main_member(
        self,
        person: Person,
        plan_id: str | None = None,
        option_ids: tuple[str, ...] | list[str] = (),
    ) -> Enrolled | Invalid | MainMemberConflict | AttachFailure | InvalidTransition:
        """Save the main member, open a new contract for them and move it to In Progress."""
        invalid = self._contracts.check_references(plan_id, option_ids)
        if invalid is not None:
            return invalid
        prepared = self._persons.prepare(person)
        if isinstance(prepared, Invalid):
            return prepared

        # One main-member enrolment at a time per identity.
        with self._locks.for_identity(prepared.id_type.value, prepared.id_number):
            existing = self._persons.find_person(prepared.id_type, prepared.id_number)
            if existing is not None:
                held = self._ledger.main_member_contract(existing.id)
                if held is not None:
                    return MainMemberConflict(
                        person_id=existing.id, existing_contract_number=held
                    )

            saved = self._persons.upsert_person(prepared)
            if isinstance(saved, Invalid):
                return saved
            contract = self._contracts.create_contract(plan_id=plan_id, option_ids=option_ids)
            number = contract.contract_number
            with self._locks.for_contract(number):
                try:
                    attached = self._ledger.attach(saved.person_id, number, Role.MAIN_MEMBER)
                except PersistenceError:
                    self._contracts.discard_contract(number)
                    raise
                if not isinstance(attached, Attached):
                    self._contracts.discard_contract(number)
                    return attached
                moved = self._contracts.transition(number, ContractStatus.IN_PROGRESS)
                if not isinstance(moved, Contract):
                    return moved
        return Enrolled(
            contract_number=number,
            person_id=saved.person_id,
            relationship_id=attached.relationship_id,
        )

    def update_main_member(
        self, contract_number: str, person: Person
    ) -> Enrolled | Invalid | ContractNotFound | ContractNotEditable:
        """Edit the main member's personal data. The identity itself cannot change."""
        with self._locks.for_contract(contract_number):
            contract = self._editable(contract_number)
            if not isinstance(contract, Contract):
                return contract
            held = self._ledger.list_by_contract(contract_number, Role.MAIN_MEMBER)
            if not held:
                return Invalid(reason="Contract has no main member.")
            relationship = held[0]
            saved = self._save_same_identity(relationship, person)
            if isinstance(saved, Invalid):
                return saved
            self._ledger.notify_changed(contract_number)
            return Enrolled(
                contract_number=contract_number,
                person_id=relationship.person_id,
                relationship_id=relationship.id,
            )

    # Beneficiaries

    def add_beneficiary(
        self,
        contract_number: str,
        person: Person,
        label: RelationshipLabel | str,
        percentage: float,
    ) -> (
        Enrolled
        | Invalid
        | ContractNotFound
        | ContractNotEditable
        | SameAsMainMember
        | DuplicatePerson
        | AllocationExceeded
        | AttachFailure
    ):
        with self._locks.for_contract(contract_number):
            contract = self._editable(contract_number)
            if not isinstance(contract, Contract):
                return contract
            parsed_label = _parse_label(label)
            if isinstance(parsed_label, Invalid):
                return parsed_label
            prepared = self._persons.prepare(person)
            if isinstance(prepared, Invalid):
                return prepared
            refused = self._check_new_member(contract_number, prepared, Role.BENEFICIARY)
            if refused is not None:
                return refused
            allocation = self._validator.check_beneficiary_allocation(contract_number, percentage)
            if isinstance(allocation, (AllocationExceeded, Invalid)):
                return allocation

            return self._enroll(
                contract_number,
                prepared,
                Role.BENEFICIARY,
                lambda rel_id: self._attributes.set_beneficiary_attributes(
                    rel_id, parsed_label, percentage
                ),
            )

    def update_beneficiary(
        self,
        relationship_id: str,
        person: Person,
        label: RelationshipLabel | str,
        percentage: float,
    ) -> (
        Enrolled
        | Invalid
        | RelationshipNotFound
        | ContractNotFound
        | ContractNotEditable
        | AllocationExceeded
    ):
        relationship = self._ledger.get(relationship_id)
        if relationship is None:
            return RelationshipNotFound(relationship_id=relationship_id)
        if relationship.role is not Role.BENEFICIARY:
            return Invalid(reason=f"Relationship {relationship_id} is not a beneficiary.")
        number = relationship.contract_number
        with self._locks.for_contract(number):
            contract = self._editable(number)
            if not isinstance(contract, Contract):
                return contract
            parsed_label = _parse_label(label)
            if isinstance(parsed_label, Invalid):
                return parsed_label
            allocation = self._validator.check_beneficiary_allocation(
                number, percentage, excluding_relationship_id=relationship_id
            )
            if isinstance(allocation, (AllocationExceeded, Invalid)):
                return allocation
            saved = self._save_same_identity(relationship, person)
            if isinstance(saved, Invalid):
                return saved
            written = self._attributes.set_beneficiary_attributes(
                relationship_id, parsed_label, percentage
            )
            if not isinstance(written, AttributesSaved):
                return written
            return Enrolled(
                contract_number=number,
                person_id=relationship.person_id,
                relationship_id=relationship_id,
            )

    # Dependents

    def add_dependent(
        self,
        contract_number: str,
        person: Person,
        label: RelationshipLabel | str,
        status: DependentStatus | str = DependentStatus.ACTIVE,
    ) -> (
        Enrolled
        | Invalid
        | ContractNotFound
        | ContractNotEditable
        | SameAsMainMember
        | DuplicatePerson
        | DependentLimitReached
        | AttachFailure
    ):
        with self._locks.for_contract(contract_number):
            contract = self._editable(contract_number)
            if not isinstance(contract, Contract):
                return contract
            parsed_label = _parse_label(label)
            if isinstance(parsed_label, Invalid):
                return parsed_label
            parsed_status = _parse_status(status)
            if isinstance(parsed_status, Invalid):
                return parsed_status
            prepared = self._persons.prepare(person)
            if isinstance(prepared, Invalid):
                return prepared
            too_old = self._check_child_age(prepared, parsed_label)
            if too_old is not None:
                return too_old
            refused = self._check_new_member(contract_number, prepared, Role.DEPENDENT)
            if refused is not None:
                return refused
            current = len(self._ledger.list_by_contract(contract_number, Role.DEPENDENT))
            if not self._validator.check_dependent_limit(contract_number, current):
                return DependentLimitReached(
                    contract_number=contract_number,
                    max_dependents=self._validator.max_dependents(contract_number),
                )

            return self._enroll(
                contract_number,
                prepared,
                Role.DEPENDENT,
                lambda rel_id: self._attributes.set_dependent_attributes(
                    rel_id, parsed_label, parsed_status
                ),
            )

    def update_dependent(
        self,
        relationship_id: str,
        person: Person,
        label: RelationshipLabel | str,
        status: DependentStatus | str = DependentStatus.ACTIVE,
    ) -> Enrolled | Invalid | RelationshipNotFound | ContractNotFound | ContractNotEditable:
        relationship = self._ledger.get(relationship_id)
        if relationship is None:
            return RelationshipNotFound(relationship_id=relationship_id)
        if relationship.role is not Role.DEPENDENT:
            return Invalid(reason=f"Relationship {relationship_id} is not a dependent.")
        number = relationship.contract_number
        with self._locks.for_contract(number):
            contract = self._editable(number)
            if not isinstance(contract, Contract):
                return contract
            parsed_label = _parse_label(label)
            if isinstance(parsed_label, Invalid):
                return parsed_label
            parsed_status = _parse_status(status)
            if isinstance(parsed_status, Invalid):
                return parsed_status
            prepared = self._persons.prepare(person)
            if isinstance(prepared, Invalid):
                return prepared
            too_old = self._check_child_age(prepared, parsed_label)
            if too_old is not None:
                return too_old
            saved = self._save_same_identity(relationship, prepared)
            if isinstance(saved, Invalid):
                return saved
            written = self._attributes.set_dependent_attributes(
                relationship_id, parsed_label, parsed_status
            )
            if not isinstance(written, AttributesSaved):
                return written
            return Enrolled(
                contract_number=number,
                person_id=relationship.person_id,
                relationship_id=relationship_id,
            )

    # Removal

    def remove_member(
        self, relationship_id: str
    ) -> Detached | RelationshipNotFound | Invalid | ContractNotFound | ContractNotEditable:
        """Detach a beneficiary or dependent. The person record itself is kept."""
        relationship = self._ledger.get(relationship_id)
        if relationship is None:
            return RelationshipNotFound(relationship_id=relationship_id)
        if relationship.role is Role.MAIN_MEMBER:
            return Invalid(reason="The main member cannot be removed from a contract.")
        with self._locks.for_contract(relationship.contract_number):
            contract = self._editable(relationship.contract_number)
            if not isinstance(contract, Contract):
                return contract
            return self._ledger.detach(relationship_id)

    # Helpers

    def _editable(self, contract_number: str) -> Contract | ContractNotFound | ContractNotEditable:
        contract = self._contracts.get_contract(contract_number)
        if contract is None:
            return ContractNotFound(contract_number=contract_number)
        if not contract.is_editable:
            return ContractNotEditable(contract_number=contract_number, status=contract.status)
        return contract

    def _check_new_member(
        self, contract_number: str, person: Person, role: Role
    ) -> SameAsMainMember | DuplicatePerson | None:
        main_id = self._validator.main_member_id_number(contract_number)
        if self._validator.check_same_as_main_member(person.id_number, main_id):
            return SameAsMainMember(id_number=person.id_number)
        if self._validator.check_duplicate_person(
            person.id_number, person.id_type, role, contract_number
        ):
            return DuplicatePerson(id_number=person.id_number, role=role)
        return None

    def _check_child_age(self, person: Person, label: RelationshipLabel) -> Invalid | None:
        if label is not RelationshipLabel.CHILD or person.date_of_birth is None:
            return None
        if self._today().year - person.date_of_birth.year >= CHILD_AGE_LIMIT:
            return Invalid(reason=f"Child dependents must be under {CHILD_AGE_LIMIT} years old")
        return None

    def _save_same_identity(self, relationship: Relationship, person: Person) -> str | Invalid:
        prepared = self._persons.prepare(person)
        if isinstance(prepared, Invalid):
            return prepared
        current = self._persons.get_person(relationship.person_id)
        if current is None:
            return Invalid(reason=f"Person {relationship.person_id} no longer exists.")
        if current.identity != prepared.identity:
            return Invalid(
                reason="The ID number of a member cannot change; remove and add the member again."
            )
        saved = self._persons.upsert_person(prepared)
        if isinstance(saved, Invalid):
            return saved
        return saved.person_id

    def _enroll(
        self,
        contract_number: str,
        person: Person,
        role: Role,
        write_attributes: Callable[[str], object],
    ) -> Enrolled | Invalid | AttachFailure:
        saved = self._persons.upsert_person(person)
        if isinstance(saved, Invalid):
            return saved
        attached = self._ledger.attach(saved.person_id, contract_number, role)
        if not isinstance(attached, Attached):
            return attached
        try:
            written = write_attributes(attached.relationship_id)
        except PersistenceError:
            logger.warning(
                "Attribute write failed for %s; detaching it again", attached.relationship_id
            )
            self._ledger.detach(attached.relationship_id)
            raise
        if not isinstance(written, AttributesSaved):
            self._ledger.detach(attached.relationship_id)
            return written
        return Enrolled(
            contract_number=contract_number,
            person_id=saved.person_id,
            relationship_id=attached.relationship_id,
        )


def _parse_label(label: RelationshipLabel | str) -> RelationshipLabel | Invalid:
    try:
        return RelationshipLabel(label)
    except ValueError:
        return Invalid(reason=f"Unknown relationship to main member: {label!r}")


def _parse_status(status: DependentStatus | str) -> DependentStatus | Invalid:
    try:
        return DependentStatus(status)
    except ValueError:
        return Invalid(reason=f"Unknown dependent status: {status!r}")
