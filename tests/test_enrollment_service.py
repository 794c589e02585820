"""Flow tests for EnrollmentService over the in-memory wiring."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from policyledger.application import (
    AllocationExceeded,
    ContractNotEditable,
    Detached,
    DependentLimitReached,
    DuplicatePerson,
    Enrolled,
    Finalized,
    Invalid,
    MainMemberConflict,
    PersistenceError,
    PersonNotFound,
    RoleConflict,
    SameAsMainMember,
)
from policyledger.domain import (
    ContactKind,
    ContactMethod,
    ContractStatus,
    DependentStatus,
    Gender,
    Person,
    Plan,
    RelationshipLabel,
    Role,
)
from policyledger.infrastructure import (
    InMemoryAttributeRepository,
    InMemoryContractRepository,
    InMemoryPersonRepository,
    InMemoryReferenceData,
    InMemoryRelationshipRepository,
    build_core,
    build_in_memory_core,
)

TODAY = date(2026, 1, 1)
SILVER = Plan(id="PLN001", name="Silver", premium=200.0, cover_amount=15000.0, max_dependents=2)


def _core():
    return build_in_memory_core(plans=[SILVER], today=lambda: TODAY)


def _person(id_number: str, first_name: str = "Sipho", last_name: str = "Ndlovu", **kwargs):
    return Person(id_number=id_number, first_name=first_name, last_name=last_name, **kwargs)


def _main_member(core, id_number: str = "8001015009087") -> Enrolled:
    enrolled = core.enrollment.add_main_member(_person(id_number), plan_id="PLN001")
    assert isinstance(enrolled, Enrolled)
    return enrolled


def test_add_main_member_opens_contract_in_progress() -> None:
    core = _core()
    enrolled = _main_member(core)

    contract = core.contracts.get_contract(enrolled.contract_number)
    assert contract.status is ContractStatus.IN_PROGRESS
    assert contract.plan_id == "PLN001"
    person = core.persons.get_person(enrolled.person_id)
    assert person.date_of_birth == date(1980, 1, 1)
    assert person.gender is Gender.MALE
    assert core.ledger.main_member_contract(enrolled.person_id) == enrolled.contract_number


def test_add_main_member_rejects_bad_input_before_any_write() -> None:
    core = _core()
    assert core.enrollment.add_main_member(_person("8001015009087"), plan_id="PLN404") == Invalid(
        reason="Unknown plan: PLN404"
    )
    result = core.enrollment.add_main_member(_person("6001015800084"), plan_id="PLN001")
    assert result == Invalid(reason="Invalid ID number checksum")
    assert core.persons.find_person("South African ID", "8001015009087") is None


def test_main_member_conflict_but_beneficiary_elsewhere_is_fine() -> None:
    core = _core()
    first = _main_member(core, "8001015009087")
    other = _main_member(core, "7505055000088")

    again = core.enrollment.add_main_member(_person("8001015009087"), plan_id="PLN001")
    assert again == MainMemberConflict(
        person_id=first.person_id, existing_contract_number=first.contract_number
    )

    result = core.enrollment.add_beneficiary(
        other.contract_number, _person("8001015009087"), RelationshipLabel.SIBLING, 100
    )
    assert isinstance(result, Enrolled)
    assert result.person_id == first.person_id


def test_beneficiaries_fill_allocation_then_refuse_overflow() -> None:
    core = _core()
    number = _main_member(core).contract_number

    for id_number, label, share in (
        ("9202204720083", RelationshipLabel.SPOUSE, 40),
        ("8505155123185", RelationshipLabel.SIBLING, 35),
        ("0501014800087", RelationshipLabel.CHILD, 25),
    ):
        result = core.enrollment.add_beneficiary(number, _person(id_number), label, share)
        assert isinstance(result, Enrolled)

    view = core.contracts.build_contract_view(number)
    assert view.total_allocation == 100.0
    assert view.is_complete

    overflow = core.enrollment.add_beneficiary(
        number, _person("9001014800089"), RelationshipLabel.OTHER, 1
    )
    assert overflow == AllocationExceeded(current_total=100.0, proposed=1.0)
    sliver = core.enrollment.add_beneficiary(
        number, _person("9001014800089"), RelationshipLabel.OTHER, 0.004
    )
    assert isinstance(sliver, AllocationExceeded)
    assert core.persons.find_person("South African ID", "9001014800089") is None
    assert len(core.ledger.list_by_contract(number, Role.BENEFICIARY)) == 3

    assert core.contracts.finalize_contract(number) == Finalized(
        contract_number=number, status=ContractStatus.IN_FORCE
    )


def test_main_member_cannot_be_own_beneficiary() -> None:
    core = _core()
    number = _main_member(core).contract_number
    result = core.enrollment.add_beneficiary(
        number, _person("8001015009087"), RelationshipLabel.OTHER, 10
    )
    assert result == SameAsMainMember(id_number="8001015009087")


def test_same_beneficiary_twice_is_duplicate() -> None:
    core = _core()
    number = _main_member(core).contract_number
    core.enrollment.add_beneficiary(number, _person("9202204720083"), RelationshipLabel.SPOUSE, 50)
    result = core.enrollment.add_beneficiary(
        number, _person("9202204720083"), RelationshipLabel.SPOUSE, 10
    )
    assert result == DuplicatePerson(id_number="9202204720083", role=Role.BENEFICIARY)


def test_dependent_cannot_also_be_beneficiary() -> None:
    core = _core()
    number = _main_member(core).contract_number
    dep = core.enrollment.add_dependent(number, _person("9202204720083"), RelationshipLabel.SPOUSE)
    assert isinstance(dep, Enrolled)

    result = core.enrollment.add_beneficiary(
        number, _person("9202204720083"), RelationshipLabel.SPOUSE, 50
    )
    assert isinstance(result, RoleConflict)
    assert result.existing_role is Role.DEPENDENT


def test_dependent_cap_and_room_after_removal() -> None:
    core = _core()
    number = _main_member(core).contract_number

    first = core.enrollment.add_dependent(number, _person("1503035000084"), RelationshipLabel.CHILD)
    second = core.enrollment.add_dependent(number, _person("1806064000085"), "Child")
    assert isinstance(first, Enrolled)
    assert isinstance(second, Enrolled)

    third = core.enrollment.add_dependent(number, _person("2001015000082"), RelationshipLabel.CHILD)
    assert third == DependentLimitReached(contract_number=number, max_dependents=2)

    assert core.enrollment.remove_member(first.relationship_id) == Detached(
        relationship_id=first.relationship_id
    )
    third = core.enrollment.add_dependent(number, _person("2001015000082"), RelationshipLabel.CHILD)
    assert isinstance(third, Enrolled)
    assert core.attributes.get_dependent_attributes(first.relationship_id) is None
    # The removed dependent's person record is kept.
    assert core.persons.get_person(first.person_id) is not None


def test_dependent_without_plan_is_refused() -> None:
    core = _core()
    enrolled = core.enrollment.add_main_member(_person("8001015009087"))
    result = core.enrollment.add_dependent(
        enrolled.contract_number, _person("1503035000084"), RelationshipLabel.CHILD
    )
    assert result == DependentLimitReached(
        contract_number=enrolled.contract_number, max_dependents=None
    )


def test_child_dependent_must_be_under_21() -> None:
    core = _core()
    number = _main_member(core).contract_number

    result = core.enrollment.add_dependent(number, _person("0101015000082"), RelationshipLabel.CHILD)
    assert result == Invalid(reason="Child dependents must be under 21 years old")

    sibling = core.enrollment.add_dependent(
        number, _person("0101015000082"), RelationshipLabel.SIBLING, DependentStatus.INACTIVE
    )
    assert isinstance(sibling, Enrolled)
    attrs = core.attributes.get_dependent_attributes(sibling.relationship_id)
    assert attrs.dependent_status is DependentStatus.INACTIVE


def test_one_person_across_contracts_is_one_record() -> None:
    core = _core()
    x = _main_member(core, "8001015009087").contract_number
    y = _main_member(core, "7505055000088").contract_number

    as_beneficiary = core.enrollment.add_beneficiary(
        x,
        _person(
            "9503034000087",
            first_name="Ayanda",
            contact_methods=(ContactMethod(kind=ContactKind.EMAIL, value="ayanda@example.com"),),
        ),
        RelationshipLabel.SIBLING,
        50,
    )
    as_dependent = core.enrollment.add_dependent(
        y,
        _person(
            "9503034000087",
            first_name="Ayanda",
            contact_methods=(ContactMethod(kind=ContactKind.PHONE, value="082 123 4567"),),
        ),
        RelationshipLabel.SPOUSE,
    )
    assert as_beneficiary.person_id == as_dependent.person_id
    # The later save replaced the contact methods wholesale.
    person = core.persons.get_person(as_beneficiary.person_id)
    assert [c.value for c in person.contact_methods] == ["+27821234567"]


def test_update_beneficiary_rechecks_allocation_excluding_itself() -> None:
    core = _core()
    number = _main_member(core).contract_number
    a = core.enrollment.add_beneficiary(number, _person("9202204720083"), "Spouse", 60)
    core.enrollment.add_beneficiary(number, _person("8505155123185"), "Sibling", 30)

    assert isinstance(
        core.enrollment.update_beneficiary(a.relationship_id, _person("9202204720083"), "Spouse", 70),
        Enrolled,
    )
    over = core.enrollment.update_beneficiary(
        a.relationship_id, _person("9202204720083"), "Spouse", 71
    )
    assert over == AllocationExceeded(current_total=30.0, proposed=71.0)
    assert core.attributes.get_beneficiary_attributes(a.relationship_id).benefit_percentage == 70.0


def test_update_cannot_change_identity() -> None:
    core = _core()
    number = _main_member(core).contract_number
    a = core.enrollment.add_beneficiary(number, _person("9202204720083"), "Spouse", 60)

    result = core.enrollment.update_beneficiary(
        a.relationship_id, _person("8505155123185"), "Spouse", 60
    )
    assert result == Invalid(
        reason="The ID number of a member cannot change; remove and add the member again."
    )


def test_update_normalizes_input_before_comparing_identity() -> None:
    core = _core()
    number = _main_member(core).contract_number
    a = core.enrollment.add_beneficiary(number, _person("9202204720083"), "Spouse", 60)

    padded = _person(
        " 9202204720083 ",
        contact_methods=(ContactMethod(kind=ContactKind.PHONE, value="082 123 4567"),),
    )
    updated = core.enrollment.update_beneficiary(a.relationship_id, padded, "Spouse", 60)
    assert isinstance(updated, Enrolled)
    person = core.persons.get_person(a.person_id)
    assert [c.value for c in person.contact_methods] == ["+27821234567"]

    bad = core.enrollment.update_beneficiary(
        a.relationship_id, _person("6001015800084"), "Spouse", 60
    )
    assert bad == Invalid(reason="Invalid ID number checksum")


def test_update_main_member_details() -> None:
    core = _core()
    enrolled = _main_member(core)
    result = core.enrollment.update_main_member(
        enrolled.contract_number, _person("8001015009087", first_name="Sibusiso")
    )
    assert result == enrolled
    assert core.persons.get_person(enrolled.person_id).first_name == "Sibusiso"


def test_update_dependent_label_and_status() -> None:
    core = _core()
    number = _main_member(core).contract_number
    dep = core.enrollment.add_dependent(number, _person("8808084000080"), "Spouse")

    result = core.enrollment.update_dependent(
        dep.relationship_id, _person("8808084000080"), "Spouse", "Inactive"
    )
    assert isinstance(result, Enrolled)
    attrs = core.attributes.get_dependent_attributes(dep.relationship_id)
    assert attrs.dependent_status is DependentStatus.INACTIVE


def test_main_member_cannot_be_removed() -> None:
    core = _core()
    enrolled = _main_member(core)
    assert core.enrollment.remove_member(enrolled.relationship_id) == Invalid(
        reason="The main member cannot be removed from a contract."
    )


def test_in_force_contract_is_locked_until_amended() -> None:
    core = _core()
    number = _main_member(core).contract_number
    core.enrollment.add_beneficiary(number, _person("9202204720083"), "Spouse", 100)
    assert isinstance(core.contracts.finalize_contract(number), Finalized)

    locked = core.enrollment.add_dependent(number, _person("1503035000084"), "Child")
    assert locked == ContractNotEditable(contract_number=number, status=ContractStatus.IN_FORCE)

    core.contracts.begin_amendment(number)
    reopened = core.enrollment.add_dependent(number, _person("1503035000084"), "Child")
    assert isinstance(reopened, Enrolled)


class _FailingSaves(InMemoryAttributeRepository):
    def save(self, attributes) -> None:
        raise PersistenceError("timed out", resource=self.name, step="save")


def test_attribute_write_failure_rolls_back_the_relationship() -> None:
    core = build_core(
        persons=InMemoryPersonRepository(),
        contracts=InMemoryContractRepository(),
        relationships=InMemoryRelationshipRepository(),
        beneficiaries=_FailingSaves("BeneficiaryAttributes"),
        dependents=InMemoryAttributeRepository("DependentAttributes"),
        reference_data=InMemoryReferenceData([SILVER]),
        today=lambda: TODAY,
    )
    number = _main_member(core).contract_number

    with pytest.raises(PersistenceError):
        core.enrollment.add_beneficiary(number, _person("9202204720083"), "Spouse", 50)
    assert core.ledger.list_by_contract(number, Role.BENEFICIARY) == []


class _SlowContracts(InMemoryContractRepository):
    def add(self, contract) -> None:
        time.sleep(0.05)
        super().add(contract)


def test_concurrent_main_member_enrolments_of_one_person() -> None:
    contracts = _SlowContracts()
    core = build_core(
        persons=InMemoryPersonRepository(),
        contracts=contracts,
        relationships=InMemoryRelationshipRepository(),
        beneficiaries=InMemoryAttributeRepository("BeneficiaryAttributes"),
        dependents=InMemoryAttributeRepository("DependentAttributes"),
        reference_data=InMemoryReferenceData([SILVER]),
        today=lambda: TODAY,
    )
    start = threading.Barrier(2)

    def enrol():
        start.wait()
        return core.enrollment.add_main_member(_person("8001015009087"), plan_id="PLN001")

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = [f.result() for f in [pool.submit(enrol), pool.submit(enrol)]]

    enrolled = [r for r in results if isinstance(r, Enrolled)]
    conflicts = [r for r in results if isinstance(r, MainMemberConflict)]
    assert len(enrolled) == 1
    assert len(conflicts) == 1
    assert conflicts[0].existing_contract_number == enrolled[0].contract_number
    held = core.ledger.list_by_person(enrolled[0].person_id)
    assert [r.role for r in held] == [Role.MAIN_MEMBER]
    assert [c.contract_number for c in contracts.list_all()] == [enrolled[0].contract_number]


class _PersonsHiddenById(InMemoryPersonRepository):
    def get_by_id(self, person_id: str):
        return None


class _FailingRelationshipAdds(InMemoryRelationshipRepository):
    def add(self, relationship) -> None:
        raise PersistenceError("timed out", resource="Relationships", step="add")


def _core_over(*, persons=None, relationships=None):
    contracts = InMemoryContractRepository()
    core = build_core(
        persons=persons or InMemoryPersonRepository(),
        contracts=contracts,
        relationships=relationships or InMemoryRelationshipRepository(),
        beneficiaries=InMemoryAttributeRepository("BeneficiaryAttributes"),
        dependents=InMemoryAttributeRepository("DependentAttributes"),
        reference_data=InMemoryReferenceData([SILVER]),
        today=lambda: TODAY,
    )
    return core, contracts


def test_refused_main_member_attach_leaves_no_contract() -> None:
    core, contracts = _core_over(persons=_PersonsHiddenById())
    result = core.enrollment.add_main_member(_person("8001015009087"), plan_id="PLN001")
    assert isinstance(result, PersonNotFound)
    assert contracts.list_all() == []


def test_failed_main_member_attach_leaves_no_contract() -> None:
    core, contracts = _core_over(relationships=_FailingRelationshipAdds())
    with pytest.raises(PersistenceError):
        core.enrollment.add_main_member(_person("8001015009087"), plan_id="PLN001")
    assert contracts.list_all() == []


def test_discard_keeps_contracts_that_are_in_use() -> None:
    core = _core()
    enrolled = _main_member(core)
    assert not core.contracts.discard_contract(enrolled.contract_number)
    blank = core.contracts.create_contract(plan_id="PLN001").contract_number
    assert core.contracts.discard_contract(blank)
    assert core.contracts.get_contract(blank) is None
    assert not core.contracts.discard_contract(blank)
