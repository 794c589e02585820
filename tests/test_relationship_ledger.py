"""Unit tests for RelationshipLedger: attach rules, detach cascade and subscriptions."""

import pytest

from policyledger.application import (
    Attached,
    ChangeFeed,
    ContractHasMainMember,
    ContractNotFound,
    Detached,
    DuplicateRelationship,
    MainMemberConflict,
    PartialRemovalFailure,
    PersistenceError,
    PersonNotFound,
    RelationshipLedger,
    RelationshipNotFound,
    RoleConflict,
)
from policyledger.domain import (
    BeneficiaryAttributes,
    Contract,
    DependentAttributes,
    Person,
    RelationshipLabel,
    Role,
)
from policyledger.infrastructure import (
    InMemoryAttributeRepository,
    InMemoryContractRepository,
    InMemoryPersonRepository,
    InMemoryRelationshipRepository,
)


class _FailingAttributeRepository(InMemoryAttributeRepository):
    """Attribute store whose deletes fail while `failing` is set, as a store timeout would."""

    failing = True

    def delete_for_relationship(self, relationship_id: str) -> int:
        if self.failing:
            raise PersistenceError("timed out", resource=self.name, step="delete")
        return super().delete_for_relationship(relationship_id)


class _Fixture:
    def __init__(self, dependents=None) -> None:
        self.persons = InMemoryPersonRepository()
        self.contracts = InMemoryContractRepository()
        self.relationships = InMemoryRelationshipRepository()
        self.beneficiaries = InMemoryAttributeRepository("BeneficiaryAttributes")
        self.dependents = dependents or InMemoryAttributeRepository("DependentAttributes")
        self.feed = ChangeFeed()
        self.ledger = RelationshipLedger(
            self.relationships,
            self.persons,
            self.contracts,
            [self.beneficiaries, self.dependents],
            self.feed,
        )

    def person(self, id_number: str, first_name: str = "Lerato") -> Person:
        person = Person(id_number=id_number, first_name=first_name, last_name="Nkosi")
        self.persons.add(person)
        return person

    def contract(self, number: str) -> Contract:
        contract = Contract(contract_number=number)
        self.contracts.add(contract)
        return contract


def test_attach_checks_person_and_contract_exist() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")

    assert fx.ledger.attach("missing", "CNT-1", Role.BENEFICIARY) == PersonNotFound(
        person_id="missing"
    )
    assert fx.ledger.attach(alice.id, "CNT-404", Role.BENEFICIARY) == ContractNotFound(
        contract_number="CNT-404"
    )
    assert fx.relationships.find() == []


def test_duplicate_relationship_is_refused() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")

    first = fx.ledger.attach(alice.id, "CNT-1", Role.DEPENDENT)
    assert isinstance(first, Attached)
    second = fx.ledger.attach(alice.id, "CNT-1", Role.DEPENDENT)
    assert isinstance(second, DuplicateRelationship)
    assert len(fx.ledger.list_by_contract("CNT-1")) == 1


def test_main_member_of_one_contract_only() -> None:
    fx = _Fixture()
    fx.contract("CNT-X")
    fx.contract("CNT-Y")
    alice = fx.person("8001015009087")
    bob = fx.person("9202204720083", first_name="Bob")

    assert isinstance(fx.ledger.attach(alice.id, "CNT-X", Role.MAIN_MEMBER), Attached)
    assert isinstance(fx.ledger.attach(bob.id, "CNT-Y", Role.MAIN_MEMBER), Attached)

    conflict = fx.ledger.attach(alice.id, "CNT-Y", Role.MAIN_MEMBER)
    assert conflict == ContractHasMainMember(contract_number="CNT-Y", person_id=bob.id)

    fx.contract("CNT-Z")
    conflict = fx.ledger.attach(alice.id, "CNT-Z", Role.MAIN_MEMBER)
    assert conflict == MainMemberConflict(person_id=alice.id, existing_contract_number="CNT-X")

    # Other roles on other contracts stay allowed.
    assert isinstance(fx.ledger.attach(alice.id, "CNT-Y", Role.BENEFICIARY), Attached)


def test_beneficiary_and_dependent_roles_conflict_on_one_contract() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")

    assert isinstance(fx.ledger.attach(alice.id, "CNT-1", Role.DEPENDENT), Attached)
    result = fx.ledger.attach(alice.id, "CNT-1", Role.BENEFICIARY)
    assert result == RoleConflict(
        person_id=alice.id,
        contract_number="CNT-1",
        existing_role=Role.DEPENDENT,
        requested_role=Role.BENEFICIARY,
    )


def test_main_member_may_also_be_a_dependent() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")
    assert isinstance(fx.ledger.attach(alice.id, "CNT-1", Role.MAIN_MEMBER), Attached)
    assert isinstance(fx.ledger.attach(alice.id, "CNT-1", Role.DEPENDENT), Attached)


def test_listing_filters_and_keeps_creation_order() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    fx.contract("CNT-2")
    a = fx.person("8001015009087")
    b = fx.person("9202204720083")
    c = fx.person("8505155123185")
    r1 = fx.ledger.attach(a.id, "CNT-1", Role.MAIN_MEMBER)
    r2 = fx.ledger.attach(b.id, "CNT-1", Role.BENEFICIARY)
    r3 = fx.ledger.attach(c.id, "CNT-1", Role.BENEFICIARY)
    fx.ledger.attach(b.id, "CNT-2", Role.DEPENDENT)

    assert [r.id for r in fx.ledger.list_by_contract("CNT-1")] == [
        r1.relationship_id,
        r2.relationship_id,
        r3.relationship_id,
    ]
    assert [r.person_id for r in fx.ledger.list_by_contract("CNT-1", Role.BENEFICIARY)] == [
        b.id,
        c.id,
    ]
    assert {r.contract_number for r in fx.ledger.list_by_person(b.id)} == {"CNT-1", "CNT-2"}
    assert fx.ledger.main_member_contract(a.id) == "CNT-1"
    assert fx.ledger.main_member_contract(b.id) is None


def test_detach_removes_attribute_rows_then_relationship() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")
    attached = fx.ledger.attach(alice.id, "CNT-1", Role.BENEFICIARY)
    rid = attached.relationship_id
    fx.beneficiaries.save(
        BeneficiaryAttributes(
            relationship_id=rid,
            relationship_label=RelationshipLabel.SPOUSE,
            benefit_percentage=50,
        )
    )

    assert fx.ledger.detach(rid) == Detached(relationship_id=rid)
    assert fx.ledger.get(rid) is None
    assert fx.beneficiaries.relationship_ids() == []
    # The person record outlives its relationships.
    assert fx.persons.get_by_id(alice.id) is not None


def test_detach_unknown_relationship() -> None:
    fx = _Fixture()
    assert fx.ledger.detach("nope") == RelationshipNotFound(relationship_id="nope")


def test_partial_removal_names_failed_resource_and_can_be_rerun() -> None:
    failing = _FailingAttributeRepository("DependentAttributes")
    fx = _Fixture(dependents=failing)
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")
    rid = fx.ledger.attach(alice.id, "CNT-1", Role.DEPENDENT).relationship_id
    failing.save(
        DependentAttributes(relationship_id=rid, relationship_label=RelationshipLabel.CHILD)
    )

    with pytest.raises(PartialRemovalFailure) as excinfo:
        fx.ledger.detach(rid)
    error = excinfo.value
    assert error.relationship_id == rid
    assert error.failed_resource == "DependentAttributes"
    assert error.completed_steps == ("BeneficiaryAttributes",)
    assert isinstance(error.__cause__, PersistenceError)
    # Relationship row is removed last, so it is still there.
    assert fx.ledger.get(rid) is not None

    failing.failing = False
    assert fx.ledger.detach(rid) == Detached(relationship_id=rid)
    assert fx.ledger.get(rid) is None


def test_subscribe_delivers_snapshot_now_and_after_each_change() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")
    bob = fx.person("9202204720083")
    snapshots: list[list[str]] = []

    subscription = fx.ledger.subscribe(
        "CNT-1", lambda rels: snapshots.append([r.person_id for r in rels])
    )
    assert snapshots == [[]]

    rid = fx.ledger.attach(alice.id, "CNT-1", Role.BENEFICIARY).relationship_id
    fx.ledger.attach(bob.id, "CNT-1", Role.DEPENDENT)
    fx.ledger.detach(rid)
    assert snapshots == [[], [alice.id], [alice.id, bob.id], [bob.id]]

    subscription.cancel()
    subscription.cancel()
    assert not subscription.active
    fx.ledger.attach(alice.id, "CNT-1", Role.MAIN_MEMBER)
    assert len(snapshots) == 4
    assert fx.feed.subscriber_count("CNT-1") == 0


def test_subscription_by_role_and_other_contracts_are_isolated() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    fx.contract("CNT-2")
    alice = fx.person("8001015009087")
    seen: list[int] = []
    fx.ledger.subscribe("CNT-1", lambda rels: seen.append(len(rels)), role=Role.DEPENDENT)

    fx.ledger.attach(alice.id, "CNT-2", Role.DEPENDENT)
    assert seen == [0]
    fx.ledger.attach(alice.id, "CNT-1", Role.MAIN_MEMBER)
    fx.ledger.attach(alice.id, "CNT-1", Role.DEPENDENT)
    assert seen == [0, 0, 1]


def test_failing_listener_does_not_block_others() -> None:
    fx = _Fixture()
    fx.contract("CNT-1")
    alice = fx.person("8001015009087")
    calls: list[int] = []

    def broken(_rels) -> None:
        if calls:
            raise RuntimeError("listener bug")
        calls.append(0)

    fx.ledger.subscribe("CNT-1", broken)
    fx.ledger.subscribe("CNT-1", lambda rels: calls.append(len(rels)))
    fx.ledger.attach(alice.id, "CNT-1", Role.BENEFICIARY)
    assert calls == [0, 0, 1]
