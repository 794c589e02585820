"""In-memory implementations of the repository ports (no DB).

Each collection is an insertion-ordered dict keyed by generated id. Cross
references are plain id fields; nothing here enforces them.
"""

from typing import Generic, TypeVar

from policyledger.domain import (
    AddOnOption,
    BeneficiaryAttributes,
    Contract,
    DependentAttributes,
    IdType,
    Person,
    Plan,
    Relationship,
    Role,
)

A = TypeVar("A", BeneficiaryAttributes, DependentAttributes)


class InMemoryPersonRepository:
    """Stores persons in memory, indexed by id and by (id_type, id_number)."""

    def __init__(self) -> None:
        self._by_id: dict[str, Person] = {}
        self._by_identity: dict[tuple[IdType, str], str] = {}

    def add(self, person: Person) -> None:
        if person.identity in self._by_identity:
            raise ValueError(f"Person {person.id_type.value} {person.id_number} already exists.")
        self._by_id[person.id] = person
        self._by_identity[person.identity] = person.id

    def update(self, person: Person) -> None:
        old = self._by_id.get(person.id)
        if old is None:
            return
        if old.identity != person.identity:
            self._by_identity.pop(old.identity, None)
            self._by_identity[person.identity] = person.id
        self._by_id[person.id] = person

    def get_by_id(self, person_id: str) -> Person | None:
        return self._by_id.get(person_id)

    def find_by_identity(self, id_type: IdType, id_number: str) -> Person | None:
        person_id = self._by_identity.get((IdType(id_type), id_number))
        return self._by_id.get(person_id) if person_id else None

    def list_all(self) -> list[Person]:
        return list(self._by_id.values())


class InMemoryContractRepository:
    def __init__(self) -> None:
        self._by_number: dict[str, Contract] = {}

    def add(self, contract: Contract) -> None:
        if contract.contract_number in self._by_number:
            raise ValueError(f"Contract {contract.contract_number} already exists.")
        self._by_number[contract.contract_number] = contract

    def update(self, contract: Contract) -> None:
        if contract.contract_number in self._by_number:
            self._by_number[contract.contract_number] = contract

    def get(self, contract_number: str) -> Contract | None:
        return self._by_number.get(contract_number)

    def exists(self, contract_number: str) -> bool:
        return contract_number in self._by_number

    def delete(self, contract_number: str) -> bool:
        return self._by_number.pop(contract_number, None) is not None

    def list_all(self) -> list[Contract]:
        return list(self._by_number.values())


class InMemoryRelationshipRepository:
    def __init__(self) -> None:
        self._by_id: dict[str, Relationship] = {}

    def add(self, relationship: Relationship) -> None:
        self._by_id[relationship.id] = relationship

    def get(self, relationship_id: str) -> Relationship | None:
        return self._by_id.get(relationship_id)

    def delete(self, relationship_id: str) -> bool:
        return self._by_id.pop(relationship_id, None) is not None

    def find(
        self,
        *,
        person_id: str | None = None,
        contract_number: str | None = None,
        role: Role | None = None,
    ) -> list[Relationship]:
        return [
            rel
            for rel in self._by_id.values()
            if (person_id is None or rel.person_id == person_id)
            and (contract_number is None or rel.contract_number == contract_number)
            and (role is None or rel.role is role)
        ]


class InMemoryAttributeRepository(Generic[A]):
    """One satellite collection; `name` identifies it in partial-removal reports."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._by_relationship: dict[str, A] = {}

    def save(self, attributes: A) -> None:
        self._by_relationship[attributes.relationship_id] = attributes

    def get(self, relationship_id: str) -> A | None:
        return self._by_relationship.get(relationship_id)

    def get_many(self, relationship_ids: list[str]) -> dict[str, A]:
        return {
            rid: self._by_relationship[rid]
            for rid in relationship_ids
            if rid in self._by_relationship
        }

    def delete_for_relationship(self, relationship_id: str) -> int:
        return 1 if self._by_relationship.pop(relationship_id, None) is not None else 0

    def relationship_ids(self) -> list[str]:
        return list(self._by_relationship)


class InMemoryReferenceData:
    """Plans and add-on options held in memory (seeded by the caller)."""

    def __init__(
        self,
        plans: list[Plan] | None = None,
        options: list[AddOnOption] | None = None,
    ) -> None:
        self._plans = {plan.id: plan for plan in plans or []}
        self._options = {option.id: option for option in options or []}

    def add_plan(self, plan: Plan) -> None:
        self._plans[plan.id] = plan

    def add_option(self, option: AddOnOption) -> None:
        self._options[option.id] = option

    def get_plan(self, plan_id: str) -> Plan | None:
        return self._plans.get(plan_id)

    def get_option(self, option_id: str) -> AddOnOption | None:
        return self._options.get(option_id)
