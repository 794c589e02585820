"""Application ports (interfaces). Implemented by infrastructure adapters.

Each repository stands for one logical collection of a schemaless store:
documents keyed by a generated id, with personId / contractNumber /
relationshipId cross-references checked only by the services.
Adapters raise PersistenceError on any store failure.
"""

from typing import Protocol, TypeVar

from policyledger.domain import (
    AddOnOption,
    Contract,
    IdType,
    Person,
    Plan,
    Relationship,
    Role,
)

A = TypeVar("A")


class PersonRepository(Protocol):
    """The Members collection, unique by (id_type, id_number)."""

    def add(self, person: Person) -> None:
        """Store a new person with its contact methods and address."""
        ...

    def update(self, person: Person) -> None:
        """Overwrite a stored person. Contact methods and address are replaced wholesale."""
        ...

    def get_by_id(self, person_id: str) -> Person | None:
        ...

    def find_by_identity(self, id_type: IdType, id_number: str) -> Person | None:
        """Exact match on (id_type, id_number), or None."""
        ...


class ContractRepository(Protocol):
    def add(self, contract: Contract) -> None:
        ...

    def update(self, contract: Contract) -> None:
        """Overwrite mutable fields (plan, options, status). The number never changes."""
        ...

    def get(self, contract_number: str) -> Contract | None:
        ...

    def exists(self, contract_number: str) -> bool:
        ...

    def delete(self, contract_number: str) -> bool:
        """Remove a contract. Only used to undo a contract that never got a main member."""
        ...


class RelationshipRepository(Protocol):
    def add(self, relationship: Relationship) -> None:
        ...

    def get(self, relationship_id: str) -> Relationship | None:
        ...

    def delete(self, relationship_id: str) -> bool:
        """Delete one relationship row. Returns False if it did not exist."""
        ...

    def find(
        self,
        *,
        person_id: str | None = None,
        contract_number: str | None = None,
        role: Role | None = None,
    ) -> list[Relationship]:
        """All rows matching every given filter, in creation order."""
        ...


class AttributeRepository(Protocol[A]):
    """A per-role satellite collection keyed by relationship id (one row per relationship)."""

    name: str

    def save(self, attributes: A) -> None:
        """Insert or replace the row for attributes.relationship_id."""
        ...

    def get(self, relationship_id: str) -> A | None:
        ...

    def get_many(self, relationship_ids: list[str]) -> dict[str, A]:
        ...

    def delete_for_relationship(self, relationship_id: str) -> int:
        """Delete every row of the relationship. Returns the number deleted."""
        ...


class ReferenceData(Protocol):
    """Read-only lookups into collaborator-owned plan and option configuration."""

    def get_plan(self, plan_id: str) -> Plan | None:
        ...

    def get_option(self, option_id: str) -> AddOnOption | None:
        ...
