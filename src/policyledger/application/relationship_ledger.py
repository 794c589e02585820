"""Relationship ledger: the Person x Contract association, tagged by role."""

import logging
from collections.abc import Callable

from policyledger.application.change_feed import ChangeFeed, Subscription
from policyledger.application.dto import (
    Attached,
    ContractHasMainMember,
    ContractNotFound,
    Detached,
    DuplicateRelationship,
    MainMemberConflict,
    PersonNotFound,
    RelationshipNotFound,
    RoleConflict,
)
from policyledger.application.errors import PartialRemovalFailure, PersistenceError
from policyledger.application.ports import (
    AttributeRepository,
    ContractRepository,
    PersonRepository,
    RelationshipRepository,
)
from policyledger.domain import Relationship, Role

logger = logging.getLogger(__name__)

# Roles that cannot be held together by one person on one contract.
_INCOMPATIBLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.MAIN_MEMBER: frozenset({Role.BENEFICIARY}),
    Role.BENEFICIARY: frozenset({Role.MAIN_MEMBER, Role.DEPENDENT}),
    Role.DEPENDENT: frozenset({Role.BENEFICIARY}),
}

RELATIONSHIPS_RESOURCE = "Relationships"


class RelationshipLedger:
    """Creates, removes and lists relationships; publishes a change per contract.

    Referenced Persons and Contracts are checked to exist before every attach.
    Detach removes attribute rows first and the relationship row last.
    """

    def __init__(
        self,
        relationships: RelationshipRepository,
        persons: PersonRepository,
        contracts: ContractRepository,
        attribute_stores: list[AttributeRepository],
        feed: ChangeFeed,
    ) -> None:
        self._relationships = relationships
        self._persons = persons
        self._contracts = contracts
        self._attribute_stores = list(attribute_stores)
        self._feed = feed

    def attach(
        self, person_id: str, contract_number: str, role: Role
    ) -> (
        Attached
        | DuplicateRelationship
        | MainMemberConflict
        | ContractHasMainMember
        | RoleConflict
        | PersonNotFound
        | ContractNotFound
    ):
        role = Role(role)
        if self._persons.get_by_id(person_id) is None:
            return PersonNotFound(person_id=person_id)
        if not self._contracts.exists(contract_number):
            return ContractNotFound(contract_number=contract_number)

        on_contract = self._relationships.find(contract_number=contract_number)
        for rel in on_contract:
            if rel.person_id == person_id and rel.role is role:
                return DuplicateRelationship(
                    person_id=person_id, contract_number=contract_number, role=role
                )
        for rel in on_contract:
            if rel.person_id == person_id and rel.role in _INCOMPATIBLE_ROLES[role]:
                return RoleConflict(
                    person_id=person_id,
                    contract_number=contract_number,
                    existing_role=rel.role,
                    requested_role=role,
                )

        if role is Role.MAIN_MEMBER:
            for rel in on_contract:
                if rel.role is Role.MAIN_MEMBER:
                    return ContractHasMainMember(
                        contract_number=contract_number, person_id=rel.person_id
                    )
            for rel in self._relationships.find(person_id=person_id, role=Role.MAIN_MEMBER):
                if rel.contract_number != contract_number:
                    return MainMemberConflict(
                        person_id=person_id, existing_contract_number=rel.contract_number
                    )

        relationship = Relationship(
            person_id=person_id, contract_number=contract_number, role=role
        )
        self._relationships.add(relationship)
        logger.info(
            "Attached %s %s to contract %s as %s",
            relationship.id,
            person_id,
            contract_number,
            role.value,
        )
        self._feed.publish(contract_number)
        return Attached(relationship_id=relationship.id)

    def detach(self, relationship_id: str) -> Detached | RelationshipNotFound:
        """Remove a relationship and all of its attribute rows.

        Raises PartialRemovalFailure naming the sub-resource that failed; the rows
        still present stay consistent, so calling detach again finishes the job.
        """
        relationship = self._relationships.get(relationship_id)
        if relationship is None:
            return RelationshipNotFound(relationship_id=relationship_id)

        completed: list[str] = []
        try:
            for store in self._attribute_stores:
                self._remove_step(relationship_id, store.name, completed, store.delete_for_relationship)
            self._remove_step(
                relationship_id, RELATIONSHIPS_RESOURCE, completed, self._relationships.delete
            )
        finally:
            if completed:
                self._feed.publish(relationship.contract_number)

        logger.info(
            "Detached %s from contract %s", relationship_id, relationship.contract_number
        )
        return Detached(relationship_id=relationship_id)

    def get(self, relationship_id: str) -> Relationship | None:
        return self._relationships.get(relationship_id)

    def list_by_contract(self, contract_number: str, role: Role | None = None) -> list[Relationship]:
        return self._relationships.find(
            contract_number=contract_number, role=Role(role) if role is not None else None
        )

    def list_by_person(self, person_id: str) -> list[Relationship]:
        return self._relationships.find(person_id=person_id)

    def main_member_contract(self, person_id: str) -> str | None:
        """Contract number on which the person is Main Member, if any."""
        held = self._relationships.find(person_id=person_id, role=Role.MAIN_MEMBER)
        return held[0].contract_number if held else None

    def subscribe(
        self,
        contract_number: str,
        on_snapshot: Callable[[list[Relationship]], None],
        role: Role | None = None,
    ) -> Subscription:
        """Deliver list_by_contract(contract_number, role) now and after every change."""

        def deliver() -> None:
            on_snapshot(self.list_by_contract(contract_number, role))

        subscription = self._feed.subscribe(contract_number, deliver)
        deliver()
        return subscription

    def notify_changed(self, contract_number: str) -> None:
        self._feed.publish(contract_number)

    def _remove_step(
        self,
        relationship_id: str,
        resource: str,
        completed: list[str],
        remove: Callable[[str], object],
    ) -> None:
        try:
            remove(relationship_id)
        except PersistenceError as exc:
            logger.error(
                "Partial removal of relationship %s: %s failed after %s",
                relationship_id,
                resource,
                completed or "no steps",
            )
            raise PartialRemovalFailure(
                f"Removing relationship {relationship_id} failed at {resource}",
                relationship_id=relationship_id,
                failed_resource=resource,
                completed_steps=tuple(completed),
                step="detach",
            ) from exc
        completed.append(resource)
