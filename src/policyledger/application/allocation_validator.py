"""Aggregate checks read across relationships and role attributes.

All checks are read-then-decide. Two concurrent adds to the same contract can
both pass; EnrollmentService serializes per contract inside one process and a
later writer re-validates against a fresh read.
"""

import logging

from policyledger.application.dto import AllocationExceeded, AllocationOk, Invalid
from policyledger.application.errors import PersistenceError
from policyledger.application.ports import (
    AttributeRepository,
    ContractRepository,
    PersonRepository,
    ReferenceData,
    RelationshipRepository,
)
from policyledger.domain import BeneficiaryAttributes, IdType, Role
from policyledger.domain.entities import MAX_PERCENTAGE, MIN_PERCENTAGE

logger = logging.getLogger(__name__)

FULL_ALLOCATION = 100.0
# Absorbs float noise only; a share of 0.001 still counts.
ALLOCATION_TOLERANCE = 1e-9


def exceeds_full_allocation(total: float) -> bool:
    return total > FULL_ALLOCATION + ALLOCATION_TOLERANCE


def is_full_allocation(total: float) -> bool:
    return abs(total - FULL_ALLOCATION) <= ALLOCATION_TOLERANCE


class AllocationValidator:
    def __init__(
        self,
        relationships: RelationshipRepository,
        beneficiaries: AttributeRepository[BeneficiaryAttributes],
        persons: PersonRepository,
        contracts: ContractRepository,
        reference_data: ReferenceData,
    ) -> None:
        self._relationships = relationships
        self._beneficiaries = beneficiaries
        self._persons = persons
        self._contracts = contracts
        self._reference = reference_data

    def allocated_percentage(
        self, contract_number: str, excluding_relationship_id: str | None = None
    ) -> float:
        """Sum of benefit percentages over the contract's beneficiaries."""
        ids = [
            rel.id
            for rel in self._relationships.find(
                contract_number=contract_number, role=Role.BENEFICIARY
            )
            if rel.id != excluding_relationship_id
        ]
        if not ids:
            return 0.0
        rows = self._beneficiaries.get_many(ids)
        return sum(row.benefit_percentage for row in rows.values())

    def check_beneficiary_allocation(
        self,
        contract_number: str,
        proposed_percentage: float,
        excluding_relationship_id: str | None = None,
    ) -> AllocationOk | AllocationExceeded | Invalid:
        """Fail only when the total would go strictly above 100; below 100 is allowed."""
        if isinstance(proposed_percentage, bool) or not isinstance(
            proposed_percentage, (int, float)
        ):
            return Invalid(reason="Benefit percentage must be a number.")
        if not MIN_PERCENTAGE <= proposed_percentage <= MAX_PERCENTAGE:
            return Invalid(
                reason=f"Benefit percentage must be between {MIN_PERCENTAGE:g} and {MAX_PERCENTAGE:g}."
            )
        current = self.allocated_percentage(contract_number, excluding_relationship_id)
        total = current + proposed_percentage
        if exceeds_full_allocation(total):
            return AllocationExceeded(current_total=current, proposed=float(proposed_percentage))
        return AllocationOk(total=round(total, 6))

    def max_dependents(self, contract_number: str) -> int | None:
        """The plan's dependent cap, or None when the contract or plan cannot be read."""
        contract = self._contracts.get(contract_number)
        if contract is None:
            logger.warning("Dependent limit: contract %s not found", contract_number)
            return None
        if not contract.plan_id:
            logger.warning("Dependent limit: contract %s has no plan", contract_number)
            return None
        plan = self._reference.get_plan(contract.plan_id)
        if plan is None:
            logger.warning(
                "Dependent limit: plan %s of contract %s not found",
                contract.plan_id,
                contract_number,
            )
            return None
        return plan.max_dependents

    def check_dependent_limit(self, contract_number: str, current_count: int | None = None) -> bool:
        """Whether one more dependent may be added. Fails closed on any lookup error."""
        try:
            limit = self.max_dependents(contract_number)
            if limit is None:
                return False
            if current_count is None:
                current_count = len(
                    self._relationships.find(contract_number=contract_number, role=Role.DEPENDENT)
                )
        except PersistenceError:
            logger.warning(
                "Dependent limit lookup failed for contract %s; refusing add",
                contract_number,
                exc_info=True,
            )
            return False
        return current_count < limit

    def check_duplicate_person(
        self,
        id_number: str,
        id_type: IdType,
        role: Role,
        contract_number: str,
        excluding_relationship_id: str | None = None,
    ) -> bool:
        """True when this identity already holds the role on the contract."""
        person = self._persons.find_by_identity(IdType(id_type), (id_number or "").strip())
        if person is None:
            return False
        return any(
            rel.id != excluding_relationship_id
            for rel in self._relationships.find(
                person_id=person.id, contract_number=contract_number, role=Role(role)
            )
        )

    @staticmethod
    def check_same_as_main_member(id_number: str, main_member_id_number: str | None) -> bool:
        """True when the id number is the main member's own (the add must be refused)."""
        if not main_member_id_number:
            return False
        return (id_number or "").strip() == main_member_id_number.strip()

    def main_member_id_number(self, contract_number: str) -> str | None:
        held = self._relationships.find(contract_number=contract_number, role=Role.MAIN_MEMBER)
        if not held:
            return None
        person = self._persons.get_by_id(held[0].person_id)
        return person.id_number if person else None
