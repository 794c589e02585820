"""Role attribute stores: label, benefit percentage and dependent status per relationship.

Only the shape of a single row is validated here. Aggregate rules (allocation
totals, dependent caps) belong to AllocationValidator.
"""

from policyledger.application.dto import AttributesSaved, Invalid, RelationshipNotFound
from policyledger.application.ports import AttributeRepository, RelationshipRepository
from policyledger.application.relationship_ledger import RelationshipLedger
from policyledger.domain import (
    BeneficiaryAttributes,
    DependentAttributes,
    DependentStatus,
    RelationshipLabel,
    Role,
)


def _label(value: RelationshipLabel | str) -> RelationshipLabel | None:
    try:
        return RelationshipLabel(value)
    except ValueError:
        return None


class RoleAttributeService:
    def __init__(
        self,
        relationships: RelationshipRepository,
        beneficiaries: AttributeRepository[BeneficiaryAttributes],
        dependents: AttributeRepository[DependentAttributes],
        ledger: RelationshipLedger,
    ) -> None:
        self._relationships = relationships
        self._beneficiaries = beneficiaries
        self._dependents = dependents
        self._ledger = ledger

    def set_beneficiary_attributes(
        self,
        relationship_id: str,
        label: RelationshipLabel | str,
        percentage: float,
    ) -> AttributesSaved | RelationshipNotFound | Invalid:
        relationship = self._relationships.get(relationship_id)
        if relationship is None:
            return RelationshipNotFound(relationship_id=relationship_id)
        if relationship.role is not Role.BENEFICIARY:
            return Invalid(reason=f"Relationship {relationship_id} is not a beneficiary.")
        parsed_label = _label(label)
        if parsed_label is None:
            return Invalid(reason=f"Unknown relationship to main member: {label!r}")
        try:
            attributes = BeneficiaryAttributes(
                relationship_id=relationship_id,
                relationship_label=parsed_label,
                benefit_percentage=percentage,
            )
        except ValueError as exc:
            return Invalid(reason=str(exc))
        self._beneficiaries.save(attributes)
        self._ledger.notify_changed(relationship.contract_number)
        return AttributesSaved(relationship_id=relationship_id)

    def set_dependent_attributes(
        self,
        relationship_id: str,
        label: RelationshipLabel | str,
        status: DependentStatus | str = DependentStatus.ACTIVE,
    ) -> AttributesSaved | RelationshipNotFound | Invalid:
        relationship = self._relationships.get(relationship_id)
        if relationship is None:
            return RelationshipNotFound(relationship_id=relationship_id)
        if relationship.role is not Role.DEPENDENT:
            return Invalid(reason=f"Relationship {relationship_id} is not a dependent.")
        parsed_label = _label(label)
        if parsed_label is None:
            return Invalid(reason=f"Unknown relationship to main member: {label!r}")
        try:
            parsed_status = DependentStatus(status)
        except ValueError:
            return Invalid(reason=f"Unknown dependent status: {status!r}")
        self._dependents.save(
            DependentAttributes(
                relationship_id=relationship_id,
                relationship_label=parsed_label,
                dependent_status=parsed_status,
            )
        )
        self._ledger.notify_changed(relationship.contract_number)
        return AttributesSaved(relationship_id=relationship_id)

    def get_beneficiary_attributes(self, relationship_id: str) -> BeneficiaryAttributes | None:
        return self._beneficiaries.get(relationship_id)

    def get_dependent_attributes(self, relationship_id: str) -> DependentAttributes | None:
        return self._dependents.get(relationship_id)
