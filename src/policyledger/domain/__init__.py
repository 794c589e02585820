"""Domain layer: entities, enumerations and identity number parsing. No dependencies on outer layers."""

from policyledger.domain.entities import (
    AddOnOption,
    Address,
    BeneficiaryAttributes,
    Citizenship,
    ContactKind,
    ContactMethod,
    Contract,
    ContractStatus,
    DependentAttributes,
    DependentStatus,
    Gender,
    IdType,
    Person,
    Plan,
    Relationship,
    RelationshipLabel,
    Role,
)
from policyledger.domain.identity_number import (
    IdErrorKind,
    IdIssue,
    IdValidationResult,
    validate_id,
)

__all__ = [
    "AddOnOption",
    "Address",
    "BeneficiaryAttributes",
    "Citizenship",
    "ContactKind",
    "ContactMethod",
    "Contract",
    "ContractStatus",
    "DependentAttributes",
    "DependentStatus",
    "Gender",
    "IdErrorKind",
    "IdIssue",
    "IdType",
    "IdValidationResult",
    "Person",
    "Plan",
    "Relationship",
    "RelationshipLabel",
    "Role",
    "validate_id",
]
