"""Application layer: use cases, ports, result DTOs and errors. Depends only on domain."""

from policyledger.application.allocation_validator import AllocationValidator
from policyledger.application.change_feed import ChangeFeed, ContractLocks, Subscription
from policyledger.application.contract_service import ContractService
from policyledger.application.dto import (
    AllocationExceeded,
    AllocationOk,
    AmendmentStarted,
    Attached,
    AttributesSaved,
    ContractHasMainMember,
    ContractNotEditable,
    ContractNotFound,
    ContractView,
    Detached,
    DependentLimitReached,
    DuplicatePerson,
    DuplicateRelationship,
    Enrolled,
    Finalized,
    IncompleteContract,
    Invalid,
    InvalidTransition,
    MainMemberConflict,
    MemberView,
    PersonNotFound,
    PersonSaved,
    PlanSelected,
    RelationshipNotFound,
    RoleConflict,
    SameAsMainMember,
)
from policyledger.application.enrollment_service import EnrollmentService
from policyledger.application.errors import (
    NumberGenerationExhausted,
    PartialRemovalFailure,
    PersistenceError,
    PolicyLedgerError,
)
from policyledger.application.person_store import PersonRecordStore
from policyledger.application.ports import (
    AttributeRepository,
    ContractRepository,
    PersonRepository,
    ReferenceData,
    RelationshipRepository,
)
from policyledger.application.relationship_ledger import RelationshipLedger
from policyledger.application.role_attributes import RoleAttributeService

__all__ = [
    "AllocationExceeded",
    "AllocationOk",
    "AllocationValidator",
    "AmendmentStarted",
    "Attached",
    "AttributeRepository",
    "AttributesSaved",
    "ChangeFeed",
    "ContractHasMainMember",
    "ContractLocks",
    "ContractNotEditable",
    "ContractNotFound",
    "ContractRepository",
    "ContractService",
    "ContractView",
    "Detached",
    "DependentLimitReached",
    "DuplicatePerson",
    "DuplicateRelationship",
    "Enrolled",
    "EnrollmentService",
    "Finalized",
    "IncompleteContract",
    "Invalid",
    "InvalidTransition",
    "MainMemberConflict",
    "MemberView",
    "NumberGenerationExhausted",
    "PartialRemovalFailure",
    "PersistenceError",
    "PersonNotFound",
    "PersonRecordStore",
    "PersonRepository",
    "PersonSaved",
    "PlanSelected",
    "PolicyLedgerError",
    "ReferenceData",
    "RelationshipLedger",
    "RelationshipNotFound",
    "RelationshipRepository",
    "RoleAttributeService",
    "RoleConflict",
    "SameAsMainMember",
    "Subscription",
]
