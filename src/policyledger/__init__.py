"""
Policyledger core: relationship and allocation consistency for funeral-policy contracts.

- domain: entities (Person, Contract, Relationship, role attributes) and id number parsing.
- application: services (PersonRecordStore, RelationshipLedger, RoleAttributeService,
  AllocationValidator, ContractService, EnrollmentService), ports and result DTOs.
- infrastructure: adapters (in-memory, Neo4j), settings and wiring.
"""

from policyledger.application import (
    AllocationValidator,
    ContractService,
    EnrollmentService,
    PersistenceError,
    PartialRemovalFailure,
    PersonRecordStore,
    RelationshipLedger,
    RoleAttributeService,
)
from policyledger.domain import (
    Contract,
    ContractStatus,
    IdType,
    Person,
    Relationship,
    Role,
    validate_id,
)
from policyledger.infrastructure import build_in_memory_core, build_neo4j_core

__all__ = [
    "AllocationValidator",
    "Contract",
    "ContractService",
    "ContractStatus",
    "EnrollmentService",
    "IdType",
    "PartialRemovalFailure",
    "PersistenceError",
    "Person",
    "PersonRecordStore",
    "Relationship",
    "RelationshipLedger",
    "Role",
    "RoleAttributeService",
    "build_in_memory_core",
    "build_neo4j_core",
    "validate_id",
]
