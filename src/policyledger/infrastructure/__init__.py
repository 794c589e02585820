"""Infrastructure layer: concrete implementations of application ports."""

from policyledger.infrastructure.memory_repository import (
    InMemoryAttributeRepository,
    InMemoryContractRepository,
    InMemoryPersonRepository,
    InMemoryReferenceData,
    InMemoryRelationshipRepository,
)
from policyledger.infrastructure.persistence.neo4j_repository import (
    Neo4jBeneficiaryAttributeRepository,
    Neo4jContractRepository,
    Neo4jDependentAttributeRepository,
    Neo4jPersonRepository,
    Neo4jReferenceData,
    Neo4jRelationshipRepository,
    ensure_constraints,
)
from policyledger.infrastructure.phone import normalize_phone, phone_normalizer
from policyledger.infrastructure.settings import Settings, get_driver, load_settings
from policyledger.infrastructure.wiring import (
    Core,
    build_core,
    build_in_memory_core,
    build_neo4j_core,
)

__all__ = [
    "Core",
    "InMemoryAttributeRepository",
    "InMemoryContractRepository",
    "InMemoryPersonRepository",
    "InMemoryReferenceData",
    "InMemoryRelationshipRepository",
    "Neo4jBeneficiaryAttributeRepository",
    "Neo4jContractRepository",
    "Neo4jDependentAttributeRepository",
    "Neo4jPersonRepository",
    "Neo4jReferenceData",
    "Neo4jRelationshipRepository",
    "Settings",
    "build_core",
    "build_in_memory_core",
    "build_neo4j_core",
    "ensure_constraints",
    "get_driver",
    "load_settings",
    "normalize_phone",
    "phone_normalizer",
]
