"""Assemble the services over a chosen set of repositories."""

import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime

from policyledger.application import (
    AllocationValidator,
    AttributeRepository,
    ChangeFeed,
    ContractLocks,
    ContractRepository,
    ContractService,
    EnrollmentService,
    PersonRecordStore,
    PersonRepository,
    ReferenceData,
    RelationshipLedger,
    RelationshipRepository,
    RoleAttributeService,
)
from policyledger.domain import AddOnOption, BeneficiaryAttributes, DependentAttributes, Plan
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
)
from policyledger.infrastructure.phone import phone_normalizer
from policyledger.infrastructure.settings import Settings

BENEFICIARY_ATTRIBUTES = "BeneficiaryAttributes"
DEPENDENT_ATTRIBUTES = "DependentAttributes"


@dataclass
class Core:
    persons: PersonRecordStore
    ledger: RelationshipLedger
    attributes: RoleAttributeService
    validator: AllocationValidator
    contracts: ContractService
    enrollment: EnrollmentService
    feed: ChangeFeed


def build_core(
    *,
    persons: PersonRepository,
    contracts: ContractRepository,
    relationships: RelationshipRepository,
    beneficiaries: AttributeRepository[BeneficiaryAttributes],
    dependents: AttributeRepository[DependentAttributes],
    reference_data: ReferenceData,
    phone_region: str | None = "ZA",
    today: Callable[[], date] = date.today,
    clock: Callable[[], datetime] | None = None,
    rng: random.Random | None = None,
) -> Core:
    feed = ChangeFeed()
    person_store = PersonRecordStore(
        persons, normalize_phone=phone_normalizer(phone_region), today=today
    )
    ledger = RelationshipLedger(relationships, persons, contracts, [beneficiaries, dependents], feed)
    attributes = RoleAttributeService(relationships, beneficiaries, dependents, ledger)
    validator = AllocationValidator(relationships, beneficiaries, persons, contracts, reference_data)
    contract_kwargs = {"rng": rng}
    if clock is not None:
        contract_kwargs["clock"] = clock
    contract_service = ContractService(
        contracts,
        relationships,
        persons,
        beneficiaries,
        dependents,
        reference_data,
        feed,
        **contract_kwargs,
    )
    enrollment = EnrollmentService(
        person_store,
        ledger,
        attributes,
        validator,
        contract_service,
        locks=ContractLocks(),
        today=today,
    )
    return Core(
        persons=person_store,
        ledger=ledger,
        attributes=attributes,
        validator=validator,
        contracts=contract_service,
        enrollment=enrollment,
        feed=feed,
    )


def build_in_memory_core(
    plans: list[Plan] | None = None,
    options: list[AddOnOption] | None = None,
    **kwargs,
) -> Core:
    return build_core(
        persons=InMemoryPersonRepository(),
        contracts=InMemoryContractRepository(),
        relationships=InMemoryRelationshipRepository(),
        beneficiaries=InMemoryAttributeRepository(BENEFICIARY_ATTRIBUTES),
        dependents=InMemoryAttributeRepository(DEPENDENT_ATTRIBUTES),
        reference_data=InMemoryReferenceData(plans, options),
        **kwargs,
    )


def build_neo4j_core(driver, settings: Settings, **kwargs) -> Core:
    timeout = settings.query_timeout
    return build_core(
        persons=Neo4jPersonRepository(driver, timeout=timeout),
        contracts=Neo4jContractRepository(driver, timeout=timeout),
        relationships=Neo4jRelationshipRepository(driver, timeout=timeout),
        beneficiaries=Neo4jBeneficiaryAttributeRepository(driver, timeout=timeout),
        dependents=Neo4jDependentAttributeRepository(driver, timeout=timeout),
        reference_data=Neo4jReferenceData(driver, timeout=timeout),
        phone_region=settings.phone_region,
        **kwargs,
    )
