"""Result types and read models returned by the application services."""

from dataclasses import dataclass, field

from policyledger.domain import (
    AddOnOption,
    BeneficiaryAttributes,
    Contract,
    ContractStatus,
    DependentAttributes,
    Person,
    Plan,
    Relationship,
    Role,
)


@dataclass(frozen=True)
class Invalid:
    """Input failed shape validation. reason is human-readable."""

    reason: str


# Person store


@dataclass(frozen=True)
class PersonSaved:
    person_id: str
    created: bool


@dataclass(frozen=True)
class PersonNotFound:
    person_id: str


# Relationship ledger


@dataclass(frozen=True)
class Attached:
    relationship_id: str


@dataclass(frozen=True)
class Detached:
    relationship_id: str


@dataclass(frozen=True)
class RelationshipNotFound:
    relationship_id: str


@dataclass(frozen=True)
class DuplicateRelationship:
    person_id: str
    contract_number: str
    role: Role


@dataclass(frozen=True)
class MainMemberConflict:
    """The person already holds the Main Member role on another contract."""

    person_id: str
    existing_contract_number: str


@dataclass(frozen=True)
class ContractHasMainMember:
    contract_number: str
    person_id: str


@dataclass(frozen=True)
class RoleConflict:
    """The person already holds an incompatible role on the same contract."""

    person_id: str
    contract_number: str
    existing_role: Role
    requested_role: Role


# Role attributes


@dataclass(frozen=True)
class AttributesSaved:
    relationship_id: str


# Validator


@dataclass(frozen=True)
class AllocationOk:
    total: float


@dataclass(frozen=True)
class AllocationExceeded:
    current_total: float
    proposed: float

    @property
    def total(self) -> float:
        return round(self.current_total + self.proposed, 6)


@dataclass(frozen=True)
class DependentLimitReached:
    contract_number: str
    max_dependents: int | None = None


@dataclass(frozen=True)
class DuplicatePerson:
    id_number: str
    role: Role


@dataclass(frozen=True)
class SameAsMainMember:
    id_number: str


# Contracts


@dataclass(frozen=True)
class ContractNotFound:
    contract_number: str


@dataclass(frozen=True)
class ContractNotEditable:
    contract_number: str
    status: ContractStatus


@dataclass(frozen=True)
class InvalidTransition:
    contract_number: str
    current: ContractStatus
    requested: ContractStatus


@dataclass(frozen=True)
class IncompleteContract:
    contract_number: str
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class Finalized:
    contract_number: str
    status: ContractStatus


@dataclass(frozen=True)
class AmendmentStarted:
    contract_number: str


@dataclass(frozen=True)
class PlanSelected:
    contract_number: str
    plan_id: str | None
    option_ids: tuple[str, ...]


@dataclass(frozen=True)
class Enrolled:
    """A person was saved and bound to a contract in one enrollment flow."""

    contract_number: str
    person_id: str
    relationship_id: str


# Read models


@dataclass(frozen=True)
class MemberView:
    """One Relationship joined with its Person and its role attributes (if any)."""

    relationship: Relationship
    person: Person
    beneficiary: BeneficiaryAttributes | None = None
    dependent: DependentAttributes | None = None

    @property
    def relationship_id(self) -> str:
        return self.relationship.id

    @property
    def benefit_percentage(self) -> float:
        return self.beneficiary.benefit_percentage if self.beneficiary else 0.0


@dataclass(frozen=True)
class ContractView:
    """Read model of one contract, assembled at read time."""

    contract: Contract
    main_member: MemberView | None
    beneficiaries: tuple[MemberView, ...] = ()
    dependents: tuple[MemberView, ...] = ()
    plan: Plan | None = None
    options: tuple[AddOnOption, ...] = ()
    total_monthly_cost: float = 0.0
    total_allocation: float = 0.0
    completeness_issues: tuple[str, ...] = field(default=())

    @property
    def contract_number(self) -> str:
        return self.contract.contract_number

    @property
    def is_complete(self) -> bool:
        return not self.completeness_issues
