"""Domain entities: Person, Contract, Relationship, role attributes and reference data."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

NAME_MAX_LENGTH = 200
MIN_PERCENTAGE = 0.0
MAX_PERCENTAGE = 100.0


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class IdType(str, Enum):
    NATIONAL_ID = "South African ID"
    PASSPORT = "Passport"


class Role(str, Enum):
    MAIN_MEMBER = "Main Member"
    BENEFICIARY = "Beneficiary"
    DEPENDENT = "Dependent"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class Citizenship(str, Enum):
    CITIZEN = "Citizen"
    PERMANENT_RESIDENT = "Permanent Resident"
    OTHER = "Other"


class ContactKind(str, Enum):
    EMAIL = "Email"
    PHONE = "Phone Number"


class RelationshipLabel(str, Enum):
    SPOUSE = "Spouse"
    CHILD = "Child"
    PARENT = "Parent"
    SIBLING = "Sibling"
    OTHER = "Other"


class DependentStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ContractStatus(str, Enum):
    NEW = "New"
    IN_PROGRESS = "In Progress"
    IN_FORCE = "In-Force"
    AMENDED = "Amended"


# One-directional, except Amended which reopens an In-Force contract.
CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.NEW: frozenset({ContractStatus.IN_PROGRESS}),
    ContractStatus.IN_PROGRESS: frozenset({ContractStatus.IN_FORCE}),
    ContractStatus.IN_FORCE: frozenset({ContractStatus.AMENDED}),
    ContractStatus.AMENDED: frozenset({ContractStatus.IN_FORCE}),
}

EDITABLE_STATUSES = frozenset(
    {ContractStatus.NEW, ContractStatus.IN_PROGRESS, ContractStatus.AMENDED}
)


@dataclass(frozen=True)
class ContactMethod:
    """One way of reaching a person. Order within a Person is preserved."""

    kind: ContactKind = ContactKind.EMAIL
    value: str = ""

    def __post_init__(self):
        object.__setattr__(self, "kind", ContactKind(self.kind))
        value = (self.value or "").strip()
        if not value:
            raise ValueError(f"{self.kind.value} contact value must be non-empty.")
        object.__setattr__(self, "value", value)


@dataclass(frozen=True)
class Address:
    street_address: str = ""
    city: str = ""
    state_province: str = ""
    postal_code: str = ""
    country: str = ""

    def __post_init__(self):
        for name in ("street_address", "city", "state_province", "postal_code", "country"):
            object.__setattr__(self, name, (getattr(self, name) or "").strip())

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.street_address, self.city, self.state_province, self.postal_code, self.country)
        )


@dataclass(frozen=True)
class Person:
    """
    A natural individual, identified by (id_type, id_number).
    Shared across contracts and roles; never owned by a single contract.
    """

    id: str = field(default_factory=_new_id)
    id_type: IdType = IdType.NATIONAL_ID
    id_number: str = ""
    first_name: str = ""
    last_name: str = ""
    title: str | None = None
    initials: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    nationality: str | None = None
    contact_methods: tuple[ContactMethod, ...] = ()
    address: Address | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        object.__setattr__(self, "id_type", IdType(self.id_type))
        id_number = (self.id_number or "").strip()
        if not id_number:
            raise ValueError("Person id number must be non-empty.")
        object.__setattr__(self, "id_number", id_number)
        for name in ("first_name", "last_name"):
            value = (getattr(self, name) or "").strip()
            if not value:
                raise ValueError(f"Person {name.replace('_', ' ')} must be non-empty.")
            if len(value) > NAME_MAX_LENGTH:
                raise ValueError(
                    f"Person {name.replace('_', ' ')} must be at most {NAME_MAX_LENGTH} chars."
                )
            object.__setattr__(self, name, value)
        if self.gender is not None:
            object.__setattr__(self, "gender", Gender(self.gender))
        object.__setattr__(self, "contact_methods", tuple(self.contact_methods))

    @property
    def identity(self) -> tuple[IdType, str]:
        return (self.id_type, self.id_number)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class Contract:
    """
    One funeral-policy agreement. The contract number is generated once and never changes.
    A Contract owns its Relationships but not the Persons they reference.
    """

    contract_number: str = ""
    id: str = field(default_factory=_new_id)
    plan_id: str | None = None
    option_ids: tuple[str, ...] = ()
    status: ContractStatus = ContractStatus.NEW
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        if not self.contract_number or not self.contract_number.strip():
            raise ValueError("Contract number must be non-empty.")
        object.__setattr__(self, "status", ContractStatus(self.status))
        object.__setattr__(self, "option_ids", tuple(self.option_ids))

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def can_transition(self, target: ContractStatus) -> bool:
        return ContractStatus(target) in CONTRACT_TRANSITIONS[self.status]


@dataclass(frozen=True)
class Relationship:
    """Binds exactly one Person to exactly one Contract under exactly one Role."""

    person_id: str = ""
    contract_number: str = ""
    role: Role = Role.BENEFICIARY
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        if not self.person_id:
            raise ValueError("Relationship person_id must be non-empty.")
        if not self.contract_number:
            raise ValueError("Relationship contract_number must be non-empty.")
        object.__setattr__(self, "role", Role(self.role))


@dataclass(frozen=True)
class BeneficiaryAttributes:
    """Satellite row of a Beneficiary relationship: label and benefit share."""

    relationship_id: str = ""
    relationship_label: RelationshipLabel = RelationshipLabel.OTHER
    benefit_percentage: float = 0.0
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        if not self.relationship_id:
            raise ValueError("Beneficiary attributes need a relationship_id.")
        object.__setattr__(self, "relationship_label", RelationshipLabel(self.relationship_label))
        pct = self.benefit_percentage
        if isinstance(pct, bool) or not isinstance(pct, (int, float)):
            raise ValueError("Benefit percentage must be a number.")
        if not MIN_PERCENTAGE <= pct <= MAX_PERCENTAGE:
            raise ValueError(
                f"Benefit percentage must be between {MIN_PERCENTAGE:g} and {MAX_PERCENTAGE:g}."
            )
        object.__setattr__(self, "benefit_percentage", float(pct))


@dataclass(frozen=True)
class DependentAttributes:
    """Satellite row of a Dependent relationship: label and cover status."""

    relationship_id: str = ""
    relationship_label: RelationshipLabel = RelationshipLabel.OTHER
    dependent_status: DependentStatus = DependentStatus.ACTIVE
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self):
        if not self.relationship_id:
            raise ValueError("Dependent attributes need a relationship_id.")
        object.__setattr__(self, "relationship_label", RelationshipLabel(self.relationship_label))
        object.__setattr__(self, "dependent_status", DependentStatus(self.dependent_status))


@dataclass(frozen=True)
class Plan:
    """Collaborator-owned plan configuration. Read-only here."""

    id: str
    name: str
    premium: float = 0.0
    cover_amount: float = 0.0
    max_dependents: int = 0
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class AddOnOption:
    """Collaborator-owned add-on option (e.g. catering). Read-only here."""

    id: str
    name: str
    price: float = 0.0
    category_id: str | None = None
