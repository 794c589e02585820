"""Contract aggregator: number generation, read-time joins, completeness and status."""

import logging
import random
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from policyledger.application.allocation_validator import is_full_allocation
from policyledger.application.change_feed import ChangeFeed, Subscription
from policyledger.application.dto import (
    AmendmentStarted,
    ContractNotEditable,
    ContractNotFound,
    ContractView,
    Finalized,
    IncompleteContract,
    Invalid,
    InvalidTransition,
    MemberView,
    PlanSelected,
)
from policyledger.application.errors import NumberGenerationExhausted
from policyledger.application.ports import (
    AttributeRepository,
    ContractRepository,
    PersonRepository,
    ReferenceData,
    RelationshipRepository,
)
from policyledger.domain import (
    AddOnOption,
    BeneficiaryAttributes,
    Contract,
    ContractStatus,
    DependentAttributes,
    Relationship,
    Role,
)

logger = logging.getLogger(__name__)

CONTRACT_PREFIX = "CNT"
MAX_NUMBER_ATTEMPTS = 10
SUFFIX_LENGTH = 3
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContractService:
    """Creates contracts and assembles the full contract view.

    Finalizing is gated on the view's completeness: a main member with first name,
    last name and id number, at least one beneficiary, and exactly 100% allocated.
    """

    def __init__(
        self,
        contracts: ContractRepository,
        relationships: RelationshipRepository,
        persons: PersonRepository,
        beneficiaries: AttributeRepository[BeneficiaryAttributes],
        dependents: AttributeRepository[DependentAttributes],
        reference_data: ReferenceData,
        feed: ChangeFeed,
        *,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
        max_number_attempts: int = MAX_NUMBER_ATTEMPTS,
    ) -> None:
        self._contracts = contracts
        self._relationships = relationships
        self._persons = persons
        self._beneficiaries = beneficiaries
        self._dependents = dependents
        self._reference = reference_data
        self._feed = feed
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._max_number_attempts = max_number_attempts

    # Numbers and lifecycle

    def generate_contract_number(self) -> str:
        """CNT-<base36 millisecond timestamp>-<3 random base36 chars>, upper case."""
        millis = int(self._clock().timestamp() * 1000)
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(SUFFIX_LENGTH))
        return f"{CONTRACT_PREFIX}-{to_base36(millis)}-{suffix}"

    def create_contract(
        self, plan_id: str | None = None, option_ids: tuple[str, ...] | list[str] = ()
    ) -> Contract:
        """Store a New contract under a freshly generated, store-checked unique number."""
        for attempt in range(1, self._max_number_attempts + 1):
            number = self.generate_contract_number()
            if self._contracts.exists(number):
                logger.debug("Contract number %s taken (attempt %d)", number, attempt)
                continue
            contract = Contract(
                contract_number=number,
                plan_id=plan_id,
                option_ids=tuple(option_ids),
                status=ContractStatus.NEW,
            )
            self._contracts.add(contract)
            logger.info("Created contract %s", number)
            return contract
        raise NumberGenerationExhausted(
            f"No unused contract number after {self._max_number_attempts} attempts",
            attempts=self._max_number_attempts,
            resource="Contracts",
            step="generate_contract_number",
        )

    def get_contract(self, contract_number: str) -> Contract | None:
        return self._contracts.get(contract_number)

    def discard_contract(self, contract_number: str) -> bool:
        """Delete a New contract that holds no relationships. Anything else is kept."""
        contract = self._contracts.get(contract_number)
        if contract is None or contract.status is not ContractStatus.NEW:
            return False
        if self._relationships.find(contract_number=contract_number):
            return False
        deleted = self._contracts.delete(contract_number)
        if deleted:
            logger.warning("Discarded contract %s", contract_number)
        return deleted

    def select_plan(
        self,
        contract_number: str,
        plan_id: str | None,
        option_ids: tuple[str, ...] | list[str] = (),
    ) -> PlanSelected | ContractNotFound | ContractNotEditable | Invalid:
        contract = self._contracts.get(contract_number)
        if contract is None:
            return ContractNotFound(contract_number=contract_number)
        if not contract.is_editable:
            return ContractNotEditable(contract_number=contract_number, status=contract.status)
        invalid = self.check_references(plan_id, option_ids)
        if invalid is not None:
            return invalid
        self._contracts.update(
            replace(
                contract,
                plan_id=plan_id,
                option_ids=tuple(option_ids),
                updated_at=self._clock(),
            )
        )
        self._feed.publish(contract_number)
        return PlanSelected(
            contract_number=contract_number, plan_id=plan_id, option_ids=tuple(option_ids)
        )

    def check_references(
        self, plan_id: str | None, option_ids: tuple[str, ...] | list[str] = ()
    ) -> Invalid | None:
        if plan_id and self._reference.get_plan(plan_id) is None:
            return Invalid(reason=f"Unknown plan: {plan_id}")
        for option_id in option_ids:
            if self._reference.get_option(option_id) is None:
                return Invalid(reason=f"Unknown add-on option: {option_id}")
        return None

    def transition(
        self, contract_number: str, target: ContractStatus
    ) -> Contract | ContractNotFound | InvalidTransition:
        contract = self._contracts.get(contract_number)
        if contract is None:
            return ContractNotFound(contract_number=contract_number)
        if contract.status is target:
            return contract
        if not contract.can_transition(target):
            return InvalidTransition(
                contract_number=contract_number, current=contract.status, requested=target
            )
        updated = replace(contract, status=target, updated_at=self._clock())
        self._contracts.update(updated)
        self._feed.publish(contract_number)
        return updated

    def finalize_contract(
        self, contract_number: str
    ) -> Finalized | IncompleteContract | ContractNotFound | InvalidTransition:
        """In Progress or Amended -> In-Force, only when the contract view is complete."""
        contract = self._contracts.get(contract_number)
        if contract is None:
            return ContractNotFound(contract_number=contract_number)
        if not contract.can_transition(ContractStatus.IN_FORCE):
            return InvalidTransition(
                contract_number=contract_number,
                current=contract.status,
                requested=ContractStatus.IN_FORCE,
            )
        view = self.build_contract_view(contract_number)
        if view is None:
            return ContractNotFound(contract_number=contract_number)
        if not view.is_complete:
            return IncompleteContract(
                contract_number=contract_number, reasons=view.completeness_issues
            )
        result = self.transition(contract_number, ContractStatus.IN_FORCE)
        if not isinstance(result, Contract):
            return result
        logger.info("Finalized contract %s", contract_number)
        return Finalized(contract_number=contract_number, status=result.status)

    def begin_amendment(
        self, contract_number: str
    ) -> AmendmentStarted | ContractNotFound | InvalidTransition:
        """Reopen an In-Force contract for edits."""
        result = self.transition(contract_number, ContractStatus.AMENDED)
        if not isinstance(result, Contract):
            return result
        logger.info("Amendment started on contract %s", contract_number)
        return AmendmentStarted(contract_number=contract_number)

    # Read model

    def build_contract_view(self, contract_number: str) -> ContractView | None:
        contract = self._contracts.get(contract_number)
        if contract is None:
            return None

        relationships = self._relationships.find(contract_number=contract_number)
        by_role: dict[Role, list[Relationship]] = {role: [] for role in Role}
        for rel in relationships:
            by_role[rel.role].append(rel)

        beneficiary_rows = self._beneficiaries.get_many([r.id for r in by_role[Role.BENEFICIARY]])
        dependent_rows = self._dependents.get_many([r.id for r in by_role[Role.DEPENDENT]])

        main_members = self._members(by_role[Role.MAIN_MEMBER])
        beneficiaries = self._members(by_role[Role.BENEFICIARY], beneficiary_rows=beneficiary_rows)
        dependents = self._members(by_role[Role.DEPENDENT], dependent_rows=dependent_rows)
        main_member = main_members[0] if main_members else None

        plan = self._reference.get_plan(contract.plan_id) if contract.plan_id else None
        if contract.plan_id and plan is None:
            logger.warning("Contract %s references unknown plan %s", contract_number, contract.plan_id)
        options: list[AddOnOption] = []
        for option_id in contract.option_ids:
            option = self._reference.get_option(option_id)
            if option is None:
                logger.warning(
                    "Contract %s references unknown add-on option %s", contract_number, option_id
                )
                continue
            options.append(option)

        premium = plan.premium if plan else 0.0
        total_cost = round(premium + sum(option.price for option in options), 2)
        allocation = sum(m.benefit_percentage for m in beneficiaries)

        return ContractView(
            contract=contract,
            main_member=main_member,
            beneficiaries=tuple(beneficiaries),
            dependents=tuple(dependents),
            plan=plan,
            options=tuple(options),
            total_monthly_cost=total_cost,
            total_allocation=round(allocation, 6),
            completeness_issues=tuple(
                _completeness_issues(main_member, beneficiaries, allocation)
            ),
        )

    def watch_contract_view(
        self, contract_number: str, on_view: Callable[[ContractView | None], None]
    ) -> Subscription:
        """Deliver build_contract_view now and after every change to the contract."""

        def deliver() -> None:
            on_view(self.build_contract_view(contract_number))

        subscription = self._feed.subscribe(contract_number, deliver)
        deliver()
        return subscription

    def _members(
        self,
        relationships: list[Relationship],
        *,
        beneficiary_rows: dict[str, BeneficiaryAttributes] | None = None,
        dependent_rows: dict[str, DependentAttributes] | None = None,
    ) -> list[MemberView]:
        members = []
        for rel in relationships:
            person = self._persons.get_by_id(rel.person_id)
            if person is None:
                logger.warning(
                    "Relationship %s references missing person %s", rel.id, rel.person_id
                )
                continue
            members.append(
                MemberView(
                    relationship=rel,
                    person=person,
                    beneficiary=(beneficiary_rows or {}).get(rel.id),
                    dependent=(dependent_rows or {}).get(rel.id),
                )
            )
        return members


def _completeness_issues(
    main_member: MemberView | None, beneficiaries: list[MemberView], allocation: float
) -> list[str]:
    issues = []
    if main_member is None:
        issues.append("Main member is required")
    else:
        person = main_member.person
        missing = [
            label
            for label, value in (
                ("First Name", person.first_name),
                ("Last Name", person.last_name),
                ("ID Number", person.id_number),
            )
            if not (value or "").strip()
        ]
        if missing:
            issues.append(f"Main member is missing: {', '.join(missing)}")
    if not beneficiaries:
        issues.append("At least one beneficiary is required")
    if not is_full_allocation(allocation):
        issues.append(f"Beneficiary allocation is {round(allocation, 6):g}%, must be 100%")
    return issues
