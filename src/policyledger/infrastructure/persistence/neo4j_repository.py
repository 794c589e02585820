"""Neo4j implementations of the repository ports.

Every logical collection is one node label used as a document set:
(:Person), (:ContactMethod), (:Address), (:Contract), (:Relationship),
(:BeneficiaryAttributes), (:DependentAttributes), plus the read-only
(:Plan) and (:AddOnOption) reference nodes. There are no graph edges between
them; person_id / contract_number / relationship_id are plain properties and
are checked by the application services.

Each query runs with an explicit timeout. Driver and server failures,
timeouts included, are raised as PersistenceError.
"""

from datetime import date, datetime

from neo4j import Query
from neo4j.exceptions import DriverError, Neo4jError

from policyledger.application.errors import PersistenceError
from policyledger.domain import (
    AddOnOption,
    Address,
    BeneficiaryAttributes,
    ContactMethod,
    Contract,
    DependentAttributes,
    IdType,
    Person,
    Plan,
    Relationship,
    Role,
)


DEFAULT_QUERY_TIMEOUT = 10.0

_CONSTRAINT_QUERIES = (
    """
    CREATE CONSTRAINT person_identity_unique IF NOT EXISTS
    FOR (p:Person) REQUIRE (p.id_type, p.id_number) IS UNIQUE
    """,
    """
    CREATE CONSTRAINT person_id_unique IF NOT EXISTS
    FOR (p:Person) REQUIRE p.id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT contract_number_unique IF NOT EXISTS
    FOR (c:Contract) REQUIRE c.contract_number IS UNIQUE
    """,
    """
    CREATE CONSTRAINT relationship_id_unique IF NOT EXISTS
    FOR (r:Relationship) REQUIRE r.id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT beneficiary_attributes_unique IF NOT EXISTS
    FOR (a:BeneficiaryAttributes) REQUIRE a.relationship_id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT dependent_attributes_unique IF NOT EXISTS
    FOR (a:DependentAttributes) REQUIRE a.relationship_id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT plan_id_unique IF NOT EXISTS
    FOR (p:Plan) REQUIRE p.id IS UNIQUE
    """,
    """
    CREATE CONSTRAINT addon_option_id_unique IF NOT EXISTS
    FOR (o:AddOnOption) REQUIRE o.id IS UNIQUE
    """,
)


def ensure_constraints(driver) -> None:
    """Create the uniqueness constraints the repositories rely on, if missing."""
    try:
        with driver.session() as session:
            for query in _CONSTRAINT_QUERIES:
                session.run(query)
    except (Neo4jError, DriverError) as exc:
        raise PersistenceError(
            f"Neo4j ensure_constraints failed: {exc}",
            resource="Neo4j",
            step="ensure_constraints",
        ) from exc


def _datetime_to_iso(dt: datetime) -> str:
    return dt.isoformat()


def _iso_to_datetime(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _iso_to_date(s: str | None) -> date | None:
    return date.fromisoformat(s) if s else None


class _Neo4jCollection:
    resource = "Neo4j"

    def __init__(self, driver: object, *, timeout: float | None = DEFAULT_QUERY_TIMEOUT) -> None:
        self._driver = driver
        self._timeout = timeout

    def _run(self, text: str, step: str, **params) -> list:
        try:
            with self._driver.session() as session:
                result = session.run(Query(text, timeout=self._timeout), **params)
                return list(result)
        except (Neo4jError, DriverError) as exc:
            raise PersistenceError(
                f"{self.resource} {step} failed: {exc}", resource=self.resource, step=step
            ) from exc

    def _write_all(self, step: str, statements: list[tuple[str, dict]]) -> None:
        """Run several statements in one write transaction."""
        try:
            with self._driver.session() as session:
                with session.begin_transaction(timeout=self._timeout) as tx:
                    for text, params in statements:
                        tx.run(text, **params)
                    tx.commit()
        except (Neo4jError, DriverError) as exc:
            raise PersistenceError(
                f"{self.resource} {step} failed: {exc}", resource=self.resource, step=step
            ) from exc


_PERSON_RETURN = """
OPTIONAL MATCH (c:ContactMethod {person_id: p.id})
WITH p, c ORDER BY c.position
WITH p, collect(c {.kind, .value}) AS contacts
OPTIONAL MATCH (a:Address {person_id: p.id})
RETURN p, contacts, a
"""

_DELETE_PERSON_DETAILS = """
MATCH (n)
WHERE (n:ContactMethod OR n:Address) AND n.person_id = $person_id
DELETE n
"""

_CREATE_CONTACTS = """
UNWIND $contacts AS contact
CREATE (:ContactMethod {
    person_id: $person_id,
    position: contact.position,
    kind: contact.kind,
    value: contact.value
})
"""

_CREATE_ADDRESS = """
CREATE (:Address {
    person_id: $person_id,
    street_address: $street_address,
    city: $city,
    state_province: $state_province,
    postal_code: $postal_code,
    country: $country
})
"""


class Neo4jPersonRepository(_Neo4jCollection):
    """Persons plus their ContactMethod and Address documents."""

    resource = "Members"

    def add(self, person: Person) -> None:
        self._write_all(
            "add",
            [
                (
                    """
                    CREATE (p:Person {
                        id: $id,
                        id_type: $id_type,
                        id_number: $id_number,
                        first_name: $first_name,
                        last_name: $last_name,
                        title: $title,
                        initials: $initials,
                        date_of_birth: $date_of_birth,
                        gender: $gender,
                        nationality: $nationality,
                        created_at: $created_at,
                        updated_at: $updated_at
                    })
                    """,
                    _person_params(person),
                ),
                *_detail_statements(person),
            ],
        )

    def update(self, person: Person) -> None:
        # Contact methods and address are deleted and re-created, never diffed.
        self._write_all(
            "update",
            [
                (
                    """
                    MATCH (p:Person {id: $id})
                    SET p.id_type = $id_type,
                        p.id_number = $id_number,
                        p.first_name = $first_name,
                        p.last_name = $last_name,
                        p.title = $title,
                        p.initials = $initials,
                        p.date_of_birth = $date_of_birth,
                        p.gender = $gender,
                        p.nationality = $nationality,
                        p.updated_at = $updated_at
                    """,
                    _person_params(person),
                ),
                (_DELETE_PERSON_DETAILS, {"person_id": person.id}),
                *_detail_statements(person),
            ],
        )

    def get_by_id(self, person_id: str) -> Person | None:
        records = self._run(
            "MATCH (p:Person {id: $id})" + _PERSON_RETURN, "get_by_id", id=person_id
        )
        return _record_to_person(records[0]) if records else None

    def find_by_identity(self, id_type: IdType, id_number: str) -> Person | None:
        records = self._run(
            "MATCH (p:Person {id_type: $id_type, id_number: $id_number})" + _PERSON_RETURN,
            "find_by_identity",
            id_type=IdType(id_type).value,
            id_number=id_number,
        )
        return _record_to_person(records[0]) if records else None


def _person_params(person: Person) -> dict:
    return {
        "id": person.id,
        "id_type": person.id_type.value,
        "id_number": person.id_number,
        "first_name": person.first_name,
        "last_name": person.last_name,
        "title": person.title,
        "initials": person.initials,
        "date_of_birth": person.date_of_birth.isoformat() if person.date_of_birth else None,
        "gender": person.gender.value if person.gender else None,
        "nationality": person.nationality,
        "created_at": _datetime_to_iso(person.created_at),
        "updated_at": _datetime_to_iso(person.updated_at),
    }


def _detail_statements(person: Person) -> list[tuple[str, dict]]:
    statements = []
    if person.contact_methods:
        statements.append(
            (
                _CREATE_CONTACTS,
                {
                    "person_id": person.id,
                    "contacts": [
                        {"position": i, "kind": c.kind.value, "value": c.value}
                        for i, c in enumerate(person.contact_methods)
                    ],
                },
            )
        )
    if person.address is not None:
        a = person.address
        statements.append(
            (
                _CREATE_ADDRESS,
                {
                    "person_id": person.id,
                    "street_address": a.street_address,
                    "city": a.city,
                    "state_province": a.state_province,
                    "postal_code": a.postal_code,
                    "country": a.country,
                },
            )
        )
    return statements


def _record_to_person(record) -> Person:
    p = record["p"]
    a = record["a"]
    address = None
    if a is not None:
        address = Address(
            street_address=a.get("street_address") or "",
            city=a.get("city") or "",
            state_province=a.get("state_province") or "",
            postal_code=a.get("postal_code") or "",
            country=a.get("country") or "",
        )
    return Person(
        id=p["id"],
        id_type=IdType(p["id_type"]),
        id_number=p["id_number"],
        first_name=p["first_name"],
        last_name=p["last_name"],
        title=p.get("title"),
        initials=p.get("initials"),
        date_of_birth=_iso_to_date(p.get("date_of_birth")),
        gender=p.get("gender"),
        nationality=p.get("nationality"),
        contact_methods=tuple(
            ContactMethod(kind=c["kind"], value=c["value"]) for c in record["contacts"]
        ),
        address=address,
        created_at=_iso_to_datetime(p["created_at"]),
        updated_at=_iso_to_datetime(p["updated_at"]),
    )


class Neo4jContractRepository(_Neo4jCollection):
    resource = "Contracts"

    def add(self, contract: Contract) -> None:
        self._run(
            """
            CREATE (c:Contract {
                contract_number: $contract_number,
                id: $id,
                plan_id: $plan_id,
                option_ids: $option_ids,
                status: $status,
                created_at: $created_at,
                updated_at: $updated_at
            })
            """,
            "add",
            **_contract_params(contract),
        )

    def update(self, contract: Contract) -> None:
        self._run(
            """
            MATCH (c:Contract {contract_number: $contract_number})
            SET c.plan_id = $plan_id,
                c.option_ids = $option_ids,
                c.status = $status,
                c.updated_at = $updated_at
            """,
            "update",
            **_contract_params(contract),
        )

    def get(self, contract_number: str) -> Contract | None:
        records = self._run(
            "MATCH (c:Contract {contract_number: $contract_number}) RETURN c",
            "get",
            contract_number=contract_number,
        )
        if not records:
            return None
        c = records[0]["c"]
        return Contract(
            contract_number=c["contract_number"],
            id=c["id"],
            plan_id=c.get("plan_id"),
            option_ids=tuple(c.get("option_ids") or ()),
            status=c["status"],
            created_at=_iso_to_datetime(c["created_at"]),
            updated_at=_iso_to_datetime(c["updated_at"]),
        )

    def exists(self, contract_number: str) -> bool:
        records = self._run(
            "MATCH (c:Contract {contract_number: $contract_number}) RETURN count(c) AS n",
            "exists",
            contract_number=contract_number,
        )
        return bool(records and records[0]["n"])

    def delete(self, contract_number: str) -> bool:
        records = self._run(
            """
            MATCH (c:Contract {contract_number: $contract_number})
            DELETE c
            RETURN count(*) AS deleted
            """,
            "delete",
            contract_number=contract_number,
        )
        return bool(records and records[0]["deleted"])


def _contract_params(contract: Contract) -> dict:
    return {
        "contract_number": contract.contract_number,
        "id": contract.id,
        "plan_id": contract.plan_id,
        "option_ids": list(contract.option_ids),
        "status": contract.status.value,
        "created_at": _datetime_to_iso(contract.created_at),
        "updated_at": _datetime_to_iso(contract.updated_at),
    }


class Neo4jRelationshipRepository(_Neo4jCollection):
    resource = "Relationships"

    def add(self, relationship: Relationship) -> None:
        self._run(
            """
            CREATE (r:Relationship {
                id: $id,
                person_id: $person_id,
                contract_number: $contract_number,
                role: $role,
                created_at: $created_at
            })
            """,
            "add",
            id=relationship.id,
            person_id=relationship.person_id,
            contract_number=relationship.contract_number,
            role=relationship.role.value,
            created_at=_datetime_to_iso(relationship.created_at),
        )

    def get(self, relationship_id: str) -> Relationship | None:
        records = self._run(
            "MATCH (r:Relationship {id: $id}) RETURN r", "get", id=relationship_id
        )
        return _node_to_relationship(records[0]["r"]) if records else None

    def delete(self, relationship_id: str) -> bool:
        records = self._run(
            "MATCH (r:Relationship {id: $id}) DELETE r RETURN count(*) AS deleted",
            "delete",
            id=relationship_id,
        )
        return bool(records and records[0]["deleted"])

    def find(
        self,
        *,
        person_id: str | None = None,
        contract_number: str | None = None,
        role: Role | None = None,
    ) -> list[Relationship]:
        records = self._run(
            """
            MATCH (r:Relationship)
            WHERE ($person_id IS NULL OR r.person_id = $person_id)
              AND ($contract_number IS NULL OR r.contract_number = $contract_number)
              AND ($role IS NULL OR r.role = $role)
            RETURN r
            ORDER BY r.created_at, r.id
            """,
            "find",
            person_id=person_id,
            contract_number=contract_number,
            role=Role(role).value if role is not None else None,
        )
        return [_node_to_relationship(rec["r"]) for rec in records]


def _node_to_relationship(r) -> Relationship:
    return Relationship(
        id=r["id"],
        person_id=r["person_id"],
        contract_number=r["contract_number"],
        role=Role(r["role"]),
        created_at=_iso_to_datetime(r["created_at"]),
    )


class _Neo4jAttributeRepository(_Neo4jCollection):
    label = ""

    @property
    def name(self) -> str:
        return self.label

    @property
    def resource(self) -> str:
        return self.label

    def get(self, relationship_id: str):
        records = self._run(
            f"MATCH (a:{self.label} {{relationship_id: $rid}}) RETURN a",
            "get",
            rid=relationship_id,
        )
        return self._to_attributes(records[0]["a"]) if records else None

    def get_many(self, relationship_ids: list[str]) -> dict:
        if not relationship_ids:
            return {}
        records = self._run(
            f"MATCH (a:{self.label}) WHERE a.relationship_id IN $rids RETURN a",
            "get_many",
            rids=list(relationship_ids),
        )
        rows = [self._to_attributes(rec["a"]) for rec in records]
        return {row.relationship_id: row for row in rows}

    def delete_for_relationship(self, relationship_id: str) -> int:
        records = self._run(
            f"MATCH (a:{self.label} {{relationship_id: $rid}}) DELETE a RETURN count(*) AS deleted",
            "delete_for_relationship",
            rid=relationship_id,
        )
        return records[0]["deleted"] if records else 0

    def _to_attributes(self, node):
        raise NotImplementedError


class Neo4jBeneficiaryAttributeRepository(_Neo4jAttributeRepository):
    label = "BeneficiaryAttributes"

    def save(self, attributes: BeneficiaryAttributes) -> None:
        self._run(
            """
            MERGE (a:BeneficiaryAttributes {relationship_id: $rid})
            SET a.relationship_label = $label,
                a.benefit_percentage = $percentage,
                a.updated_at = $updated_at
            """,
            "save",
            rid=attributes.relationship_id,
            label=attributes.relationship_label.value,
            percentage=attributes.benefit_percentage,
            updated_at=_datetime_to_iso(attributes.updated_at),
        )

    def _to_attributes(self, node) -> BeneficiaryAttributes:
        return BeneficiaryAttributes(
            relationship_id=node["relationship_id"],
            relationship_label=node["relationship_label"],
            benefit_percentage=float(node["benefit_percentage"]),
            updated_at=_iso_to_datetime(node["updated_at"]),
        )


class Neo4jDependentAttributeRepository(_Neo4jAttributeRepository):
    label = "DependentAttributes"

    def save(self, attributes: DependentAttributes) -> None:
        self._run(
            """
            MERGE (a:DependentAttributes {relationship_id: $rid})
            SET a.relationship_label = $label,
                a.dependent_status = $status,
                a.updated_at = $updated_at
            """,
            "save",
            rid=attributes.relationship_id,
            label=attributes.relationship_label.value,
            status=attributes.dependent_status.value,
            updated_at=_datetime_to_iso(attributes.updated_at),
        )

    def _to_attributes(self, node) -> DependentAttributes:
        return DependentAttributes(
            relationship_id=node["relationship_id"],
            relationship_label=node["relationship_label"],
            dependent_status=node["dependent_status"],
            updated_at=_iso_to_datetime(node["updated_at"]),
        )


class Neo4jReferenceData(_Neo4jCollection):
    """Read-only plan and add-on option lookups."""

    resource = "ReferenceData"

    def get_plan(self, plan_id: str) -> Plan | None:
        records = self._run("MATCH (p:Plan {id: $id}) RETURN p", "get_plan", id=plan_id)
        if not records:
            return None
        p = records[0]["p"]
        return Plan(
            id=p["id"],
            name=p.get("name") or "",
            premium=float(p.get("premium") or 0),
            cover_amount=float(p.get("cover_amount") or 0),
            max_dependents=int(p.get("max_dependents") or 0),
            features=tuple(p.get("features") or ()),
        )

    def get_option(self, option_id: str) -> AddOnOption | None:
        records = self._run(
            "MATCH (o:AddOnOption {id: $id}) RETURN o", "get_option", id=option_id
        )
        if not records:
            return None
        o = records[0]["o"]
        return AddOnOption(
            id=o["id"],
            name=o.get("name") or "",
            price=float(o.get("price") or 0),
            category_id=o.get("category_id"),
        )
