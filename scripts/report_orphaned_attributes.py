#!/usr/bin/env python3
"""List role attribute rows whose relationship no longer exists.

Detach deletes attribute rows before the relationship row, so orphans are not
expected; this is a check after a PartialRemovalFailure or a manual edit.
Pass --delete to remove the orphans found.
Run from repo root with .env (NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD).
"""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from policyledger.infrastructure import get_driver, load_settings  # noqa: E402

_FIND_ORPHANS = """
MATCH (a)
WHERE (a:BeneficiaryAttributes OR a:DependentAttributes)
  AND NOT EXISTS {
    MATCH (r:Relationship)
    WHERE r.id = a.relationship_id
  }
RETURN labels(a)[0] AS label, a.relationship_id AS relationship_id
ORDER BY label, relationship_id
"""

_DELETE_ORPHAN = """
MATCH (a)
WHERE (a:BeneficiaryAttributes OR a:DependentAttributes)
  AND a.relationship_id = $relationship_id
DELETE a
"""


def main() -> int:
    delete = "--delete" in sys.argv[1:]
    driver = get_driver(load_settings(REPO_ROOT / ".env"))
    try:
        with driver.session() as session:
            orphans = [
                (r["label"], r["relationship_id"]) for r in session.run(_FIND_ORPHANS)
            ]
        if not orphans:
            print("No orphaned attribute rows.")
            return 0

        for label, relationship_id in orphans:
            print(f"{label}\t{relationship_id}")
        print(f"Found {len(orphans)} orphaned attribute row(s).")

        if delete:
            with driver.session() as session:
                for _, relationship_id in orphans:
                    session.run(_DELETE_ORPHAN, relationship_id=relationship_id)
            print(f"Deleted {len(orphans)} row(s).")
        return 0
    finally:
        driver.close()


if __name__ == "__main__":
    sys.exit(main())
