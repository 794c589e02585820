#!/usr/bin/env python3
"""Create store constraints and seed plans and add-on options.

Plans and options belong to the plan-maintenance side of the system; this
seeds a starter set so contracts can be created against a fresh database.
Run from repo root with .env (NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD). Idempotent.
"""
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from policyledger.infrastructure import (  # noqa: E402
    ensure_constraints,
    get_driver,
    load_settings,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

PLANS = [
    {
        "id": "PLN001",
        "name": "Silver",
        "premium": 200.0,
        "cover_amount": 15000.0,
        "max_dependents": 2,
        "features": ["24/7 Support", "No Waiting Period"],
    },
    {
        "id": "PLN002",
        "name": "Gold",
        "premium": 350.0,
        "cover_amount": 25000.0,
        "max_dependents": 4,
        "features": ["24/7 Support", "No Waiting Period", "Family Coverage"],
    },
    {
        "id": "PLN003",
        "name": "Platinum",
        "premium": 400.0,
        "cover_amount": 40000.0,
        "max_dependents": 6,
        "features": ["24/7 Support", "Family Coverage", "Cash Back Rewards", "Premium Waiver"],
    },
]

OPTIONS = [
    {"id": "OPT001", "name": "Catering for 100", "price": 110.0, "category_id": "CATERING"},
    {"id": "OPT002", "name": "Tent and chairs", "price": 110.0, "category_id": "VENUE"},
    {"id": "OPT003", "name": "Tombstone", "price": 150.0, "category_id": "MEMORIAL"},
]

_MERGE_PLAN = """
MERGE (p:Plan {id: $id})
SET p.name = $name,
    p.premium = $premium,
    p.cover_amount = $cover_amount,
    p.max_dependents = $max_dependents,
    p.features = $features
"""

_MERGE_OPTION = """
MERGE (o:AddOnOption {id: $id})
SET o.name = $name,
    o.price = $price,
    o.category_id = $category_id
"""


def main() -> int:
    settings = load_settings(REPO_ROOT / ".env")
    driver = get_driver(settings)
    try:
        ensure_constraints(driver)
        logger.info("Constraints ensured.")
        with driver.session() as session:
            for plan in PLANS:
                session.run(_MERGE_PLAN, **plan)
            for option in OPTIONS:
                session.run(_MERGE_OPTION, **option)
        logger.info("Seeded %d plan(s) and %d add-on option(s).", len(PLANS), len(OPTIONS))
    finally:
        driver.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
