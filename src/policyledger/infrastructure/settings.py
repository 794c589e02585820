"""Runtime settings from environment variables, with an optional .env file."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from neo4j import GraphDatabase

from policyledger.infrastructure.persistence.neo4j_repository import DEFAULT_QUERY_TIMEOUT
from policyledger.infrastructure.phone import DEFAULT_REGION

# Repo root: from src/policyledger/infrastructure/settings.py go up four levels.
_REPO_ROOT = Path(__file__).resolve().parent.parent.parent.parent


@dataclass(frozen=True)
class Settings:
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
    phone_region: str = DEFAULT_REGION


def _load_env_file(env_file: Path | None) -> None:
    candidates = [env_file] if env_file else [_REPO_ROOT / ".env", Path.cwd() / ".env"]
    for path in candidates:
        if path.exists():
            load_dotenv(path)
            break


def load_settings(env_file: Path | None = None) -> Settings:
    """Read settings from the environment after loading .env (repo root or cwd)."""
    _load_env_file(env_file)
    timeout_raw = os.environ.get("POLICYLEDGER_QUERY_TIMEOUT", "").strip()
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_QUERY_TIMEOUT
    except ValueError:
        raise ValueError(
            f"POLICYLEDGER_QUERY_TIMEOUT must be a number of seconds, got {timeout_raw!r}"
        ) from None
    if timeout <= 0:
        raise ValueError("POLICYLEDGER_QUERY_TIMEOUT must be positive.")
    return Settings(
        neo4j_uri=os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip(),
        neo4j_user=os.environ.get("NEO4J_USER", "neo4j").strip(),
        neo4j_password=os.environ.get("NEO4J_PASSWORD", "password").strip(),
        query_timeout=timeout,
        phone_region=os.environ.get("POLICYLEDGER_PHONE_REGION", DEFAULT_REGION).strip().upper()
        or DEFAULT_REGION,
    )


def get_driver(settings: Settings):
    return GraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password),
        connection_timeout=settings.query_timeout,
    )
