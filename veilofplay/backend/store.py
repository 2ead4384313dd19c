"""Persistence interfaces and implementations for registry snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
from typing import Any, Protocol
import uuid


class SnapshotStore(Protocol):
    def load_latest(self) -> dict[str, Any] | None:
        """Return the most recent registry snapshot, if any."""

    def save(self, snapshot: dict[str, Any]) -> None:
        """Persist a new registry snapshot version."""


@dataclass
class InMemorySnapshotStore:
    def __post_init__(self) -> None:
        self._snapshots: list[dict[str, Any]] = []

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._snapshots)

    def load_latest(self) -> dict[str, Any] | None:
        if not self._snapshots:
            return None
        return json.loads(json.dumps(self._snapshots[-1]))

    def save(self, snapshot: dict[str, Any]) -> None:
        self._snapshots.append(json.loads(json.dumps(snapshot)))


@dataclass
class PostgresSnapshotStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def load_latest(self) -> dict[str, Any] | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT state_json
                    FROM registry_snapshots
                    ORDER BY version DESC
                    LIMIT 1
                    """,
                    (),
                )
                row = cur.fetchone()

        if row is None:
            return None
        (state_json,) = row
        return state_json if isinstance(state_json, dict) else json.loads(state_json)

    def save(self, snapshot: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO registry_snapshots (id, version, created_at, state_json)
                    VALUES (%s, %s, %s, %s::jsonb)
                    """,
                    (str(uuid.uuid4()), snapshot["version"], now, json.dumps(snapshot)),
                )
            conn.commit()


def create_store(database_url: str | None) -> SnapshotStore:
    if database_url:
        return PostgresSnapshotStore(database_url=database_url)
    return InMemorySnapshotStore()
