"""Snapshot builders and restoration for registry state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from veilofplay.backend.ciphertext import LocalCiphertextBackend
from veilofplay.backend.domain import CoordinateDomain
from veilofplay.backend.models import EncryptedHandle, PlayerRecord, event_from_dict
from veilofplay.backend.registry import PositionRegistry


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _handle_or_none(raw: str | None) -> EncryptedHandle | None:
    if raw is None:
        return None
    return EncryptedHandle(raw)


def build_snapshot(
    registry: PositionRegistry,
    version: int,
    created_at: str | None = None,
    credentials: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Return a JSON-ready snapshot of the registry and, when local, its ciphertexts.

    ``credentials`` maps identities to token hashes; raw tokens are never stored.
    """
    now = _utc_now_iso()
    minimum, maximum = registry.get_grid_bounds()
    players: dict[str, dict[str, Any]] = {}
    for identity in registry.get_all_players():
        record = registry.record_for(identity)
        players[identity] = {
            "joined": record.joined,
            "isPublic": record.is_public,
            **record.handles.to_dict(),
        }

    snapshot: dict[str, Any] = {
        "version": version,
        "grid": {"min": minimum, "max": maximum},
        "protocolId": registry.confidential_protocol_id(),
        "directory": registry.get_all_players(),
        "players": players,
        "acl": registry.acl.export_grants(),
        "events": [event.to_dict() for event in registry.events],
        "credentials": dict(credentials or {}),
        "meta": {
            "createdAt": created_at or now,
            "updatedAt": now,
        },
    }
    if isinstance(registry.backend, LocalCiphertextBackend):
        snapshot["backend"] = registry.backend.export_state()
    return snapshot


def restore_registry(
    snapshot: dict[str, Any],
    backend: LocalCiphertextBackend,
    permit_secret: str,
) -> PositionRegistry:
    grid = snapshot["grid"]
    domain = CoordinateDomain(minimum=int(grid["min"]), maximum=int(grid["max"]))
    backend.protocol_id = int(snapshot.get("protocolId", backend.protocol_id))
    if "backend" in snapshot:
        backend.load_state(snapshot["backend"])

    registry = PositionRegistry(domain=domain, backend=backend, permit_secret=permit_secret)
    registry.acl.load_grants(snapshot.get("acl", {}))
    players = {
        identity: PlayerRecord(
            joined=bool(payload.get("joined")),
            is_public=bool(payload.get("isPublic")),
            x=_handle_or_none(payload.get("x")),
            y=_handle_or_none(payload.get("y")),
        )
        for identity, payload in snapshot.get("players", {}).items()
    }
    events = [event_from_dict(payload) for payload in snapshot.get("events", [])]
    registry.restore(players=players, directory=list(snapshot.get("directory", [])), events=events)
    return registry
