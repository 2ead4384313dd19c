"""Single-writer service wrapping the registry for concurrent callers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from veilofplay.backend.ciphertext import LocalCiphertextBackend
from veilofplay.backend.config import RegistrySettings
from veilofplay.backend.domain import CoordinateDomain
from veilofplay.backend.errors import InvalidCredentials
from veilofplay.backend.models import EncryptedHandle, HandlePair, PUBLIC_GRANTEE, PlayerStatus, RegistryEvent
from veilofplay.backend.oracle import DecryptionOracle
from veilofplay.backend.registry import PositionRegistry
from veilofplay.backend.security import generate_token, hash_token, verify_token
from veilofplay.backend.state import build_snapshot, restore_registry
from veilofplay.backend.store import SnapshotStore, create_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    handles: HandlePair
    events: list[RegistryEvent]
    token: str | None = None


class RegistryService:
    """Serializes registry operations and persists a snapshot after each mutation.

    Callers prove an identity with the token handed out on its first join; only
    the token hash is kept. A mutation counts only once its snapshot is saved:
    if saving fails the registry is rolled back and the version is unchanged.
    """

    def __init__(
        self,
        registry: PositionRegistry,
        oracle: DecryptionOracle,
        server_salt: str,
        store: SnapshotStore | None = None,
        version: int = 0,
        created_at: str | None = None,
        credentials: dict[str, str] | None = None,
    ) -> None:
        self.registry = registry
        self.oracle = oracle
        self.server_salt = server_salt
        self.store = store
        self.version = version
        self._created_at = created_at
        self._credentials: dict[str, str] = dict(credentials or {})
        self._lock = threading.Lock()

    def join(self, identity: str, token: str | None = None) -> MutationResult:
        """Join or re-join; a first join returns the identity's new token."""
        with self._lock:
            credentials = dict(self._credentials)
            issued: str | None = None
            if identity in credentials:
                self._authenticate(identity, token)
            else:
                issued = generate_token()
                credentials[identity] = hash_token(issued, self.server_salt)
            result = self._mutate(self.registry.join, identity, credentials)
            return MutationResult(handles=result.handles, events=result.events, token=issued)

    def reroll_position(self, identity: str, token: str | None) -> MutationResult:
        with self._lock:
            self._authorize_joined(identity, token)
            return self._mutate(self.registry.reroll_position, identity, self._credentials)

    def make_position_public(self, identity: str, token: str | None) -> MutationResult:
        with self._lock:
            self._authorize_joined(identity, token)
            return self._mutate(self.registry.make_position_public, identity, self._credentials)

    def get_encrypted_position(self, identity: str) -> HandlePair:
        with self._lock:
            return self.registry.get_encrypted_position(identity)

    def get_player_status(self, identity: str) -> PlayerStatus:
        with self._lock:
            return self.registry.get_player_status(identity)

    def get_all_players(self) -> list[str]:
        with self._lock:
            return self.registry.get_all_players()

    def get_grid_bounds(self) -> tuple[int, int]:
        return self.registry.get_grid_bounds()

    def confidential_protocol_id(self) -> int:
        return self.registry.confidential_protocol_id()

    def decrypt(self, handle: EncryptedHandle, requester: str, token: str | None) -> int:
        with self._lock:
            self._authenticate(requester, token)
            permit = self.registry.issue_decryption_permit(handle, requester)
            return self.oracle.decrypt(handle, requester, permit)

    def public_decrypt(self, handle: EncryptedHandle) -> int:
        with self._lock:
            permit = self.registry.issue_decryption_permit(handle, PUBLIC_GRANTEE)
            return self.oracle.public_decrypt(handle, permit)

    def _authorize_joined(self, identity: str, token: str | None) -> None:
        # unjoined identities fall through to PlayerNotRegistered
        if self.registry.get_player_status(identity).joined:
            self._authenticate(identity, token)

    def _authenticate(self, identity: str, token: str | None) -> None:
        if not verify_token(token, self._credentials.get(identity), self.server_salt):
            logger.warning("Rejected token for %s", identity)
            raise InvalidCredentials(identity)

    def _mutate(
        self,
        operation: Callable[[str], HandlePair],
        identity: str,
        credentials: dict[str, str],
    ) -> MutationResult:
        next_version = self.version + 1
        with self.registry.staged():
            seen = len(self.registry.events)
            handles = operation(identity)
            events = self.registry.events[seen:]
            if self.store is not None:
                snapshot = build_snapshot(
                    self.registry,
                    version=next_version,
                    created_at=self._created_at,
                    credentials=credentials,
                )
                self.store.save(snapshot)
                self._created_at = snapshot["meta"]["createdAt"]
        self.version = next_version
        self._credentials = dict(credentials)
        return MutationResult(handles=handles, events=events)


def create_service(settings: RegistrySettings, store: SnapshotStore | None = None) -> RegistryService:
    """Build a service from settings, restoring the latest stored snapshot when present."""
    snapshot_store = store if store is not None else create_store(settings.database_url)
    backend = LocalCiphertextBackend(bit_width=settings.ciphertext_bits, protocol_id=settings.protocol_id)

    snapshot = snapshot_store.load_latest()
    if snapshot is None:
        domain = CoordinateDomain(minimum=settings.grid_min, maximum=settings.grid_max)
        registry = PositionRegistry(domain=domain, backend=backend, permit_secret=settings.permit_secret)
        version = 0
    else:
        registry = restore_registry(snapshot, backend=backend, permit_secret=settings.permit_secret)
        version = int(snapshot["version"])
        logger.info("Restored registry snapshot version %s with %s players", version, len(registry.get_all_players()))

    oracle = DecryptionOracle(backend=backend, permit_secret=settings.permit_secret)
    created_at = snapshot.get("meta", {}).get("createdAt") if snapshot is not None else None
    credentials = snapshot.get("credentials", {}) if snapshot is not None else {}
    return RegistryService(
        registry=registry,
        oracle=oracle,
        server_salt=settings.server_salt,
        store=snapshot_store,
        version=version,
        created_at=created_at,
        credentials=credentials,
    )
