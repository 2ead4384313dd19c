"""Position registry state machine over join, reroll and publish."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from veilofplay.backend.acl import AccessControlList
from veilofplay.backend.ciphertext import CiphertextBackend, RandomAssignment
from veilofplay.backend.domain import CoordinateDomain
from veilofplay.backend.errors import PlayerNotRegistered
from veilofplay.backend.models import (
    EMPTY_PAIR,
    PUBLIC_GRANTEE,
    DecryptionPermit,
    EncryptedHandle,
    HandlePair,
    PlayerJoined,
    PlayerRecord,
    PlayerStatus,
    PositionAssigned,
    PositionMadePublic,
    RegistryEvent,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[RegistryEvent], None]


@dataclass(frozen=True)
class Checkpoint:
    players: dict[str, PlayerRecord]
    directory: list[str]
    events: list[RegistryEvent]
    grants: dict[str, list[str]]


class PositionRegistry:
    """Owns player records, the ACL and the player directory.

    Operations are not thread-safe; callers sequence them (see
    ``RegistryService``). Every mutating operation computes its new handles
    before touching state, so a failure leaves the registry unchanged. Listeners
    run after a change is committed; their errors are logged and never undo it.
    """

    def __init__(self, domain: CoordinateDomain, backend: CiphertextBackend, permit_secret: str) -> None:
        self.domain = domain
        self.backend = backend
        self.assignment = RandomAssignment(backend=backend)
        self.assignment.validate(domain)
        self.acl = AccessControlList(permit_secret=permit_secret)
        self._players: dict[str, PlayerRecord] = {}
        self._directory: list[str] = []
        self._events: list[RegistryEvent] = []
        self._listeners: list[EventListener] = []
        self._deferred: list[RegistryEvent] | None = None

    @property
    def events(self) -> list[RegistryEvent]:
        return list(self._events)

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def join(self, identity: str) -> HandlePair:
        first_join = identity not in self._players or not self._players[identity].joined
        handles = self._assign(identity)
        if identity not in self._directory:
            self._directory.append(identity)

        if first_join:
            logger.info("Player %s joined", identity)
            self._emit(PlayerJoined(identity=identity))
        self._emit_assigned(identity, handles)
        return handles

    def reroll_position(self, identity: str) -> HandlePair:
        self._require_joined(identity)
        handles = self._assign(identity)
        logger.info("Player %s rerolled position", identity)
        self._emit_assigned(identity, handles)
        return handles

    def make_position_public(self, identity: str) -> HandlePair:
        record = self._require_joined(identity)
        handles = record.handles
        for handle in handles:
            if handle is not None:
                self.acl.grant(handle, PUBLIC_GRANTEE)
        self._players[identity] = PlayerRecord(joined=True, is_public=True, x=record.x, y=record.y)
        logger.info("Player %s made position public", identity)
        self._emit(PositionMadePublic(identity=identity))
        return handles

    def get_encrypted_position(self, identity: str) -> HandlePair:
        record = self._players.get(identity)
        if record is None:
            return EMPTY_PAIR
        return record.handles

    def get_player_status(self, identity: str) -> PlayerStatus:
        record = self._players.get(identity, PlayerRecord())
        return PlayerStatus(joined=record.joined, is_public=record.is_public)

    def get_all_players(self) -> list[str]:
        return list(self._directory)

    def get_grid_bounds(self) -> tuple[int, int]:
        return self.domain.bounds()

    def confidential_protocol_id(self) -> int:
        return self.backend.protocol_id

    def issue_decryption_permit(self, handle: EncryptedHandle, requester: str) -> DecryptionPermit | None:
        return self.acl.issue_permit(handle, requester)

    def record_for(self, identity: str) -> PlayerRecord:
        return self._players.get(identity, PlayerRecord())

    def restore(self, players: dict[str, PlayerRecord], directory: list[str], events: list[RegistryEvent]) -> None:
        self._players = dict(players)
        self._directory = list(dict.fromkeys(directory))
        self._events = list(events)

    def _require_joined(self, identity: str) -> PlayerRecord:
        record = self._players.get(identity)
        if record is None or not record.joined:
            raise PlayerNotRegistered(identity)
        return record

    def _assign(self, identity: str) -> HandlePair:
        handles = self.assignment.generate(self.domain)
        for handle in handles:
            self.acl.grant(handle, identity)
        self._players[identity] = PlayerRecord(joined=True, is_public=False, x=handles.x, y=handles.y)
        return handles

    def _emit_assigned(self, identity: str, handles: HandlePair) -> None:
        record = self._players[identity]
        self._emit(PositionAssigned(identity=identity, x=handles.x, y=handles.y, is_public=record.is_public))

    def checkpoint(self) -> Checkpoint:
        return Checkpoint(
            players=dict(self._players),
            directory=list(self._directory),
            events=list(self._events),
            grants=self.acl.export_grants(),
        )

    def rollback(self, checkpoint: Checkpoint) -> None:
        self._players = dict(checkpoint.players)
        self._directory = list(checkpoint.directory)
        self._events = list(checkpoint.events)
        self.acl.load_grants(checkpoint.grants)

    @contextmanager
    def staged(self) -> Iterator[None]:
        """Apply operations tentatively; roll back and drop their events if the block raises.

        Listeners hear about staged events only once the block completes.
        """
        checkpoint = self.checkpoint()
        self._deferred = []
        try:
            yield
        except BaseException:
            self._deferred = None
            self.rollback(checkpoint)
            raise
        deferred, self._deferred = self._deferred, None
        for event in deferred:
            self._notify(event)

    def _emit(self, event: RegistryEvent) -> None:
        self._events.append(event)
        if self._deferred is not None:
            self._deferred.append(event)
            return
        self._notify(event)

    def _notify(self, event: RegistryEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, type(event).__name__)
