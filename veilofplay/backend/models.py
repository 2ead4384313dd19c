"""Domain models for registry state, events and decryption permits."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, NamedTuple

PUBLIC_GRANTEE = "*"

HANDLE_PATTERN = r"^0x[0-9a-f]{64}$"

_HANDLE_RE = re.compile(HANDLE_PATTERN)


@dataclass(frozen=True)
class EncryptedHandle:
    """Opaque reference to a confidentially stored integer."""

    value: str

    def __post_init__(self) -> None:
        if not _HANDLE_RE.match(self.value):
            raise ValueError(f"Malformed ciphertext handle: {self.value!r}")

    def __str__(self) -> str:
        return self.value


class HandlePair(NamedTuple):
    x: EncryptedHandle | None
    y: EncryptedHandle | None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "x": str(self.x) if self.x is not None else None,
            "y": str(self.y) if self.y is not None else None,
        }


EMPTY_PAIR = HandlePair(x=None, y=None)


@dataclass(frozen=True)
class PlayerRecord:
    joined: bool = False
    is_public: bool = False
    x: EncryptedHandle | None = None
    y: EncryptedHandle | None = None

    @property
    def handles(self) -> HandlePair:
        return HandlePair(x=self.x, y=self.y)


class PlayerStatus(NamedTuple):
    joined: bool
    is_public: bool


@dataclass(frozen=True)
class DecryptionPermit:
    handle: EncryptedHandle
    requester: str
    signature: str


@dataclass(frozen=True)
class PlayerJoined:
    identity: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "player_joined", "identity": self.identity}


@dataclass(frozen=True)
class PositionAssigned:
    identity: str
    x: EncryptedHandle
    y: EncryptedHandle
    is_public: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "position_assigned",
            "identity": self.identity,
            "x": str(self.x),
            "y": str(self.y),
            "isPublic": self.is_public,
        }


@dataclass(frozen=True)
class PositionMadePublic:
    identity: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "position_made_public", "identity": self.identity}


RegistryEvent = PlayerJoined | PositionAssigned | PositionMadePublic


def event_from_dict(payload: dict[str, Any]) -> RegistryEvent:
    kind = payload.get("kind")
    if kind == "player_joined":
        return PlayerJoined(identity=payload["identity"])
    if kind == "position_assigned":
        return PositionAssigned(
            identity=payload["identity"],
            x=EncryptedHandle(payload["x"]),
            y=EncryptedHandle(payload["y"]),
            is_public=bool(payload["isPublic"]),
        )
    if kind == "position_made_public":
        return PositionMadePublic(identity=payload["identity"])
    raise ValueError(f"Unknown event kind: {kind!r}")
