"""Error taxonomy for the position registry and its decryption collaborator."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for registry failures."""


class PlayerNotRegistered(RegistryError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"Player {identity!r} has not joined")
        self.identity = identity


class DomainUnsupported(RegistryError):
    def __init__(self, minimum: int, maximum: int, bit_width: int | None = None) -> None:
        if bit_width is None:
            message = f"Coordinate domain [{minimum}, {maximum}] is empty"
        else:
            message = f"Coordinate domain [{minimum}, {maximum}] does not fit a {bit_width}-bit ciphertext"
        super().__init__(message)
        self.minimum = minimum
        self.maximum = maximum
        self.bit_width = bit_width


class AccessDenied(RegistryError):
    def __init__(self, handle: str, requester: str) -> None:
        super().__init__(f"{requester!r} may not decrypt {handle}")
        self.handle = handle
        self.requester = requester


class InvalidCredentials(RegistryError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"Missing or invalid token for {identity!r}")
        self.identity = identity
