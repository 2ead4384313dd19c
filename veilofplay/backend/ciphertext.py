"""Ciphertext backend contract, local backend and random coordinate assignment."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from veilofplay.backend.domain import CoordinateDomain
from veilofplay.backend.errors import DomainUnsupported
from veilofplay.backend.models import EncryptedHandle, HandlePair

logger = logging.getLogger(__name__)

HANDLE_BYTES = 32


class CiphertextBackend(Protocol):
    protocol_id: int
    bit_width: int

    def supports(self, domain: CoordinateDomain) -> bool:
        """Return whether every value of the domain fits the ciphertext width."""

    def random_in_range(self, domain: CoordinateDomain) -> EncryptedHandle:
        """Encrypt a fresh uniformly random value of the domain and return its handle."""

    def reveal(self, handle: EncryptedHandle) -> int:
        """Return the plaintext behind a handle. Reserved for the decryption oracle."""


@dataclass
class LocalCiphertextBackend:
    """In-process stand-in for a confidential runtime.

    Plaintexts never leave this object except through ``reveal``, which only the
    decryption oracle calls after checking a permit.
    """

    bit_width: int = 8
    protocol_id: int = 1
    randbelow: Callable[[int], int] = field(default=secrets.randbelow, repr=False)

    def __post_init__(self) -> None:
        self._ciphertexts: dict[str, int] = {}

    def supports(self, domain: CoordinateDomain) -> bool:
        return domain.minimum >= 0 and domain.maximum < 2**self.bit_width

    def random_in_range(self, domain: CoordinateDomain) -> EncryptedHandle:
        value = domain.minimum + self.randbelow(domain.width)
        handle = self._new_handle()
        self._ciphertexts[handle.value] = value
        return handle

    def reveal(self, handle: EncryptedHandle) -> int:
        try:
            return self._ciphertexts[handle.value]
        except KeyError:
            raise LookupError(f"Unknown ciphertext handle {handle}") from None

    def export_state(self) -> dict[str, Any]:
        return {"bitWidth": self.bit_width, "ciphertexts": dict(self._ciphertexts)}

    def load_state(self, payload: dict[str, Any]) -> None:
        self.bit_width = int(payload.get("bitWidth", self.bit_width))
        ciphertexts = payload.get("ciphertexts", {})
        self._ciphertexts = {str(key): int(value) for key, value in ciphertexts.items()}

    def _new_handle(self) -> EncryptedHandle:
        while True:
            candidate = "0x" + secrets.token_hex(HANDLE_BYTES)
            if candidate not in self._ciphertexts:
                return EncryptedHandle(candidate)


@dataclass
class RandomAssignment:
    backend: CiphertextBackend

    def validate(self, domain: CoordinateDomain) -> None:
        if not self.backend.supports(domain):
            raise DomainUnsupported(domain.minimum, domain.maximum, self.backend.bit_width)

    def generate(self, domain: CoordinateDomain) -> HandlePair:
        """Return two independent encrypted coordinates drawn uniformly from the domain."""
        x = self.backend.random_in_range(domain)
        y = self.backend.random_in_range(domain)
        logger.debug("Generated encrypted coordinates x=%s y=%s", x, y)
        return HandlePair(x=x, y=y)
