"""Permit-gated decryption in front of the ciphertext backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from veilofplay.backend.ciphertext import CiphertextBackend
from veilofplay.backend.errors import AccessDenied
from veilofplay.backend.models import PUBLIC_GRANTEE, DecryptionPermit, EncryptedHandle
from veilofplay.backend.security import verify_permit

logger = logging.getLogger(__name__)


@dataclass
class DecryptionOracle:
    backend: CiphertextBackend
    permit_secret: str

    def decrypt(self, handle: EncryptedHandle, requester: str, permit: DecryptionPermit | None) -> int:
        """Reveal a handle for a requester holding a valid permit for it."""
        if (
            permit is None
            or permit.handle != handle
            or permit.requester not in (requester, PUBLIC_GRANTEE)
            or not verify_permit(permit, self.permit_secret)
        ):
            logger.warning("Decryption of %s denied for %s", handle, requester)
            raise AccessDenied(handle.value, requester)
        return self.backend.reveal(handle)

    def public_decrypt(self, handle: EncryptedHandle, permit: DecryptionPermit | None) -> int:
        return self.decrypt(handle, PUBLIC_GRANTEE, permit)
