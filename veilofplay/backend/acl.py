"""Append-only access-control list over ciphertext handles."""

from __future__ import annotations

from veilofplay.backend.models import PUBLIC_GRANTEE, DecryptionPermit, EncryptedHandle
from veilofplay.backend.security import build_permit


class AccessControlList:
    """Record of which grantees may ask the decryption oracle for which handle.

    Grants are never revoked. A position becomes private again only when its
    owner is issued new handles that carry no public grant.
    """

    def __init__(self, permit_secret: str) -> None:
        self._permit_secret = permit_secret
        self._grants: dict[str, list[str]] = {}

    def grant(self, handle: EncryptedHandle, grantee: str) -> None:
        grantees = self._grants.setdefault(handle.value, [])
        if grantee not in grantees:
            grantees.append(grantee)

    def is_granted(self, handle: EncryptedHandle, grantee: str) -> bool:
        grantees = self._grants.get(handle.value, [])
        return PUBLIC_GRANTEE in grantees or grantee in grantees

    def grantees(self, handle: EncryptedHandle) -> tuple[str, ...]:
        return tuple(self._grants.get(handle.value, []))

    def issue_permit(self, handle: EncryptedHandle, requester: str) -> DecryptionPermit | None:
        if not self.is_granted(handle, requester):
            return None
        return build_permit(handle, requester, self._permit_secret)

    def export_grants(self) -> dict[str, list[str]]:
        return {handle: list(grantees) for handle, grantees in self._grants.items()}

    def load_grants(self, grants: dict[str, list[str]]) -> None:
        self._grants = {str(handle): [str(grantee) for grantee in grantees] for handle, grantees in grants.items()}
