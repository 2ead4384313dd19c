"""Token and permit helpers for caller authentication and decryption."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from veilofplay.backend.models import DecryptionPermit, EncryptedHandle

TOKEN_BYTES = 24


def generate_token() -> str:
    """Generate a URL-safe token proving control of a player identity."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str, server_salt: str) -> str:
    """Create deterministic token hash via sha256(token + server_salt)."""
    payload = f"{token}{server_salt}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def verify_token(raw_token: str | None, expected_hash: str | None, server_salt: str) -> bool:
    if raw_token is None or expected_hash is None:
        return False
    return hmac.compare_digest(hash_token(raw_token, server_salt), expected_hash)


def sign_permit(handle: EncryptedHandle, requester: str, secret: str) -> str:
    """Create deterministic permit signature via HMAC-SHA256(handle|requester)."""
    payload = f"{handle.value}|{requester}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def build_permit(handle: EncryptedHandle, requester: str, secret: str) -> DecryptionPermit:
    return DecryptionPermit(handle=handle, requester=requester, signature=sign_permit(handle, requester, secret))


def verify_permit(permit: DecryptionPermit, secret: str) -> bool:
    """Check that a permit was issued with the shared secret for its handle and requester."""
    expected = sign_permit(permit.handle, permit.requester, secret)
    return hmac.compare_digest(expected, permit.signature)
