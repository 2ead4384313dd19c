"""Backend package for the confidential position registry."""

from .acl import AccessControlList
from .ciphertext import CiphertextBackend, LocalCiphertextBackend, RandomAssignment
from .config import RegistrySettings, configure_logging, load_settings
from .domain import CoordinateDomain
from .errors import AccessDenied, DomainUnsupported, InvalidCredentials, PlayerNotRegistered, RegistryError
from .models import PUBLIC_GRANTEE, EncryptedHandle, HandlePair, PlayerRecord, PlayerStatus
from .oracle import DecryptionOracle
from .registry import PositionRegistry
from .service import RegistryService, create_service
from .store import InMemorySnapshotStore, PostgresSnapshotStore, SnapshotStore, create_store

__all__ = [
    "AccessControlList",
    "AccessDenied",
    "CiphertextBackend",
    "configure_logging",
    "CoordinateDomain",
    "create_service",
    "create_store",
    "DecryptionOracle",
    "DomainUnsupported",
    "EncryptedHandle",
    "HandlePair",
    "InvalidCredentials",
    "InMemorySnapshotStore",
    "load_settings",
    "LocalCiphertextBackend",
    "PlayerNotRegistered",
    "PlayerRecord",
    "PlayerStatus",
    "PositionRegistry",
    "PostgresSnapshotStore",
    "PUBLIC_GRANTEE",
    "RandomAssignment",
    "RegistryError",
    "RegistryService",
    "RegistrySettings",
    "SnapshotStore",
]
