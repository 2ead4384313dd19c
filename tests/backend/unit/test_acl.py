from veilofplay.backend.acl import AccessControlList
from veilofplay.backend.models import PUBLIC_GRANTEE, EncryptedHandle
from veilofplay.backend.security import verify_permit

HANDLE_A = EncryptedHandle("0x" + "aa" * 32)
HANDLE_B = EncryptedHandle("0x" + "bb" * 32)


def test_grant_is_idempotent_and_ordered() -> None:
    acl = AccessControlList(permit_secret="secret")

    acl.grant(HANDLE_A, "alice")
    acl.grant(HANDLE_A, "alice")
    acl.grant(HANDLE_A, PUBLIC_GRANTEE)

    assert acl.grantees(HANDLE_A) == ("alice", PUBLIC_GRANTEE)


def test_is_granted_has_no_implicit_grants() -> None:
    acl = AccessControlList(permit_secret="secret")
    acl.grant(HANDLE_A, "alice")

    assert acl.is_granted(HANDLE_A, "alice") is True
    assert acl.is_granted(HANDLE_A, "bob") is False
    assert acl.is_granted(HANDLE_B, "alice") is False


def test_public_grant_satisfies_any_requester() -> None:
    acl = AccessControlList(permit_secret="secret")
    acl.grant(HANDLE_A, PUBLIC_GRANTEE)

    assert acl.is_granted(HANDLE_A, "anyone") is True
    assert acl.is_granted(HANDLE_A, PUBLIC_GRANTEE) is True


def test_issue_permit_only_for_recorded_grants() -> None:
    acl = AccessControlList(permit_secret="secret")
    acl.grant(HANDLE_A, "alice")

    permit = acl.issue_permit(HANDLE_A, "alice")

    assert permit is not None
    assert permit.handle == HANDLE_A
    assert verify_permit(permit, "secret") is True
    assert acl.issue_permit(HANDLE_A, "bob") is None
    assert acl.issue_permit(HANDLE_B, "alice") is None


def test_load_grants_replaces_export() -> None:
    acl = AccessControlList(permit_secret="secret")
    acl.grant(HANDLE_A, "alice")

    restored = AccessControlList(permit_secret="secret")
    restored.load_grants(acl.export_grants())

    assert restored.grantees(HANDLE_A) == ("alice",)
