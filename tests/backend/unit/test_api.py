import asyncio

import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from veilofplay.backend.api import EventWebSocketHub, create_app
from veilofplay.backend.config import RegistrySettings
from veilofplay.backend.service import create_service
from veilofplay.backend.store import InMemorySnapshotStore

SETTINGS = RegistrySettings(
    grid_min=1,
    grid_max=10,
    ciphertext_bits=8,
    protocol_id=7,
    permit_secret="api-secret",
    server_salt="api-salt",
    database_url=None,
    host="127.0.0.1",
    port=8000,
    log_level="INFO",
)


def _client() -> TestClient:
    service = create_service(SETTINGS, store=InMemorySnapshotStore())
    return TestClient(create_app(service=service))


def _auth(identity: str, token: str | None) -> dict[str, str]:
    headers = {"X-Identity": identity}
    if token is not None:
        headers["X-Player-Token"] = token
    return headers


def _join(client: TestClient, identity: str) -> dict:
    response = client.post("/api/players/join", headers={"X-Identity": identity})
    assert response.status_code == 200
    return response.json()


def test_join_returns_handles_token_and_status() -> None:
    client = _client()

    data = _join(client, "alice")

    assert data["x"].startswith("0x") and len(data["x"]) == 66
    assert data["x"] != data["y"]
    assert data["token"]
    status = client.get("/api/players/alice/status").json()
    assert status == {"joined": True, "is_public": False}
    assert client.get("/api/players/alice/position").json() == {"x": data["x"], "y": data["y"]}


def test_join_requires_identity_header() -> None:
    client = _client()

    response = client.post("/api/players/join")

    assert response.status_code == 422


def test_rejoin_needs_token_and_does_not_reissue_it() -> None:
    client = _client()
    first = _join(client, "alice")

    hijack = client.post("/api/players/join", headers={"X-Identity": "alice"})
    rejoin = client.post("/api/players/join", headers=_auth("alice", first["token"]))

    assert hijack.status_code == 403
    assert rejoin.status_code == 200
    assert rejoin.json()["token"] is None
    assert rejoin.json()["x"] != first["x"]


def test_unknown_player_reads_defaults() -> None:
    client = _client()

    assert client.get("/api/players/ghost/status").json() == {"joined": False, "is_public": False}
    assert client.get("/api/players/ghost/position").json() == {"x": None, "y": None}
    assert client.get("/api/players").json() == {"players": []}


def test_reroll_and_publish_before_join_conflict() -> None:
    client = _client()

    reroll = client.post("/api/players/reroll", headers={"X-Identity": "alice"})
    publish = client.post("/api/players/publish", headers={"X-Identity": "alice"})

    assert reroll.status_code == 409
    assert publish.status_code == 409


def test_impersonated_reroll_and_publish_are_rejected() -> None:
    client = _client()
    alice = _join(client, "alice")
    bob = _join(client, "bob")

    missing = client.post("/api/players/reroll", headers=_auth("alice", None))
    wrong = client.post("/api/players/reroll", headers=_auth("alice", "guessed-token"))
    borrowed = client.post("/api/players/publish", headers=_auth("alice", bob["token"]))

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert borrowed.status_code == 403
    assert client.get("/api/players/alice/status").json() == {"joined": True, "is_public": False}
    assert client.get("/api/players/alice/position").json() == {"x": alice["x"], "y": alice["y"]}


def test_impersonated_decrypt_is_rejected() -> None:
    client = _client()
    alice = _join(client, "alice")
    bob = _join(client, "bob")
    body = {"handle": alice["x"]}

    missing = client.post("/api/decrypt", json=body, headers=_auth("alice", None))
    wrong = client.post("/api/decrypt", json=body, headers=_auth("alice", "guessed-token"))
    borrowed = client.post("/api/decrypt", json=body, headers=_auth("alice", bob["token"]))
    unjoined = client.post("/api/decrypt", json=body, headers=_auth("mallory", "anything"))

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert borrowed.status_code == 403
    assert unjoined.status_code == 403


def test_user_and_public_decryption_follow_grants() -> None:
    client = _client()
    alice = _join(client, "alice")
    bob = _join(client, "bob")
    body = {"handle": alice["x"]}

    own = client.post("/api/decrypt", json=body, headers=_auth("alice", alice["token"]))
    other = client.post("/api/decrypt", json=body, headers=_auth("bob", bob["token"]))
    public_before = client.post("/api/public-decrypt", json=body)

    assert own.status_code == 200
    assert 1 <= own.json()["value"] <= 10
    assert other.status_code == 403
    assert public_before.status_code == 403

    published = client.post("/api/players/publish", headers=_auth("alice", alice["token"]))
    public_after = client.post("/api/public-decrypt", json=body)

    assert published.json() == {"x": alice["x"], "y": alice["y"]}
    assert public_after.status_code == 200
    assert public_after.json()["value"] == own.json()["value"]


def test_reroll_makes_position_private_again() -> None:
    client = _client()
    alice = _join(client, "alice")
    client.post("/api/players/publish", headers=_auth("alice", alice["token"]))

    rerolled = client.post("/api/players/reroll", headers=_auth("alice", alice["token"])).json()

    assert client.get("/api/players/alice/status").json() == {"joined": True, "is_public": False}
    assert client.post("/api/public-decrypt", json={"handle": rerolled["y"]}).status_code == 403


def test_malformed_handle_is_rejected() -> None:
    client = _client()
    alice = _join(client, "alice")

    response = client.post("/api/decrypt", json={"handle": "not-a-handle"}, headers=_auth("alice", alice["token"]))

    assert response.status_code == 422


def test_players_grid_and_protocol() -> None:
    client = _client()
    alice = _join(client, "alice")
    _join(client, "bob")
    client.post("/api/players/join", headers=_auth("alice", alice["token"]))

    assert client.get("/api/players").json() == {"players": ["alice", "bob"]}
    assert client.get("/api/grid").json() == {"min": 1, "max": 10}
    assert client.get("/api/protocol").json() == {"protocol_id": 7}


def test_event_websocket_sends_directory_on_connect() -> None:
    client = _client()
    _join(client, "alice")

    with client.websocket_connect("/ws/events") as websocket:
        hello = websocket.receive_json()

    assert hello == {"type": "registry.players", "players": ["alice"]}


class _FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self._fail = fail

    async def accept(self) -> None:
        return None

    async def send_json(self, payload: dict) -> None:
        if self._fail:
            raise RuntimeError("closed")
        self.sent.append(payload)


def test_hub_broadcasts_events_and_drops_stale_connections() -> None:
    hub = EventWebSocketHub()
    live = _FakeWebSocket()
    stale = _FakeWebSocket(fail=True)
    service = create_service(SETTINGS, store=InMemorySnapshotStore())
    result = service.join("alice")

    async def scenario() -> None:
        await hub.connect(live)
        await hub.connect(stale)
        await hub.broadcast_events(result.events)
        await hub.broadcast_events(result.events)

    asyncio.run(scenario())

    assert [payload["event"]["kind"] for payload in live.sent] == [
        "player_joined",
        "position_assigned",
        "player_joined",
        "position_assigned",
    ]
    assert stale.sent == []


def test_decrypt_request_uses_the_handle_model_pattern() -> None:
    from veilofplay.backend import api, models

    assert api.HANDLE_PATTERN is models.HANDLE_PATTERN
    with pytest.raises(ValueError):
        models.EncryptedHandle("0X" + "AB" * 32)
