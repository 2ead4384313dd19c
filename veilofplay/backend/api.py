"""FastAPI endpoints for registry operations, decryption and event streaming."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .config import configure_logging, load_settings
from .errors import AccessDenied, InvalidCredentials, PlayerNotRegistered
from .models import HANDLE_PATTERN, EncryptedHandle, HandlePair, RegistryEvent
from .service import MutationResult, RegistryService, create_service


class HandlePairResponse(BaseModel):
    x: str | None
    y: str | None


class JoinResponse(HandlePairResponse):
    token: str | None = None


class PlayerStatusResponse(BaseModel):
    joined: bool
    is_public: bool


class PlayersResponse(BaseModel):
    players: list[str]


class GridBoundsResponse(BaseModel):
    min: int
    max: int


class ProtocolResponse(BaseModel):
    protocol_id: int


class DecryptRequest(BaseModel):
    handle: str = Field(pattern=HANDLE_PATTERN)


class DecryptResponse(BaseModel):
    handle: str
    value: int


class EventWebSocketHub:
    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast_events(self, events: list[RegistryEvent]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in self._connections:
            try:
                for event in events:
                    await websocket.send_json({"type": "registry.event", "event": event.to_dict()})
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(websocket)


def _pair_response(handles: HandlePair) -> HandlePairResponse:
    return HandlePairResponse(**handles.to_dict())


def _default_service() -> RegistryService:
    settings = load_settings()
    configure_logging(settings.log_level)
    return create_service(settings)


def create_app(service: RegistryService | None = None) -> FastAPI:
    app = FastAPI(title="Veil of Play Registry API", version="0.1.0")
    registry_service = service if service is not None else _default_service()
    websocket_hub = EventWebSocketHub()
    app.state.websocket_hub = websocket_hub

    def get_service() -> RegistryService:
        return registry_service

    async def publish(result: MutationResult) -> HandlePairResponse:
        await websocket_hub.broadcast_events(result.events)
        return _pair_response(result.handles)

    def run_mutation(operation: Callable[[], MutationResult]) -> MutationResult:
        try:
            return operation()
        except InvalidCredentials as exc:
            raise HTTPException(status_code=403, detail="Token invalid for identity") from exc
        except PlayerNotRegistered as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @app.post("/api/players/join", response_model=JoinResponse)
    async def join(
        x_identity: str = Header(min_length=1),
        x_player_token: str | None = Header(default=None),
        local_service: RegistryService = Depends(get_service),
    ) -> JoinResponse:
        result = run_mutation(lambda: local_service.join(x_identity, x_player_token))
        handles = await publish(result)
        return JoinResponse(x=handles.x, y=handles.y, token=result.token)

    @app.post("/api/players/reroll", response_model=HandlePairResponse)
    async def reroll(
        x_identity: str = Header(min_length=1),
        x_player_token: str | None = Header(default=None),
        local_service: RegistryService = Depends(get_service),
    ) -> HandlePairResponse:
        return await publish(run_mutation(lambda: local_service.reroll_position(x_identity, x_player_token)))

    @app.post("/api/players/publish", response_model=HandlePairResponse)
    async def make_public(
        x_identity: str = Header(min_length=1),
        x_player_token: str | None = Header(default=None),
        local_service: RegistryService = Depends(get_service),
    ) -> HandlePairResponse:
        return await publish(run_mutation(lambda: local_service.make_position_public(x_identity, x_player_token)))

    @app.get("/api/players", response_model=PlayersResponse)
    def list_players(local_service: RegistryService = Depends(get_service)) -> PlayersResponse:
        return PlayersResponse(players=local_service.get_all_players())

    @app.get("/api/players/{identity}/position", response_model=HandlePairResponse)
    def get_position(identity: str, local_service: RegistryService = Depends(get_service)) -> HandlePairResponse:
        return _pair_response(local_service.get_encrypted_position(identity))

    @app.get("/api/players/{identity}/status", response_model=PlayerStatusResponse)
    def get_status(identity: str, local_service: RegistryService = Depends(get_service)) -> PlayerStatusResponse:
        status = local_service.get_player_status(identity)
        return PlayerStatusResponse(joined=status.joined, is_public=status.is_public)

    @app.get("/api/grid", response_model=GridBoundsResponse)
    def get_grid(local_service: RegistryService = Depends(get_service)) -> GridBoundsResponse:
        minimum, maximum = local_service.get_grid_bounds()
        return GridBoundsResponse(min=minimum, max=maximum)

    @app.get("/api/protocol", response_model=ProtocolResponse)
    def get_protocol(local_service: RegistryService = Depends(get_service)) -> ProtocolResponse:
        return ProtocolResponse(protocol_id=local_service.confidential_protocol_id())

    @app.post("/api/decrypt", response_model=DecryptResponse)
    def decrypt(
        payload: DecryptRequest,
        x_identity: str = Header(min_length=1),
        x_player_token: str | None = Header(default=None),
        local_service: RegistryService = Depends(get_service),
    ) -> DecryptResponse:
        try:
            value = local_service.decrypt(EncryptedHandle(payload.handle), x_identity, x_player_token)
        except InvalidCredentials as exc:
            raise HTTPException(status_code=403, detail="Token invalid for identity") from exc
        except AccessDenied as exc:
            raise HTTPException(status_code=403, detail="Decryption not allowed") from exc
        return DecryptResponse(handle=payload.handle, value=value)

    @app.post("/api/public-decrypt", response_model=DecryptResponse)
    def public_decrypt(
        payload: DecryptRequest,
        local_service: RegistryService = Depends(get_service),
    ) -> DecryptResponse:
        try:
            value = local_service.public_decrypt(EncryptedHandle(payload.handle))
        except AccessDenied as exc:
            raise HTTPException(status_code=403, detail="Handle is not publicly decryptable") from exc
        return DecryptResponse(handle=payload.handle, value=value)

    @app.websocket("/ws/events")
    async def events_ws(websocket: WebSocket, local_service: RegistryService = Depends(get_service)) -> None:
        await websocket_hub.connect(websocket)
        await websocket.send_json({"type": "registry.players", "players": local_service.get_all_players()})
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(websocket)

    return app


app = create_app()
