"""Task runner for joining, publishing and decrypting positions over the HTTP API."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any
from urllib import error, request

DEFAULT_SERVER = "http://127.0.0.1:8000"


class TaskError(RuntimeError):
    pass


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Veil of Play tasks")
    parser.add_argument("--server", default=DEFAULT_SERVER)
    subparsers = parser.add_subparsers(dest="task", required=True)

    subparsers.add_parser("bounds", help="Print the grid bounds and protocol id")

    for name, help_text in (
        ("join", "Join the map and get encrypted coordinates"),
        ("decrypt-position", "Decrypt your encrypted coordinates"),
        ("make-public", "Make your coordinates publicly decryptable"),
        ("reroll", "Reroll your coordinates, making them private again"),
    ):
        task_parser = subparsers.add_parser(name, help=help_text)
        task_parser.add_argument("--identity", required=True)
        task_parser.add_argument("--token", default=None, help="Token returned by the first join")

    public_parser = subparsers.add_parser("public-decrypt", help="Publicly decrypt a player's coordinates")
    public_parser.add_argument("--player", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the registry API with uvicorn")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    return parser.parse_args(argv)


def call_api(
    server: str,
    method: str,
    path: str,
    identity: str | None = None,
    payload: dict[str, Any] | None = None,
    token: str | None = None,
) -> dict[str, Any]:
    headers = {"Accept": "application/json"}
    data: bytes | None = None
    if identity is not None:
        headers["X-Identity"] = identity
    if token is not None:
        headers["X-Player-Token"] = token
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload).encode("utf-8")

    req = request.Request(f"{server}{path}", data=data, headers=headers, method=method)
    try:
        with request.urlopen(req, timeout=10) as response:
            return json.loads(response.read().decode("utf-8"))
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise TaskError(f"{method} {path} failed with {exc.code}: {detail}") from exc
    except error.URLError as exc:
        raise TaskError(f"Server {server} not reachable: {exc.reason}") from exc


def _decrypt_pair(
    server: str,
    position: dict[str, Any],
    identity: str | None,
    token: str | None = None,
) -> tuple[int, int]:
    path = "/api/decrypt" if identity is not None else "/api/public-decrypt"
    clear_x = call_api(server, "POST", path, identity=identity, payload={"handle": position["x"]}, token=token)["value"]
    clear_y = call_api(server, "POST", path, identity=identity, payload={"handle": position["y"]}, token=token)["value"]
    return clear_x, clear_y


def run_task(args: argparse.Namespace) -> list[str]:
    """Execute a task against the API and return the lines to print."""
    server = args.server
    if args.task == "bounds":
        grid = call_api(server, "GET", "/api/grid")
        protocol = call_api(server, "GET", "/api/protocol")
        return [f"Grid bounds: {grid['min']}..{grid['max']}", f"Confidential protocol id: {protocol['protocol_id']}"]

    if args.task in ("join", "reroll"):
        path = "/api/players/join" if args.task == "join" else "/api/players/reroll"
        position = call_api(server, "POST", path, identity=args.identity, token=args.token)
        token = position.get("token") or args.token
        clear_x, clear_y = _decrypt_pair(server, position, args.identity, token)
        verb = "Joined" if args.task == "join" else "Rerolled"
        lines = [f"{verb} with coordinates: x={clear_x} y={clear_y}"]
        if position.get("token"):
            lines.append(f"Player token (keep it secret): {position['token']}")
        return lines

    if args.task == "decrypt-position":
        position = call_api(server, "GET", f"/api/players/{args.identity}/position")
        if position["x"] is None:
            return ["Player has not joined"]
        clear_x, clear_y = _decrypt_pair(server, position, args.identity, args.token)
        return [
            f"Encrypted X: {position['x']}",
            f"Encrypted Y: {position['y']}",
            f"Decrypted coordinates -> x={clear_x} y={clear_y}",
        ]

    if args.task == "make-public":
        call_api(server, "POST", "/api/players/publish", identity=args.identity, token=args.token)
        return ["Position marked as public"]


    if args.task == "public-decrypt":
        status = call_api(server, "GET", f"/api/players/{args.player}/status")
        if not status["joined"]:
            return ["Player has not joined"]
        if not status["is_public"]:
            return ["Player position is not public yet"]
        position = call_api(server, "GET", f"/api/players/{args.player}/position")
        clear_x, clear_y = _decrypt_pair(server, position, None)
        return [f"Public coordinates for {args.player} -> x={clear_x} y={clear_y}"]

    raise TaskError(f"Unknown task {args.task!r}")


def serve(host: str | None, port: int | None) -> None:
    import uvicorn

    from veilofplay.backend.config import configure_logging, load_settings

    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "veilofplay.backend.api:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.task == "serve":
        serve(host=args.host, port=args.port)
        return 0

    try:
        lines = run_task(args)
    except TaskError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    for line in lines:
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
